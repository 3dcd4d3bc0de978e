"""Tests for the pytriplesolar GraphQL API client."""

from __future__ import annotations

from datetime import UTC, datetime
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from aiohttp import ClientError, web

from pytriplesolar.api import TripleSolarAPI
from pytriplesolar.auth import TokenManager
from pytriplesolar.availability import AvailabilityMonitor
from pytriplesolar.const import REASON_AUTHENTICATION_FAILED, REASON_LOGIN_REQUIRED
from pytriplesolar.exceptions import (
    AuthenticationError,
    AuthenticationExhaustedError,
    MalformedResponseError,
    TripleSolarConnectionError,
    TripleSolarTimeoutError,
    UnauthenticatedError,
)
from pytriplesolar.models import Credentials, DeviceSession


if TYPE_CHECKING:
    from aiohttp import ClientSession
    from aiohttp.test_utils import TestClient
    from conftest import FakeBackend

    from pytriplesolar.shell import LocalDeviceShell


def build_api(
    device_session: DeviceSession,
    session: ClientSession,
    urls: dict[str, str],
    shell: LocalDeviceShell | None = None,
) -> TripleSolarAPI:
    """Create an API client with token manager and availability monitor."""
    tokens = TokenManager(device_session, session=session, auth_url=urls["auth_url"])
    availability = AvailabilityMonitor(device_session, shell)
    return TripleSolarAPI(token_manager=tokens, session=session, api_url=urls["api_url"], availability=availability)


def seed_tokens(device_session: DeviceSession, backend: FakeBackend) -> None:
    """Give the session a token pair the backend accepts."""
    access_token, refresh_token = backend.issue_tokens()
    device_session.credentials = device_session.credentials.with_tokens(access_token, refresh_token, datetime.now(UTC))


@pytest.fixture
def api(
    server: TestClient,
    urls: dict[str, str],
    backend: FakeBackend,
    device_session: DeviceSession,
    shell: LocalDeviceShell,
) -> TripleSolarAPI:
    """Create an authenticated API client against the fake backend."""
    seed_tokens(device_session, backend)
    return build_api(device_session, server.session, urls, shell)


class TestTripleSolarAPIInit:
    """Test TripleSolarAPI initialization."""

    async def test_trailing_slash_removed(self, device_session: DeviceSession) -> None:
        """Test the API URL is normalized."""
        api = TripleSolarAPI(token_manager=TokenManager(device_session), api_url="https://api.example.com/graphql/")
        assert api.api_url == "https://api.example.com/graphql"

    async def test_context_manager_shares_session(self, device_session: DeviceSession) -> None:
        """Test the created session is shared with the token manager and closed on exit."""
        tokens = TokenManager(device_session)
        async with TripleSolarAPI(token_manager=tokens) as api:
            session = api._session
            assert session is not None
            assert tokens._session is session
        assert session.closed

    async def test_call_without_session(self, device_session: DeviceSession) -> None:
        """Test calls fail without a session."""
        api = TripleSolarAPI(token_manager=TokenManager(device_session))
        with pytest.raises(RuntimeError, match="Session not initialized"):
            await api.read_heat_pump_settings("interface-1")


class TestCall:
    """Test plain authenticated calls."""

    async def test_call_success(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test a successful call returns the envelope."""
        response = await api.read_heat_pump_settings("interface-1")

        assert response["data"]["interface"]["pvtHeatPump"]["dhwMode"] == "AUTO"
        assert backend.operations == ["ReadHeatPumpSettings"]
        assert backend.variables == [{"interfaceId": "interface-1"}]
        assert backend.refresh_requests == 0

    async def test_request_headers(self, aiohttp_client: Any) -> None:
        """Test the bearer token and client headers are sent."""
        seen: dict[str, str] = {}
        app = web.Application()

        async def graphql(request: web.Request) -> web.Response:
            seen.update({key.lower(): value for key, value in request.headers.items()})
            return web.json_response({"data": {}})

        app.router.add_post("/graphql", graphql)
        client = await aiohttp_client(app)
        device_session = DeviceSession("interface-1", Credentials(access_token="token-1"))
        api = build_api(device_session, client.session, {"auth_url": "", "api_url": str(client.make_url("/graphql"))})

        await api.call("Op", {}, "query Op { x }")

        assert seen["authorization"] == "Bearer token-1"
        assert seen["origin"] == "https://app.triplesolar.eu"
        assert seen["content-type"].startswith("application/json")

    async def test_graphql_errors_are_returned(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test GraphQL errors are data, not exceptions."""
        backend.graphql["ReadHeatPumpSettings"] = {"data": None, "errors": [{"message": "Interface offline"}]}

        response = await api.read_heat_pump_settings("interface-1")

        assert response["errors"] == [{"message": "Interface offline"}]

    async def test_success_false_is_returned(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test a rejected mutation result is returned as data."""
        backend.graphql["SetTargetTemperature"] = {
            "data": {"setTargetTemperature": {"success": False, "message": "Out of range"}}
        }

        response = await api.set_target_temperature("interface-1", 99)

        assert response["data"]["setTargetTemperature"]["success"] is False
        assert backend.variables[-1] == {"interfaceId": "interface-1", "temperature": 99}

    async def test_server_error(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test a non-401 HTTP error is a connection error with status."""
        backend.graphql["ReadHeatPumpSettings"] = lambda body: web.Response(status=HTTPStatus.SERVICE_UNAVAILABLE)

        with pytest.raises(TripleSolarConnectionError) as exc_info:
            await api.read_heat_pump_settings("interface-1")

        assert exc_info.value.status == HTTPStatus.SERVICE_UNAVAILABLE
        assert backend.refresh_requests == 0

    async def test_malformed_body(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test a non-JSON body is a malformed response."""
        backend.graphql["ReadHeatPumpSettings"] = lambda body: web.Response(text="<html>maintenance</html>")

        with pytest.raises(MalformedResponseError, match="Invalid JSON"):
            await api.read_heat_pump_settings("interface-1")

    async def test_non_object_body(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test a JSON body that is not an object is a malformed response."""
        backend.graphql["ReadHeatPumpSettings"] = lambda body: web.json_response([1, 2, 3])

        with pytest.raises(MalformedResponseError):
            await api.read_heat_pump_settings("interface-1")

    async def test_connection_error(self, device_session: DeviceSession, mock_session: ClientSession) -> None:
        """Test connection failures are wrapped."""
        mock_session.post = MagicMock(side_effect=ClientError("Network unreachable"))
        api = TripleSolarAPI(token_manager=TokenManager(device_session, session=mock_session), session=mock_session)

        with pytest.raises(TripleSolarConnectionError, match="Network unreachable"):
            await api.read_heat_pump_settings("interface-1")

    async def test_timeout(self, device_session: DeviceSession, mock_session: ClientSession) -> None:
        """Test timeouts are wrapped."""
        mock_session.post = MagicMock(side_effect=TimeoutError())
        api = TripleSolarAPI(token_manager=TokenManager(device_session, session=mock_session), session=mock_session)

        with pytest.raises(TripleSolarTimeoutError):
            await api.read_heat_pump_settings("interface-1")


class TestAuthenticationRecovery:
    """Test the single authentication recovery on HTTP 401."""

    async def test_refresh_then_retry(
        self,
        api: TripleSolarAPI,
        backend: FakeBackend,
        device_session: DeviceSession,
    ) -> None:
        """Test an expired access token is refreshed and the call re-issued once."""
        backend.expire_access_tokens()

        response = await api.read_heat_pump_settings("interface-1")

        assert "interface" in response["data"]
        assert backend.refresh_requests == 1
        assert backend.login_requests == 0
        assert backend.graphql_requests == 2
        assert device_session.credentials.access_token in backend.access_tokens

    async def test_login_after_failed_refresh(
        self,
        api: TripleSolarAPI,
        backend: FakeBackend,
    ) -> None:
        """Test a rejected refresh token falls back to a login when a password is held."""
        backend.expire_access_tokens()
        backend.revoke_refresh_tokens()

        await api.read_heat_pump_settings("interface-1")

        assert backend.refresh_requests == 1
        assert backend.login_requests == 1
        assert backend.graphql_requests == 2

    async def test_exhausted_without_password(
        self,
        server: TestClient,
        urls: dict[str, str],
        backend: FakeBackend,
        shell: LocalDeviceShell,
    ) -> None:
        """Test a rejected refresh without a password marks the device unavailable."""
        device_session = DeviceSession("interface-1", Credentials(username="user@example.com"))
        seed_tokens(device_session, backend)
        api = build_api(device_session, server.session, urls, shell)
        backend.expire_access_tokens()
        backend.revoke_refresh_tokens()

        with pytest.raises(AuthenticationExhaustedError):
            await api.read_heat_pump_settings("interface-1")

        assert backend.login_requests == 0
        assert backend.graphql_requests == 1
        assert shell.available is False
        assert shell.unavailable_reason == REASON_AUTHENTICATION_FAILED

    async def test_exhausted_after_failed_login(
        self,
        api: TripleSolarAPI,
        backend: FakeBackend,
        device_session: DeviceSession,
    ) -> None:
        """Test refresh and login both failing exhausts recovery."""
        backend.expire_access_tokens()
        backend.revoke_refresh_tokens()
        backend.accounts.clear()

        with pytest.raises(AuthenticationExhaustedError):
            await api.read_heat_pump_settings("interface-1")

        assert backend.graphql_requests == 1
        assert device_session.available is False
        assert device_session.unavailable_reason == REASON_AUTHENTICATION_FAILED

    async def test_no_refresh_token(
        self,
        server: TestClient,
        urls: dict[str, str],
        backend: FakeBackend,
        shell: LocalDeviceShell,
    ) -> None:
        """Test a 401 without refresh token requires a new login by the user."""
        device_session = DeviceSession("interface-1", Credentials(access_token="stale"))
        api = build_api(device_session, server.session, urls, shell)

        with pytest.raises(UnauthenticatedError):
            await api.read_heat_pump_settings("interface-1")

        assert backend.refresh_requests == 0
        assert backend.graphql_requests == 1
        assert shell.unavailable_reason == REASON_LOGIN_REQUIRED

    async def test_still_unauthorized_after_recovery(self, aiohttp_client: Any) -> None:
        """Test a second 401 is raised without another recovery."""
        counts = {"graphql": 0, "refresh": 0}
        app = web.Application()

        async def graphql(request: web.Request) -> web.Response:
            counts["graphql"] += 1
            return web.Response(status=HTTPStatus.UNAUTHORIZED)

        async def refresh(request: web.Request) -> web.Response:
            counts["refresh"] += 1
            return web.json_response({"accessToken": f"fresh-{counts['refresh']}"})

        app.router.add_post("/graphql", graphql)
        app.router.add_post("/auth/refresh", refresh)
        client = await aiohttp_client(app)
        urls = {"auth_url": str(client.make_url("/auth")), "api_url": str(client.make_url("/graphql"))}
        device_session = DeviceSession("interface-1", Credentials(access_token="a", refresh_token="r"))
        api = build_api(device_session, client.session, urls)

        with pytest.raises(AuthenticationError) as exc_info:
            await api.read_heat_pump_settings("interface-1")

        assert not isinstance(exc_info.value, AuthenticationExhaustedError)
        assert counts == {"graphql": 2, "refresh": 1}
        assert device_session.available is True

    async def test_transport_failure_during_refresh_propagates(self, aiohttp_client: Any) -> None:
        """Test an unreachable auth backend is a connection error, not bad credentials."""
        app = web.Application()

        async def graphql(request: web.Request) -> web.Response:
            return web.Response(status=HTTPStatus.UNAUTHORIZED)

        async def refresh(request: web.Request) -> web.Response:
            return web.Response(status=HTTPStatus.BAD_GATEWAY)

        app.router.add_post("/graphql", graphql)
        app.router.add_post("/auth/refresh", refresh)
        client = await aiohttp_client(app)
        urls = {"auth_url": str(client.make_url("/auth")), "api_url": str(client.make_url("/graphql"))}
        device_session = DeviceSession("interface-1", Credentials(access_token="a", refresh_token="r"))
        api = build_api(device_session, client.session, urls)

        with pytest.raises(TripleSolarConnectionError):
            await api.read_heat_pump_settings("interface-1")

        assert device_session.available is True


class TestOperations:
    """Test the operation wrappers."""

    async def test_update_pvt_heat_pump_variables(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test the heat pump update sends interface list and settings."""
        backend.graphql["UpdatePvtHeatPumpSettings"] = {"data": {"updatePvtHeatPump": True}}

        response = await api.update_pvt_heat_pump(["interface-1"], {"dhwMode": "OFF"})

        assert response == {"data": {"updatePvtHeatPump": True}}
        assert backend.variables[-1] == {"interfaceIds": ["interface-1"], "pvtHeatPumpdata": {"dhwMode": "OFF"}}

    async def test_set_dhw_mode_variables(self, api: TripleSolarAPI, backend: FakeBackend) -> None:
        """Test the boiler mode mutation sends interface and mode."""
        backend.graphql["SetBoilerMode"] = {"data": {"setDhwMode": {"success": True, "message": None}}}

        await api.set_dhw_mode("interface-1", "AUTO")

        assert backend.operations[-1] == "SetBoilerMode"
        assert backend.variables[-1] == {"interfaceId": "interface-1", "mode": "AUTO"}
