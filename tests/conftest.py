"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from aiohttp import ClientSession, web

from pytriplesolar.models import Credentials, DeviceSession
from pytriplesolar.shell import LocalDeviceShell


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from aiohttp.test_utils import TestClient


TEST_USERNAME = "user@example.com"
TEST_PASSWORD = "secret"
TEST_INTERFACE_ID = "interface-1"

GraphQLHandler = Callable[[dict[str, Any]], "dict[str, Any] | web.StreamResponse"]


def build_interface_response(
    *,
    dhw_mode: str = "AUTO",
    compressor_on: bool = True,
    source_pump_perc: float | None = 40,
    dhw_boiler_temp: float = 48.5,
) -> dict[str, Any]:
    """Build a ReadHeatPumpSettings response envelope."""
    return {
        "data": {
            "interface": {
                "id": TEST_INTERFACE_ID,
                "name": "Boiler room",
                "firmwareVersion": {"version": "1.4.2", "timestamp": "2024-03-01T00:00:00Z"},
                "controller": {"backupHeater": False, "chSetpMaxTemp": 55, "manualCoolingMode": False},
                "pvtHeatPump": {
                    "id": "hp-1",
                    "firmwareVersion": "2.0.1",
                    "dhwMode": dhw_mode,
                    "dhwState": "HEATING",
                    "spaceHeatingCoolingState": "IDLE",
                    "flushingMode": "OFF",
                    "dhwAutoTemp": 50,
                    "dhwBoilerTemp": dhw_boiler_temp,
                    "sourceInTemp": 8.5,
                    "sourceOutTemp": 5.25,
                    "sinkInTemp": 30.0,
                    "sinkOutTemp": 35.5,
                    "compressorDischarge": 70.1,
                    "compressorOn": compressor_on,
                    "electricElementOn": False,
                    "pumpRelayOn": True,
                    "sourcePumpPerc": source_pump_perc,
                    "sinkPumpPerc": 60,
                    "shBoostEnabled": False,
                    "dhwBoostEnabled": False,
                    "errors": [],
                },
                "openTherm": {"roomTemp": 20.5, "roomSetpTemp": 21.0},
                "status": {"signalStrength": 18, "operatorName": "KPN"},
                "openThermBoilerConnected": False,
            }
        }
    }


class FakeBackend:
    """In-process TripleSolar backend serving auth and GraphQL endpoints.

    Attributes:
        accounts: Known username/password pairs.
        access_tokens: Currently accepted access tokens.
        refresh_tokens: Currently accepted refresh tokens.
        graphql: Handlers keyed by operation name.
        login_requests: Number of login requests received.
        refresh_requests: Number of refresh requests received.
        graphql_requests: Number of GraphQL requests received, authorized or not.
        operations: Operation names of GraphQL requests received, in order.
    """

    def __init__(self) -> None:
        self.accounts = {TEST_USERNAME: TEST_PASSWORD}
        self.access_tokens: set[str] = set()
        self.refresh_tokens: set[str] = set()
        self.graphql: dict[str, GraphQLHandler | dict[str, Any]] = {
            "ReadHeatPumpSettings": build_interface_response(),
        }
        self.login_requests = 0
        self.refresh_requests = 0
        self.graphql_requests = 0
        self.operations: list[str] = []
        self.variables: list[dict[str, Any]] = []
        self._issued = 0

        self.app = web.Application()
        self.app.router.add_post("/auth/login", self._login)
        self.app.router.add_post("/auth/refresh", self._refresh)
        self.app.router.add_post("/graphql", self._graphql)

    def issue_tokens(self) -> tuple[str, str]:
        """Issue and accept a new token pair."""
        self._issued += 1
        access_token = f"access-{self._issued}"
        refresh_token = f"refresh-{self._issued}"
        self.access_tokens.add(access_token)
        self.refresh_tokens.add(refresh_token)
        return access_token, refresh_token

    def expire_access_tokens(self) -> None:
        """Reject every access token issued so far."""
        self.access_tokens.clear()

    def revoke_refresh_tokens(self) -> None:
        """Reject every refresh token issued so far."""
        self.refresh_tokens.clear()

    async def _login(self, request: web.Request) -> web.Response:
        self.login_requests += 1
        body = await request.json()
        if self.accounts.get(body.get("email")) != body.get("password"):
            return web.Response(status=HTTPStatus.UNAUTHORIZED, text="Invalid credentials")

        access_token, refresh_token = self.issue_tokens()
        return web.json_response({"accessToken": access_token, "refreshToken": refresh_token})

    async def _refresh(self, request: web.Request) -> web.Response:
        self.refresh_requests += 1
        body = await request.json()
        if body.get("refreshToken") not in self.refresh_tokens:
            return web.Response(status=HTTPStatus.BAD_REQUEST, text="Incorrect token")

        self._issued += 1
        access_token = f"access-{self._issued}"
        self.access_tokens.add(access_token)
        return web.json_response({"accessToken": access_token})

    async def _graphql(self, request: web.Request) -> web.StreamResponse:
        self.graphql_requests += 1
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        if token not in self.access_tokens:
            return web.Response(status=HTTPStatus.UNAUTHORIZED, text="Unauthorized")

        body = await request.json()
        operation = body.get("operationName")
        self.operations.append(operation)
        self.variables.append(body.get("variables") or {})

        handler = self.graphql.get(operation)
        if handler is None:
            return web.json_response({"data": None, "errors": [{"message": f"Unknown operation {operation}"}]})

        result = handler(body) if callable(handler) else handler
        if isinstance(result, web.StreamResponse):
            return result
        return web.json_response(result)


@pytest.fixture
def backend() -> FakeBackend:
    """Create a fake TripleSolar backend."""
    return FakeBackend()


@pytest.fixture
async def server(aiohttp_client: Any, backend: FakeBackend) -> TestClient:
    """Serve the fake backend and return its test client."""
    return await aiohttp_client(backend.app)


@pytest.fixture
def urls(server: TestClient) -> dict[str, str]:
    """Return the auth and GraphQL URLs of the fake backend."""
    return {
        "auth_url": str(server.make_url("/auth")),
        "api_url": str(server.make_url("/graphql")),
    }


@pytest.fixture
def interface_response() -> Callable[..., dict[str, Any]]:
    """Return the ReadHeatPumpSettings response builder."""
    return build_interface_response


@pytest.fixture
def credentials() -> Credentials:
    """Create username/password credentials without tokens."""
    return Credentials(username=TEST_USERNAME, password=TEST_PASSWORD)


@pytest.fixture
def device_session(credentials: Credentials) -> DeviceSession:
    """Create a device session holding username/password credentials."""
    return DeviceSession(interface_id=TEST_INTERFACE_ID, credentials=credentials)


@pytest.fixture
def shell() -> LocalDeviceShell:
    """Create an in-memory device shell."""
    return LocalDeviceShell()


@pytest.fixture
async def mock_session() -> AsyncGenerator[ClientSession]:
    """Create a mock aiohttp ClientSession.

    Yields:
        Mock ClientSession for testing.
    """
    session = AsyncMock(spec=ClientSession)
    session.closed = False

    async def mock_close() -> None:
        session.closed = True

    session.close = mock_close

    yield session

    if not session.closed:
        await session.close()
