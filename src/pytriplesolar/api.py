"""Low-level GraphQL client for the TripleSolar control API.

This module provides authenticated request/response exchanges against the
GraphQL endpoint, with one bounded authentication recovery per call.
Responses are returned as parsed envelopes; GraphQL ``errors`` arrays and
``success: false`` results are data for the caller to interpret.
"""

from __future__ import annotations

import json
import logging
import time
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, NoReturn

from aiohttp import ClientError, ClientSession, ClientTimeout

from pytriplesolar.const import (
    API_ORIGIN,
    DEFAULT_API_URL,
    DEFAULT_TIMEOUT,
    REASON_AUTHENTICATION_FAILED,
    REASON_LOGIN_REQUIRED,
    USER_AGENT,
)
from pytriplesolar.exceptions import (
    AuthenticationError,
    AuthenticationExhaustedError,
    MalformedResponseError,
    TripleSolarConnectionError,
    TripleSolarError,
    TripleSolarTimeoutError,
    UnauthenticatedError,
)
from pytriplesolar.queries import (
    READ_HEAT_PUMP_SETTINGS_OPERATION,
    READ_HEAT_PUMP_SETTINGS_QUERY,
    SET_DHW_MODE_MUTATION,
    SET_DHW_MODE_OPERATION,
    SET_TARGET_TEMPERATURE_MUTATION,
    SET_TARGET_TEMPERATURE_OPERATION,
    UPDATE_PVT_HEAT_PUMP_MUTATION,
    UPDATE_PVT_HEAT_PUMP_OPERATION,
)


if TYPE_CHECKING:
    from types import TracebackType

    from pytriplesolar.auth import TokenManager
    from pytriplesolar.availability import AvailabilityMonitor

_LOGGER = logging.getLogger(__name__)

# Length of response excerpts included in log lines and error messages
_EXCERPT_LENGTH = 200


class TripleSolarAPI:
    """Low-level GraphQL client for the TripleSolar platform.

    Every call is one authenticated POST. On HTTP 401 the client makes a
    single recovery attempt (token refresh, then full login when a password
    is held) and re-issues the call exactly once; the re-issued call's result
    is returned as-is. A call therefore never sends more than two requests
    to the GraphQL endpoint.

    Example:
        ```python
        from aiohttp import ClientSession
        from pytriplesolar.api import TripleSolarAPI
        from pytriplesolar.auth import TokenManager
        from pytriplesolar.models import Credentials, DeviceSession

        async with ClientSession() as session:
            device_session = DeviceSession(
                interface_id="abc123",
                credentials=Credentials(username="user@example.com", password="pass"),
            )
            tokens = TokenManager(device_session, session=session)
            await tokens.login()

            api = TripleSolarAPI(token_manager=tokens, session=session)
            response = await api.read_heat_pump_settings("abc123")
            print(response["data"]["interface"]["pvtHeatPump"]["dhwMode"])
        ```

    Attributes:
        api_url: GraphQL endpoint URL.
    """

    def __init__(
        self,
        *,
        token_manager: TokenManager,
        session: ClientSession | None = None,
        api_url: str = DEFAULT_API_URL,
        availability: AvailabilityMonitor | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the API client.

        Args:
            token_manager: TokenManager holding the session's tokens.
            session: Optional aiohttp ClientSession. If not provided, one will be
                created when entering the context manager.
            api_url: GraphQL endpoint URL.
            availability: Optional monitor marked unavailable when
                authentication cannot be recovered.
            timeout: Per-request timeout in seconds.
        """
        self.api_url = api_url.rstrip("/")
        self._token_manager = token_manager
        self._session = session
        self._owns_session = session is None
        self._availability = availability
        self._timeout = timeout

    @property
    def token_manager(self) -> TokenManager:
        """Get the token manager used for authentication."""
        return self._token_manager

    async def __aenter__(self) -> TripleSolarAPI:
        """Enter the context manager.

        Creates a session if needed and shares it with the token manager.

        Returns:
            Self for use in async with statements.
        """
        if self._session is None:
            self._session = ClientSession()
            self._owns_session = True

        self._token_manager.set_session(self._session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context manager, closing the session if this client created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def call(
        self,
        operation: str,
        variables: dict[str, Any],
        query: str,
    ) -> dict[str, Any]:
        """Issue one authenticated GraphQL operation.

        Args:
            operation: GraphQL operation name.
            variables: Operation variables.
            query: GraphQL document.

        Returns:
            Parsed response envelope (``data`` and/or ``errors``).

        Raises:
            UnauthenticatedError: On 401 with no refresh token held.
            AuthenticationExhaustedError: If refresh and login both failed.
            AuthenticationError: If the re-issued call is still unauthorized.
            TripleSolarConnectionError: On connection failure or non-401 HTTP error.
            TripleSolarTimeoutError: If a request times out.
            MalformedResponseError: If the body is not a JSON object.
            RuntimeError: If session is not initialized or is closed.
        """
        body = {"operationName": operation, "variables": variables, "query": query}

        status, text = await self._send(operation, body)

        if status == HTTPStatus.UNAUTHORIZED:
            _LOGGER.info("Received 401 unauthorized for %s, attempting to recover authentication", operation)
            await self._recover(operation)

            status, text = await self._send(operation, body)
            if status == HTTPStatus.UNAUTHORIZED:
                msg = f"API {operation} still unauthorized after reauthentication"
                raise AuthenticationError(msg)

        return self._parse(operation, status, text)

    async def _send(self, operation: str, body: dict[str, Any]) -> tuple[int, str]:
        if self._session is None:
            msg = "Session not initialized. Use 'async with' or provide a session."
            raise RuntimeError(msg)

        if self._session.closed:
            msg = "Session is closed. Cannot make request."
            raise RuntimeError(msg)

        headers = {
            "accept": "*/*",
            "content-type": "application/json",
            "authorization": f"Bearer {self._token_manager.credentials.access_token or ''}",
            "origin": API_ORIGIN,
            "user-agent": USER_AGENT,
        }
        timeout = ClientTimeout(total=self._timeout)
        started = time.monotonic()

        try:
            async with self._session.post(self.api_url, json=body, headers=headers, timeout=timeout) as response:
                text = await response.text()
                _LOGGER.debug(
                    "API %s completed in %dms with status %d",
                    operation,
                    (time.monotonic() - started) * 1000,
                    response.status,
                )
                return response.status, text

        except TimeoutError as exc:
            _LOGGER.warning("Request %s to %s timed out", operation, self.api_url)
            msg = f"API {operation} timed out"
            raise TripleSolarTimeoutError(msg) from exc

        except ClientError as exc:
            _LOGGER.warning("Connection error for %s: %s", operation, exc)
            msg = f"Failed to connect to API: {exc}"
            raise TripleSolarConnectionError(msg) from exc

    async def _recover(self, operation: str) -> None:
        """Make the single authentication recovery attempt for a call."""
        if not self._token_manager.credentials.refresh_token:
            _LOGGER.error("No refresh token available for %s, login required", operation)
            self._mark_unavailable(REASON_LOGIN_REQUIRED)
            msg = "Authentication failed, no refresh token available"
            raise UnauthenticatedError(msg)

        try:
            await self._token_manager.refresh()
        except TripleSolarError as exc:
            refresh_error: TripleSolarError = exc
        else:
            _LOGGER.debug("Token refreshed, retrying %s", operation)
            return

        if not self._token_manager.credentials.can_login:
            self._raise_unrecoverable(refresh_error, "token could not be renewed")

        _LOGGER.info("Token refresh failed (%s), trying to login again", refresh_error)
        try:
            await self._token_manager.login()
        except TripleSolarError as exc:
            self._raise_unrecoverable(exc, "could not login again")

        _LOGGER.debug("Login successful, retrying %s", operation)

    def _raise_unrecoverable(self, error: TripleSolarError, detail: str) -> NoReturn:
        if not isinstance(error, AuthenticationError | MalformedResponseError):
            # Transport failures are not evidence of bad credentials
            raise error

        _LOGGER.error("Authentication failed, %s: %s", detail, error)
        self._mark_unavailable(REASON_AUTHENTICATION_FAILED)
        msg = f"Authentication failed, {detail}"
        raise AuthenticationExhaustedError(msg) from error

    def _mark_unavailable(self, reason: str) -> None:
        if self._availability is not None:
            self._availability.mark_unavailable(reason)

    @staticmethod
    def _parse(operation: str, status: int, text: str) -> dict[str, Any]:
        if not HTTPStatus.OK <= status < HTTPStatus.MULTIPLE_CHOICES:
            _LOGGER.debug("API %s response content: %s", operation, text[:_EXCERPT_LENGTH])
            msg = f"API {operation} failed with status {status}"
            raise TripleSolarConnectionError(msg, status=status)

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON in API response: {text[:100]}"
            raise MalformedResponseError(msg) from exc

        if not isinstance(payload, dict):
            msg = f"Unexpected API response for {operation}: expected a JSON object"
            raise MalformedResponseError(msg)

        return payload

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def read_heat_pump_settings(self, interface_id: str) -> dict[str, Any]:
        """Fetch the telemetry snapshot of an interface.

        Args:
            interface_id: Remote interface identifier.

        Returns:
            Response envelope with ``data.interface`` holding device, controller,
            heat pump, OpenTherm and modem status fields.
        """
        return await self.call(
            READ_HEAT_PUMP_SETTINGS_OPERATION,
            {"interfaceId": interface_id},
            READ_HEAT_PUMP_SETTINGS_QUERY,
        )

    async def set_target_temperature(self, interface_id: str, temperature: float) -> dict[str, Any]:
        """Set the boiler target temperature.

        Returns:
            Response envelope with ``data.setTargetTemperature = {success, message}``.
        """
        return await self.call(
            SET_TARGET_TEMPERATURE_OPERATION,
            {"interfaceId": interface_id, "temperature": temperature},
            SET_TARGET_TEMPERATURE_MUTATION,
        )

    async def update_pvt_heat_pump(self, interface_ids: list[str], data: dict[str, Any]) -> dict[str, Any]:
        """Update heat pump settings on one or more interfaces.

        Returns:
            Response envelope with ``data.updatePvtHeatPump`` as boolean or null.
        """
        return await self.call(
            UPDATE_PVT_HEAT_PUMP_OPERATION,
            {"interfaceIds": interface_ids, "pvtHeatPumpdata": data},
            UPDATE_PVT_HEAT_PUMP_MUTATION,
        )

    async def set_dhw_mode(self, interface_id: str, mode: str) -> dict[str, Any]:
        """Set the domestic hot water mode.

        Returns:
            Response envelope with ``data.setDhwMode = {success, message}``.
        """
        return await self.call(
            SET_DHW_MODE_OPERATION,
            {"interfaceId": interface_id, "mode": mode},
            SET_DHW_MODE_MUTATION,
        )
