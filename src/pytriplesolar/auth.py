"""Token lifecycle management for the TripleSolar API."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import UTC, datetime, timedelta
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from pytriplesolar.const import (
    API_ORIGIN,
    DEFAULT_AUTH_URL,
    DEFAULT_TIMEOUT,
    INVALID_TOKEN_MARKERS,
    REFRESH_TOKEN_MAX_AGE,
    USER_AGENT,
)
from pytriplesolar.exceptions import (
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    MalformedResponseError,
    NoCredentialsError,
    TripleSolarConnectionError,
    TripleSolarError,
    TripleSolarTimeoutError,
)


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from pytriplesolar.credentials import CredentialStore
    from pytriplesolar.models import Credentials, DeviceSession

_LOGGER = logging.getLogger(__name__)

_EMAIL_MASK = re.compile(r"(.{2})(.*)(@.*)")


def mask_username(username: str | None) -> str:
    """Mask an email address for logging (``ab***@example.com``)."""
    if not username:
        return "<none>"
    return _EMAIL_MASK.sub(r"\1***\3", username)


class TokenManager:
    """Manage the access/refresh token pair of one device session.

    The manager performs token refresh and full login against the auth
    backend, decides between the two at start-up, and propagates every new
    token pair to the shared credential store.

    Concurrent ``refresh()`` (or ``login()``) calls are coalesced: while one
    request is in flight, further callers await its result instead of
    issuing a duplicate request that would invalidate the fresh token.

    Credentials Update Callback:
        When a refresh or login succeeds, ``on_credentials_updated`` is
        invoked with the session's new working bundle. Use this to persist
        device-level tokens:

        Example:
            def handle_update(credentials: Credentials) -> None:
                my_device_store.save(credentials.to_dict())

            manager = TokenManager(
                device_session,
                credential_store=store,
                session=http_session,
                on_credentials_updated=handle_update,
            )

    Attributes:
        auth_url: Base URL of the auth backend (without trailing slash).
    """

    def __init__(
        self,
        device_session: DeviceSession,
        *,
        credential_store: CredentialStore | None = None,
        session: ClientSession | None = None,
        auth_url: str = DEFAULT_AUTH_URL,
        on_credentials_updated: Callable[[Credentials], None] | None = None,
        refresh_token_max_age: timedelta = REFRESH_TOKEN_MAX_AGE,
    ) -> None:
        """Initialize the token manager.

        Args:
            device_session: Session whose working credentials are managed.
            credential_store: Optional shared store updated after every
                successful refresh or login.
            session: Optional aiohttp ClientSession. If not provided, one will
                be created when entering the context manager.
            auth_url: Base URL of the auth backend.
            on_credentials_updated: Optional callback receiving the new
                working bundle after each successful refresh or login.
            refresh_token_max_age: Age beyond which start-up skips the refresh
                attempt and logs in directly.
        """
        self.auth_url = auth_url.rstrip("/")
        self._device_session = device_session
        self._credential_store = credential_store
        self._session = session
        self._owns_session = session is None
        self._on_credentials_updated = on_credentials_updated
        self._refresh_token_max_age = refresh_token_max_age
        self._inflight: dict[str, asyncio.Task[Credentials]] = {}

    @property
    def credentials(self) -> Credentials:
        """Get the session's working credential bundle."""
        return self._device_session.credentials

    def set_session(self, session: ClientSession) -> None:
        """Set the aiohttp session for this manager.

        The manager will not take ownership and will not close this session.

        Args:
            session: The aiohttp ClientSession to use for requests.
        """
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> TokenManager:
        """Enter the context manager, creating a session if none was provided."""
        if self._session is None:
            self._session = ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context manager, closing the session if this manager created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()

    def _validate_session(self) -> ClientSession:
        if self._session is None:
            msg = "Session not initialized. Use 'async with' or provide a session."
            raise RuntimeError(msg)

        if self._session.closed:
            msg = "Session is closed. Cannot make requests."
            raise RuntimeError(msg)

        return self._session

    def refresh_token_expired(self, now: datetime | None = None) -> bool:
        """Check if the refresh token is too old to be worth refreshing.

        A token of unknown age counts as expired.

        Args:
            now: Reference time. Defaults to the current UTC time.
        """
        issued_at = self._device_session.last_refresh_at or self.credentials.issued_at
        if issued_at is None:
            return True

        now = now or datetime.now(UTC)
        return now - issued_at > self._refresh_token_max_age

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def refresh(self) -> Credentials:
        """Exchange the refresh token for a new token pair.

        Returns:
            The session's new working credentials.

        Raises:
            InvalidRefreshTokenError: If no refresh token is held or the
                backend rejects it.
            MalformedResponseError: If the response is not JSON.
            TripleSolarConnectionError: On connection failure or server error.
            TripleSolarTimeoutError: If the request times out.
        """
        return await self._coalesce("refresh", self._refresh_attempt)

    async def login(self) -> Credentials:
        """Log in with username and password for a new token pair.

        Returns:
            The session's new working credentials.

        Raises:
            InvalidCredentialsError: If username or password is missing, the
                backend rejects them, or the response lacks either token.
            MalformedResponseError: If the response is not JSON.
            TripleSolarConnectionError: On connection failure or server error.
            TripleSolarTimeoutError: If the request times out.
        """
        return await self._coalesce("login", self._login_attempt)

    async def ensure_authenticated(self, now: datetime | None = None) -> Credentials:
        """Bring the session into an authenticated state at start-up.

        Policy:
        1. A refresh token younger than the maximum age is refreshed; if that
           fails and a password is held, a full login follows.
        2. Otherwise a full login is performed when a password is held.
        3. Otherwise an existing access token is used optimistically until
           the next authorization failure.

        Args:
            now: Reference time for the token age check.

        Returns:
            The session's working credentials.

        Raises:
            NoCredentialsError: If neither tokens nor a password are held.
            AuthenticationError: If refresh/login was attempted and failed.
            TripleSolarError: On transport failure of the final attempt.
        """
        credentials = self.credentials

        if credentials.refresh_token and not self.refresh_token_expired(now):
            _LOGGER.debug("Refreshing access token on startup")
            try:
                return await self.refresh()
            except TripleSolarError as exc:
                if not credentials.can_login:
                    _LOGGER.warning("Access token could not be refreshed and no password available: %s", exc)
                    raise
                _LOGGER.info("Access token could not be refreshed (%s), trying direct login", exc)
            return await self.login()

        if credentials.can_login:
            _LOGGER.debug("Using direct login instead of token refresh")
            return await self.login()

        if credentials.access_token:
            _LOGGER.info("No usable refresh token or password, proceeding with stored access token")
            return credentials

        msg = "No tokens or password available, login required"
        raise NoCredentialsError(msg)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _coalesce(self, kind: str, attempt: Callable[[], Awaitable[Credentials]]) -> Credentials:
        task = self._inflight.get(kind)
        if task is None or task.done():
            task = asyncio.create_task(attempt())
            self._inflight[kind] = task

            def _forget(finished: asyncio.Task[Credentials]) -> None:
                if self._inflight.get(kind) is finished:
                    del self._inflight[kind]
                if not finished.cancelled():
                    finished.exception()  # mark retrieved for callers that went away

            task.add_done_callback(_forget)
        else:
            _LOGGER.debug("Token %s already in flight, awaiting its result", kind)

        return await asyncio.shield(task)

    async def _refresh_attempt(self) -> Credentials:
        refresh_token = self.credentials.refresh_token
        if not refresh_token:
            msg = "No refresh token available"
            raise InvalidRefreshTokenError(msg)

        _LOGGER.debug("Refreshing access token")
        status, text = await self._post("refresh", {"refreshToken": refresh_token})

        lowered = text.lower()
        if status == HTTPStatus.UNAUTHORIZED or any(marker in lowered for marker in INVALID_TOKEN_MARKERS):
            msg = "Token refresh failed: invalid or expired refresh token"
            raise InvalidRefreshTokenError(msg)

        if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            msg = f"Token refresh failed with status {status}"
            raise TripleSolarConnectionError(msg, status=status)

        payload = self._parse_json(text, "refresh")
        access_token = payload.get("accessToken")
        if not access_token:
            msg = f"No access token in refresh response (status {status})"
            raise InvalidRefreshTokenError(msg)

        _LOGGER.debug("New access token received%s", " with new refresh token" if payload.get("refreshToken") else "")
        return await self._apply_tokens(access_token, payload.get("refreshToken"))

    async def _login_attempt(self) -> Credentials:
        credentials = self.credentials
        if not credentials.can_login:
            msg = "Cannot login, username or password is missing"
            raise InvalidCredentialsError(msg)

        _LOGGER.info("Logging in with username %s", mask_username(credentials.username))
        status, text = await self._post(
            "login",
            {"email": credentials.username, "password": credentials.password},
        )

        if status in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN):
            msg = "Login failed: invalid credentials"
            raise InvalidCredentialsError(msg)

        if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
            msg = f"Login failed with status {status}"
            raise TripleSolarConnectionError(msg, status=status)

        payload = self._parse_json(text, "login")
        access_token = payload.get("accessToken")
        refresh_token = payload.get("refreshToken")

        if not access_token:
            msg = f"No access token in login response (status {status})"
            raise InvalidCredentialsError(msg)

        if not refresh_token:
            msg = f"No refresh token in login response (status {status})"
            raise InvalidCredentialsError(msg)

        credentials = await self._apply_tokens(access_token, refresh_token)
        _LOGGER.info("Login successful for %s", mask_username(credentials.username))
        return credentials

    async def _post(self, endpoint: str, body: dict[str, Any]) -> tuple[int, str]:
        session = self._validate_session()
        url = f"{self.auth_url}/{endpoint}"
        headers = {
            "accept": "*/*",
            "content-type": "application/json",
            "origin": API_ORIGIN,
            "user-agent": USER_AGENT,
        }
        timeout = ClientTimeout(total=DEFAULT_TIMEOUT)

        try:
            async with session.post(url, json=body, headers=headers, timeout=timeout) as response:
                text = await response.text()
                _LOGGER.debug(
                    "Auth %s response status %d (%d characters)",
                    endpoint,
                    response.status,
                    len(text),
                )
                return response.status, text

        except TimeoutError as exc:
            msg = f"Auth {endpoint} request timed out"
            raise TripleSolarTimeoutError(msg) from exc

        except ClientError as exc:
            msg = f"Failed to connect to auth backend: {exc}"
            raise TripleSolarConnectionError(msg) from exc

    @staticmethod
    def _parse_json(text: str, endpoint: str) -> dict[str, Any]:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Could not parse {endpoint} response as JSON"
            raise MalformedResponseError(msg) from exc

        if not isinstance(payload, dict):
            msg = f"Unexpected {endpoint} response: expected a JSON object"
            raise MalformedResponseError(msg)

        return payload

    async def _apply_tokens(self, access_token: str, refresh_token: str | None) -> Credentials:
        now = datetime.now(UTC)
        credentials = self.credentials.with_tokens(access_token, refresh_token, now)

        # Single assignment: the working pair is swapped as one record
        self._device_session.credentials = credentials
        self._device_session.last_refresh_at = now

        if credentials.has_token_pair:
            await self._publish(credentials)
        return credentials

    async def _publish(self, credentials: Credentials) -> None:
        store = self._credential_store
        if store is not None:

            def _store() -> None:
                store.set(credentials.merged_into(store.get()))

            # Stores may touch the disk
            await asyncio.to_thread(_store)

        if self._on_credentials_updated is not None:
            try:
                self._on_credentials_updated(credentials)
            except Exception:
                _LOGGER.exception("Error in credentials update callback")

