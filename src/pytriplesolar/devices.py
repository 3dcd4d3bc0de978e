"""Per-device session composition for TripleSolar heat pumps.

A ``TripleSolarDevice`` wires together everything one heat pump interface
needs: the token manager, the API client, the availability monitor, the
state reconciler, the command dispatcher and the poll scheduler. Poll cycles
and user commands are serialised on a single lock so that a command never
interleaves with a reconciliation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable  # noqa: TC003 - Used at runtime for type hints
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pytriplesolar.api import TripleSolarAPI
from pytriplesolar.auth import TokenManager
from pytriplesolar.availability import AvailabilityMonitor
from pytriplesolar.commands import DEFAULT_BOILER_STRATEGIES, CommandDispatcher, MutationStrategy
from pytriplesolar.const import (
    DEBOUNCE_WINDOW,
    DEFAULT_API_URL,
    DEFAULT_AUTH_URL,
    DEFAULT_POLL_INTERVAL,
    MAX_CONSECUTIVE_ERRORS,
    REASON_AUTHENTICATION_FAILED,
    REASON_LOGIN_FAILED,
    REASON_LOGIN_REQUIRED,
)
from pytriplesolar.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    NoCredentialsError,
    TripleSolarError,
)
from pytriplesolar.models import Credentials, DeviceSession
from pytriplesolar.parsers import parse_telemetry
from pytriplesolar.reconciler import StateReconciler
from pytriplesolar.scheduler import PollScheduler
from pytriplesolar.shell import LocalDeviceShell


if TYPE_CHECKING:
    from datetime import timedelta

    from aiohttp import ClientSession

    from pytriplesolar.credentials import CredentialStore
    from pytriplesolar.models import TelemetrySnapshot
    from pytriplesolar.shell import DeviceShell

_LOGGER = logging.getLogger(__name__)


class TripleSolarDevice:
    """One polled and controllable TripleSolar heat pump interface.

    Example:
        ```python
        from aiohttp import ClientSession
        from pytriplesolar import Credentials, TripleSolarDevice

        async with ClientSession() as session:
            device = TripleSolarDevice(
                "abc123",
                credentials=Credentials(username="user@example.com", password="secret"),
                session=session,
            )
            if await device.start():
                await device.set_boiler_mode(True)
                print(device.shell.get_value("measure_temperature.boiler"))
            await device.shutdown()
        ```

    Attributes:
        interface_id: Remote identifier of the heat pump interface.
    """

    def __init__(
        self,
        interface_id: str,
        *,
        credentials: Credentials,
        session: ClientSession,
        shell: DeviceShell | None = None,
        credential_store: CredentialStore | None = None,
        api_url: str = DEFAULT_API_URL,
        auth_url: str = DEFAULT_AUTH_URL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        debounce_window: timedelta = DEBOUNCE_WINDOW,
        error_threshold: int = MAX_CONSECUTIVE_ERRORS,
        boiler_strategies: tuple[MutationStrategy, ...] = DEFAULT_BOILER_STRATEGIES,
        on_credentials_updated: Callable[[Credentials], None] | None = None,
    ) -> None:
        """Initialize the device and its collaborators.

        Args:
            interface_id: Remote identifier of the heat pump interface.
            credentials: Initial working credential bundle.
            session: aiohttp ClientSession shared with the owning client.
            shell: Host shell receiving capability values. Defaults to an
                in-memory LocalDeviceShell.
            credential_store: Shared store updated after each token renewal.
            api_url: GraphQL endpoint URL.
            auth_url: Auth backend base URL.
            poll_interval: Seconds between telemetry polls.
            debounce_window: How long polls leave a manual boiler change alone.
            error_threshold: Consecutive poll failures before going unavailable.
            boiler_strategies: Boiler mode mutations, tried in order.
            on_credentials_updated: Optional callback receiving each new
                working credential bundle.
        """
        self.interface_id = interface_id
        self._shell: DeviceShell = shell if shell is not None else LocalDeviceShell()
        self._device_session = DeviceSession(interface_id=interface_id, credentials=credentials)
        self._lock = asyncio.Lock()
        self._last_snapshot: TelemetrySnapshot | None = None
        self._last_poll: datetime | None = None

        self._token_manager = TokenManager(
            self._device_session,
            credential_store=credential_store,
            session=session,
            auth_url=auth_url,
            on_credentials_updated=on_credentials_updated,
        )
        self._availability = AvailabilityMonitor(self._device_session, self._shell, threshold=error_threshold)
        self._api = TripleSolarAPI(
            token_manager=self._token_manager,
            session=session,
            api_url=api_url,
            availability=self._availability,
        )
        self._reconciler = StateReconciler(self._device_session, self._shell, debounce_window=debounce_window)
        self._commands = CommandDispatcher(
            self._api,
            self._device_session,
            self._shell,
            self._availability,
            boiler_strategies=boiler_strategies,
        )
        self._scheduler = PollScheduler(self.poll, poll_interval, name=f"poll {interface_id}")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def shell(self) -> DeviceShell:
        """Get the host shell receiving capability values."""
        return self._shell

    @property
    def api(self) -> TripleSolarAPI:
        """Get the API client bound to this device's tokens."""
        return self._api

    @property
    def token_manager(self) -> TokenManager:
        """Get the token manager of this device."""
        return self._token_manager

    @property
    def session(self) -> DeviceSession:
        """Get the mutable session state."""
        return self._device_session

    @property
    def credentials(self) -> Credentials:
        """Get the working credential bundle."""
        return self._device_session.credentials

    @property
    def available(self) -> bool:
        """Check if the device is currently reported available."""
        return self._availability.available

    @property
    def unavailable_reason(self) -> str | None:
        """Get the reason the device is unavailable, if it is."""
        return self._availability.reason

    @property
    def last_snapshot(self) -> TelemetrySnapshot | None:
        """Get the most recent successfully parsed telemetry."""
        return self._last_snapshot

    @property
    def last_poll(self) -> datetime | None:
        """Get the timestamp of the last successful poll."""
        return self._last_poll

    @property
    def polling(self) -> bool:
        """Check if the poll timer is running."""
        return self._scheduler.running

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> bool:
        """Authenticate and start polling.

        Authentication failures mark the device unavailable and leave polling
        stopped. Transport failures are logged and polling starts anyway, so
        the device recovers once the backend is reachable again.

        Returns:
            True if polling was started, False if authentication failed.
        """
        _LOGGER.info("Initializing TripleSolar device %s", self.interface_id)

        try:
            await self._token_manager.ensure_authenticated()
        except NoCredentialsError as exc:
            _LOGGER.error("No credentials available for %s: %s", self.interface_id, exc)
            self._availability.mark_unavailable(REASON_LOGIN_REQUIRED)
            return False
        except InvalidCredentialsError as exc:
            _LOGGER.error("Login failed for %s: %s", self.interface_id, exc)
            self._availability.mark_unavailable(REASON_LOGIN_FAILED)
            return False
        except AuthenticationError as exc:
            _LOGGER.error("Authentication failed for %s: %s", self.interface_id, exc)
            self._availability.mark_unavailable(REASON_AUTHENTICATION_FAILED)
            return False
        except TripleSolarError as exc:
            _LOGGER.warning("Could not authenticate %s during startup, polling anyway: %s", self.interface_id, exc)

        await self._scheduler.start()
        return True

    async def shutdown(self) -> None:
        """Stop polling. Idempotent."""
        await self._scheduler.stop()
        _LOGGER.debug("Device %s shut down", self.interface_id)

    def update_credentials(self, credentials: Credentials) -> None:
        """Replace the working credential bundle, e.g. after a re-pair.

        Args:
            credentials: New working bundle.
        """
        self._device_session.credentials = credentials
        self._device_session.last_refresh_at = None
        _LOGGER.info("Credentials updated for %s", self.interface_id)

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    async def poll(self, now: datetime | None = None) -> bool:
        """Run one telemetry cycle: fetch, reconcile, record health.

        Failures are recorded with the availability monitor and never raised.

        Args:
            now: Reference time for the debounce check.

        Returns:
            True if the poll succeeded, False otherwise.
        """
        async with self._lock:
            try:
                response = await self._api.read_heat_pump_settings(self.interface_id)
                snapshot = parse_telemetry(self.interface_id, response)
            except TripleSolarError as exc:
                _LOGGER.error("Error polling device %s: %s", self.interface_id, exc)
                self._availability.record_failure(exc)
                return False

            _LOGGER.debug(
                "Device %s: dhw mode %s, boiler %s°C",
                self.interface_id,
                snapshot.heat_pump.dhw_mode,
                snapshot.heat_pump.dhw_boiler_temp,
            )
            try:
                self._reconciler.apply(snapshot, now)
            except Exception as exc:
                _LOGGER.exception("Error applying telemetry of device %s", self.interface_id)
                self._availability.record_failure(exc)
                return False

            self._availability.record_success()
            self._last_snapshot = snapshot
            self._last_poll = datetime.now(UTC)
            return True

    async def refresh(self) -> bool:
        """Inject a manual poll, unless one is already in flight.

        Returns:
            True if a poll was run, False if it was skipped.
        """
        return await self._scheduler.run_once()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def set_target_temperature(self, value: float) -> None:
        """Set the boiler target temperature.

        Raises:
            InvalidParameterError: If value is not a finite number.
            CommandError: If the backend did not confirm the change.
        """
        async with self._lock:
            await self._commands.set_target_temperature(value)

    async def set_boiler_mode(self, on: bool) -> str:
        """Switch domestic hot water production on or off.

        Returns:
            Name of the mutation that applied the change.

        Raises:
            CommandError: If no mutation succeeded.
        """
        async with self._lock:
            return await self._commands.set_boiler_mode(on)

    # -------------------------------------------------------------------------
    # String Representation
    # -------------------------------------------------------------------------

    def __str__(self) -> str:
        """Return string representation of device."""
        name = self._last_snapshot.name if self._last_snapshot is not None else None
        return f"{name or 'TripleSolar'} ({self.interface_id})"

    def __repr__(self) -> str:
        """Return detailed string representation of device."""
        return f"TripleSolarDevice(interface_id='{self.interface_id}', available={self.available})"
