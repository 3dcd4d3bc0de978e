"""Process-level entry point managing TripleSolar devices.

This module provides the client that owns the HTTP session and the shared
credential store, and keeps exactly one device session per interface id.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiohttp import ClientSession

from pytriplesolar.const import DEFAULT_API_URL, DEFAULT_AUTH_URL, DEFAULT_POLL_INTERVAL
from pytriplesolar.credentials import CredentialStore, MemoryCredentialStore
from pytriplesolar.devices import TripleSolarDevice
from pytriplesolar.exceptions import DeviceError
from pytriplesolar.models import Credentials


if TYPE_CHECKING:
    from types import TracebackType

    from pytriplesolar.shell import DeviceShell

_LOGGER = logging.getLogger(__name__)


class TripleSolarClient:
    """Device manager for TripleSolar heat pumps.

    The client holds the account credentials and the shared credential
    store. New devices bootstrap from the store, so a login performed by one
    device is reused by the next one instead of logging in again.

    Example:
        ```python
        from pytriplesolar import TripleSolarClient

        async with TripleSolarClient(username="user@example.com", password="secret") as client:
            device = await client.add_device("abc123")
            print(device.available, device.shell.get_value("onoff.boiler"))
            await device.set_target_temperature(55)
        ```

        Persisting tokens across restarts:

        ```python
        from pytriplesolar import FileCredentialStore, TripleSolarClient

        store = FileCredentialStore("~/.config/triplesolar/credentials.json")
        async with TripleSolarClient(credential_store=store) as client:
            await client.add_device("abc123")
        ```
    """

    def __init__(
        self,
        username: str | None = None,
        password: str | None = None,
        *,
        credential_store: CredentialStore | None = None,
        session: ClientSession | None = None,
        api_url: str = DEFAULT_API_URL,
        auth_url: str = DEFAULT_AUTH_URL,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize the TripleSolar client.

        Args:
            username: Account email address. Optional when the credential
                store already holds a bundle.
            password: Account password.
            credential_store: Shared credential store. Defaults to an
                in-memory store.
            session: Optional aiohttp ClientSession. If not provided, one will be
                created when entering the context manager.
            api_url: GraphQL endpoint URL.
            auth_url: Auth backend base URL.
            poll_interval: Seconds between telemetry polls of each device.
        """
        self._username = username
        self._password = password
        self._credential_store: CredentialStore = (
            credential_store if credential_store is not None else MemoryCredentialStore()
        )
        self._session = session
        self._owns_session = session is None
        self._api_url = api_url
        self._auth_url = auth_url
        self._poll_interval = poll_interval
        self._devices: dict[str, TripleSolarDevice] = {}

    @property
    def credential_store(self) -> CredentialStore:
        """Get the shared credential store."""
        return self._credential_store

    @property
    def devices(self) -> list[TripleSolarDevice]:
        """Get all registered devices."""
        return list(self._devices.values())

    async def __aenter__(self) -> TripleSolarClient:
        """Enter the context manager, creating a session if needed.

        Returns:
            Self for use in async with statements.
        """
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
        """Exit the context manager.

        Shuts down all devices and closes the session if this client created it.
        """
        for device in self._devices.values():
            await device.shutdown()

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def bootstrap_credentials(self) -> Credentials:
        """Build the initial bundle for a new device.

        The stored bundle provides tokens and timestamp. Username and
        password given to the client take precedence over stored ones.

        Returns:
            Credential bundle to seed a device session with.
        """
        stored = self._credential_store.get() or Credentials()
        if stored.has_token_pair:
            _LOGGER.debug("Bootstrapping device session from stored credentials")

        return Credentials(
            username=self._username or stored.username,
            password=self._password or stored.password,
            access_token=stored.access_token,
            refresh_token=stored.refresh_token,
            issued_at=stored.issued_at,
        )

    async def add_device(
        self,
        interface_id: str,
        *,
        shell: DeviceShell | None = None,
        credentials: Credentials | None = None,
        start: bool = True,
    ) -> TripleSolarDevice:
        """Register a heat pump interface and optionally start polling it.

        Args:
            interface_id: Remote identifier of the interface.
            shell: Host shell for the device. Defaults to an in-memory shell.
            credentials: Explicit credential bundle. Defaults to the bundle
                derived from the client and the shared store.
            start: Whether to authenticate and start polling right away.

        Returns:
            The new device.

        Raises:
            DeviceError: If the interface is already registered.
            RuntimeError: If the client has no session.
        """
        if interface_id in self._devices:
            msg = f"Device {interface_id} is already registered"
            raise DeviceError(msg, interface_id=interface_id)

        if self._session is None:
            msg = "Session not initialized. Use 'async with' or provide a session."
            raise RuntimeError(msg)

        device = TripleSolarDevice(
            interface_id,
            credentials=credentials if credentials is not None else self.bootstrap_credentials(),
            session=self._session,
            shell=shell,
            credential_store=self._credential_store,
            api_url=self._api_url,
            auth_url=self._auth_url,
            poll_interval=self._poll_interval,
        )
        self._devices[interface_id] = device
        _LOGGER.info("Added device %s", interface_id)

        if start:
            await device.start()
        return device

    def get_device(self, interface_id: str) -> TripleSolarDevice | None:
        """Get a registered device by interface id."""
        return self._devices.get(interface_id)

    async def remove_device(self, interface_id: str) -> None:
        """Stop and unregister a device.

        The shared credential store is left untouched so other devices of
        the same account keep working.

        Raises:
            DeviceError: If the interface is not registered.
        """
        device = self._devices.pop(interface_id, None)
        if device is None:
            msg = f"Device {interface_id} is not registered"
            raise DeviceError(msg, interface_id=interface_id)

        await device.shutdown()
        _LOGGER.info("Removed device %s", interface_id)
