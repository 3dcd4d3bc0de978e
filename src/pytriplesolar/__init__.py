"""Python client library for TripleSolar PVT heat pumps.

This package provides an async client for monitoring and controlling
TripleSolar heat pumps through the TripleSolar cloud API.

The library is organized into layers:
1. **Auth Layer** (pytriplesolar.auth): Token refresh and login with a shared credential store
2. **API Layer** (pytriplesolar.api): GraphQL calls with one bounded authentication recovery
3. **Device Layer** (pytriplesolar.devices): Polling, reconciliation, availability and commands
4. **Client Layer** (pytriplesolar.client): Session ownership and one device per interface

Example:
    Basic usage:

    ```python
    from pytriplesolar import TripleSolarClient

    async with TripleSolarClient(username="user@example.com", password="password") as client:
        device = await client.add_device("abc123")

        # Switch domestic hot water production on
        await device.set_boiler_mode(True)

        # Readings written by the last poll
        print(device.shell.get_value("measure_temperature.boiler"))
    ```
"""

from __future__ import annotations

from pytriplesolar.api import TripleSolarAPI
from pytriplesolar.auth import TokenManager
from pytriplesolar.availability import AvailabilityMonitor
from pytriplesolar.client import TripleSolarClient
from pytriplesolar.commands import CommandDispatcher, MutationStrategy
from pytriplesolar.credentials import CredentialStore, FileCredentialStore, MemoryCredentialStore
from pytriplesolar.devices import TripleSolarDevice
from pytriplesolar.exceptions import (
    AuthenticationError,
    AuthenticationExhaustedError,
    CommandError,
    DeviceError,
    DomainError,
    InvalidCredentialsError,
    InvalidParameterError,
    InvalidRefreshTokenError,
    MalformedResponseError,
    NoCredentialsError,
    TripleSolarConnectionError,
    TripleSolarError,
    TripleSolarTimeoutError,
    UnauthenticatedError,
)
from pytriplesolar.models import Credentials, DeviceSession, TelemetrySnapshot
from pytriplesolar.parsers import parse_telemetry
from pytriplesolar.reconciler import StateReconciler
from pytriplesolar.scheduler import PollScheduler
from pytriplesolar.shell import DeviceShell, LocalDeviceShell


__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "AuthenticationExhaustedError",
    "AvailabilityMonitor",
    "CommandDispatcher",
    "CommandError",
    "CredentialStore",
    "Credentials",
    "DeviceError",
    "DeviceSession",
    "DeviceShell",
    "DomainError",
    "FileCredentialStore",
    "InvalidCredentialsError",
    "InvalidParameterError",
    "InvalidRefreshTokenError",
    "LocalDeviceShell",
    "MalformedResponseError",
    "MemoryCredentialStore",
    "MutationStrategy",
    "NoCredentialsError",
    "PollScheduler",
    "StateReconciler",
    "TelemetrySnapshot",
    "TokenManager",
    "TripleSolarAPI",
    "TripleSolarClient",
    "TripleSolarConnectionError",
    "TripleSolarDevice",
    "TripleSolarError",
    "TripleSolarTimeoutError",
    "UnauthenticatedError",
    "__version__",
    "parse_telemetry",
]
