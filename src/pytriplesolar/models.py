"""Data models for TripleSolar credentials, sessions and telemetry."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from pytriplesolar.const import DHW_MODE_AUTO, ESTIMATED_COMPRESSOR_POWER


__all__ = [
    "ConnectionStatus",
    "ControllerSettings",
    "Credentials",
    "DeviceSession",
    "FirmwareInfo",
    "HeatPumpStatus",
    "OpenThermStatus",
    "TelemetrySnapshot",
]


@dataclass(frozen=True)
class Credentials:
    """Credential bundle for one TripleSolar account.

    Instances are immutable; every update produces a new bundle so that a
    reader never observes an access token paired with a stale refresh token.

    Attributes:
        username: Account email address.
        password: Account password. Absent for token-only sessions, which
            disables re-login recovery.
        access_token: Short-lived bearer token for API calls.
        refresh_token: Longer-lived token exchanged for new access tokens.
        issued_at: When the current token pair was obtained.
    """

    username: str | None = None
    password: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    issued_at: datetime | None = None

    @property
    def has_token_pair(self) -> bool:
        """Check if both access and refresh token are present."""
        return bool(self.access_token) and bool(self.refresh_token)

    @property
    def can_login(self) -> bool:
        """Check if a full login can be attempted."""
        return bool(self.username) and bool(self.password)

    def with_tokens(
        self,
        access_token: str,
        refresh_token: str | None,
        issued_at: datetime,
    ) -> Credentials:
        """Return a copy carrying a new token pair.

        Args:
            access_token: New access token.
            refresh_token: New refresh token, or None to keep the current one.
            issued_at: Timestamp of the authentication event.

        Returns:
            New Credentials instance.
        """
        return replace(
            self,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            issued_at=issued_at,
        )

    def merged_into(self, stored: Credentials | None) -> Credentials:
        """Merge this session's tokens into a previously stored bundle.

        Tokens and timestamp always come from this bundle. Username and
        password are only copied when the stored bundle lacks them, so a
        known password is never overwritten with an absent one.

        Args:
            stored: Bundle currently held by the shared store, if any.

        Returns:
            Bundle to write back to the shared store.
        """
        base = stored or Credentials()
        return Credentials(
            username=base.username or self.username,
            password=base.password or self.password,
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            issued_at=self.issued_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the stored JSON form (epoch-millisecond timestamp)."""
        timestamp = int(self.issued_at.timestamp() * 1000) if self.issued_at is not None else None
        return {
            "username": self.username,
            "password": self.password,
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "timestamp": timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credentials:
        """Deserialize from the stored JSON form.

        Empty strings are treated as absent values.
        """
        timestamp = data.get("timestamp")
        issued_at = None
        if isinstance(timestamp, int | float) and timestamp > 0:
            issued_at = datetime.fromtimestamp(timestamp / 1000, tz=UTC)

        return cls(
            username=data.get("username") or None,
            password=data.get("password") or None,
            access_token=data.get("accessToken") or None,
            refresh_token=data.get("refreshToken") or None,
            issued_at=issued_at,
        )

    def __repr__(self) -> str:
        """Return a representation that never includes secrets."""
        return (
            f"Credentials(username={self.username!r}, "
            f"password={'***' if self.password else None}, "
            f"access_token={'***' if self.access_token else None}, "
            f"refresh_token={'***' if self.refresh_token else None}, "
            f"issued_at={self.issued_at!r})"
        )


@dataclass
class DeviceSession:
    """Mutable per-device session state.

    Attributes:
        interface_id: Remote identifier of the heat pump interface.
        credentials: Working copy of the credential bundle.
        last_refresh_at: Last successful token refresh or login.
        last_manual_change_at: Last successful user-issued boiler mode change.
        consecutive_errors: Poll failures since the last success.
        available: Whether the device is currently reported available.
        unavailable_reason: Human-readable reason while unavailable.
    """

    interface_id: str
    credentials: Credentials = field(default_factory=Credentials)
    last_refresh_at: datetime | None = None
    last_manual_change_at: datetime | None = None
    consecutive_errors: int = 0
    available: bool = True
    unavailable_reason: str | None = None


@dataclass(frozen=True)
class FirmwareInfo:
    """Interface firmware metadata.

    Attributes:
        version: Firmware version string.
        timestamp: Release timestamp as reported by the API.
    """

    version: str | None = None
    timestamp: str | None = None


@dataclass(frozen=True)
class ControllerSettings:
    """Controller configuration flags."""

    backup_heater: bool | None = None
    ch_setpoint_max_temp: float | None = None
    manual_cooling_mode: bool | None = None


@dataclass(frozen=True)
class HeatPumpStatus:
    """PVT heat pump operating mode and readings.

    All fields are optional as the API may omit values.
    """

    id: str | None = None
    firmware_version: str | None = None
    dhw_mode: str | None = None
    dhw_state: str | None = None
    space_heating_cooling_state: str | None = None
    flushing_mode: str | None = None
    dhw_auto_temp: float | None = None
    dhw_boiler_temp: float | None = None
    source_in_temp: float | None = None
    source_out_temp: float | None = None
    sink_in_temp: float | None = None
    sink_out_temp: float | None = None
    compressor_discharge: float | None = None
    compressor_on: bool | None = None
    electric_element_on: bool | None = None
    pump_relay_on: bool | None = None
    source_pump_perc: float | None = None
    sink_pump_perc: float | None = None
    sh_boost_enabled: bool | None = None
    dhw_boost_enabled: bool | None = None
    errors: tuple[Any, ...] = ()


@dataclass(frozen=True)
class OpenThermStatus:
    """Room readings relayed over OpenTherm."""

    room_temp: float | None = None
    room_setpoint_temp: float | None = None


@dataclass(frozen=True)
class ConnectionStatus:
    """Interface modem status."""

    signal_strength: int | None = None
    operator_name: str | None = None


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Result of one telemetry poll.

    Produced once per cycle, consumed by the reconciler, then discarded.

    Attributes:
        interface_id: Remote interface identifier.
        name: Interface display name.
        firmware: Interface firmware metadata.
        controller: Controller configuration flags.
        heat_pump: Heat pump mode flags and readings.
        open_therm: OpenTherm room readings, if connected.
        status: Modem status, if reported.
        open_therm_boiler_connected: Whether an OpenTherm boiler is connected.
        raw_data: Original API payload for debugging.
    """

    interface_id: str
    name: str | None
    firmware: FirmwareInfo
    controller: ControllerSettings
    heat_pump: HeatPumpStatus
    open_therm: OpenThermStatus | None = None
    status: ConnectionStatus | None = None
    open_therm_boiler_connected: bool | None = None
    raw_data: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def boiler_on(self) -> bool:
        """Check if domestic hot water production is enabled (mode AUTO)."""
        return self.heat_pump.dhw_mode == DHW_MODE_AUTO

    @property
    def estimated_power(self) -> int | None:
        """Estimate electrical draw in watts.

        Returns None when the heat pump does not report pump activity.
        """
        if self.heat_pump.source_pump_perc is None:
            return None
        return ESTIMATED_COMPRESSOR_POWER if self.heat_pump.compressor_on else 0
