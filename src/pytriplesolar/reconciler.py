"""Reconcile telemetry snapshots into local capability state."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pytriplesolar.const import (
    CAPABILITY_BOILER_ON,
    CAPABILITY_BOILER_TEMPERATURE,
    CAPABILITY_COMPRESSOR_DISCHARGE,
    CAPABILITY_DISTRIBUTION_RETURN,
    CAPABILITY_DISTRIBUTION_SUPPLY,
    CAPABILITY_POWER,
    CAPABILITY_SOURCE_RETURN,
    CAPABILITY_SOURCE_SUPPLY,
    DEBOUNCE_WINDOW,
    TOKEN_BOILER_MODE,
    TRIGGER_BOILER_MODE_CHANGED,
)


if TYPE_CHECKING:
    from pytriplesolar.models import DeviceSession, TelemetrySnapshot
    from pytriplesolar.shell import DeviceShell

_LOGGER = logging.getLogger(__name__)


class StateReconciler:
    """Map telemetry snapshots onto capability values.

    Readings always take the latest value. The boiler on/off capability is
    protected by a debounce window: within ``debounce_window`` of the last
    manual change, a differing server value is assumed to be stale (the poll
    may have started before the command took effect) and is not applied.

    The debounce clock is only ever set by the command dispatcher.
    """

    def __init__(
        self,
        device_session: DeviceSession,
        shell: DeviceShell,
        *,
        debounce_window: timedelta = DEBOUNCE_WINDOW,
    ) -> None:
        """Initialize the reconciler.

        Args:
            device_session: Session holding the debounce timestamp.
            shell: Host shell receiving capability writes and notifications.
            debounce_window: Time after a manual change during which polls
                do not override the boiler mode.
        """
        self._device_session = device_session
        self._shell = shell
        self._debounce_window = debounce_window

    def apply(self, snapshot: TelemetrySnapshot, now: datetime | None = None) -> bool:
        """Apply a snapshot to local state.

        Args:
            snapshot: Telemetry from one poll cycle.
            now: Reference time for the debounce check.

        Returns:
            True if the boiler mode capability was changed.
        """
        self._write_readings(snapshot)
        return self._reconcile_boiler_mode(snapshot, now or datetime.now(UTC))

    def _write_readings(self, snapshot: TelemetrySnapshot) -> None:
        heat_pump = snapshot.heat_pump
        readings = {
            CAPABILITY_BOILER_TEMPERATURE: heat_pump.dhw_boiler_temp,
            CAPABILITY_SOURCE_RETURN: heat_pump.source_in_temp,
            CAPABILITY_SOURCE_SUPPLY: heat_pump.source_out_temp,
            CAPABILITY_DISTRIBUTION_RETURN: heat_pump.sink_in_temp,
            CAPABILITY_DISTRIBUTION_SUPPLY: heat_pump.sink_out_temp,
            CAPABILITY_COMPRESSOR_DISCHARGE: heat_pump.compressor_discharge,
        }
        for capability, value in readings.items():
            self._shell.set_value(capability, value)

        power = snapshot.estimated_power
        if power is not None:
            self._shell.set_value(CAPABILITY_POWER, power)

    def _reconcile_boiler_mode(self, snapshot: TelemetrySnapshot, now: datetime) -> bool:
        boiler_on = snapshot.boiler_on
        current = self._shell.get_value(CAPABILITY_BOILER_ON)
        _LOGGER.debug(
            "Boiler mode %s, state %s: remote %s, local %s",
            snapshot.heat_pump.dhw_mode,
            snapshot.heat_pump.dhw_state,
            boiler_on,
            current,
        )

        if current == boiler_on:
            return False

        last_change = self._device_session.last_manual_change_at
        if last_change is not None:
            elapsed = now - last_change
            if elapsed < self._debounce_window:
                _LOGGER.info(
                    "Boiler mode differs from setting, not updating due to recent manual change (%ds ago)",
                    round(elapsed.total_seconds()),
                )
                return False

        _LOGGER.info("Boiler mode changed from %s to %s", current, boiler_on)
        self._shell.set_value(CAPABILITY_BOILER_ON, boiler_on)
        self._shell.trigger(TRIGGER_BOILER_MODE_CHANGED, {TOKEN_BOILER_MODE: boiler_on})
        return True
