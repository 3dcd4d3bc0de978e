"""Parsing utilities for TripleSolar API responses.

This module provides shared parsing functions that convert raw GraphQL
envelopes into data models, used by both the device poll cycle and the
command dispatcher.
"""

from __future__ import annotations

from typing import Any

from pytriplesolar.exceptions import MalformedResponseError
from pytriplesolar.models import (
    ConnectionStatus,
    ControllerSettings,
    FirmwareInfo,
    HeatPumpStatus,
    OpenThermStatus,
    TelemetrySnapshot,
)


__all__ = [
    "graphql_error_messages",
    "parse_controller",
    "parse_firmware",
    "parse_heat_pump",
    "parse_telemetry",
]


def graphql_error_messages(response: dict[str, Any]) -> list[str]:
    """Extract the messages of a GraphQL ``errors`` array.

    Args:
        response: Parsed GraphQL response envelope.

    Returns:
        List of error messages; empty when the envelope carries no errors.
    """
    errors = response.get("errors") or []
    if not isinstance(errors, list):
        return [str(errors)]

    messages: list[str] = []
    for error in errors:
        if isinstance(error, dict):
            messages.append(str(error.get("message", error)))
        else:
            messages.append(str(error))
    return messages


def parse_firmware(data: dict[str, Any] | None) -> FirmwareInfo:
    """Parse interface firmware metadata."""
    data = data or {}
    return FirmwareInfo(version=data.get("version"), timestamp=data.get("timestamp"))


def parse_controller(data: dict[str, Any] | None) -> ControllerSettings:
    """Parse controller configuration flags."""
    data = data or {}
    return ControllerSettings(
        backup_heater=data.get("backupHeater"),
        ch_setpoint_max_temp=data.get("chSetpMaxTemp"),
        manual_cooling_mode=data.get("manualCoolingMode"),
    )


def parse_heat_pump(data: dict[str, Any]) -> HeatPumpStatus:
    """Parse heat pump mode flags and readings.

    Args:
        data: The ``pvtHeatPump`` object of the telemetry query.

    Returns:
        HeatPumpStatus instance.
    """
    errors = data.get("errors") or []
    return HeatPumpStatus(
        id=data.get("id"),
        firmware_version=data.get("firmwareVersion"),
        dhw_mode=data.get("dhwMode"),
        dhw_state=data.get("dhwState"),
        space_heating_cooling_state=data.get("spaceHeatingCoolingState"),
        flushing_mode=data.get("flushingMode"),
        dhw_auto_temp=data.get("dhwAutoTemp"),
        dhw_boiler_temp=data.get("dhwBoilerTemp"),
        source_in_temp=data.get("sourceInTemp"),
        source_out_temp=data.get("sourceOutTemp"),
        sink_in_temp=data.get("sinkInTemp"),
        sink_out_temp=data.get("sinkOutTemp"),
        compressor_discharge=data.get("compressorDischarge"),
        compressor_on=data.get("compressorOn"),
        electric_element_on=data.get("electricElementOn"),
        pump_relay_on=data.get("pumpRelayOn"),
        source_pump_perc=data.get("sourcePumpPerc"),
        sink_pump_perc=data.get("sinkPumpPerc"),
        sh_boost_enabled=data.get("shBoostEnabled"),
        dhw_boost_enabled=data.get("dhwBoostEnabled"),
        errors=tuple(errors) if isinstance(errors, list) else (errors,),
    )


def parse_telemetry(interface_id: str, response: dict[str, Any]) -> TelemetrySnapshot:
    """Parse a ReadHeatPumpSettings response into a telemetry snapshot.

    Args:
        interface_id: Interface the query was issued for.
        response: Parsed GraphQL response envelope ``{"data": ..., "errors": ...}``.

    Returns:
        TelemetrySnapshot instance.

    Raises:
        MalformedResponseError: If the interface or heat pump object is missing.
    """
    data = response.get("data")
    interface = data.get("interface") if isinstance(data, dict) else None

    if not isinstance(interface, dict):
        messages = graphql_error_messages(response)
        detail = "; ".join(messages) if messages else "no interface in response"
        msg = f"Telemetry for interface {interface_id} unavailable: {detail}"
        raise MalformedResponseError(msg)

    heat_pump = interface.get("pvtHeatPump")
    if not isinstance(heat_pump, dict):
        msg = f"Telemetry for interface {interface_id} has no heat pump data"
        raise MalformedResponseError(msg)

    open_therm = interface.get("openTherm")
    status = interface.get("status")

    return TelemetrySnapshot(
        interface_id=interface.get("id") or interface_id,
        name=interface.get("name"),
        firmware=parse_firmware(interface.get("firmwareVersion")),
        controller=parse_controller(interface.get("controller")),
        heat_pump=parse_heat_pump(heat_pump),
        open_therm=(
            OpenThermStatus(
                room_temp=open_therm.get("roomTemp"),
                room_setpoint_temp=open_therm.get("roomSetpTemp"),
            )
            if isinstance(open_therm, dict)
            else None
        ),
        status=(
            ConnectionStatus(
                signal_strength=status.get("signalStrength"),
                operator_name=status.get("operatorName"),
            )
            if isinstance(status, dict)
            else None
        ),
        open_therm_boiler_connected=interface.get("openThermBoilerConnected"),
        raw_data=response,
    )
