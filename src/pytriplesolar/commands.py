"""User-initiated writes to the heat pump."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable  # noqa: TC003 - Used at runtime in dataclass fields
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pytriplesolar.const import (
    CAPABILITY_BOILER_ON,
    CAPABILITY_TARGET_TEMPERATURE,
    DHW_MODE_AUTO,
    DHW_MODE_OFF,
    TOKEN_BOILER_MODE,
    TRIGGER_BOILER_MODE_CHANGED,
)
from pytriplesolar.exceptions import (
    AuthenticationError,
    CommandError,
    DomainError,
    InvalidParameterError,
    TripleSolarError,
)
from pytriplesolar.parsers import graphql_error_messages
from pytriplesolar.queries import (
    SET_DHW_MODE_MUTATION,
    SET_DHW_MODE_OPERATION,
    SET_TARGET_TEMPERATURE_OPERATION,
    UPDATE_PVT_HEAT_PUMP_MUTATION,
    UPDATE_PVT_HEAT_PUMP_OPERATION,
)


if TYPE_CHECKING:
    from pytriplesolar.api import TripleSolarAPI
    from pytriplesolar.availability import AvailabilityMonitor
    from pytriplesolar.models import DeviceSession
    from pytriplesolar.shell import DeviceShell

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationStrategy:
    """One way of applying a boiler mode change.

    Attributes:
        name: Short label used in logs and failure reports.
        operation: GraphQL operation name.
        query: GraphQL document.
        build_variables: Builds the variables from interface id and target mode.
        is_success: Uniform success predicate over the response envelope.
        describe_failure: Extracts a human-readable reason from a failed response.
    """

    name: str
    operation: str
    query: str
    build_variables: Callable[[str, bool], dict[str, Any]]
    is_success: Callable[[dict[str, Any]], bool]
    describe_failure: Callable[[dict[str, Any]], str]


def _dhw_mode(on: bool) -> str:
    return DHW_MODE_AUTO if on else DHW_MODE_OFF


def _result_message(response: dict[str, Any], field: str) -> str:
    errors = graphql_error_messages(response)
    if errors:
        return "; ".join(errors)

    data = response.get("data")
    result = data.get(field) if isinstance(data, dict) else None
    if isinstance(result, dict) and result.get("message"):
        return str(result["message"])
    return f"unexpected {field} result: {result!r}"


def _update_pvt_heat_pump_succeeded(response: dict[str, Any]) -> bool:
    # Bare true, or null as a fire-and-forget acknowledgement
    data = response.get("data")
    if graphql_error_messages(response) or not isinstance(data, dict) or "updatePvtHeatPump" not in data:
        return False
    result = data["updatePvtHeatPump"]
    return result is True or result is None


def _set_dhw_mode_succeeded(response: dict[str, Any]) -> bool:
    data = response.get("data")
    result = data.get("setDhwMode") if isinstance(data, dict) else None
    return isinstance(result, dict) and result.get("success") is True


UPDATE_PVT_HEAT_PUMP_STRATEGY = MutationStrategy(
    name="updatePvtHeatPump",
    operation=UPDATE_PVT_HEAT_PUMP_OPERATION,
    query=UPDATE_PVT_HEAT_PUMP_MUTATION,
    build_variables=lambda interface_id, on: {
        "interfaceIds": [interface_id],
        "pvtHeatPumpdata": {"dhwMode": _dhw_mode(on)},
    },
    is_success=_update_pvt_heat_pump_succeeded,
    describe_failure=lambda response: _result_message(response, "updatePvtHeatPump"),
)

SET_DHW_MODE_STRATEGY = MutationStrategy(
    name="setDhwMode",
    operation=SET_DHW_MODE_OPERATION,
    query=SET_DHW_MODE_MUTATION,
    build_variables=lambda interface_id, on: {"interfaceId": interface_id, "mode": _dhw_mode(on)},
    is_success=_set_dhw_mode_succeeded,
    describe_failure=lambda response: _result_message(response, "setDhwMode"),
)

DEFAULT_BOILER_STRATEGIES = (UPDATE_PVT_HEAT_PUMP_STRATEGY, SET_DHW_MODE_STRATEGY)


class CommandDispatcher:
    """Issue user commands and apply their effect locally on success.

    Commands never partially apply: local capability values, the debounce
    timestamp and notifications change only after the backend confirmed the
    write. Failures raise ``CommandError``.
    """

    def __init__(
        self,
        api: TripleSolarAPI,
        device_session: DeviceSession,
        shell: DeviceShell,
        availability: AvailabilityMonitor | None = None,
        *,
        boiler_strategies: tuple[MutationStrategy, ...] = DEFAULT_BOILER_STRATEGIES,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            api: API client used for mutations.
            device_session: Session whose debounce timestamp is stamped.
            shell: Host shell receiving capability writes and notifications.
            availability: Optional monitor told about successful commands.
            boiler_strategies: Boiler mode mutations, tried in order.
        """
        if not boiler_strategies:
            msg = "At least one boiler mode strategy is required"
            raise ValueError(msg)

        self._api = api
        self._device_session = device_session
        self._shell = shell
        self._availability = availability
        self._boiler_strategies = boiler_strategies

    async def set_target_temperature(self, value: float) -> None:
        """Set the boiler target temperature.

        Args:
            value: Target temperature in degrees Celsius.

        Raises:
            InvalidParameterError: If value is not a finite number.
            CommandError: If the backend did not confirm the change.
        """
        if isinstance(value, bool) or not isinstance(value, int | float) or not math.isfinite(value):
            msg = f"Target temperature must be a finite number, got {value!r}"
            raise InvalidParameterError(msg, parameter_name="temperature", value=value)

        interface_id = self._device_session.interface_id
        try:
            response = await self._api.set_target_temperature(interface_id, value)
        except TripleSolarError as exc:
            _LOGGER.error("Failed to set target temperature for %s: %s", interface_id, exc)
            msg = f"Failed to set target temperature: {exc}"
            raise CommandError(msg, failures=[str(exc)]) from exc

        data = response.get("data")
        result = data.get("setTargetTemperature") if isinstance(data, dict) else None
        if not (isinstance(result, dict) and result.get("success") is True):
            error = DomainError(
                _result_message(response, "setTargetTemperature"),
                operation=SET_TARGET_TEMPERATURE_OPERATION,
            )
            _LOGGER.error("Target temperature for %s rejected: %s", interface_id, error)
            msg = f"Failed to set target temperature: {error}"
            raise CommandError(msg, failures=[str(error)]) from error

        self._shell.set_value(CAPABILITY_TARGET_TEMPERATURE, value)
        self._record_success()
        _LOGGER.info("Target temperature of %s set to %s", interface_id, value)

    async def set_boiler_mode(self, on: bool, now: datetime | None = None) -> str:
        """Switch domestic hot water production on (AUTO) or off (OFF).

        Strategies are tried in order until one reports success.

        Args:
            on: True for AUTO, False for OFF.
            now: Timestamp recorded as the manual change time.

        Returns:
            Name of the strategy that applied the change.

        Raises:
            CommandError: If every strategy failed, or authentication failed.
        """
        interface_id = self._device_session.interface_id
        _LOGGER.info("Setting boiler mode of %s to %s", interface_id, _dhw_mode(on))

        failures: list[str] = []
        for strategy in self._boiler_strategies:
            try:
                response = await self._api.call(
                    strategy.operation,
                    strategy.build_variables(interface_id, on),
                    strategy.query,
                )
            except AuthenticationError as exc:
                failures.append(f"{strategy.name}: {exc}")
                _LOGGER.error("Authentication failed while setting boiler mode: %s", exc)
                msg = "Failed to set boiler mode: authentication failed"
                raise CommandError(msg, failures=failures) from exc
            except TripleSolarError as exc:
                failures.append(f"{strategy.name}: {exc}")
                _LOGGER.warning("Boiler mode method %s failed: %s", strategy.name, exc)
                continue

            if strategy.is_success(response):
                self._apply_boiler_mode(on, now or datetime.now(UTC))
                _LOGGER.info("Boiler mode of %s updated to %s using %s", interface_id, _dhw_mode(on), strategy.name)
                return strategy.name

            reason = strategy.describe_failure(response)
            failures.append(f"{strategy.name}: {reason}")
            _LOGGER.warning("Boiler mode method %s was not confirmed: %s", strategy.name, reason)

        _LOGGER.error("All methods to set boiler mode failed: %s", "; ".join(failures))
        msg = "Failed to set boiler mode"
        raise CommandError(msg, failures=failures)

    def _apply_boiler_mode(self, on: bool, now: datetime) -> None:
        self._shell.set_value(CAPABILITY_BOILER_ON, on)
        self._device_session.last_manual_change_at = now
        self._shell.trigger(TRIGGER_BOILER_MODE_CHANGED, {TOKEN_BOILER_MODE: on})
        self._record_success()

    def _record_success(self) -> None:
        if self._availability is not None:
            self._availability.record_success()
