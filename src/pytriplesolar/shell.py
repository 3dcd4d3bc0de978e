"""Interfaces consumed from the host that embeds a device session.

The host ("shell") owns capability storage, availability display and
notification delivery. ``LocalDeviceShell`` is a self-contained in-memory
implementation for scripts, tests and hosts without their own state layer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable  # noqa: TC003 - Used at runtime for type hints
from typing import Any, Protocol, runtime_checkable


_LOGGER = logging.getLogger(__name__)


@runtime_checkable
class DeviceShell(Protocol):
    """Host primitives used by a device session."""

    def get_value(self, name: str) -> Any:
        """Return the current value of a capability, or None if unset."""

    def set_value(self, name: str, value: Any) -> None:
        """Write a capability value."""

    def set_available(self) -> None:
        """Mark the device available."""

    def set_unavailable(self, reason: str) -> None:
        """Mark the device unavailable with a human-readable reason."""

    def trigger(self, name: str, tokens: dict[str, Any]) -> None:
        """Emit a named notification carrying tokens."""


class LocalDeviceShell:
    """In-memory device shell with change listeners.

    Example:
        ```python
        shell = LocalDeviceShell()
        shell.add_listener(lambda name, value: print(f"{name} -> {value}"))
        shell.add_trigger_listener(lambda name, tokens: print(name, tokens))
        ```

    Attributes:
        available: Whether the device is marked available.
        unavailable_reason: Reason given with the last unavailability.
    """

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        """Initialize the shell with optional initial capability values."""
        self._values: dict[str, Any] = dict(values or {})
        self.available = True
        self.unavailable_reason: str | None = None
        self._listeners: list[Callable[[str, Any], None]] = []
        self._trigger_listeners: list[Callable[[str, dict[str, Any]], None]] = []

    @property
    def values(self) -> dict[str, Any]:
        """Get a copy of all capability values."""
        return dict(self._values)

    def get_value(self, name: str) -> Any:
        """Return the current value of a capability, or None if unset."""
        return self._values.get(name)

    def set_value(self, name: str, value: Any) -> None:
        """Write a capability value and notify listeners when it changed."""
        changed = self._values.get(name) != value or name not in self._values
        self._values[name] = value
        if changed:
            for listener in self._listeners:
                try:
                    listener(name, value)
                except Exception:
                    _LOGGER.exception("Error in capability listener for %s", name)

    def set_available(self) -> None:
        """Mark the device available."""
        self.available = True
        self.unavailable_reason = None

    def set_unavailable(self, reason: str) -> None:
        """Mark the device unavailable with a human-readable reason."""
        self.available = False
        self.unavailable_reason = reason

    def trigger(self, name: str, tokens: dict[str, Any]) -> None:
        """Deliver a notification to all trigger listeners."""
        for listener in self._trigger_listeners:
            try:
                listener(name, dict(tokens))
            except Exception:
                _LOGGER.exception("Error in trigger listener for %s", name)

    def add_listener(self, callback: Callable[[str, Any], None]) -> None:
        """Register a callback for capability value changes."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[str, Any], None]) -> None:
        """Unregister a capability change callback."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def add_trigger_listener(self, callback: Callable[[str, dict[str, Any]], None]) -> None:
        """Register a callback for emitted notifications."""
        if callback not in self._trigger_listeners:
            self._trigger_listeners.append(callback)

    def remove_trigger_listener(self, callback: Callable[[str, dict[str, Any]], None]) -> None:
        """Unregister a notification callback."""
        if callback in self._trigger_listeners:
            self._trigger_listeners.remove(callback)
