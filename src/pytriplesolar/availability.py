"""Consecutive-failure driven availability tracking for a device session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pytriplesolar.const import (
    MAX_CONSECUTIVE_ERRORS,
    REASON_AUTHENTICATION_FAILED,
    REASON_CONNECTION_LOST,
    REASON_LOGIN_REQUIRED,
)
from pytriplesolar.exceptions import AuthenticationExhaustedError, UnauthenticatedError


if TYPE_CHECKING:
    from pytriplesolar.models import DeviceSession
    from pytriplesolar.shell import DeviceShell

_LOGGER = logging.getLogger(__name__)


class AvailabilityMonitor:
    """Binary available/unavailable state driven by consecutive failures.

    Failures are tolerated silently until ``threshold`` consecutive ones
    have been recorded, then the device is marked unavailable with a
    connection-lost reason. Authentication failures that cannot be recovered
    without new credentials skip the counter and apply immediately.

    State lives on the ``DeviceSession``; the shell is only told about
    transitions.
    """

    def __init__(
        self,
        device_session: DeviceSession,
        shell: DeviceShell | None = None,
        *,
        threshold: int = MAX_CONSECUTIVE_ERRORS,
    ) -> None:
        """Initialize the monitor.

        Args:
            device_session: Session holding the counter and availability.
            shell: Optional host shell notified of transitions.
            threshold: Consecutive failures before marking unavailable.
        """
        if threshold < 1:
            msg = f"Threshold must be at least 1, got {threshold}"
            raise ValueError(msg)

        self._device_session = device_session
        self._shell = shell
        self._threshold = threshold

    @property
    def threshold(self) -> int:
        """Get the consecutive failure threshold."""
        return self._threshold

    @property
    def available(self) -> bool:
        """Check if the device is currently available."""
        return self._device_session.available

    @property
    def reason(self) -> str | None:
        """Get the unavailability reason, or None while available."""
        return self._device_session.unavailable_reason

    @property
    def consecutive_errors(self) -> int:
        """Get the number of consecutive failures."""
        return self._device_session.consecutive_errors

    def record_success(self) -> None:
        """Record a successful poll or command."""
        session = self._device_session
        if session.consecutive_errors > 0:
            _LOGGER.debug(
                "Resetting error counter for %s (was %d)",
                session.interface_id,
                session.consecutive_errors,
            )
            session.consecutive_errors = 0

        if not session.available:
            _LOGGER.info("Device %s is back online, setting available", session.interface_id)
            session.available = True
            session.unavailable_reason = None
            if self._shell is not None:
                self._shell.set_available()

    def record_failure(self, error: BaseException | None = None) -> None:
        """Record a failed poll.

        Args:
            error: The failure, used to recognise fatal authentication errors.
        """
        if isinstance(error, UnauthenticatedError):
            self.mark_unavailable(REASON_LOGIN_REQUIRED)
            return

        if isinstance(error, AuthenticationExhaustedError):
            self.mark_unavailable(REASON_AUTHENTICATION_FAILED)
            return

        session = self._device_session
        session.consecutive_errors += 1

        if session.consecutive_errors < self._threshold:
            _LOGGER.warning(
                "Error %d/%d for %s, device still available",
                session.consecutive_errors,
                self._threshold,
                session.interface_id,
            )
            return

        if session.available:
            _LOGGER.error(
                "%d consecutive errors for %s, setting device unavailable",
                session.consecutive_errors,
                session.interface_id,
            )
            self.mark_unavailable(REASON_CONNECTION_LOST)

    def mark_unavailable(self, reason: str) -> None:
        """Transition directly to unavailable.

        Args:
            reason: Human-readable reason shown by the host.
        """
        session = self._device_session
        if not session.available and session.unavailable_reason == reason:
            return

        _LOGGER.warning("Device %s unavailable: %s", session.interface_id, reason)
        session.available = False
        session.unavailable_reason = reason
        if self._shell is not None:
            self._shell.set_unavailable(reason)
