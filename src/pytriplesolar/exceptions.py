"""Custom exceptions for pytriplesolar library."""

from __future__ import annotations

from typing import Any


class TripleSolarError(Exception):
    """Base exception for all TripleSolar errors."""


class TripleSolarConnectionError(TripleSolarError):
    """Exception raised for connection failures and unexpected HTTP statuses.

    Attributes:
        status: HTTP status code when the failure was an HTTP error response.
    """

    def __init__(self, message: str = "", status: int | None = None) -> None:
        """Initialize TripleSolarConnectionError.

        Args:
            message: Error message.
            status: Optional HTTP status code.
        """
        super().__init__(message)
        self.status = status


class TripleSolarTimeoutError(TripleSolarError):
    """Exception raised when API requests timeout."""


class MalformedResponseError(TripleSolarError):
    """Exception raised when a response is not JSON or lacks expected fields."""


class AuthenticationError(TripleSolarError):
    """Exception raised for authentication failures."""


class InvalidCredentialsError(AuthenticationError):
    """Exception raised when the backend rejects the username/password pair."""


class InvalidRefreshTokenError(AuthenticationError):
    """Exception raised when the backend rejects the refresh token."""


class NoCredentialsError(AuthenticationError):
    """Exception raised when no token or password is available at all."""


class UnauthenticatedError(AuthenticationError):
    """Exception raised on 401 when no refresh token is held for recovery."""


class AuthenticationExhaustedError(AuthenticationError):
    """Exception raised when token refresh and re-login both failed."""


class DomainError(TripleSolarError):
    """Exception raised when a well-formed response reports a business failure.

    Attributes:
        operation: GraphQL operation that was rejected.
    """

    def __init__(self, message: str = "", operation: str | None = None) -> None:
        """Initialize DomainError.

        Args:
            message: Error message, usually the server-supplied one.
            operation: Optional GraphQL operation name.
        """
        super().__init__(message)
        self.operation = operation


class CommandError(TripleSolarError):
    """Exception raised when a user command could not be applied.

    Attributes:
        failures: Reason for each attempt that was made, in order.
    """

    def __init__(self, message: str = "", failures: list[str] | None = None) -> None:
        """Initialize CommandError.

        Args:
            message: Error message.
            failures: Optional list of per-attempt failure reasons.
        """
        super().__init__(message)
        self.failures = failures or []


class DeviceError(TripleSolarError):
    """Exception raised for device-related errors.

    Attributes:
        interface_id: Optional interface ID associated with the error.
    """

    def __init__(self, message: str = "", interface_id: str | None = None) -> None:
        """Initialize DeviceError.

        Args:
            message: Error message.
            interface_id: Optional interface ID associated with the error.
        """
        super().__init__(message)
        self.interface_id = interface_id


class InvalidParameterError(TripleSolarError):
    """Exception raised for invalid parameter values.

    Attributes:
        parameter_name: Optional name of the invalid parameter.
        value: Optional value that was invalid.
    """

    def __init__(
        self,
        message: str = "",
        parameter_name: str | None = None,
        value: Any = None,
    ) -> None:
        """Initialize InvalidParameterError.

        Args:
            message: Error message.
            parameter_name: Optional name of the invalid parameter.
            value: Optional value that was invalid.
        """
        super().__init__(message)
        self.parameter_name = parameter_name
        self.value = value
