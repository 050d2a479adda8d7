"""
Custom exception classes for the document change tracking engine.

Provides specific exception types for the user-facing command errors and the
I/O-facing failures that the poller and webhook paths isolate per document.
"""

from typing import Any


class BaseError(Exception):
    """
    Base exception class for all tracking engine errors.

    All custom exceptions in the system inherit from this base class
    to enable consistent error handling and logging.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize the tracking error.

        Args:
            message: Human-readable error description
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context information
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        """String representation including error code if present."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"context={self.context})"
        )


class ConfigurationError(BaseError):
    """Raised when there are configuration or settings issues."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_type: str | None = None,
        actual_value: Any | None = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)

        super().__init__(message, error_code="CONFIG_ERROR", context=context)


class InvalidTokenError(BaseError):
    """Raised when a document token is empty or malformed."""

    code = "INVALID_TOKEN"

    def __init__(self, message: str, token: str | None = None):
        context = {}
        if token is not None:
            context["token"] = token

        super().__init__(message, error_code=self.code, context=context)


class NotTrackedError(BaseError):
    """Raised (or reported) when a command targets a document nobody is watching."""

    code = "NOT_TRACKED"

    def __init__(self, message: str, token: str | None = None, channel_id: str | None = None):
        context = {}
        if token:
            context["token"] = token
        if channel_id:
            context["channel_id"] = channel_id

        super().__init__(message, error_code=self.code, context=context)


class ProviderFetchError(BaseError):
    """Raised when fetching metadata from the document provider fails or times out."""

    code = "PROVIDER_FETCH_ERROR"

    def __init__(
        self,
        message: str,
        token: str | None = None,
        timed_out: bool = False,
        underlying_error: Exception | None = None,
    ):
        context: dict[str, Any] = {"timed_out": timed_out}
        if token:
            context["token"] = token

        super().__init__(message, error_code=self.code, context=context, cause=underlying_error)
        self.timed_out = timed_out


class PersistenceWriteError(BaseError):
    """Raised when the change history store rejects or fails a write."""

    code = "PERSISTENCE_ERROR"

    def __init__(
        self,
        message: str,
        token: str | None = None,
        operation: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if token:
            context["token"] = token
        if operation:
            context["operation"] = operation

        super().__init__(message, error_code=self.code, context=context, cause=underlying_error)


class SubscriptionError(BaseError):
    """Raised when registering or removing a provider push subscription fails."""

    code = "SUBSCRIPTION_ERROR"

    def __init__(
        self,
        message: str,
        token: str | None = None,
        operation: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if token:
            context["token"] = token
        if operation:
            context["operation"] = operation

        super().__init__(message, error_code=self.code, context=context, cause=underlying_error)


class MonitoringError(BaseError):
    """Raised when the polling service cannot be started or stopped."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="MONITORING_ERROR",
            context=context,
            cause=underlying_error,
        )


def raise_invalid_token(message: str, token: str | None = None) -> None:
    """Raise an invalid token error with context."""
    raise InvalidTokenError(message=message, token=token)
