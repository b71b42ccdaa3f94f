"""
Custom exceptions for contextflow.

This module defines the exception hierarchy for the package. Most
degraded conditions (unknown models, missing prices, over-budget
histories) are recovered silently; the exceptions below cover the
cases that must reach the caller.
"""

from __future__ import annotations

from typing import Any


class ContextFlowError(Exception):
    """
    Base exception for all contextflow errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error.

    Example:
        >>> try:
        ...     async for chunk in coordinator.dispatch(history):
        ...         ...
        ... except ContextFlowError as e:
        ...     logger.error(f"contextflow error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ContextFlowError):
    """
    Raised when an options object or factory receives an invalid value.

    Attributes:
        config_key: The configuration key that has an issue.
        expected: What was expected for this configuration.
        received: What was actually provided.

    Example:
        >>> raise ConfigurationError(
        ...     config_key="max_input_utilization",
        ...     expected="a float in (0, 1]",
        ...     received=1.5,
        ... )
    """

    def __init__(
        self,
        config_key: str,
        expected: str | None = None,
        received: Any = None,
    ) -> None:
        self.config_key = config_key
        self.expected = expected
        self.received = received

        message = f"Configuration error for '{config_key}'"
        if expected:
            message += f": expected {expected}"
        if received is not None:
            message += f", got {received!r}"

        details = {
            "config_key": config_key,
            "expected": expected,
            "received": str(received) if received is not None else None,
        }
        super().__init__(message, details)


class NotInitializedError(ContextFlowError):
    """
    Raised when a ledger or coordinator is used before a model profile is bound.

    This is a programming error rather than a runtime condition, so it is
    never recovered internally.

    Attributes:
        component: Name of the component that was not initialized.
        operation: The operation that was attempted.
    """

    def __init__(self, component: str, operation: str) -> None:
        self.component = component
        self.operation = operation

        message = (
            f"{component} has no model profile bound; call initialize() "
            f"before '{operation}'"
        )
        super().__init__(message, {"component": component, "operation": operation})


class CoordinatorBusyError(ContextFlowError):
    """
    Raised when dispatch is called while another stream is still in flight.

    Attributes:
        state: The coordinator state at the time of the rejected dispatch.
    """

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(
            f"Coordinator already has a request in flight (state: {state})",
            {"state": state},
        )


class ProviderStreamError(ContextFlowError):
    """
    Raised when the transport or the provider reports a failure mid-stream.

    The coordinator moves to its terminal FAILED state before raising.
    Ledger updates already applied for observed events are kept.

    Attributes:
        error_type: Provider error type (e.g. "overloaded_error") or the
            name of the transport exception class.
    """

    def __init__(
        self,
        message: str,
        error_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.error_type = error_type or "unknown_error"
        merged = {"error_type": self.error_type}
        if details:
            merged.update(details)
        super().__init__(message, merged)
