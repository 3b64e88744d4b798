"""
Exception types for the FocusFlow application.
Each failure kind maps to exactly one fallback in the caller.
"""

from typing import Any, Optional


class FocusFlowError(Exception):
    """Base class for all FocusFlow errors."""
    pass


class ExternalServiceFailure(FocusFlowError):
    """A prayer-times or quote lookup failed (network, status or payload)."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class PersistenceFailure(FocusFlowError):
    """Reading or writing the local document store failed."""

    def __init__(self, operation: str, key: str = "", message: str = ""):
        detail = f"{operation} {key}".strip()
        super().__init__(f"{detail}: {message}" if message else detail)
        self.operation = operation
        self.key = key


class ConcurrentUpdateError(PersistenceFailure):
    """A transactional update kept losing its compare-and-swap."""
    pass


class ValidationFailure(FocusFlowError):
    """User input could not be accepted."""

    def __init__(self, field: str, value: Any = None, message: Optional[str] = None):
        super().__init__(message or f"Invalid value for {field}: {value!r}")
        self.field = field
        self.value = value


class AuthenticationFailure(FocusFlowError):
    """No identity could be issued for this installation."""
    pass
