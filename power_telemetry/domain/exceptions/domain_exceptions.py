"""
Domain Exceptions - failure taxonomy of the telemetry pipeline.
"""
from datetime import datetime
from typing import Any, Dict, Optional


class DomainException(Exception):
    """
    Base exception for all domain-related errors.

    All domain exceptions should inherit from this class to allow
    for consistent error handling across the application.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }


class ValidationException(DomainException):
    """
    Raised when domain validation fails.

    Can contain multiple validation errors for different fields.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, list]] = None
    ):
        self.errors = errors or {}
        super().__init__(
            message=message,
            code='VALIDATION_ERROR',
            details={'validation_errors': self.errors}
        )


class InvalidPeriodError(ValidationException):
    """Raised for an explicit rollup period that does not exist (week 54, month 13)."""

    def __init__(self, period: str, reason: str):
        self.period = period
        super().__init__(
            message=f"Invalid period {period}: {reason}",
            errors={'period': [reason]}
        )


class ValidationGap(DomainException):
    """
    A payload field was malformed or missing.

    Ingestion favours availability: the field is defaulted or the message
    dropped, and this is logged rather than raised to the transport.
    """

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Field '{field}' ignored: {reason}",
            code='VALIDATION_GAP',
            details={'field': field, 'value': repr(value), 'reason': reason}
        )


class TransientIOError(DomainException):
    """Store or transport unreachable; the next scheduled cycle retries."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(
            message=f"{operation} failed: {cause}" if cause else f"{operation} failed",
            code='TRANSIENT_IO_ERROR',
            details={'operation': operation}
        )


class DataLossWindow(DomainException):
    """
    A drained flush window could not be persisted.

    The buffer has already been emptied, so the averaged values are gone.
    """

    def __init__(
        self,
        window_end: datetime,
        sample_count: int,
        values: Dict[str, Any],
        cause: Optional[BaseException] = None,
    ):
        self.window_end = window_end
        self.sample_count = sample_count
        self.cause = cause
        super().__init__(
            message=(
                f"Lost flush window ending {window_end.isoformat()} "
                f"({sample_count} samples): {cause}"
            ),
            code='DATA_LOSS_WINDOW',
            details={'sample_count': sample_count, 'values': values}
        )


class PartialBatchFailure(DomainException):
    """One or more rollup groups failed while the rest committed."""

    def __init__(self, tier: str, failed_periods: list):
        self.tier = tier
        self.failed_periods = failed_periods
        super().__init__(
            message=f"{tier} rollup: {len(failed_periods)} period(s) failed",
            code='PARTIAL_BATCH_FAILURE',
            details={'tier': tier, 'failed_periods': failed_periods}
        )


class TransportNotConnected(DomainException):
    """Raised when publishing while the MQTT client is offline."""

    def __init__(self, message: str = "MQTT client is not connected"):
        super().__init__(message=message, code='TRANSPORT_NOT_CONNECTED')
