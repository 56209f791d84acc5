from .domain_exceptions import (
    DomainException,
    ValidationException,
    InvalidPeriodError,
    ValidationGap,
    TransientIOError,
    DataLossWindow,
    PartialBatchFailure,
    TransportNotConnected,
)

__all__ = [
    "DomainException",
    "ValidationException",
    "InvalidPeriodError",
    "ValidationGap",
    "TransientIOError",
    "DataLossWindow",
    "PartialBatchFailure",
    "TransportNotConnected",
]
