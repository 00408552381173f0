"""Utils package."""

from .errors import (
    APIError,
    ErrorCode,
    CatalogFetchFailed,
    PriceComputationFailed,
    RemoteCallFailed,
    InvalidTransition,
    AlreadyResolved,
    ParentLocked,
    ValidationFailed,
    raise_error,
    log_error,
)

__all__ = [
    "APIError",
    "ErrorCode",
    "CatalogFetchFailed",
    "PriceComputationFailed",
    "RemoteCallFailed",
    "InvalidTransition",
    "AlreadyResolved",
    "ParentLocked",
    "ValidationFailed",
    "raise_error",
    "log_error",
]
