"""Error handling utilities."""

from enum import Enum
from typing import Optional, Any, Dict
import logging


logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Error code enumeration."""

    # Catalog / pricing collaborator errors
    CATALOG_FETCH_FAILED = "CATALOG_FETCH_FAILED"
    PRICE_COMPUTATION_FAILED = "PRICE_COMPUTATION_FAILED"
    REMOTE_CALL_FAILED = "REMOTE_CALL_FAILED"

    # Business rule errors
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ALREADY_RESOLVED = "ALREADY_RESOLVED"
    PARENT_LOCKED = "PARENT_LOCKED"

    # Data validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Resource errors
    QUOTATION_NOT_FOUND = "QUOTATION_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ADDITIONAL_COST_NOT_FOUND = "ADDITIONAL_COST_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Server errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MESSAGES: Dict[ErrorCode, str] = {
    # Catalog / pricing collaborator errors
    ErrorCode.CATALOG_FETCH_FAILED: "Could not load catalog options, please retry",
    ErrorCode.PRICE_COMPUTATION_FAILED: "Price calculation failed, please retry",
    ErrorCode.REMOTE_CALL_FAILED: "Marketplace service call failed, please retry",

    # Business rule errors
    ErrorCode.INVALID_TRANSITION: "This action is not allowed in the current status",
    ErrorCode.ALREADY_RESOLVED: "This additional cost has already been resolved",
    ErrorCode.PARENT_LOCKED: "The parent quotation or order is locked",

    # Data validation errors
    ErrorCode.VALIDATION_ERROR: "Validation failed",

    # Resource errors
    ErrorCode.QUOTATION_NOT_FOUND: "Quotation not found",
    ErrorCode.ORDER_NOT_FOUND: "Order not found",
    ErrorCode.ADDITIONAL_COST_NOT_FOUND: "Additional cost not found",
    ErrorCode.SESSION_NOT_FOUND: "Selection session not found or expired",

    # Server errors
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}


class APIError(Exception):
    """Custom API error exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: Optional[str] = None,
        status_code: int = 400,
        details: Optional[Any] = None,
    ):
        """
        Initialize APIError.

        Args:
            error_code: Error code from ErrorCode enum
            message: Custom error message (overrides default)
            status_code: HTTP status code
            details: Additional error details
        """
        self.error_code = error_code
        self.message = message or ERROR_MESSAGES.get(error_code, "An error occurred")
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        """String representation."""
        return self.message


class CatalogFetchFailed(APIError):
    """Catalog collaborator could not deliver the option set for a tier."""

    def __init__(self, tier: str, reason: Optional[str] = None):
        self.tier = tier
        message = f"Could not load options for {tier}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            ErrorCode.CATALOG_FETCH_FAILED,
            message,
            status_code=502,
            details={"tier": tier},
        )


class PriceComputationFailed(APIError):
    """The remote price calculation failed."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(
            ErrorCode.PRICE_COMPUTATION_FAILED,
            f"Price calculation failed: {reason}" if reason else None,
            status_code=502,
            details={"reason": reason},
        )


class RemoteCallFailed(APIError):
    """A mirrored lifecycle or ledger write was refused by the marketplace."""

    def __init__(self, operation: str, reason: Optional[str] = None):
        self.operation = operation
        super().__init__(
            ErrorCode.REMOTE_CALL_FAILED,
            f"Marketplace call '{operation}' failed" + (f": {reason}" if reason else ""),
            status_code=502,
            details={"operation": operation},
        )


class InvalidTransition(APIError):
    """A quotation or order status change that the lifecycle does not allow."""

    def __init__(self, from_status: str, to_status: str, entity: str = "quotation"):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            ErrorCode.INVALID_TRANSITION,
            f"Cannot move {entity} from {from_status} to {to_status}",
            status_code=409,
            details={"from": from_status, "to": to_status},
        )


class AlreadyResolved(APIError):
    """Approval decision re-applied to an additional cost that is not pending."""

    def __init__(self, cost_id: str, status: str):
        self.cost_id = cost_id
        self.status = status
        super().__init__(
            ErrorCode.ALREADY_RESOLVED,
            f"Additional cost {cost_id} is already {status}; only pending costs can be approved or rejected",
            status_code=409,
            details={"cost_id": cost_id, "status": status},
        )


class ParentLocked(APIError):
    """Ledger mutation against an approved or rejected quotation/order."""

    def __init__(self, parent_kind: str, parent_id: str, status: str):
        self.parent_kind = parent_kind
        self.parent_id = parent_id
        self.status = status
        super().__init__(
            ErrorCode.PARENT_LOCKED,
            f"Additional costs cannot change: {parent_kind} {parent_id} is {status}",
            status_code=409,
            details={"parent_kind": parent_kind, "parent_id": parent_id, "status": status},
        )


class ValidationFailed(APIError):
    """Local validation rejected the input before any remote call."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(
            ErrorCode.VALIDATION_ERROR,
            f"{field}: {reason}",
            status_code=422,
            details={"field": field, "reason": reason},
        )


def raise_error(
    error_code: ErrorCode,
    message: Optional[str] = None,
    status_code: int = 400,
    details: Optional[Any] = None,
) -> None:
    """
    Raise an API error.

    Args:
        error_code: Error code from ErrorCode enum
        message: Custom error message (overrides default)
        status_code: HTTP status code
        details: Additional error details

    Raises:
        APIError: Always raises APIError with provided parameters
    """
    raise APIError(
        error_code=error_code,
        message=message,
        status_code=status_code,
        details=details,
    )


def log_error(error: Exception, context: str = "") -> None:
    """
    Log an error with context.

    Args:
        error: Exception to log
        context: Context description
    """
    if isinstance(error, APIError):
        logger.error(
            f"APIError [{context}]: {error.error_code} - {error.message}",
            extra={"details": error.details},
        )
    else:
        logger.error(f"Error [{context}]: {str(error)}", exc_info=True)
