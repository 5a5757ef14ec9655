"""
Member Equity - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the calculation services.

Usage:
    from app.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Member", member_id)
    raise ValidationError("Equity percentage must be between 0 and 100", field="equity_percentage")

Data-quality findings (over-allocation, reconciliation variance, rounding
drift) are NOT raised; they are returned as warnings on result records.
"""
from typing import Any, Dict, Optional


class MemberEquityException(Exception):
    """
    Base exception for all member equity errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND", "VALIDATION_ERROR")
        details: Additional context for debugging
    """

    error_code: str = "MEMBER_EQUITY_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for callers that render errors."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# Input Errors
# ===================


class ValidationError(MemberEquityException):
    """Raised when input validation fails."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details)


class InvalidStateError(MemberEquityException):
    """Raised when an operation is invalid for the current state."""

    error_code = "INVALID_STATE"

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states:
            details["allowed_states"] = allowed_states
        super().__init__(message, details=details)


class DuplicateError(MemberEquityException):
    """Raised when the same record appears twice where it must be unique."""

    error_code = "DUPLICATE_ERROR"

    def __init__(
        self,
        resource: str = "Resource",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        message = f"{resource} already exists"
        if field and value:
            message = f"{resource} with {field}='{value}' already exists"
        super().__init__(message, details=details)


# ===================
# Authorization Errors
# ===================


class PermissionDeniedError(MemberEquityException):
    """Raised when someone other than the expected actor attempts an action."""

    error_code = "PERMISSION_DENIED"

    def __init__(
        self,
        message: str = "Permission denied",
        *,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if action:
            details["action"] = action
        if resource:
            details["resource"] = resource
        super().__init__(message, details=details)


# ===================
# Lookup Errors
# ===================


class NotFoundError(MemberEquityException):
    """Raised when a resource is not found."""

    error_code = "NOT_FOUND"

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


# ===================
# Business Rule Errors
# ===================


class BusinessRuleError(MemberEquityException):
    """Raised when a business rule is violated."""

    error_code = "BUSINESS_RULE_ERROR"

    def __init__(
        self,
        message: str = "Business rule violation",
        *,
        rule: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if rule:
            details["rule"] = rule
        super().__init__(message, details=details)


class ProRataDistributionError(BusinessRuleError):
    """Raised when a percentage delta cannot be spread proportionally."""

    error_code = "PRO_RATA_DISTRIBUTION_ERROR"

    def __init__(
        self,
        message: str = "Cannot distribute percentage change proportionally",
        *,
        delta: Any = None,
        eligible_total: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if delta is not None:
            details["delta"] = str(delta)
        if eligible_total is not None:
            details["eligible_total"] = str(eligible_total)
        super().__init__(message, rule="pro_rata", details=details)


class AllocationFinalizedError(BusinessRuleError):
    """Raised when modifying a year-end allocation that has been finalized."""

    error_code = "ALLOCATION_FINALIZED"

    def __init__(
        self,
        member_id: str,
        fiscal_year: int,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["member_id"] = member_id
        details["fiscal_year"] = fiscal_year
        message = f"Allocation for member {member_id} in FY {fiscal_year} is finalized"
        super().__init__(message, rule="allocation_immutable", details=details)
