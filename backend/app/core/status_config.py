"""Status Configuration and Transition Rules

This module defines valid status values and allowed transitions for
Members, Distributions and Distribution Requests. Status transitions are
validated to prevent invalid state changes.
"""
from enum import Enum
from typing import Dict, List, Set

from app.exceptions import InvalidStateError


# =============================================================================
# Member Status
# =============================================================================

class MemberStatus(str, Enum):
    """Valid status values for Members"""
    ACTIVE = "active"
    RETIRED = "retired"
    RESIGNED = "resigned"
    TERMINATED = "terminated"
    DECEASED = "deceased"
    SUSPENDED = "suspended"
    PROBATIONARY = "probationary"


# Statuses that may legitimately hold equity
EQUITY_HOLDING_STATUSES: Set[str] = {
    MemberStatus.ACTIVE,
    MemberStatus.PROBATIONARY,
}


# =============================================================================
# Distribution Status
# =============================================================================

class DistributionStatus(str, Enum):
    """Valid status values for company-wide Distributions"""
    DRAFT = "draft"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


DISTRIBUTION_TRANSITIONS: Dict[str, Set[str]] = {
    DistributionStatus.DRAFT: {
        DistributionStatus.APPROVED,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.APPROVED: {
        DistributionStatus.PROCESSING,
        DistributionStatus.CANCELLED,
    },
    DistributionStatus.PROCESSING: {
        DistributionStatus.COMPLETED,
    },
    DistributionStatus.COMPLETED: set(),  # Terminal
    DistributionStatus.CANCELLED: set(),  # Terminal
}


# =============================================================================
# Distribution Request Status
# =============================================================================

class RequestStatus(str, Enum):
    """Valid status values for member Distribution Requests"""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    EDIT_REQUESTED = "edit_requested"
    CANCELLED = "cancelled"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_PROCESSING = "payment_processing"
    PAID = "paid"
    FAILED = "failed"


REQUEST_TRANSITIONS: Dict[str, Set[str]] = {
    RequestStatus.DRAFT: {
        RequestStatus.PENDING_APPROVAL,
        RequestStatus.CANCELLED,
    },
    RequestStatus.PENDING_APPROVAL: {
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
        RequestStatus.EDIT_REQUESTED,
        RequestStatus.CANCELLED,
    },
    RequestStatus.EDIT_REQUESTED: {
        RequestStatus.PENDING_APPROVAL,  # Resubmitted after edits
        RequestStatus.CANCELLED,
    },
    RequestStatus.APPROVED: {
        RequestStatus.PAYMENT_PENDING,
        RequestStatus.CANCELLED,
    },
    RequestStatus.PAYMENT_PENDING: {
        RequestStatus.PAYMENT_PROCESSING,
        RequestStatus.CANCELLED,
    },
    RequestStatus.PAYMENT_PROCESSING: {
        RequestStatus.PAID,
        RequestStatus.FAILED,
    },
    RequestStatus.FAILED: {
        RequestStatus.PAYMENT_PENDING,  # Retry
        RequestStatus.CANCELLED,
    },
    RequestStatus.REJECTED: set(),  # Terminal
    RequestStatus.CANCELLED: set(),  # Terminal
    RequestStatus.PAID: set(),  # Terminal
}


class ApprovalStepStatus(str, Enum):
    """Status of a single step in an approval chain"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EDIT_REQUESTED = "edit_requested"


class ApprovalAction(str, Enum):
    """Actions an approver can take on their step"""
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_EDIT = "request_edit"


ACTION_TO_STEP_STATUS: Dict[str, ApprovalStepStatus] = {
    ApprovalAction.APPROVE: ApprovalStepStatus.APPROVED,
    ApprovalAction.REJECT: ApprovalStepStatus.REJECTED,
    ApprovalAction.REQUEST_EDIT: ApprovalStepStatus.EDIT_REQUESTED,
}


# =============================================================================
# Validation Helpers
# =============================================================================

def _value(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def get_allowed_transitions(table: Dict[str, Set[str]], current_status: str) -> List[str]:
    """Get sorted list of allowed next statuses"""
    return sorted(_value(s) for s in table.get(current_status, set()))


def is_valid_transition(table: Dict[str, Set[str]], current_status: str, new_status: str) -> bool:
    """Check if a status transition is valid. Re-entering the current status is not."""
    allowed = table.get(current_status, set())
    return new_status in allowed


def validate_transition(
    entity: str, table: Dict[str, Set[str]], current: str, new: str
) -> None:
    """Validate and raise InvalidStateError if the transition is invalid"""
    if not is_valid_transition(table, current, new):
        allowed = get_allowed_transitions(table, current)
        raise InvalidStateError(
            f"Invalid {entity} status transition: '{_value(current)}' -> '{_value(new)}'. "
            f"Allowed: {allowed if allowed else 'none (terminal state)'}",
            current_state=_value(current),
            allowed_states=allowed,
        )


def validate_distribution_transition(current: str, new: str) -> None:
    validate_transition("distribution", DISTRIBUTION_TRANSITIONS, current, new)


def validate_request_transition(current: str, new: str) -> None:
    validate_transition("distribution request", REQUEST_TRANSITIONS, current, new)
