"""
Distribution Schemas

Company distributions (a pool split by equity) and member distribution
requests (a single payout routed through an approval chain).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal

from pydantic import BaseModel, Field

from app.core.status_config import (
    ApprovalAction,
    ApprovalStepStatus,
    DistributionStatus,
    RequestStatus,
)


# ============================================================================
# Pool Distributions
# ============================================================================

class DistributionShareInput(BaseModel):
    """A member's claim on a distribution pool."""
    member_id: str = Field(..., min_length=1)
    equity_percentage: Decimal
    tax_withholding_percentage: Decimal = Decimal("0")


class MemberDistribution(BaseModel):
    """Per-member breakdown of a distribution."""
    member_id: str
    equity_percentage: Decimal
    tax_withholding_percentage: Decimal
    gross_amount: Decimal
    tax_withholding: Decimal
    net_amount: Decimal
    rounding_adjustment: Decimal = Decimal("0")


class Distribution(BaseModel):
    """A distribution pool and its per-member breakdown."""
    id: Optional[str] = None
    total_amount: Decimal
    distribution_date: Optional[date] = None
    status: DistributionStatus = DistributionStatus.DRAFT
    member_distributions: List[MemberDistribution] = Field(default_factory=list)

    total_gross: Decimal = Decimal("0")
    total_tax_withholding: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    total_equity_percentage: Decimal = Decimal("0")

    # Rounding drift: allocated gross minus the exact (unrounded) share of the pool
    rounding_drift_cents: int = 0
    drift_threshold_cents: int = 0
    drift_exceeds_threshold: bool = False
    warnings: List[str] = Field(default_factory=list)

    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# ============================================================================
# Distribution Requests
# ============================================================================

DistributionType = Literal[
    "quarterly", "annual", "special", "tax", "emergency", "bonus", "return_of_capital"
]
PayoutMethod = Literal["wire_transfer", "check", "ach", "direct_deposit"]
RequestPriority = Literal["low", "normal", "high", "urgent"]


class ApprovalStep(BaseModel):
    """One approver's position in an approval chain."""
    approver_id: str = Field(..., min_length=1)
    approver_name: Optional[str] = None
    approver_role: Optional[str] = None
    order: int = Field(..., ge=1)
    status: ApprovalStepStatus = ApprovalStepStatus.PENDING
    action: Optional[ApprovalAction] = None
    comments: Optional[str] = None
    action_date: Optional[datetime] = None
    required_approval: bool = True


class RequestComment(BaseModel):
    user_id: str
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    comment: str
    is_internal: bool = True
    created_at: datetime


class DistributionRequest(BaseModel):
    """A member's request for a payout."""
    id: str
    request_number: str
    member_id: str
    requested_by: str
    amount: Decimal = Field(..., gt=0)
    distribution_type: DistributionType = "special"
    payout_method: PayoutMethod = "ach"
    priority: RequestPriority = "normal"
    reason: Optional[str] = None
    requested_payment_date: Optional[date] = None

    approval_chain: List[ApprovalStep] = Field(default_factory=list)
    current_approver: Optional[str] = None
    status: RequestStatus = RequestStatus.DRAFT

    comments: List[RequestComment] = Field(default_factory=list)

    transaction_reference: Optional[str] = None
    actual_payment_date: Optional[date] = None
    failure_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime


class DistributionRequestSummary(BaseModel):
    total_requests: int
    by_status: dict
    pending_approval: int
    approved: int
    rejected: int
    total_amount: Decimal
    awaiting_payment: int  # approved or payment_pending; payment not yet started
    paid_amount: Decimal
