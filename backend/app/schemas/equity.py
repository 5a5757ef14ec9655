"""
Equity Schemas

Result records for equity metrics, equity change validation and
pro-rata rebalancing.
"""
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field

from app.schemas.reconciliation import ReconciliationResult


# ============================================================================
# Equity Metrics
# ============================================================================

class EquityConcentration(BaseModel):
    """How concentrated ownership is among the largest holders."""
    top_10_percent: Decimal = Field(..., description="Share of total held by the top 10% of members (0-100)")
    top_25_percent: Decimal = Field(..., description="Share of total held by the top 25% of members (0-100)")
    gini_coefficient: Decimal = Field(..., ge=0, le=1)


class EquityCalculations(BaseModel):
    """Aggregate equity statistics for a set of active members."""
    member_count: int
    total_equity_allocated: Decimal
    total_capital_accounts: Decimal
    average_equity_per_member: Decimal
    unallocated_equity: Decimal
    equity_concentration: EquityConcentration
    is_over_allocated: bool = False
    reconciliation: Optional[ReconciliationResult] = None
    year_over_year_change: Optional[Decimal] = None  # percent change in total capital
    warnings: List[str] = Field(default_factory=list)


class EquityValidationResult(BaseModel):
    """Outcome of validating a single member's proposed equity change."""
    is_valid: bool
    current_total: Decimal
    new_total: Decimal
    difference: Decimal  # new_total - 100
    message: Optional[str] = None


class EquityDistribution(BaseModel):
    """One member's row in a proportional adjustment."""
    member_id: str
    member_name: str
    current_percentage: Decimal
    new_percentage: Decimal
    change: Decimal


class MemberValue(BaseModel):
    member_id: str
    equity_percentage: Decimal
    estimated_value: Decimal


class MemberEquityChange(BaseModel):
    member_id: str
    before: Decimal
    after: Decimal
    change: Decimal


class ScenarioComparison(BaseModel):
    """Before/after view of an equity scenario."""
    total_before: Decimal
    total_after: Decimal
    gini_coefficient_before: Decimal
    gini_coefficient_after: Decimal
    members_affected: int
    changes: List[MemberEquityChange]


# ============================================================================
# Pro-Rata
# ============================================================================

class ProRataAllocation(BaseModel):
    """Result of spreading unallocated equity across members."""
    member_id: str
    original_percentage: Decimal
    additional_allocation: Decimal
    final_percentage: Decimal


class TotalEquityValidation(BaseModel):
    is_valid: bool
    total: Decimal
    deviation: Decimal


class UnallocatedAdjustment(BaseModel):
    """Proposal for distributing whatever is missing from (or above) 100%."""
    unallocated: Decimal
    allocations: List[ProRataAllocation] = Field(default_factory=list)
    adjusted: List[ProRataAllocation] = Field(default_factory=list)
    message: Optional[str] = None
