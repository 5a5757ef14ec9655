"""
Year-End Allocation Schemas

Company financials for a fiscal-year close and the per-member capital
account rollforward produced from them.
"""
from datetime import date
from decimal import Decimal
from typing import Optional, List, Literal

from pydantic import BaseModel, Field


class CompanyFinancials(BaseModel):
    """Inputs to a fiscal-year close."""
    fiscal_year: int = Field(..., ge=1900, le=2200)
    net_income: Decimal
    accruals: Decimal = Decimal("0")
    adjustments: Decimal = Decimal("0")
    sofr_rate: Decimal = Field(..., ge=0, le=20, description="Annual average SOFR (percent)")
    sofr_source: Optional[str] = None
    total_equity_balance_sheet: Optional[Decimal] = None

    @property
    def final_allocable_amount(self) -> Decimal:
        return self.net_income + self.accruals + self.adjustments


class EquityAllocation(BaseModel):
    """One member's capital account rollforward for a fiscal year."""
    member_id: str
    fiscal_year: int
    equity_percentage: Decimal
    beginning_capital_balance: Decimal
    effective_return_rate: Decimal
    balance_incentive_return: Decimal
    equity_based_allocation: Decimal
    allocation_amount: Decimal  # balance incentive + equity based
    distributions: Decimal = Decimal("0")
    ending_capital_balance: Decimal
    is_finalized: bool = False
    allocation_date: Optional[date] = None


class AllocationSummary(BaseModel):
    fiscal_year: int
    final_allocable_amount: Decimal
    effective_return_rate: Decimal
    total_balance_incentive_returns: Decimal
    remaining_net_income: Decimal
    total_allocated: Decimal
    unallocated_remainder: Decimal
    member_count: int
    average_allocation: Decimal
    largest_allocation: Decimal
    smallest_allocation: Decimal
    total_ending_capital: Decimal
    reconciliation_status: Literal["reconciled", "difference", "not_reconciled"]
    warnings: List[str] = Field(default_factory=list)


class YearEndAllocationResult(BaseModel):
    allocations: List[EquityAllocation]
    summary: AllocationSummary
