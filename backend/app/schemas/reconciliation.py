"""
Reconciliation Schemas

System totals compared against the balance sheet.
"""
from decimal import Decimal
from typing import Optional, List
from enum import Enum

from pydantic import BaseModel, Field


class ReconciliationItemStatus(str, Enum):
    MATCHED = "matched"
    VARIANCE = "variance"
    MISSING = "missing"


class ReconciliationResult(BaseModel):
    """Single computed-vs-external comparison."""
    reconciled: bool
    variance: Decimal = Field(..., ge=0, description="|computed - external|")
    computed: Decimal
    external: Decimal
    tolerance: Decimal


class ReconciliationItem(BaseModel):
    """One line of a balance sheet reconciliation report."""
    description: str
    system_amount: Optional[Decimal] = None
    balance_sheet_amount: Optional[Decimal] = None
    variance: Optional[Decimal] = None  # system - balance sheet (signed)
    status: ReconciliationItemStatus
    notes: Optional[str] = None


class BalanceSheetData(BaseModel):
    """Figures reported on the external balance sheet."""
    member_capital_accounts: Decimal
    total_equity: Optional[Decimal] = None
    retained_earnings: Optional[Decimal] = None
    additional_paid_in_capital: Optional[Decimal] = None
    active_member_count: Optional[int] = Field(None, ge=0)


class BalanceSheetReconciliation(BaseModel):
    fiscal_year: Optional[int] = None
    is_reconciled: bool
    items: List[ReconciliationItem]
    capital: ReconciliationResult
    warnings: List[str] = Field(default_factory=list)
