"""
Member Schemas

Pydantic models for members and their per-fiscal-year equity and status records.
"""
from datetime import date
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from app.core.status_config import MemberStatus, EQUITY_HOLDING_STATUSES


class MemberYearlyEquity(BaseModel):
    """Equity snapshot for one member in one fiscal year."""
    fiscal_year: int = Field(..., ge=1900, le=2200)
    estimated_percentage: Decimal = Field(..., ge=0, le=100)
    final_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    capital_balance: Decimal = Field(default=Decimal("0"))
    is_finalized: bool = False
    finalized_date: Optional[date] = None

    @property
    def effective_percentage(self) -> Decimal:
        """Final percentage once set, otherwise the estimate."""
        if self.final_percentage is not None:
            return self.final_percentage
        return self.estimated_percentage


class MemberYearlyStatus(BaseModel):
    """Status record for one member in one fiscal year."""
    fiscal_year: int = Field(..., ge=1900, le=2200)
    status: MemberStatus
    effective_date: date
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class Member(BaseModel):
    """A company member (equity holder)."""
    id: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    employee_id: Optional[str] = Field(None, max_length=50)
    join_date: Optional[date] = None

    # Ownership
    equity_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    capital_balance: Decimal = Field(default=Decimal("0"))

    status: MemberStatus = MemberStatus.ACTIVE
    fiscal_year: Optional[int] = None

    # Historical data
    equity_history: List[MemberYearlyEquity] = Field(default_factory=list)
    status_history: List[MemberYearlyStatus] = Field(default_factory=list)

    @field_validator("equity_percentage", "capital_balance", mode="before")
    @classmethod
    def coerce_float(cls, v):
        """Floats go through str() so 33.3 stays 33.3 and not 33.29999..."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    @property
    def holds_equity_status(self) -> bool:
        """Active and probationary members are expected to hold equity."""
        return self.status in EQUITY_HOLDING_STATUSES

    def equity_for_year(self, fiscal_year: int) -> Optional[MemberYearlyEquity]:
        for record in self.equity_history:
            if record.fiscal_year == fiscal_year:
                return record
        return None

    def status_for_year(self, fiscal_year: int) -> Optional[MemberYearlyStatus]:
        """Latest status record (by effective date) for the fiscal year."""
        records = [r for r in self.status_history if r.fiscal_year == fiscal_year]
        if not records:
            return None
        return max(records, key=lambda r: r.effective_date)


class MemberEquityOverview(BaseModel):
    """Company equity overview: allocated vs available."""
    fiscal_year: Optional[int] = None
    total_allocated: Decimal
    available_equity: Decimal
    member_count: int
    members: List[Member]
