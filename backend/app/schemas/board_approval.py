"""
Board Approval Schemas

Bulk equity updates submitted for board approval and their validation result.
"""
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field


class MemberEquityUpdate(BaseModel):
    """A proposed new equity percentage for one member."""
    member_id: str = Field(..., min_length=1)
    new_equity_percentage: Decimal
    change_reason: Optional[str] = Field(None, max_length=500)


class LargeChange(BaseModel):
    member_id: str
    member_name: str
    change_percentage: Decimal


class BoardApprovalValidation(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    total_before: Decimal
    total_after: Decimal
    large_changes: List[LargeChange] = Field(default_factory=list)
