"""
Board Approval Validation

Checks a bulk equity update before it goes to the board. Problems that make
the update meaningless (unknown members, out-of-range percentages, a total
far from 100%) are errors; everything else is a warning the board can
override.
"""
from decimal import Decimal
from typing import List, Sequence

from app.core.rounding import ONE_HUNDRED, ZERO, quantize_percentage
from app.core.settings import get_settings
from app.core.status_config import EQUITY_HOLDING_STATUSES
from app.logging_config import get_logger
from app.schemas.board_approval import BoardApprovalValidation, LargeChange, MemberEquityUpdate
from app.schemas.member import Member

logger = get_logger(__name__)

# Changes smaller than this need no documented reason
_REASON_REQUIRED_ABOVE = Decimal("0.01")


def _status_label(member: Member) -> str:
    return getattr(member.status, "value", member.status)


def member_update_warnings(member: Member, update: MemberEquityUpdate) -> List[str]:
    """Warnings attached to a single member's update record."""
    settings = get_settings()
    change = update.new_equity_percentage - member.equity_percentage
    warnings = []

    if abs(change) > settings.LARGE_EQUITY_CHANGE_THRESHOLD:
        warnings.append(f"Large change: {quantize_percentage(change)}%")
    if member.status not in EQUITY_HOLDING_STATUSES and update.new_equity_percentage > 0:
        warnings.append(f"Member status is {_status_label(member)}")
    if abs(change) > _REASON_REQUIRED_ABOVE and not update.change_reason:
        warnings.append("No reason provided for change")

    return warnings


def validate_equity_updates(
    members: Sequence[Member], updates: Sequence[MemberEquityUpdate]
) -> BoardApprovalValidation:
    """
    Validate a bulk equity update against the current member list.

    total_before covers the updated members plus any active members left out
    of the update; total_after covers the updated members only.
    """
    settings = get_settings()
    errors: List[str] = []
    warnings: List[str] = []
    large_changes: List[LargeChange] = []

    member_map = {m.id: m for m in members}
    updated_ids = {u.member_id for u in updates}

    total_before = ZERO
    total_after = ZERO

    for update in updates:
        member = member_map.get(update.member_id)
        if member is None:
            errors.append(f"Member {update.member_id} not found")
            logger.warning("Equity update for unknown member", extra={"member_id": update.member_id})
            continue

        new_pct = update.new_equity_percentage
        total_before += member.equity_percentage
        total_after += new_pct

        if new_pct < 0 or new_pct > ONE_HUNDRED:
            errors.append(f"Invalid equity percentage {new_pct} for {member.full_name}")

        change = new_pct - member.equity_percentage
        if abs(change) > settings.LARGE_EQUITY_CHANGE_THRESHOLD:
            large_changes.append(LargeChange(
                member_id=member.id,
                member_name=member.full_name,
                change_percentage=change,
            ))
            warnings.append(
                f"Large equity change of {quantize_percentage(change)}% for {member.full_name}"
            )

        if abs(change) > _REASON_REQUIRED_ABOVE and not update.change_reason:
            warnings.append(
                f"No reason provided for equity change of {quantize_percentage(change)}% for {member.full_name}"
            )

        if member.status not in EQUITY_HOLDING_STATUSES and new_pct > 0:
            warnings.append(
                f"{member.full_name} has status {_status_label(member)} but is assigned {new_pct}% equity"
            )

    for member in members:
        if member.status in EQUITY_HOLDING_STATUSES and member.id not in updated_ids:
            total_before += member.equity_percentage
            warnings.append(f"Active member {member.full_name} not included in update")

    deviation = abs(total_after - ONE_HUNDRED)
    if deviation > settings.EQUITY_TOTAL_TOLERANCE:
        warnings.append(
            f"Total equity after update is {quantize_percentage(total_after)}%, not 100%. "
            f"Difference: {quantize_percentage(deviation)}%"
        )
        if deviation > settings.EQUITY_DEVIATION_ERROR_THRESHOLD:
            errors.append(f"Total equity deviation too large: {quantize_percentage(deviation)}%")

    return BoardApprovalValidation(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        total_before=total_before,
        total_after=total_after,
        large_changes=large_changes,
    )
