"""
Pro-Rata Rebalancing Service

Spreads a percentage change across a set of members in proportion to what
each already holds:

    new = old + delta * old / sum(old)

All math is Decimal. Results are quantized to PERCENTAGE_DECIMAL_PLACES and
the largest holder absorbs the quantization residue, so the rebalanced
set always sums to exactly sum(old) + delta.
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from app.core.rounding import ONE_HUNDRED, ZERO, decimal_sum, quantize_percentage, to_decimal
from app.core.settings import get_settings
from app.core.status_config import EQUITY_HOLDING_STATUSES
from app.exceptions import NotFoundError, ProRataDistributionError
from app.logging_config import get_logger
from app.schemas.equity import ProRataAllocation, TotalEquityValidation, UnallocatedAdjustment
from app.schemas.member import Member

logger = get_logger(__name__)


def rebalance(percentages: Mapping[str, Decimal], delta) -> Dict[str, Decimal]:
    """
    Distribute delta across members proportional to their current percentage.

    Args:
        percentages: member_id -> current percentage (iteration order is kept)
        delta: Percentage points to add (negative to remove)

    Returns:
        member_id -> new percentage, same order as the input

    Raises:
        ProRataDistributionError: Empty set, or the set's total is zero
    """
    delta = to_decimal(delta)
    if not percentages:
        raise ProRataDistributionError(
            "No members to distribute the change across", delta=delta
        )

    current = {member_id: to_decimal(pct) for member_id, pct in percentages.items()}
    total = decimal_sum(current.values())
    if total == 0:
        raise ProRataDistributionError(
            "Members hold no equity; change cannot be distributed proportionally",
            delta=delta,
            eligible_total=total,
        )

    target_total = total + delta
    result: Dict[str, Decimal] = {
        member_id: quantize_percentage(pct + delta * pct / total)
        for member_id, pct in current.items()
    }
    # Largest holder (first of equal maxima) absorbs the residue so the set sums exactly
    largest = max(current, key=lambda member_id: current[member_id])
    result[largest] += target_total - decimal_sum(result.values())

    logger.debug(
        "Rebalanced equity",
        extra={"members": len(result), "delta": str(delta), "total": str(target_total)},
    )
    return result


def calculate_pro_rata_distribution(
    members: Sequence[Member],
    unallocated_percentage,
    exclude_member_ids: Optional[Iterable[str]] = None,
) -> List[ProRataAllocation]:
    """
    Spread unallocated equity across members, skipping excluded ones.

    Every member gets a row; excluded members receive zero.

    Raises:
        ProRataDistributionError: No eligible members, or eligible members hold nothing
    """
    unallocated = to_decimal(unallocated_percentage)
    excluded = set(exclude_member_ids or [])
    eligible = {m.id: m.equity_percentage for m in members if m.id not in excluded}

    if not eligible:
        raise ProRataDistributionError(
            "No eligible members for pro-rata distribution", delta=unallocated
        )

    rebalanced = rebalance(eligible, unallocated)

    allocations = []
    for member in members:
        original = member.equity_percentage
        if member.id in rebalanced:
            final = rebalanced[member.id]
            additional = final - original
        else:
            final = original
            additional = ZERO
        allocations.append(ProRataAllocation(
            member_id=member.id,
            original_percentage=original,
            additional_allocation=additional,
            final_percentage=final,
        ))
    return allocations


def calculate_reduction_reallocation(
    members: Sequence[Member], reduced_member_id: str, reduction_amount
) -> List[ProRataAllocation]:
    """Give the percentage taken from one member to everyone else, pro rata."""
    if not any(m.id == reduced_member_id for m in members):
        raise NotFoundError("Member", reduced_member_id)
    return calculate_pro_rata_distribution(members, reduction_amount, [reduced_member_id])


def validate_total_equity(
    allocations: Sequence[ProRataAllocation], tolerance=None
) -> TotalEquityValidation:
    """Check final percentages sum to 100 within tolerance (inclusive)."""
    if tolerance is None:
        tolerance = get_settings().EQUITY_TOTAL_TOLERANCE
    total = decimal_sum(a.final_percentage for a in allocations)
    deviation = abs(ONE_HUNDRED - total)
    return TotalEquityValidation(
        is_valid=deviation <= to_decimal(tolerance),
        total=total,
        deviation=deviation,
    )


def adjust_to_exact_total(allocations: Sequence[ProRataAllocation]) -> List[ProRataAllocation]:
    """Have the largest holder absorb whatever keeps the total from being exactly 100."""
    if not allocations:
        return []
    total = decimal_sum(a.final_percentage for a in allocations)
    difference = ONE_HUNDRED - total
    if difference == 0:
        return [a.model_copy() for a in allocations]

    # First of equal maxima wins
    largest_index = 0
    for index, allocation in enumerate(allocations):
        if allocation.final_percentage > allocations[largest_index].final_percentage:
            largest_index = index

    adjusted = []
    for index, allocation in enumerate(allocations):
        if index == largest_index:
            adjusted.append(allocation.model_copy(update={
                "final_percentage": allocation.final_percentage + difference,
                "additional_allocation": allocation.additional_allocation + difference,
            }))
        else:
            adjusted.append(allocation.model_copy())
    return adjusted


def calculate_unallocated_adjustment(
    members: Sequence[Member], exclude_member_ids: Optional[Iterable[str]] = None
) -> UnallocatedAdjustment:
    """
    Propose a pro-rata fix for active and probationary equity not summing to 100.
    """
    holders = [m for m in members if m.status in EQUITY_HOLDING_STATUSES]
    total = decimal_sum(m.equity_percentage for m in holders)
    unallocated = ONE_HUNDRED - total

    if abs(unallocated) < get_settings().EQUITY_TOTAL_TOLERANCE:
        return UnallocatedAdjustment(
            unallocated=ZERO,
            message="No unallocated equity to distribute",
        )

    allocations = calculate_pro_rata_distribution(holders, unallocated, exclude_member_ids)
    return UnallocatedAdjustment(
        unallocated=unallocated,
        allocations=allocations,
        adjusted=adjust_to_exact_total(allocations),
    )
