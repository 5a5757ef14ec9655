"""
Equity Calculator Service

Aggregate statistics over active members' equity:
1. Totals and averages (percentage and capital)
2. Concentration - share held by the top 10% / 25% of members
3. Gini coefficient - pairwise for small populations, sorted O(n log n) above
   GINI_EXACT_MAX_MEMBERS; both give identical Decimal results
4. Single-member change validation and proportional adjustment

Empty member sets and zero totals produce zero results, never an exception.
"""
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from app.core.rounding import (
    ONE_HUNDRED,
    ZERO,
    decimal_sum,
    quantize_currency,
    quantize_percentage,
    safe_divide,
    to_decimal,
)
from app.core.settings import get_settings
from app.core.status_config import MemberStatus
from app.exceptions import NotFoundError, ValidationError
from app.logging_config import get_logger
from app.schemas.equity import (
    EquityCalculations,
    EquityConcentration,
    EquityDistribution,
    EquityValidationResult,
    MemberEquityChange,
    MemberValue,
    ScenarioComparison,
)
from app.schemas.member import Member
from app.services.pro_rata import rebalance
from app.services.reconciliation import check_reconciliation

logger = get_logger(__name__)


# ============================================================================
# Inequality Measures
# ============================================================================

def _gini_pairwise(values: List[Decimal], total: Decimal) -> Decimal:
    n = len(values)
    pair_sum = ZERO
    for x in values:
        for y in values:
            pair_sum += abs(x - y)
    # sum|xi - xj| / (2 * n^2 * mean), with n * mean == total
    return pair_sum / (2 * n * total)


def _gini_sorted(values: List[Decimal], total: Decimal) -> Decimal:
    n = len(values)
    weighted = ZERO
    for rank, x in enumerate(sorted(values), start=1):
        weighted += (2 * rank - n - 1) * x
    # Equivalent to the pairwise form: sum|xi - xj| == 2 * weighted
    return (2 * weighted) / (2 * n * total)


def gini_coefficient(values: Sequence, exact_max_members: Optional[int] = None) -> Decimal:
    """
    Gini coefficient of a distribution (0 = equal, approaching 1 = concentrated).

    Uses the pairwise mean absolute difference for up to exact_max_members
    values and the sorted formulation above that.

    Returns:
        Decimal in [0, 1); zero for fewer than two values or a non-positive total
    """
    decimals = [to_decimal(v) for v in values]
    n = len(decimals)
    total = decimal_sum(decimals)
    if n < 2 or total <= 0:
        return ZERO

    if exact_max_members is None:
        exact_max_members = get_settings().GINI_EXACT_MAX_MEMBERS
    if n <= exact_max_members:
        return _gini_pairwise(decimals, total)
    return _gini_sorted(decimals, total)


def _top_share(sorted_desc: List[Decimal], total: Decimal, fraction_percent: int) -> Decimal:
    """Percent of total held by the top ceil(fraction_percent% of n) members."""
    n = len(sorted_desc)
    if n == 0 or total == 0:
        return ZERO
    count = -(-n * fraction_percent // 100)  # ceil
    return decimal_sum(sorted_desc[:count]) / total * ONE_HUNDRED


def calculate_concentration(percentages: Sequence) -> EquityConcentration:
    values = [to_decimal(p) for p in percentages]
    ordered = sorted(values, reverse=True)
    total = decimal_sum(values)
    return EquityConcentration(
        top_10_percent=quantize_percentage(_top_share(ordered, total, 10)),
        top_25_percent=quantize_percentage(_top_share(ordered, total, 25)),
        gini_coefficient=gini_coefficient(values),
    )


# ============================================================================
# Aggregate Metrics
# ============================================================================

def calculate_equity_metrics(
    members: Sequence[Member],
    *,
    balance_sheet_capital=None,
    previous_total_capital=None,
    reconciliation_tolerance=None,
    active_only: bool = True,
) -> EquityCalculations:
    """
    Calculate equity statistics for a member set.

    Args:
        members: Members (typically one fiscal year's projection)
        balance_sheet_capital: When given, total capital is reconciled against it
        previous_total_capital: When given, year_over_year_change is the percent
            change in total capital (zero if the previous total was zero)
        reconciliation_tolerance: Overrides RECONCILIATION_TOLERANCE
        active_only: Restrict to members with status active

    Returns:
        EquityCalculations; over-allocation and variance appear as warnings
    """
    settings = get_settings()
    if active_only:
        members = [m for m in members if m.status == MemberStatus.ACTIVE]

    percentages = [m.equity_percentage for m in members]
    total_equity = decimal_sum(percentages)
    total_capital = decimal_sum(m.capital_balance for m in members)
    count = len(members)

    warnings: List[str] = []
    over_allocated = total_equity > ONE_HUNDRED + settings.EQUITY_TOTAL_TOLERANCE
    if over_allocated:
        warnings.append(
            f"Total equity allocated is {total_equity}%, exceeding 100% by {total_equity - ONE_HUNDRED}%"
        )
        logger.warning(
            "Equity over-allocated",
            extra={"total_equity": str(total_equity), "member_count": count},
        )
    elif count and total_equity < ONE_HUNDRED - settings.EQUITY_TOTAL_TOLERANCE:
        warnings.append(f"{ONE_HUNDRED - total_equity}% of equity is unallocated")

    reconciliation = None
    if balance_sheet_capital is not None:
        reconciliation = check_reconciliation(
            total_capital, balance_sheet_capital, reconciliation_tolerance
        )
        if not reconciliation.reconciled:
            warnings.append(
                f"Capital accounts differ from balance sheet by {reconciliation.variance}"
            )

    year_over_year = None
    if previous_total_capital is not None:
        previous = to_decimal(previous_total_capital)
        year_over_year = quantize_percentage(
            safe_divide((total_capital - previous) * ONE_HUNDRED, previous)
        )

    logger.debug(
        "Calculated equity metrics",
        extra={"member_count": count, "total_equity": str(total_equity)},
    )

    return EquityCalculations(
        member_count=count,
        total_equity_allocated=total_equity,
        total_capital_accounts=total_capital,
        average_equity_per_member=quantize_percentage(safe_divide(total_equity, count)),
        unallocated_equity=ONE_HUNDRED - total_equity,
        equity_concentration=calculate_concentration(percentages),
        is_over_allocated=over_allocated,
        reconciliation=reconciliation,
        year_over_year_change=year_over_year,
        warnings=warnings,
    )


# ============================================================================
# Change Validation
# ============================================================================

def _find(members: Sequence[Member], member_id: str) -> Member:
    for member in members:
        if member.id == member_id:
            return member
    raise NotFoundError("Member", member_id)


def validate_equity_change(
    members: Sequence[Member], member_id: str, new_percentage
) -> EquityValidationResult:
    """
    Check whether setting one active member's equity keeps the total within 100%.

    Raises:
        NotFoundError: If member_id is not among the active members
    """
    new_percentage = to_decimal(new_percentage)
    active = [m for m in members if m.status == MemberStatus.ACTIVE]
    target = _find(active, member_id)

    current_total = decimal_sum(m.equity_percentage for m in active)
    new_total = current_total - target.equity_percentage + new_percentage
    difference = new_total - ONE_HUNDRED

    is_valid = new_total <= ONE_HUNDRED and new_percentage >= 0
    if new_percentage < 0:
        message = "Equity percentage cannot be negative"
    elif new_total > ONE_HUNDRED:
        message = f"Total equity would exceed 100% by {quantize_percentage(difference)}%"
    elif new_total == ONE_HUNDRED:
        message = "Equity distribution is perfectly balanced at 100%"
    else:
        message = f"Remaining equity available: {quantize_percentage(ONE_HUNDRED - new_total)}%"

    return EquityValidationResult(
        is_valid=is_valid,
        current_total=current_total,
        new_total=new_total,
        difference=difference,
        message=message,
    )


def calculate_proportional_adjustment(
    members: Sequence[Member],
    member_id: str,
    new_percentage,
    adjust_others: bool = True,
) -> List[EquityDistribution]:
    """
    Set one member's equity and offset the change across the other active members.

    Other members move in proportion to their current share. Anyone pushed
    below zero is clamped at zero. Rows are ordered by current percentage,
    largest first.
    """
    new_percentage = to_decimal(new_percentage)
    if new_percentage < 0 or new_percentage > ONE_HUNDRED:
        raise ValidationError(
            "Equity percentage must be between 0 and 100",
            field="new_percentage",
            value=new_percentage,
        )

    active = sorted(
        (m for m in members if m.status == MemberStatus.ACTIVE),
        key=lambda m: m.equity_percentage,
        reverse=True,
    )
    target = _find(active, member_id)
    change = new_percentage - target.equity_percentage

    new_values: Dict[str, Decimal] = {m.id: m.equity_percentage for m in active}
    new_values[member_id] = new_percentage

    others = {m.id: m.equity_percentage for m in active if m.id != member_id}
    if adjust_others and change != 0 and decimal_sum(others.values()) != 0:
        for other_id, value in rebalance(others, -change).items():
            new_values[other_id] = max(value, ZERO)

    return [
        EquityDistribution(
            member_id=m.id,
            member_name=m.full_name,
            current_percentage=m.equity_percentage,
            new_percentage=new_values[m.id],
            change=new_values[m.id] - m.equity_percentage,
        )
        for m in active
    ]


def calculate_member_value(member: Member, company_valuation) -> MemberValue:
    """Estimated value of a member's stake at a given company valuation."""
    valuation = to_decimal(company_valuation)
    return MemberValue(
        member_id=member.id,
        equity_percentage=member.equity_percentage,
        estimated_value=quantize_currency(valuation * member.equity_percentage / ONE_HUNDRED),
    )


def compare_scenarios(
    before: Mapping[str, Decimal], after: Mapping[str, Decimal]
) -> ScenarioComparison:
    """
    Compare two equity scenarios (member_id -> percentage).

    Members missing from one side are treated as holding zero there.
    """
    member_ids = list(dict.fromkeys([*before.keys(), *after.keys()]))
    changes = []
    for member_id in member_ids:
        old = to_decimal(before.get(member_id, ZERO))
        new = to_decimal(after.get(member_id, ZERO))
        if old != new:
            changes.append(MemberEquityChange(
                member_id=member_id, before=old, after=new, change=new - old
            ))

    return ScenarioComparison(
        total_before=decimal_sum(before.values()),
        total_after=decimal_sum(after.values()),
        gini_coefficient_before=gini_coefficient(list(before.values())),
        gini_coefficient_after=gini_coefficient(list(after.values())),
        members_affected=len(changes),
        changes=changes,
    )
