"""
Year-End Allocation Service

Fiscal-year close for member capital accounts. Two passes:

1. Balance incentive - every member earns a return on their beginning capital
   at min(SOFR + spread, cap), floored to whole dollars.
2. Equity allocation - what is left of the allocable amount
   (net income + accruals + adjustments) is split by equity percentage,
   floored to whole dollars.

Ending capital = beginning + balance incentive + equity allocation - distributions.
Whole-dollar flooring leaves a small unallocated remainder, reported on the summary.

Once finalized, an allocation is immutable.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from app.core.rounding import (
    ONE_HUNDRED,
    ZERO,
    decimal_sum,
    floor_whole,
    quantize_currency,
    safe_divide,
    to_decimal,
)
from app.core.settings import get_settings
from app.exceptions import AllocationFinalizedError, ValidationError
from app.logging_config import get_logger
from app.schemas.allocation import (
    AllocationSummary,
    CompanyFinancials,
    EquityAllocation,
    YearEndAllocationResult,
)
from app.schemas.member import Member
from app.services.reconciliation import check_reconciliation

logger = get_logger(__name__)


def effective_return_rate(sofr_rate, spread=None, cap=None) -> Decimal:
    """Balance incentive rate: min(SOFR + spread, cap), rounded to 2 places."""
    settings = get_settings()
    spread = settings.BALANCE_INCENTIVE_SPREAD if spread is None else to_decimal(spread)
    cap = settings.BALANCE_INCENTIVE_CAP if cap is None else to_decimal(cap)
    return quantize_currency(min(to_decimal(sofr_rate) + spread, cap), places=2)


def balance_incentive_return(beginning_capital, rate) -> Decimal:
    return floor_whole(to_decimal(beginning_capital) * to_decimal(rate) / ONE_HUNDRED)


class YearEndAllocationService:
    """
    Computes and finalizes year-end equity allocations.

    Usage:
        service = YearEndAllocationService()
        result = service.calculate(members, financials, distributions={"m1": Decimal("5000")})
        finalized = service.finalize(result.allocations)
    """

    def calculate(
        self,
        members: Sequence[Member],
        financials: CompanyFinancials,
        distributions: Optional[Mapping[str, Decimal]] = None,
        allocation_date: Optional[date] = None,
    ) -> YearEndAllocationResult:
        """
        Build allocations for every member passed in.

        Args:
            members: Equity holders for the fiscal year; capital_balance is the
                beginning balance and equity_percentage the allocation share
            financials: Fiscal-year figures
            distributions: member_id -> distributions paid during the year

        Raises:
            ValidationError: If a distribution references an unknown member
        """
        distributions = dict(distributions or {})
        member_ids = {m.id for m in members}
        unknown = sorted(set(distributions) - member_ids)
        if unknown:
            raise ValidationError(
                f"Distributions reference unknown members: {', '.join(unknown)}",
                field="distributions",
            )

        rate = effective_return_rate(financials.sofr_rate)
        allocable = financials.final_allocable_amount

        incentives: Dict[str, Decimal] = {
            m.id: balance_incentive_return(m.capital_balance, rate) for m in members
        }
        total_incentives = decimal_sum(incentives.values())
        remaining = allocable - total_incentives

        allocations: List[EquityAllocation] = []
        for member in members:
            equity_based = floor_whole(remaining * member.equity_percentage / ONE_HUNDRED)
            allocation_amount = incentives[member.id] + equity_based
            paid = to_decimal(distributions.get(member.id, ZERO))
            allocations.append(EquityAllocation(
                member_id=member.id,
                fiscal_year=financials.fiscal_year,
                equity_percentage=member.equity_percentage,
                beginning_capital_balance=member.capital_balance,
                effective_return_rate=rate,
                balance_incentive_return=incentives[member.id],
                equity_based_allocation=equity_based,
                allocation_amount=allocation_amount,
                distributions=paid,
                ending_capital_balance=member.capital_balance + allocation_amount - paid,
                allocation_date=allocation_date,
            ))

        summary = self.summarize(allocations, financials, rate, total_incentives, remaining)
        logger.info(
            "Calculated year-end allocation",
            extra={
                "fiscal_year": financials.fiscal_year,
                "member_count": len(allocations),
                "total_allocated": str(summary.total_allocated),
            },
        )
        return YearEndAllocationResult(allocations=allocations, summary=summary)

    def summarize(
        self,
        allocations: Sequence[EquityAllocation],
        financials: CompanyFinancials,
        rate: Decimal,
        total_incentives: Decimal,
        remaining: Decimal,
    ) -> AllocationSummary:
        amounts = [a.allocation_amount for a in allocations]
        total_allocated = decimal_sum(amounts)
        total_ending = decimal_sum(a.ending_capital_balance for a in allocations)
        allocable = financials.final_allocable_amount

        warnings = []
        total_pct = decimal_sum(a.equity_percentage for a in allocations)
        if allocations and total_pct != ONE_HUNDRED:
            warnings.append(f"Allocation equity percentages sum to {total_pct}%, not 100%")
        if remaining < 0:
            warnings.append(
                f"Balance incentive returns ({total_incentives}) exceed the allocable amount ({allocable})"
            )
            logger.warning(
                "Balance incentives exceed allocable amount",
                extra={"fiscal_year": financials.fiscal_year, "remaining": str(remaining)},
            )

        if financials.total_equity_balance_sheet is None:
            status = "not_reconciled"
        else:
            check = check_reconciliation(total_ending, financials.total_equity_balance_sheet)
            status = "reconciled" if check.reconciled else "difference"
            if not check.reconciled:
                warnings.append(
                    f"Ending capital differs from balance sheet equity by {check.variance}"
                )

        return AllocationSummary(
            fiscal_year=financials.fiscal_year,
            final_allocable_amount=allocable,
            effective_return_rate=rate,
            total_balance_incentive_returns=total_incentives,
            remaining_net_income=remaining,
            total_allocated=total_allocated,
            unallocated_remainder=allocable - total_allocated,
            member_count=len(allocations),
            average_allocation=quantize_currency(safe_divide(total_allocated, len(allocations))),
            largest_allocation=max(amounts, default=ZERO),
            smallest_allocation=min(amounts, default=ZERO),
            total_ending_capital=total_ending,
            reconciliation_status=status,
            warnings=warnings,
        )

    def finalize(
        self, allocations: Sequence[EquityAllocation], allocation_date: Optional[date] = None
    ) -> List[EquityAllocation]:
        """Mark allocations final. Already-final allocations are returned unchanged."""
        finalized = []
        for allocation in allocations:
            if allocation.is_finalized:
                finalized.append(allocation)
                continue
            update = {"is_finalized": True}
            if allocation_date is not None:
                update["allocation_date"] = allocation_date
            finalized.append(allocation.model_copy(update=update))
        return finalized

    def apply_distribution(self, allocation: EquityAllocation, amount) -> EquityAllocation:
        """
        Record an additional in-year distribution against an open allocation.

        Raises:
            AllocationFinalizedError: If the allocation is finalized
        """
        if allocation.is_finalized:
            raise AllocationFinalizedError(allocation.member_id, allocation.fiscal_year)
        amount = to_decimal(amount)
        if amount < 0:
            raise ValidationError("Distribution amount cannot be negative", field="amount", value=amount)
        return allocation.model_copy(update={
            "distributions": allocation.distributions + amount,
            "ending_capital_balance": allocation.ending_capital_balance - amount,
        })

    def recalculate(
        self,
        existing: Sequence[EquityAllocation],
        members: Sequence[Member],
        financials: CompanyFinancials,
        distributions: Optional[Mapping[str, Decimal]] = None,
    ) -> YearEndAllocationResult:
        """
        Redo a fiscal year's allocation.

        Raises:
            AllocationFinalizedError: If any existing allocation for the year is final
        """
        for allocation in existing:
            if allocation.fiscal_year == financials.fiscal_year and allocation.is_finalized:
                raise AllocationFinalizedError(allocation.member_id, allocation.fiscal_year)
        return self.calculate(members, financials, distributions)
