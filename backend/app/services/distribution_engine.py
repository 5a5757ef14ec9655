"""
Distribution Engine

Splits a distribution pool across members by equity percentage:

    gross       = total * equity% / 100        (rounded to cents, half-up)
    withholding = gross * withholding% / 100   (rounded to cents, half-up)
    net         = gross - withholding          (exact)

Per-member cent rounding means the gross amounts can drift from the exact
share of the pool. The drift is always measured and reported; when it
exceeds the threshold (DISTRIBUTION_DRIFT_THRESHOLD_CENTS, or one cent per
member when unset) a warning is attached. With reconcile_remainder=True the
largest holder absorbs the residual cents so gross sums exactly.

Usage:
    service = DistributionService()
    distribution = service.calculate(Decimal("100000"), shares)
    service.approve(distribution, approved_by="cfo@example.com")
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence

from app.core.rounding import (
    ONE_HUNDRED,
    ZERO,
    decimal_sum,
    quantize_currency,
    to_cents,
    to_decimal,
)
from app.core.settings import get_settings
from app.core.status_config import DistributionStatus, validate_distribution_transition
from app.exceptions import DuplicateError, ValidationError
from app.logging_config import get_logger
from app.schemas.distribution import Distribution, DistributionShareInput, MemberDistribution

logger = get_logger(__name__)


def _validate_shares(total: Decimal, shares: Sequence[DistributionShareInput]) -> None:
    if total < 0:
        raise ValidationError("Distribution amount cannot be negative", field="total_amount", value=total)
    seen = set()
    for share in shares:
        if share.member_id in seen:
            raise DuplicateError("Member distribution", field="member_id", value=share.member_id)
        seen.add(share.member_id)
        if not (ZERO <= share.equity_percentage <= ONE_HUNDRED):
            raise ValidationError(
                f"Equity percentage for member {share.member_id} must be between 0 and 100",
                field="equity_percentage",
                value=share.equity_percentage,
            )
        if not (ZERO <= share.tax_withholding_percentage <= ONE_HUNDRED):
            raise ValidationError(
                f"Tax withholding for member {share.member_id} must be between 0 and 100",
                field="tax_withholding_percentage",
                value=share.tax_withholding_percentage,
            )


def _member_line(share: DistributionShareInput, gross: Decimal, adjustment: Decimal) -> MemberDistribution:
    withholding = quantize_currency(gross * share.tax_withholding_percentage / ONE_HUNDRED)
    return MemberDistribution(
        member_id=share.member_id,
        equity_percentage=share.equity_percentage,
        tax_withholding_percentage=share.tax_withholding_percentage,
        gross_amount=gross,
        tax_withholding=withholding,
        net_amount=gross - withholding,
        rounding_adjustment=adjustment,
    )


def calculate_distribution(
    total_amount,
    shares: Sequence[DistributionShareInput],
    *,
    reconcile_remainder: bool = False,
    drift_threshold_cents: Optional[int] = None,
    distribution_id: Optional[str] = None,
) -> Distribution:
    """
    Compute the per-member breakdown of a distribution pool.

    Args:
        total_amount: Pool to distribute
        shares: One entry per member
        reconcile_remainder: Assign residual cents to the largest holder
        drift_threshold_cents: Overrides the configured drift threshold

    Returns:
        Distribution in draft status

    Raises:
        ValidationError: Negative pool, or a percentage outside 0-100
        DuplicateError: The same member appears twice
    """
    total = to_decimal(total_amount)
    _validate_shares(total, shares)

    total_pct = decimal_sum(s.equity_percentage for s in shares)
    exact_allocated = total * total_pct / ONE_HUNDRED

    gross_amounts = [quantize_currency(total * s.equity_percentage / ONE_HUNDRED) for s in shares]
    residual = quantize_currency(exact_allocated) - decimal_sum(gross_amounts)

    adjustments = [ZERO] * len(shares)
    if reconcile_remainder and residual != 0 and shares:
        # First of equal maxima absorbs the residual
        largest = max(range(len(shares)), key=lambda i: (shares[i].equity_percentage, -i))
        gross_amounts[largest] += residual
        adjustments[largest] = residual

    lines: List[MemberDistribution] = [
        _member_line(share, gross, adjustment)
        for share, gross, adjustment in zip(shares, gross_amounts, adjustments)
    ]

    total_gross = decimal_sum(line.gross_amount for line in lines)
    drift_cents = to_cents(total_gross - exact_allocated)

    if drift_threshold_cents is None:
        drift_threshold_cents = get_settings().DISTRIBUTION_DRIFT_THRESHOLD_CENTS
    if drift_threshold_cents is None:
        drift_threshold_cents = len(shares)
    exceeds = abs(drift_cents) > drift_threshold_cents

    warnings = []
    if shares and total_pct != ONE_HUNDRED:
        warnings.append(f"Equity percentages sum to {total_pct}%, not 100%")
    if exceeds:
        warnings.append(
            f"Rounding drift of {drift_cents} cents exceeds threshold of {drift_threshold_cents} cents"
        )
        logger.warning(
            "Distribution rounding drift over threshold",
            extra={
                "drift_cents": drift_cents,
                "threshold_cents": drift_threshold_cents,
                "member_count": len(shares),
            },
        )

    logger.debug(
        "Calculated distribution",
        extra={"total_amount": str(total), "member_count": len(shares), "drift_cents": drift_cents},
    )

    return Distribution(
        id=distribution_id,
        total_amount=total,
        member_distributions=lines,
        total_gross=total_gross,
        total_tax_withholding=decimal_sum(line.tax_withholding for line in lines),
        total_net=decimal_sum(line.net_amount for line in lines),
        total_equity_percentage=total_pct,
        rounding_drift_cents=drift_cents,
        drift_threshold_cents=drift_threshold_cents,
        drift_exceeds_threshold=exceeds,
        warnings=warnings,
    )


class DistributionService:
    """
    Calculates distributions and moves them through their lifecycle:
    draft -> approved -> processing -> completed (cancel from draft/approved).

    Status changes return updated copies; inputs are never mutated.
    """

    def calculate(self, total_amount, shares: Sequence[DistributionShareInput], **kwargs) -> Distribution:
        return calculate_distribution(total_amount, shares, **kwargs)

    def transition(self, distribution: Distribution, new_status: DistributionStatus, **updates) -> Distribution:
        """
        Raises:
            InvalidStateError: If the transition is not allowed
        """
        validate_distribution_transition(distribution.status, new_status)
        old_status = distribution.status
        updated = distribution.model_copy(update={"status": new_status, **updates})
        logger.info(
            "Distribution status changed",
            extra={
                "distribution_id": distribution.id,
                "from_status": getattr(old_status, "value", old_status),
                "to_status": getattr(new_status, "value", new_status),
            },
        )
        return updated

    def approve(self, distribution: Distribution, approved_by: str) -> Distribution:
        return self.transition(
            distribution,
            DistributionStatus.APPROVED,
            approved_by=approved_by,
            approved_at=datetime.now(timezone.utc),
        )

    def start_processing(self, distribution: Distribution) -> Distribution:
        return self.transition(distribution, DistributionStatus.PROCESSING)

    def complete(self, distribution: Distribution) -> Distribution:
        return self.transition(
            distribution, DistributionStatus.COMPLETED, completed_at=datetime.now(timezone.utc)
        )

    def cancel(self, distribution: Distribution) -> Distribution:
        return self.transition(distribution, DistributionStatus.CANCELLED)
