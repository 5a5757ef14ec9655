"""
Unit Tests for Distribution Engine

Tests:
1. Gross / withholding / net per member
2. Rounding drift measurement and threshold warnings
3. Remainder reconciliation onto the largest holder
4. Input validation
5. Distribution lifecycle (draft -> approved -> processing -> completed)
"""
import pytest
from decimal import Decimal

from app.core.status_config import DistributionStatus
from app.exceptions import DuplicateError, InvalidStateError, ValidationError
from app.services.distribution_engine import DistributionService, calculate_distribution
from tests.factories import create_shares


def _by_member(distribution):
    return {line.member_id: line for line in distribution.member_distributions}


# ============================================================================
# Amounts
# ============================================================================

class TestDistributionAmounts:
    """Per-member breakdown"""

    def test_withholding_and_net(self):
        shares = create_shares(("a", "60"), ("b", "40"), withholding="25")
        result = calculate_distribution(Decimal("10000"), shares)
        lines = _by_member(result)

        assert lines["a"].gross_amount == Decimal("6000.00")
        assert lines["a"].tax_withholding == Decimal("1500.00")
        assert lines["a"].net_amount == Decimal("4500.00")
        assert lines["b"].net_amount == Decimal("3000.00")
        assert result.total_gross == Decimal("10000.00")
        assert result.total_tax_withholding == Decimal("2500.00")
        assert result.total_net == Decimal("7500.00")
        assert result.status == DistributionStatus.DRAFT

    def test_large_pool(self):
        shares = create_shares(("a", "60"), ("b", "40"))
        result = calculate_distribution(Decimal("100000"), shares)

        assert _by_member(result)["a"].gross_amount == Decimal("60000.00")
        assert result.rounding_drift_cents == 0
        assert result.warnings == []

    def test_net_plus_withholding_covers_pool(self):
        shares = create_shares(
            ("a", "37.5"), ("b", "22.25"), ("c", "18.125"), ("d", "14.0625"), ("e", "8.0625"),
            withholding="27.3",
        )
        result = calculate_distribution(Decimal("100000"), shares)

        assert result.total_net + result.total_tax_withholding == Decimal("100000.00")
        assert abs(result.rounding_drift_cents) <= len(shares)

    def test_withholding_rounds_half_up(self):
        shares = create_shares(("a", "100"), withholding="12.5")
        result = calculate_distribution(Decimal("0.20"), shares)
        line = result.member_distributions[0]

        # 0.20 * 12.5% = 0.025 -> 0.03
        assert line.tax_withholding == Decimal("0.03")
        assert line.net_amount == Decimal("0.17")

    def test_net_is_gross_minus_withholding(self):
        shares = create_shares(("a", "33.3333"), ("b", "33.3333"), ("c", "33.3334"), withholding="22")
        result = calculate_distribution(Decimal("12345.67"), shares)

        for line in result.member_distributions:
            assert line.net_amount == line.gross_amount - line.tax_withholding

    def test_accepts_float_total(self):
        shares = create_shares(("a", "50"), ("b", "50"))
        result = calculate_distribution(0.1, shares)
        assert result.total_amount == Decimal("0.1")

    def test_zero_pool(self):
        shares = create_shares(("a", "100"))
        result = calculate_distribution(Decimal("0"), shares)
        assert result.total_net == Decimal("0")


# ============================================================================
# Rounding Drift
# ============================================================================

class TestRoundingDrift:
    """Drift between allocated gross and the exact share of the pool"""

    def test_drift_measured_within_default_threshold(self):
        shares = create_shares(("a", "33.3333"), ("b", "33.3333"), ("c", "33.3333"))
        result = calculate_distribution(Decimal("100"), shares)

        # 3 x 33.33 = 99.99 against an exact 99.9999
        assert result.total_gross == Decimal("99.99")
        assert result.rounding_drift_cents == -1
        assert result.drift_threshold_cents == 3
        assert result.drift_exceeds_threshold is False

    def test_drift_over_explicit_threshold_warns(self):
        shares = create_shares(("a", "33.3333"), ("b", "33.3333"), ("c", "33.3333"))
        result = calculate_distribution(Decimal("100"), shares, drift_threshold_cents=0)

        assert result.drift_exceeds_threshold is True
        assert any("Rounding drift" in w for w in result.warnings)

    def test_threshold_from_settings(self, override_settings):
        override_settings(DISTRIBUTION_DRIFT_THRESHOLD_CENTS="0")
        shares = create_shares(("a", "33.3333"), ("b", "33.3333"), ("c", "33.3333"))
        result = calculate_distribution(Decimal("100"), shares)

        assert result.drift_threshold_cents == 0
        assert result.drift_exceeds_threshold is True

    def test_percentages_not_summing_to_100_warn(self):
        shares = create_shares(("a", "60"), ("b", "30"))
        result = calculate_distribution(Decimal("1000"), shares)

        assert result.total_equity_percentage == Decimal("90")
        assert result.total_gross == Decimal("900.00")
        assert any("not 100%" in w for w in result.warnings)


class TestReconcileRemainder:
    """Largest holder absorbs residual cents"""

    def test_residual_goes_to_largest_holder(self):
        shares = create_shares(("a", "33.3333"), ("b", "33.3334"), ("c", "33.3333"))
        result = calculate_distribution(Decimal("0.10"), shares, reconcile_remainder=True)
        lines = _by_member(result)

        # 0.033333 -> 0.03 each; residual 0.01 lands on b
        assert lines["b"].gross_amount == Decimal("0.04")
        assert lines["b"].rounding_adjustment == Decimal("0.01")
        assert lines["a"].rounding_adjustment == Decimal("0")
        assert result.total_gross == Decimal("0.10")
        assert result.rounding_drift_cents == 0

    def test_first_of_equal_holders_absorbs(self):
        shares = create_shares(("a", "33.3333"), ("b", "33.3333"), ("c", "33.3333"))
        result = calculate_distribution(Decimal("100"), shares, reconcile_remainder=True)
        lines = _by_member(result)

        assert lines["a"].gross_amount == Decimal("33.34")
        assert lines["b"].gross_amount == Decimal("33.33")
        assert result.total_gross == Decimal("100.00")

    def test_no_adjustment_when_exact(self):
        shares = create_shares(("a", "60"), ("b", "40"))
        result = calculate_distribution(Decimal("10000"), shares, reconcile_remainder=True)
        assert all(line.rounding_adjustment == 0 for line in result.member_distributions)


# ============================================================================
# Validation
# ============================================================================

class TestDistributionValidation:

    def test_negative_pool(self):
        with pytest.raises(ValidationError):
            calculate_distribution(Decimal("-1"), create_shares(("a", "100")))

    def test_percentage_out_of_range(self):
        with pytest.raises(ValidationError) as exc_info:
            calculate_distribution(Decimal("100"), create_shares(("a", "101")))
        assert exc_info.value.details["field"] == "equity_percentage"

    def test_withholding_out_of_range(self):
        with pytest.raises(ValidationError):
            calculate_distribution(Decimal("100"), create_shares(("a", "100"), withholding="-5"))

    def test_duplicate_member(self):
        with pytest.raises(DuplicateError):
            calculate_distribution(Decimal("100"), create_shares(("a", "50"), ("a", "50")))


# ============================================================================
# Lifecycle
# ============================================================================

class TestDistributionLifecycle:

    @pytest.fixture
    def service(self):
        return DistributionService()

    @pytest.fixture
    def draft(self, service):
        return service.calculate(Decimal("10000"), create_shares(("a", "60"), ("b", "40")),
                                 distribution_id="dist-1")

    def test_happy_path(self, service, draft):
        approved = service.approve(draft, approved_by="cfo@example.com")
        processing = service.start_processing(approved)
        completed = service.complete(processing)

        assert approved.status == DistributionStatus.APPROVED
        assert approved.approved_by == "cfo@example.com"
        assert approved.approved_at is not None
        assert completed.status == DistributionStatus.COMPLETED
        assert completed.completed_at is not None
        # Original is untouched
        assert draft.status == DistributionStatus.DRAFT

    def test_cannot_skip_approval(self, service, draft):
        with pytest.raises(InvalidStateError):
            service.start_processing(draft)

    def test_cancel_from_approved(self, service, draft):
        cancelled = service.cancel(service.approve(draft, approved_by="cfo"))
        assert cancelled.status == DistributionStatus.CANCELLED

    def test_completed_is_terminal(self, service, draft):
        completed = service.complete(service.start_processing(service.approve(draft, "cfo")))
        with pytest.raises(InvalidStateError) as exc_info:
            service.cancel(completed)
        assert exc_info.value.details["current_state"] == "completed"

    def test_cannot_cancel_while_processing(self, service, draft):
        processing = service.start_processing(service.approve(draft, "cfo"))
        with pytest.raises(InvalidStateError):
            service.cancel(processing)

    def test_second_approval_rejected(self, service, draft):
        approved = service.approve(draft, approved_by="cfo")
        with pytest.raises(InvalidStateError):
            service.approve(approved, approved_by="ceo")
        assert approved.approved_by == "cfo"

    def test_second_completion_rejected(self, service, draft):
        completed = service.complete(service.start_processing(service.approve(draft, "cfo")))
        with pytest.raises(InvalidStateError):
            service.complete(completed)
