"""
Unit Tests for Equity Calculator

Tests:
1. Gini coefficient (both formulations, degenerate inputs)
2. Concentration shares
3. Aggregate metrics, warnings and reconciliation
4. Single-member change validation and proportional adjustment
5. Member value and scenario comparison
"""
import pytest
from decimal import Decimal

from app.core.status_config import MemberStatus
from app.exceptions import NotFoundError, ValidationError
from app.services.equity_calculator import (
    calculate_concentration,
    calculate_equity_metrics,
    calculate_member_value,
    calculate_proportional_adjustment,
    compare_scenarios,
    gini_coefficient,
    validate_equity_change,
)
from tests.factories import create_members, create_test_member


# ============================================================================
# Gini Coefficient
# ============================================================================

class TestGiniCoefficient:
    """Inequality of an equity distribution"""

    def test_equal_shares_is_zero(self):
        assert gini_coefficient([Decimal("25")] * 4) == Decimal("0")

    def test_two_member_split(self):
        # sum|xi-xj| = 40, 2 * n * total = 400
        assert gini_coefficient([Decimal("60"), Decimal("40")]) == Decimal("0.1")

    def test_one_member_holds_everything(self):
        # n=4, one holder: (n-1)/n
        assert gini_coefficient(["100", "0", "0", "0"]) == Decimal("0.75")

    def test_fewer_than_two_members(self):
        assert gini_coefficient([]) == Decimal("0")
        assert gini_coefficient([Decimal("100")]) == Decimal("0")

    def test_zero_total(self):
        assert gini_coefficient([Decimal("0"), Decimal("0")]) == Decimal("0")

    def test_sorted_form_matches_pairwise(self):
        values = [Decimal(v) for v in ["12.5", "7.25", "30", "0.75", "49.5"]]
        pairwise = gini_coefficient(values, exact_max_members=100)
        sorted_form = gini_coefficient(values, exact_max_members=1)
        assert pairwise == sorted_form

    def test_threshold_comes_from_settings(self, override_settings):
        override_settings(GINI_EXACT_MAX_MEMBERS="2")
        values = [Decimal("50"), Decimal("30"), Decimal("20")]
        assert gini_coefficient(values) == gini_coefficient(values, exact_max_members=10)

    def test_accepts_floats_without_binary_artifacts(self):
        assert gini_coefficient([0.1, 0.3]) == gini_coefficient([Decimal("0.1"), Decimal("0.3")])


# ============================================================================
# Concentration
# ============================================================================

class TestConcentration:
    """Share held by the largest holders"""

    def test_top_shares_round_up_member_count(self):
        # n=4: top 10% -> 1 member, top 25% -> 1 member
        result = calculate_concentration(["40", "30", "20", "10"])
        assert result.top_10_percent == Decimal("40.0000")
        assert result.top_25_percent == Decimal("40.0000")

    def test_top_25_covers_more_members_in_larger_sets(self):
        # n=8: top 10% -> 1, top 25% -> 2
        result = calculate_concentration(["30", "20", "10", "10", "10", "10", "5", "5"])
        assert result.top_10_percent == Decimal("30.0000")
        assert result.top_25_percent == Decimal("50.0000")

    def test_shares_are_relative_to_total(self):
        # Under-allocated set: 30 of 60 is 50%
        result = calculate_concentration(["30", "20", "10"])
        assert result.top_10_percent == Decimal("50.0000")

    def test_empty(self):
        result = calculate_concentration([])
        assert result.top_10_percent == Decimal("0")
        assert result.top_25_percent == Decimal("0")
        assert result.gini_coefficient == Decimal("0")


# ============================================================================
# Aggregate Metrics
# ============================================================================

class TestEquityMetrics:
    """calculate_equity_metrics over a member set"""

    def test_basic_totals(self, two_members):
        result = calculate_equity_metrics(two_members)

        assert result.member_count == 2
        assert result.total_equity_allocated == Decimal("100")
        assert result.total_capital_accounts == Decimal("1000000")
        assert result.average_equity_per_member == Decimal("50.0000")
        assert result.unallocated_equity == Decimal("0")
        assert result.equity_concentration.gini_coefficient == Decimal("0.1")
        assert result.is_over_allocated is False
        assert result.warnings == []

    def test_inactive_members_excluded(self, two_members):
        retired = create_test_member("r", equity_percentage="15", capital_balance="50000",
                                     status=MemberStatus.RETIRED)
        result = calculate_equity_metrics(two_members + [retired])

        assert result.member_count == 2
        assert result.total_equity_allocated == Decimal("100")

    def test_include_inactive(self, two_members):
        retired = create_test_member("r", equity_percentage="15", status=MemberStatus.RETIRED)
        result = calculate_equity_metrics(two_members + [retired], active_only=False)

        assert result.member_count == 3
        assert result.total_equity_allocated == Decimal("115")

    def test_over_allocation_is_a_warning(self):
        members = create_members("60", "50")
        result = calculate_equity_metrics(members)

        assert result.is_over_allocated is True
        assert result.unallocated_equity == Decimal("-10")
        assert any("exceeding 100%" in w for w in result.warnings)

    def test_under_allocation_warns(self):
        result = calculate_equity_metrics(create_members("60", "30"))

        assert result.is_over_allocated is False
        assert result.unallocated_equity == Decimal("10")
        assert any("unallocated" in w for w in result.warnings)

    def test_empty_member_set(self):
        result = calculate_equity_metrics([])

        assert result.member_count == 0
        assert result.total_equity_allocated == Decimal("0")
        assert result.average_equity_per_member == Decimal("0")
        assert result.warnings == []

    def test_reconciles_against_balance_sheet(self, two_members):
        result = calculate_equity_metrics(two_members, balance_sheet_capital=Decimal("1005000"))

        assert result.reconciliation.reconciled is True
        assert result.reconciliation.variance == Decimal("5000")

    def test_reconciliation_variance_is_a_warning(self, two_members):
        result = calculate_equity_metrics(two_members, balance_sheet_capital=Decimal("1020000"))

        assert result.reconciliation.reconciled is False
        assert any("balance sheet" in w for w in result.warnings)

    def test_year_over_year_change(self, two_members):
        result = calculate_equity_metrics(two_members, previous_total_capital=Decimal("800000"))
        assert result.year_over_year_change == Decimal("25.0000")

    def test_year_over_year_with_zero_previous(self, two_members):
        result = calculate_equity_metrics(two_members, previous_total_capital=Decimal("0"))
        assert result.year_over_year_change == Decimal("0.0000")


# ============================================================================
# Change Validation
# ============================================================================

class TestValidateEquityChange:
    """Single member change against the 100% ceiling"""

    def test_change_within_ceiling(self, four_members):
        result = validate_equity_change(four_members, "d", Decimal("5"))

        assert result.is_valid is True
        assert result.current_total == Decimal("100")
        assert result.new_total == Decimal("95")
        assert result.difference == Decimal("-5")
        assert result.message == "Remaining equity available: 5.0000%"

    def test_change_exceeding_ceiling(self, four_members):
        result = validate_equity_change(four_members, "d", Decimal("12.5"))

        assert result.is_valid is False
        assert result.message == "Total equity would exceed 100% by 2.5000%"

    def test_balanced(self, four_members):
        result = validate_equity_change(four_members, "a", Decimal("40"))

        assert result.is_valid is True
        assert result.message == "Equity distribution is perfectly balanced at 100%"

    def test_negative_percentage(self, four_members):
        result = validate_equity_change(four_members, "a", Decimal("-1"))

        assert result.is_valid is False
        assert result.message == "Equity percentage cannot be negative"

    def test_unknown_member(self, four_members):
        with pytest.raises(NotFoundError):
            validate_equity_change(four_members, "zz", Decimal("5"))

    def test_inactive_member_not_found(self, four_members):
        retired = create_test_member("r", equity_percentage="0", status=MemberStatus.RETIRED)
        with pytest.raises(NotFoundError):
            validate_equity_change(four_members + [retired], "r", Decimal("5"))


class TestProportionalAdjustment:
    """One member changes, the others absorb the difference"""

    def test_others_absorb_pro_rata(self, four_members):
        rows = calculate_proportional_adjustment(four_members, "a", Decimal("46"))
        by_id = {row.member_id: row for row in rows}

        assert by_id["a"].new_percentage == Decimal("46")
        # -6 points spread over 30/20/10 (total 60)
        assert by_id["b"].new_percentage == Decimal("27.0000")
        assert by_id["c"].new_percentage == Decimal("18.0000")
        assert by_id["d"].new_percentage == Decimal("9")
        assert sum(row.new_percentage for row in rows) == Decimal("100")

    def test_rows_ordered_largest_first(self, four_members):
        rows = calculate_proportional_adjustment(four_members, "d", Decimal("12"))
        assert [row.member_id for row in rows] == ["a", "b", "c", "d"]

    def test_without_adjusting_others(self, four_members):
        rows = calculate_proportional_adjustment(four_members, "a", Decimal("50"), adjust_others=False)
        by_id = {row.member_id: row for row in rows}

        assert by_id["a"].change == Decimal("10")
        assert by_id["b"].change == Decimal("0")

    def test_others_clamped_at_zero(self):
        members = create_members("90", "10")
        rows = calculate_proportional_adjustment(members, "m2", Decimal("100"))
        by_id = {row.member_id: row for row in rows}

        assert by_id["m1"].new_percentage == Decimal("0")

    def test_out_of_range(self, four_members):
        with pytest.raises(ValidationError):
            calculate_proportional_adjustment(four_members, "a", Decimal("101"))


# ============================================================================
# Valuation and Scenarios
# ============================================================================

class TestMemberValue:

    def test_value_at_valuation(self, two_members):
        result = calculate_member_value(two_members[0], Decimal("2500000"))
        assert result.estimated_value == Decimal("1500000.00")

    def test_value_rounds_to_cents(self):
        member = create_test_member(equity_percentage="33.3333")
        result = calculate_member_value(member, "1000")
        assert result.estimated_value == Decimal("333.33")


class TestCompareScenarios:

    def test_changes_and_gini(self):
        before = {"a": Decimal("50"), "b": Decimal("50")}
        after = {"a": Decimal("60"), "b": Decimal("40")}
        result = compare_scenarios(before, after)

        assert result.members_affected == 2
        assert result.gini_coefficient_before == Decimal("0")
        assert result.gini_coefficient_after == Decimal("0.1")
        assert result.changes[0].change == Decimal("10")

    def test_member_missing_on_one_side(self):
        before = {"a": Decimal("100")}
        after = {"a": Decimal("80"), "b": Decimal("20")}
        result = compare_scenarios(before, after)

        by_id = {c.member_id: c for c in result.changes}
        assert by_id["b"].before == Decimal("0")
        assert by_id["b"].after == Decimal("20")
        assert result.total_after == Decimal("100")
