"""
Unit Tests for Board Approval Validation

Errors block a bulk equity update; warnings are surfaced for the board.
"""
from decimal import Decimal

from app.core.status_config import MemberStatus
from app.schemas.board_approval import MemberEquityUpdate
from app.services.board_approval import member_update_warnings, validate_equity_updates
from tests.factories import create_test_member


def _update(member_id, pct, reason="Annual review"):
    return MemberEquityUpdate(
        member_id=member_id, new_equity_percentage=Decimal(pct), change_reason=reason
    )


class TestValidateEquityUpdates:

    def test_clean_update(self, four_members):
        updates = [_update("a", "38"), _update("b", "32"), _update("c", "20"), _update("d", "10")]
        result = validate_equity_updates(four_members, updates)

        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []
        assert result.total_before == Decimal("100")
        assert result.total_after == Decimal("100")

    def test_unknown_member_is_an_error(self, four_members):
        updates = [_update("a", "40"), _update("b", "30"), _update("c", "20"), _update("zz", "10")]
        result = validate_equity_updates(four_members, updates)

        assert result.is_valid is False
        assert "Member zz not found" in result.errors

    def test_out_of_range_percentage(self, four_members):
        updates = [_update("a", "110"), _update("b", "-10"), _update("c", "0"), _update("d", "0")]
        result = validate_equity_updates(four_members, updates)

        assert result.is_valid is False
        assert sum("Invalid equity percentage" in e for e in result.errors) == 2

    def test_large_change_flagged(self, four_members):
        updates = [_update("a", "25"), _update("b", "45"), _update("c", "20"), _update("d", "10")]
        result = validate_equity_updates(four_members, updates)

        assert result.is_valid is True
        assert {c.member_id for c in result.large_changes} == {"a", "b"}
        assert result.large_changes[0].change_percentage == Decimal("-15")

    def test_missing_reason_warns(self, four_members):
        updates = [_update("a", "41", reason=None), _update("b", "29"), _update("c", "20"), _update("d", "10")]
        result = validate_equity_updates(four_members, updates)

        assert any("No reason provided" in w for w in result.warnings)
        assert result.is_valid is True

    def test_non_holding_status_with_equity(self, four_members):
        retired = create_test_member("r", equity_percentage="0", status=MemberStatus.RETIRED)
        updates = [_update("a", "40"), _update("b", "30"), _update("c", "20"),
                   _update("d", "5"), _update("r", "5")]
        result = validate_equity_updates(four_members + [retired], updates)

        assert any("has status retired" in w for w in result.warnings)

    def test_member_left_out_of_update(self, four_members):
        updates = [_update("a", "50"), _update("b", "30"), _update("c", "20")]
        result = validate_equity_updates(four_members, updates)

        assert any("not included in update" in w for w in result.warnings)
        # d's current 10% still counts toward the before total
        assert result.total_before == Decimal("100")
        assert result.total_after == Decimal("100")

    def test_small_deviation_is_a_warning(self, four_members):
        updates = [_update("a", "40.5"), _update("b", "30"), _update("c", "20"), _update("d", "10")]
        result = validate_equity_updates(four_members, updates)

        assert result.is_valid is True
        assert any("not 100%" in w for w in result.warnings)

    def test_large_deviation_is_an_error(self, four_members):
        updates = [_update("a", "45"), _update("b", "30"), _update("c", "20"), _update("d", "10")]
        result = validate_equity_updates(four_members, updates)

        assert result.is_valid is False
        assert any("deviation too large" in e for e in result.errors)


class TestMemberUpdateWarnings:

    def test_large_change_without_reason(self):
        member = create_test_member("a", equity_percentage="10")
        warnings = member_update_warnings(member, _update("a", "25", reason=None))

        assert "Large change: 15.0000%" in warnings
        assert "No reason provided for change" in warnings

    def test_inactive_member(self):
        member = create_test_member("a", equity_percentage="0", status=MemberStatus.SUSPENDED)
        warnings = member_update_warnings(member, _update("a", "1"))
        assert "Member status is suspended" in warnings

    def test_no_warnings(self):
        member = create_test_member("a", equity_percentage="10")
        assert member_update_warnings(member, _update("a", "10", reason=None)) == []
