"""
Member Registry

In-memory collection of members keyed by id, with per-fiscal-year projection
of equity and status. Records come from the persistence layer; the registry
never writes anything back.
"""
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional

from app.core.rounding import ONE_HUNDRED, decimal_sum
from app.core.status_config import MemberStatus
from app.exceptions import DuplicateError, NotFoundError
from app.logging_config import get_logger
from app.schemas.member import Member, MemberEquityOverview

logger = get_logger(__name__)


class MemberRegistry:
    """
    Members indexed by id.

    Usage:
        registry = MemberRegistry(members)
        active = registry.active_members(fiscal_year=2024)
    """

    def __init__(self, members: Optional[Iterable[Member]] = None):
        self._members: Dict[str, Member] = {}
        for member in members or []:
            self.add(member)

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Member]:
        return iter(self._members.values())

    def __contains__(self, member_id: str) -> bool:
        return member_id in self._members

    def add(self, member: Member) -> Member:
        if member.id in self._members:
            raise DuplicateError("Member", field="id", value=member.id)
        self._members[member.id] = member
        return member

    def get(self, member_id: str) -> Member:
        try:
            return self._members[member_id]
        except KeyError:
            raise NotFoundError("Member", member_id) from None

    def remove(self, member_id: str) -> Member:
        member = self.get(member_id)
        del self._members[member_id]
        return member

    # ========================================================================
    # Fiscal Year Projection
    # ========================================================================

    def members_for_year(self, fiscal_year: int) -> List[Member]:
        """
        Members as they stood in a fiscal year.

        Each returned member is a copy with equity_percentage, capital_balance
        and status taken from that year's records when present. The final
        percentage wins over the estimate; a yearly status record wins over the
        member's base status. Members without a yearly equity record keep
        their base values.
        """
        projected = []
        for member in self._members.values():
            update = {"fiscal_year": fiscal_year}
            equity = member.equity_for_year(fiscal_year)
            if equity is not None:
                update["equity_percentage"] = equity.effective_percentage
                update["capital_balance"] = equity.capital_balance
            status = member.status_for_year(fiscal_year)
            if status is not None:
                update["status"] = status.status
            projected.append(member.model_copy(update=update))
        return projected

    def active_members(
        self, fiscal_year: Optional[int] = None, include_probationary: bool = False
    ) -> List[Member]:
        """Active members (optionally with probationary) for a year, or current."""
        members = (
            self.members_for_year(fiscal_year)
            if fiscal_year is not None
            else list(self._members.values())
        )
        statuses = {MemberStatus.ACTIVE}
        if include_probationary:
            statuses.add(MemberStatus.PROBATIONARY)
        return [m for m in members if m.status in statuses]

    def equity_overview(self, fiscal_year: Optional[int] = None) -> MemberEquityOverview:
        """Allocated vs available equity across active members."""
        members = sorted(
            self.active_members(fiscal_year),
            key=lambda m: m.equity_percentage,
            reverse=True,
        )
        total: Decimal = decimal_sum(m.equity_percentage for m in members)
        if total > ONE_HUNDRED:
            logger.warning(
                "Active equity exceeds 100%",
                extra={"fiscal_year": fiscal_year, "total_equity": str(total)},
            )
        return MemberEquityOverview(
            fiscal_year=fiscal_year,
            total_allocated=total,
            available_equity=ONE_HUNDRED - total,
            member_count=len(members),
            members=members,
        )
