"""
Reconciliation Service

Compares system-computed totals against an independent figure (the balance
sheet). A variance at or beyond tolerance is reported, logged, and returned;
it is never raised.

Boundary rule: reconciled iff |computed - external| < tolerance. A variance
exactly equal to the tolerance is NOT reconciled.
"""
from decimal import Decimal
from typing import Optional, Sequence

from app.core.rounding import ONE_HUNDRED, decimal_sum, to_decimal
from app.core.settings import get_settings
from app.core.status_config import MemberStatus
from app.exceptions import ValidationError
from app.logging_config import get_logger
from app.schemas.member import Member
from app.schemas.reconciliation import (
    BalanceSheetData,
    BalanceSheetReconciliation,
    ReconciliationItem,
    ReconciliationItemStatus,
    ReconciliationResult,
)

logger = get_logger(__name__)


def check_reconciliation(computed, external, tolerance=None) -> ReconciliationResult:
    """
    Compare a computed total with an external figure.

    Args:
        computed: System-side total
        external: Balance-sheet figure
        tolerance: Allowed variance (exclusive); defaults to RECONCILIATION_TOLERANCE

    Raises:
        ValidationError: If tolerance is negative
    """
    if tolerance is None:
        tolerance = get_settings().RECONCILIATION_TOLERANCE
    tolerance = to_decimal(tolerance)
    if tolerance < 0:
        raise ValidationError("Tolerance must be non-negative", field="tolerance", value=tolerance)

    computed = to_decimal(computed)
    external = to_decimal(external)
    variance = abs(computed - external)
    reconciled = variance < tolerance

    if not reconciled:
        logger.warning(
            "Reconciliation variance exceeds tolerance",
            extra={
                "computed": str(computed),
                "external": str(external),
                "variance": str(variance),
                "tolerance": str(tolerance),
            },
        )

    return ReconciliationResult(
        reconciled=reconciled,
        variance=variance,
        computed=computed,
        external=external,
        tolerance=tolerance,
    )


def _item_status(reconciled: bool) -> ReconciliationItemStatus:
    return ReconciliationItemStatus.MATCHED if reconciled else ReconciliationItemStatus.VARIANCE


def reconcile_balance_sheet(
    members: Sequence[Member],
    balance_sheet: BalanceSheetData,
    fiscal_year: Optional[int] = None,
    tolerance=None,
) -> BalanceSheetReconciliation:
    """
    Build the reconciliation report for a fiscal year.

    Lines:
        1. Total member capital accounts vs balance sheet (currency tolerance)
        2. Active member count vs reported count (exact; only when reported)
        3. Total active equity percentage vs 100 (percentage tolerance)
    """
    settings = get_settings()
    active = [m for m in members if m.status == MemberStatus.ACTIVE]

    total_capital: Decimal = decimal_sum(m.capital_balance for m in members)
    capital = check_reconciliation(total_capital, balance_sheet.member_capital_accounts, tolerance)

    items = [
        ReconciliationItem(
            description="Total Member Capital Accounts",
            system_amount=total_capital,
            balance_sheet_amount=balance_sheet.member_capital_accounts,
            variance=total_capital - balance_sheet.member_capital_accounts,
            status=_item_status(capital.reconciled),
        )
    ]
    warnings = []
    if not capital.reconciled:
        warnings.append(
            f"Member capital accounts differ from balance sheet by {capital.variance}"
        )

    if balance_sheet.active_member_count is not None:
        active_count = Decimal(len(active))
        reported = Decimal(balance_sheet.active_member_count)
        count_matches = active_count == reported
        items.append(ReconciliationItem(
            description="Active Member Accounts",
            system_amount=active_count,
            balance_sheet_amount=reported,
            variance=active_count - reported,
            status=_item_status(count_matches),
            notes=None if count_matches else "Status changes not yet reflected in balance sheet",
        ))
        if not count_matches:
            warnings.append(
                f"Active member count {len(active)} differs from reported {balance_sheet.active_member_count}"
            )
    else:
        items.append(ReconciliationItem(
            description="Active Member Accounts",
            system_amount=Decimal(len(active)),
            status=ReconciliationItemStatus.MISSING,
            notes="Balance sheet does not report a member count",
        ))

    total_equity = decimal_sum(m.equity_percentage for m in active)
    equity = check_reconciliation(
        total_equity, ONE_HUNDRED, settings.RECONCILIATION_PERCENT_TOLERANCE
    )
    items.append(ReconciliationItem(
        description="Total Equity Percentage",
        system_amount=total_equity,
        balance_sheet_amount=ONE_HUNDRED,
        variance=total_equity - ONE_HUNDRED,
        status=_item_status(equity.reconciled),
    ))
    if not equity.reconciled:
        warnings.append(f"Total active equity is {total_equity}%, not 100%")

    # The member-count line is informational; capital and equity decide
    return BalanceSheetReconciliation(
        fiscal_year=fiscal_year,
        is_reconciled=capital.reconciled and equity.reconciled,
        items=items,
        capital=capital,
        warnings=warnings,
    )
