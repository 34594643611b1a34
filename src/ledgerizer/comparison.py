# ABOUTME: Compares two trial balance snapshots of the same entity
# ABOUTME: Aggregate deltas plus ranked account-level changes above a threshold

import asyncio
import logging
from datetime import date
from decimal import Decimal

from ledgerizer.exceptions import ComparisonPrereqMissingError
from ledgerizer.trial_balance import TrialBalanceService
from ledgerizer.types import (
    ZERO,
    AccountChange,
    AccountRecord,
    ChangeType,
    PeriodChanges,
    PeriodComparison,
    PeriodSummary,
    TrialBalance,
    parse_iso_date,
)

logger = logging.getLogger(__name__)

# Account-level changes at or below this are noise
CHANGE_THRESHOLD = Decimal("1000")
SIGNIFICANT_CHANGE_THRESHOLD = Decimal("100000")


def _summary(trial_balance: TrialBalance) -> PeriodSummary:
    totals = trial_balance.totals
    return PeriodSummary(
        report_date=trial_balance.report_date,
        total_assets=totals.total_assets,
        total_liabilities=totals.total_liabilities,
        total_equity=totals.total_equity,
        total_revenue=totals.total_revenue,
        total_expenses=totals.total_expenses,
        total_debits=totals.total_debits,
        total_credits=totals.total_credits,
        balanced=trial_balance.balance_check.debits_equal_credits,
    )


def _balances_by_name(trial_balance: TrialBalance) -> dict[str, AccountRecord]:
    # First occurrence wins when a name appears in more than one section
    accounts: dict[str, AccountRecord] = {}
    for record in trial_balance.balance_sheet_accounts:
        accounts.setdefault(record.name, record)
    return accounts


def diff_accounts(
    from_period: TrialBalance,
    to_period: TrialBalance,
    account_filter: str | None = None,
) -> list[AccountChange]:
    """
    Account-level changes between two snapshots.

    Only balance sheet accounts are compared; revenue and expenses are
    compared in aggregate only. Accounts that appear or disappear are
    reported as NEW_ACCOUNT / REMOVED_ACCOUNT against a zero balance.

    Args:
        from_period: Earlier snapshot
        to_period: Later snapshot
        account_filter: Case-insensitive substring an account name must contain

    Returns:
        Changes with |change| > CHANGE_THRESHOLD, largest first
    """
    before = _balances_by_name(from_period)
    after = _balances_by_name(to_period)
    needle = account_filter.lower() if account_filter else None

    changes: list[AccountChange] = []

    for name, from_acc in before.items():
        to_acc = after.get(name)
        to_balance = to_acc.balance if to_acc is not None else ZERO
        change = to_balance - from_acc.balance
        if to_acc is None:
            change_type = ChangeType.REMOVED_ACCOUNT
        elif change > 0:
            change_type = ChangeType.INCREASE
        else:
            change_type = ChangeType.DECREASE
        changes.append(
            AccountChange(
                account_name=name,
                from_balance=from_acc.balance,
                to_balance=to_balance,
                change=change,
                change_type=change_type,
            )
        )

    for name, to_acc in after.items():
        if name not in before:
            changes.append(
                AccountChange(
                    account_name=name,
                    from_balance=ZERO,
                    to_balance=to_acc.balance,
                    change=to_acc.balance,
                    change_type=ChangeType.NEW_ACCOUNT,
                )
            )

    kept = [
        c
        for c in changes
        if abs(c.change) > CHANGE_THRESHOLD
        and (needle is None or needle in c.account_name.lower())
    ]
    kept.sort(key=lambda c: abs(c.change), reverse=True)
    return kept


def compare_trial_balances(
    from_period: TrialBalance,
    to_period: TrialBalance,
    account_filter: str | None = None,
) -> PeriodComparison:
    """Build a PeriodComparison from two already-built snapshots."""
    from_summary = _summary(from_period)
    to_summary = _summary(to_period)
    account_changes = diff_accounts(from_period, to_period, account_filter)

    return PeriodComparison(
        entity_id=to_period.entity_id,
        entity_name=to_period.entity_name,
        from_date=from_period.report_date,
        to_date=to_period.report_date,
        account_filter=account_filter,
        from_period=from_summary,
        to_period=to_summary,
        changes=PeriodChanges(
            assets_change=to_summary.total_assets - from_summary.total_assets,
            liabilities_change=to_summary.total_liabilities - from_summary.total_liabilities,
            equity_change=to_summary.total_equity - from_summary.total_equity,
            revenue_change=to_summary.total_revenue - from_summary.total_revenue,
            expenses_change=to_summary.total_expenses - from_summary.total_expenses,
            balance_status_changed=to_summary.balanced != from_summary.balanced,
        ),
        account_changes=account_changes,
        significant_changes=[
            c for c in account_changes if abs(c.change) > SIGNIFICANT_CHANGE_THRESHOLD
        ],
    )


class PeriodComparator:
    """Builds two snapshots of an entity and diffs them."""

    def __init__(self, trial_balances: TrialBalanceService) -> None:
        self._trial_balances = trial_balances

    async def compare(
        self,
        entity_id: str,
        from_date: str | None,
        to_date: str | None = None,
        account_filter: str | None = None,
        today: date | None = None,
    ) -> PeriodComparison:
        """
        Compare an entity's trial balance between two dates.

        Args:
            entity_id: Entity (tenant) id
            from_date: Earlier snapshot date (YYYY-MM-DD), required
            to_date: Later snapshot date (default: today)
            account_filter: Only report accounts whose name contains this
            today: Override for "today" when to_date is omitted

        Returns:
            PeriodComparison between the two snapshots

        Raises:
            ComparisonPrereqMissingError: from_date missing; nothing is fetched
            EntityUnresolvableError: No usable credential for entity_id
            ReportFetchError: Either balance sheet could not be fetched
        """
        if not from_date:
            raise ComparisonPrereqMissingError("from_date parameter is required")

        to_date = to_date or (today or date.today()).isoformat()
        parse_iso_date(from_date, "from_date")
        parse_iso_date(to_date, "to_date")

        entity = await self._trial_balances.credentials.resolve(entity_id)
        logger.info(f"Comparing periods {from_date} vs {to_date} for {entity.display_name}")

        from_period, to_period = await asyncio.gather(
            self._trial_balances.build_for(entity, from_date),
            self._trial_balances.build_for(entity, to_date),
        )

        comparison = compare_trial_balances(from_period, to_period, account_filter)
        logger.info(
            f"Period comparison for {entity.display_name}: "
            f"{len(comparison.account_changes)} account changes, "
            f"{len(comparison.significant_changes)} significant"
        )
        return comparison
