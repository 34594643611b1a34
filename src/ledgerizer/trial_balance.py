# ABOUTME: Builds a trial balance from a balance sheet and a P&L report
# ABOUTME: Merges classified records, accumulates totals, and computes the balance check

import logging
from datetime import date

from ledgerizer.classifier import classify_report
from ledgerizer.exceptions import ReportFetchError
from ledgerizer.ports import CredentialResolver, ReportSource
from ledgerizer.types import (
    ZERO,
    AccountCategory,
    AccountRecord,
    BalanceCheck,
    Entity,
    Report,
    ReportKind,
    Totals,
    TrialBalance,
    parse_iso_date,
)

logger = logging.getLogger(__name__)

BALANCE_SHEET_CATEGORIES = frozenset(
    {AccountCategory.ASSET, AccountCategory.LIABILITY, AccountCategory.EQUITY}
)
PROFIT_AND_LOSS_CATEGORIES = frozenset({AccountCategory.REVENUE, AccountCategory.EXPENSE})


def _by_name(records: list[AccountRecord]) -> list[AccountRecord]:
    return sorted(records, key=lambda r: (r.name.casefold(), r.name))


def build_trial_balance(
    entity: Entity,
    report_date: str,
    balance_sheet: Report,
    profit_and_loss: Report | None = None,
) -> TrialBalance:
    """
    Combine a balance sheet and a P&L into one trial balance.

    Asset, liability and equity records come from the balance sheet;
    revenue and expense records from the P&L. Anything else either report
    produces lands in `unclassified` and stays out of the totals. A
    missing P&L leaves revenue and expenses empty.

    Args:
        entity: Entity the reports belong to
        report_date: As-of date (YYYY-MM-DD)
        balance_sheet: Balance sheet as of report_date
        profit_and_loss: Single-day P&L for report_date, or None

    Returns:
        TrialBalance with every account list sorted by name
    """
    buckets: dict[AccountCategory, list[AccountRecord]] = {
        category: [] for category in AccountCategory
    }

    sources = [(balance_sheet, BALANCE_SHEET_CATEGORIES)]
    if profit_and_loss is not None:
        sources.append((profit_and_loss, PROFIT_AND_LOSS_CATEGORIES))

    for report, allowed in sources:
        for record in classify_report(report):
            if record.category in allowed:
                buckets[record.category].append(record)
            else:
                if record.category is not AccountCategory.UNCLASSIFIED:
                    record = record.model_copy(
                        update={
                            "category": AccountCategory.UNCLASSIFIED,
                            "debit": ZERO,
                            "credit": ZERO,
                        }
                    )
                buckets[AccountCategory.UNCLASSIFIED].append(record)

    classified = [
        record
        for category, records in buckets.items()
        if category is not AccountCategory.UNCLASSIFIED
        for record in records
    ]

    totals = Totals(
        total_debits=sum((r.debit for r in classified), ZERO),
        total_credits=sum((r.credit for r in classified), ZERO),
        total_assets=sum((r.balance for r in buckets[AccountCategory.ASSET]), ZERO),
        total_liabilities=sum((r.balance for r in buckets[AccountCategory.LIABILITY]), ZERO),
        total_equity=sum((r.balance for r in buckets[AccountCategory.EQUITY]), ZERO),
        total_revenue=sum((abs(r.balance) for r in buckets[AccountCategory.REVENUE]), ZERO),
        total_expenses=sum((abs(r.balance) for r in buckets[AccountCategory.EXPENSE]), ZERO),
    )

    return TrialBalance(
        entity_id=entity.entity_id,
        entity_name=entity.display_name,
        report_date=report_date,
        assets=_by_name(buckets[AccountCategory.ASSET]),
        liabilities=_by_name(buckets[AccountCategory.LIABILITY]),
        equity=_by_name(buckets[AccountCategory.EQUITY]),
        revenue=_by_name(buckets[AccountCategory.REVENUE]),
        expenses=_by_name(buckets[AccountCategory.EXPENSE]),
        unclassified=_by_name(buckets[AccountCategory.UNCLASSIFIED]),
        totals=totals,
        balance_check=BalanceCheck.from_totals(totals),
        processed_accounts=len(classified) + len(buckets[AccountCategory.UNCLASSIFIED]),
        profit_and_loss_available=profit_and_loss is not None,
    )


class TrialBalanceService:
    """
    Fetches the reports for an entity and builds its trial balance.

    The P&L is requested for a single-day window ending on the as-of
    date, so revenue and expense figures are a cumulative-to-date
    snapshot rather than activity within a period.
    """

    def __init__(self, reports: ReportSource, credentials: CredentialResolver) -> None:
        self._reports = reports
        self._credentials = credentials

    @property
    def credentials(self) -> CredentialResolver:
        return self._credentials

    async def build(self, entity_id: str, as_of_date: str | None = None) -> TrialBalance:
        """
        Build a trial balance for one entity.

        Args:
            entity_id: Entity (tenant) id
            as_of_date: Report date (YYYY-MM-DD, default: today)

        Returns:
            TrialBalance for the entity

        Raises:
            EntityUnresolvableError: No usable credential for entity_id
            ReportFetchError: The balance sheet could not be fetched
            ValidationError: as_of_date is not YYYY-MM-DD
        """
        report_date = as_of_date or date.today().isoformat()
        parse_iso_date(report_date, "as_of_date")

        entity = await self._credentials.resolve(entity_id)
        return await self.build_for(entity, report_date)

    async def build_for(self, entity: Entity, report_date: str) -> TrialBalance:
        """Build a trial balance for an already-resolved entity."""
        logger.info(f"Building trial balance for {entity.display_name} as of {report_date}")

        balance_sheet = await self._reports.fetch_report(
            entity.entity_id, ReportKind.BALANCE_SHEET, report_date
        )

        profit_and_loss: Report | None
        try:
            profit_and_loss = await self._reports.fetch_report(
                entity.entity_id, ReportKind.PROFIT_AND_LOSS, report_date, report_date
            )
        except ReportFetchError as e:
            logger.warning(
                f"P&L unavailable for {entity.display_name} as of {report_date}, "
                f"continuing with balance sheet only: {e.cause}"
            )
            profit_and_loss = None

        trial_balance = build_trial_balance(entity, report_date, balance_sheet, profit_and_loss)

        logger.info(
            f"Trial balance completed for {entity.display_name} as of {report_date}: "
            f"{trial_balance.processed_accounts} accounts, "
            f"assets={trial_balance.totals.total_assets}, "
            f"liabilities={trial_balance.totals.total_liabilities}, "
            f"equity={trial_balance.totals.total_equity}, "
            f"balanced={trial_balance.balance_check.debits_equal_credits}"
        )
        if trial_balance.unclassified:
            logger.warning(
                f"{len(trial_balance.unclassified)} unclassified rows for {entity.display_name}"
            )

        return trial_balance
