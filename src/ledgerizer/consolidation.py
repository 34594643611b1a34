# ABOUTME: Consolidates per-entity trial balances into one multi-entity view
# ABOUTME: Fans out builds concurrently and isolates each entity's failure

import asyncio
import logging
from datetime import date

from ledgerizer.trial_balance import TrialBalanceService
from ledgerizer.types import (
    AccountCounts,
    BalanceCheck,
    CompanyView,
    ConsolidatedTotals,
    ConsolidatedTrialBalance,
    ConsolidationSummary,
    DataQuality,
    Entity,
    EntityFailure,
    SectionGroup,
    Totals,
    TrialBalance,
    parse_iso_date,
)

logger = logging.getLogger(__name__)


def company_view(trial_balance: TrialBalance) -> CompanyView:
    """Group one entity's trial balance into titled sections with totals."""
    totals = trial_balance.totals
    sections = {
        "assets": SectionGroup(
            title="Assets", total=totals.total_assets, accounts=trial_balance.assets
        ),
        "liabilities": SectionGroup(
            title="Liabilities",
            total=totals.total_liabilities,
            accounts=trial_balance.liabilities,
        ),
        "equity": SectionGroup(
            title="Equity", total=totals.total_equity, accounts=trial_balance.equity
        ),
        "revenue": SectionGroup(
            title="Revenue", total=totals.total_revenue, accounts=trial_balance.revenue
        ),
        "expenses": SectionGroup(
            title="Expenses", total=totals.total_expenses, accounts=trial_balance.expenses
        ),
    }

    return CompanyView(
        entity_id=trial_balance.entity_id,
        entity_name=trial_balance.entity_name,
        report_date=trial_balance.report_date,
        trial_balance=trial_balance,
        sections=sections,
        account_counts=AccountCounts(
            total_accounts=trial_balance.account_count,
            asset_accounts=len(trial_balance.assets),
            liability_accounts=len(trial_balance.liabilities),
            equity_accounts=len(trial_balance.equity),
            revenue_accounts=len(trial_balance.revenue),
            expense_accounts=len(trial_balance.expenses),
            unclassified_accounts=len(trial_balance.unclassified),
        ),
    )


def consolidate(
    report_date: str,
    trial_balances: list[TrialBalance],
    intended_companies: int,
    failures: list[EntityFailure] | None = None,
) -> ConsolidatedTrialBalance:
    """
    Sum already-built trial balances into a consolidated view.

    Args:
        report_date: As-of date shared by every trial balance
        trial_balances: Successfully built trial balances, in entity order
        intended_companies: Number of usable entities that should have reported
        failures: Entities that were excluded and why

    Returns:
        ConsolidatedTrialBalance with per-company views and summed totals
    """
    companies = [company_view(tb) for tb in trial_balances]
    totals = Totals.sum(tb.totals for tb in trial_balances)
    balance_check = BalanceCheck.from_totals(totals)

    summary = ConsolidationSummary(
        total_companies=len(companies),
        intended_companies=intended_companies,
        total_accounts=sum(c.account_counts.total_accounts for c in companies),
        balanced_companies=sum(
            1 for tb in trial_balances if tb.balance_check.debits_equal_credits
        ),
        data_quality=DataQuality(
            all_connected=len(companies) == intended_companies,
            all_balanced=all(tb.balance_check.debits_equal_credits for tb in trial_balances),
            consolidated_balanced=balance_check.debits_equal_credits,
        ),
    )

    return ConsolidatedTrialBalance(
        report_date=report_date,
        consolidated=ConsolidatedTotals(totals=totals, balance_check=balance_check),
        companies=companies,
        failed_entities=failures or [],
        summary=summary,
    )


class ConsolidationEngine:
    """Builds every credentialed entity's trial balance and sums them."""

    def __init__(self, trial_balances: TrialBalanceService) -> None:
        self._trial_balances = trial_balances

    async def _build_one(
        self, entity: Entity, report_date: str
    ) -> TrialBalance | EntityFailure:
        try:
            return await self._trial_balances.build_for(entity, report_date)
        except Exception as e:
            # One entity failing must not take the batch down with it
            logger.exception(
                f"Excluding {entity.display_name} ({entity.entity_id}) "
                f"from consolidation as of {report_date}"
            )
            return EntityFailure(
                entity_id=entity.entity_id,
                entity_name=entity.display_name,
                error=str(e) or type(e).__name__,
            )

    async def build(self, as_of_date: str | None = None) -> ConsolidatedTrialBalance:
        """
        Build the consolidated trial balance for every usable entity.

        Entities are built concurrently; results keep credential
        enumeration order regardless of which finishes first.

        Args:
            as_of_date: Report date (YYYY-MM-DD, default: today)

        Returns:
            ConsolidatedTrialBalance over the entities that reported
        """
        report_date = as_of_date or date.today().isoformat()
        parse_iso_date(report_date, "as_of_date")

        entities = [
            e for e in await self._trial_balances.credentials.list_entities() if e.is_usable
        ]
        logger.info(f"Consolidating {len(entities)} connected entities as of {report_date}")

        results = await asyncio.gather(
            *(self._build_one(entity, report_date) for entity in entities)
        )

        trial_balances = [r for r in results if isinstance(r, TrialBalance)]
        failures = [r for r in results if isinstance(r, EntityFailure)]

        consolidated = consolidate(report_date, trial_balances, len(entities), failures)

        logger.info(
            f"Consolidated trial balance completed for {report_date}: "
            f"{consolidated.summary.total_companies}/{len(entities)} companies, "
            f"{consolidated.summary.total_accounts} accounts, "
            f"assets={consolidated.consolidated.totals.total_assets}, "
            f"balanced={consolidated.summary.data_quality.consolidated_balanced}"
        )
        return consolidated
