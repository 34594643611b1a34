# ABOUTME: Trial balance tools for connected Xero organizations
# ABOUTME: Single-entity, consolidated, period comparison, and imbalance triage

from typing import TYPE_CHECKING

from ledgerizer.client import (
    consolidation_engine,
    period_comparator,
    trial_balance_service,
    with_auth_retry,
)
from ledgerizer.exceptions import ComparisonPrereqMissingError
from ledgerizer.investigation import investigate_imbalance as run_investigation
from ledgerizer.ports import resolve_entity
from ledgerizer.types import (
    ConsolidatedTrialBalance,
    ImbalanceInvestigation,
    PeriodComparison,
    TrialBalance,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from ledgerizer.xero import XeroSession


def register_trial_balance_tools(mcp: "FastMCP", get_client: "Callable") -> None:
    """Register trial balance tools with the MCP server."""

    @mcp.tool
    @with_auth_retry
    async def get_trial_balance(
        tenant_id: str | None = None,
        organization_name: str | None = None,
        report_date: str | None = None,
    ) -> TrialBalance:
        """
        Get the trial balance for one organization as of a date.

        Built from the Balance Sheet (assets, liabilities, equity) and a
        single-day P&L (revenue, expenses). Includes a balance check of
        debits against credits and assets against liabilities + equity.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name (e.g., 'Mining')
            report_date: Date in YYYY-MM-DD format (default: today)

        Returns:
            Trial balance with classified accounts, totals, and balance check
        """
        session: XeroSession = await get_client()
        service = trial_balance_service(session)
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)
        return await service.build(entity.entity_id, report_date)

    @mcp.tool
    @with_auth_retry
    async def get_consolidated_trial_balance(
        report_date: str | None = None,
    ) -> ConsolidatedTrialBalance:
        """
        Get the consolidated trial balance across all connected organizations.

        Organizations that fail to load are excluded from the totals and
        listed under failed_entities; summary.data_quality.all_connected
        is false when that happens.

        Args:
            report_date: Date in YYYY-MM-DD format (default: today)

        Returns:
            Per-company trial balances plus summed totals and data quality flags
        """
        session: XeroSession = await get_client()
        return await consolidation_engine(session).build(report_date)

    @mcp.tool
    @with_auth_retry
    async def compare_periods(
        from_date: str | None = None,
        to_date: str | None = None,
        tenant_id: str | None = None,
        organization_name: str | None = None,
        account_filter: str | None = None,
    ) -> PeriodComparison:
        """
        Compare the trial balance between two dates to see when balances moved.

        Reports balance sheet accounts that changed by more than $1,000,
        largest first, with changes over $100,000 repeated under
        significant_changes. Both dates are point-in-time snapshots, so
        revenue/expense deltas compare cumulative-to-date figures.

        Args:
            from_date: Earlier date (YYYY-MM-DD), required
            to_date: Later date (YYYY-MM-DD, default: today)
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            account_filter: Only report accounts whose name contains this text

        Returns:
            Period summaries, aggregate changes, and account-level changes
        """
        if not from_date:
            raise ComparisonPrereqMissingError("from_date parameter is required")

        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)
        return await period_comparator(session).compare(
            entity.entity_id, from_date, to_date, account_filter
        )

    @mcp.tool
    @with_auth_retry
    async def investigate_imbalance(
        tenant_id: str | None = None,
        organization_name: str | None = None,
        report_date: str | None = None,
        focus_account: str | None = None,
        analysis_depth: str | None = None,
    ) -> ImbalanceInvestigation:
        """
        Investigate why a trial balance is out of balance.

        Rates the severity of the difference and runs heuristics that
        flag accounts likely to explain it. The result is advisory triage,
        not proof of cause.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            report_date: Date in YYYY-MM-DD format (default: today)
            focus_account: Account you are interested in (shown in the result)
            analysis_depth: Depth label such as 'detailed' (shown in the result)

        Returns:
            Status, severity, ranked findings, and suggested next tools
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)
        trial_balance = await trial_balance_service(session).build(entity.entity_id, report_date)
        return run_investigation(trial_balance, focus_account, analysis_depth)
