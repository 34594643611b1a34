# ABOUTME: Account tools for connected Xero organizations
# ABOUTME: Cash position from the balance sheet and the chart of accounts

from datetime import date
from typing import TYPE_CHECKING

from ledgerizer.classifier import classify_report
from ledgerizer.client import with_auth_retry
from ledgerizer.ports import resolve_entity
from ledgerizer.types import (
    ZERO,
    AccountCategory,
    BankBalance,
    CashPosition,
    ChartAccount,
    ReportKind,
    parse_iso_date,
)
from ledgerizer.xero import XeroReportSource, parse_xero_account

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from ledgerizer.xero import XeroSession


def register_account_tools(mcp: "FastMCP", get_client: "Callable") -> None:
    """Register account tools with the MCP server."""

    @mcp.tool
    @with_auth_retry
    async def get_cash_position(
        tenant_id: str | None = None,
        organization_name: str | None = None,
        as_of_date: str | None = None,
    ) -> CashPosition:
        """
        Get bank account balances and total cash for an organization.

        Balances come from the Bank section of the balance sheet, so they
        match the trial balance for the same date.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            as_of_date: Date in YYYY-MM-DD format (default: today)

        Returns:
            Total cash and per-account bank balances
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)

        if as_of_date is None:
            as_of_date = date.today().isoformat()
        parse_iso_date(as_of_date, "as_of_date")

        report = await XeroReportSource(session).fetch_report(
            entity.entity_id, ReportKind.BALANCE_SHEET, as_of_date
        )
        bank_accounts = [
            BankBalance(name=r.name, balance=r.balance, section=r.section)
            for r in classify_report(report)
            if r.category is AccountCategory.ASSET and "bank" in r.section.lower()
        ]

        return CashPosition(
            entity_id=entity.entity_id,
            entity_name=entity.display_name,
            as_of_date=as_of_date,
            total_cash=sum((acc.balance for acc in bank_accounts), ZERO),
            bank_accounts=bank_accounts,
        )

    @mcp.tool
    @with_auth_retry
    async def get_chart_of_accounts(
        tenant_id: str | None = None,
        organization_name: str | None = None,
        account_type: str | None = None,
        include_archived: bool = False,
    ) -> list[ChartAccount]:
        """
        Get the chart of accounts to check how accounts are set up.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            account_type: Xero account type filter (e.g., BANK, EQUITY, REVENUE)
            include_archived: Include archived accounts (default: False)

        Returns:
            List of accounts with code, name, type, class, and status
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)

        params = {}
        if account_type:
            params["where"] = f'Type=="{account_type.upper()}"'

        response = await session.get("/Accounts", entity.entity_id, params=params)
        data = response.json()

        accounts = [parse_xero_account(acc) for acc in data.get("Accounts", [])]
        if not include_archived:
            accounts = [acc for acc in accounts if acc.status != "ARCHIVED"]

        return sorted(accounts, key=lambda acc: (acc.code or "", acc.name))
