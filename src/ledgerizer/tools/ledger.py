# ABOUTME: Ledger tools for connected Xero organizations
# ABOUTME: Manual journals, unbalanced-journal search, account history, and outstanding invoices

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from ledgerizer.client import with_auth_retry
from ledgerizer.exceptions import ValidationError
from ledgerizer.journals import (
    DEFAULT_MINIMUM_AMOUNT,
    account_movements,
    find_unbalanced_journals,
    months_before,
    window_start,
)
from ledgerizer.ports import resolve_entity
from ledgerizer.types import (
    ZERO,
    ChartAccount,
    Invoice,
    JournalEntry,
    JournalLine,
    Severity,
    parse_amount,
    parse_iso_date,
)
from ledgerizer.xero import parse_xero_account, parse_xero_date

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from ledgerizer.xero import XeroSession

# Xero pages hold 100 records; stop well before anything runaway
MAX_PAGES = 100


def _xero_datetime(value: date) -> str:
    return f"DateTime({value.year},{value.month:02d},{value.day:02d})"


def _date_clauses(date_from: str | None, date_to: str | None) -> list[str]:
    clauses = []
    if date_from:
        clauses.append(f"Date >= {_xero_datetime(parse_iso_date(date_from, 'date_from'))}")
    if date_to:
        clauses.append(f"Date <= {_xero_datetime(parse_iso_date(date_to, 'date_to'))}")
    return clauses


def _name_filter(name: str) -> str:
    return name.replace('"', "")


def _parse_journal(journal: dict) -> JournalEntry:
    return JournalEntry(
        journal_id=str(journal.get("ManualJournalID", "")),
        journal_date=parse_xero_date(journal.get("Date")),
        narration=journal.get("Narration", "") or "",
        status=journal.get("Status"),
        lines=[
            JournalLine(
                account_code=line.get("AccountCode"),
                description=line.get("Description"),
                line_amount=parse_amount(line.get("LineAmount")),
                tax_type=line.get("TaxType"),
            )
            for line in journal.get("JournalLines", [])
        ],
    )


def _parse_invoice(inv: dict) -> Invoice:
    return Invoice(
        invoice_id=str(inv.get("InvoiceID", "")),
        invoice_number=inv.get("InvoiceNumber"),
        contact_name=(inv.get("Contact") or {}).get("Name"),
        invoice_date=parse_xero_date(inv.get("Date")),
        due_date=parse_xero_date(inv.get("DueDate")),
        status=inv.get("Status", ""),
        total=parse_amount(inv.get("Total")),
        amount_due=parse_amount(inv.get("AmountDue")),
        currency_code=inv.get("CurrencyCode"),
    )


def _line_matches(line: JournalLine, needle: str) -> bool:
    return needle in (line.account_code or "").lower() or needle in (
        line.description or ""
    ).lower()


async def _fetch_journals(
    session: "XeroSession", tenant_id: str, clauses: list[str]
) -> list[JournalEntry]:
    """Every manual journal matching the where clauses, across pages."""
    entries: list[JournalEntry] = []
    for page in range(1, MAX_PAGES + 1):
        params: dict = {"page": page}
        if clauses:
            params["where"] = " AND ".join(clauses)

        response = await session.get("/ManualJournals", tenant_id, params=params)
        journals = response.json().get("ManualJournals", [])
        if not journals:
            break
        entries.extend(_parse_journal(journal) for journal in journals)
    return entries


async def _fetch_accounts(
    session: "XeroSession", tenant_id: str, where: str
) -> list[ChartAccount]:
    response = await session.get("/Accounts", tenant_id, params={"where": where})
    return [parse_xero_account(acc) for acc in response.json().get("Accounts", [])]


def register_ledger_tools(mcp: "FastMCP", get_client: "Callable") -> None:
    """Register journal and invoice tools with the MCP server."""

    @mcp.tool
    @with_auth_retry
    async def get_journal_entries(
        tenant_id: str | None = None,
        organization_name: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        account: str | None = None,
    ) -> dict:
        """
        Get manual journal entries to spot unusual postings.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            date_from: Start date (YYYY-MM-DD)
            date_to: End date (YYYY-MM-DD)
            account: Only journals with a line whose account code or description contains this

        Returns:
            Dict with journal entries (newest first) and their count
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)

        entries = await _fetch_journals(
            session, entity.entity_id, _date_clauses(date_from, date_to)
        )
        if account:
            needle = account.lower()
            entries = [e for e in entries if any(_line_matches(line, needle) for line in e.lines)]

        entries.sort(key=lambda e: e.journal_date or date.min, reverse=True)

        return {
            "tenant_id": entity.entity_id,
            "tenant_name": entity.display_name,
            "count": len(entries),
            "entries": [e.model_dump() for e in entries],
        }

    @mcp.tool
    @with_auth_retry
    async def find_unbalanced_transactions(
        tenant_id: str | None = None,
        organization_name: str | None = None,
        minimum_amount: float | None = None,
        date_range: str = "1year",
    ) -> dict:
        """
        Find manual journals that may be causing a trial balance imbalance.

        A journal is reported when its debits and credits differ by at
        least minimum_amount, or when either side alone reaches it.
        Severity is CRITICAL over $1,000,000 of imbalance, HIGH over
        $100,000, otherwise MEDIUM.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            minimum_amount: Amount threshold (default: 10000)
            date_range: '3months', '1year' (default) or 'all'

        Returns:
            Criteria, summary counts, and flagged journals (largest imbalance first)
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)

        minimum = Decimal(str(minimum_amount)) if minimum_amount else DEFAULT_MINIMUM_AMOUNT
        start = window_start(date_range, date.today())

        entries = await _fetch_journals(
            session, entity.entity_id, [f"Date >= {_xero_datetime(start)}"]
        )
        flagged = find_unbalanced_journals(entries, minimum)

        return {
            "tenant_id": entity.entity_id,
            "tenant_name": entity.display_name,
            "criteria": {
                "minimum_amount": minimum,
                "date_range": date_range,
                "start_date": start.isoformat(),
            },
            "summary": {
                "total_journals_analyzed": len(entries),
                "unbalanced_found": sum(1 for j in flagged if j.is_unbalanced),
                "large_amount_found": sum(1 for j in flagged if j.flags.large_amount),
                "critical_issues": sum(1 for j in flagged if j.severity is Severity.CRITICAL),
                "future_fund_related": sum(1 for j in flagged if j.flags.affects_future_fund),
            },
            "transactions": [j.model_dump() for j in flagged],
        }

    @mcp.tool
    @with_auth_retry
    async def get_account_history(
        account_name: str,
        tenant_id: str | None = None,
        organization_name: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> dict:
        """
        Get the manual journal history of one account.

        Args:
            account_name: Account name (exact or partial)
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            date_from: Start date (YYYY-MM-DD)
            date_to: End date (YYYY-MM-DD)

        Returns:
            The account, its journal movements (newest first), and the total movement
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)

        accounts = await _fetch_accounts(
            session, entity.entity_id, f'Name.Contains("{_name_filter(account_name)}")'
        )
        needle = account_name.lower()
        match = next((a for a in accounts if a.name.lower() == needle), None) or next(
            (a for a in accounts if needle in a.name.lower()), None
        )
        if match is None:
            available = ", ".join(a.name for a in accounts[:10]) or "none"
            raise ValidationError(
                f'Account "{account_name}" not found in {entity.display_name} '
                f"(similar accounts: {available})"
            )

        entries = await _fetch_journals(
            session, entity.entity_id, _date_clauses(date_from, date_to)
        )
        movements = account_movements(entries, match.code, account_name)

        return {
            "tenant_id": entity.entity_id,
            "tenant_name": entity.display_name,
            "account": match.model_dump(),
            "date_from": date_from or "All time",
            "date_to": date_to or "All time",
            "transaction_count": len(movements),
            "transactions": [m.model_dump() for m in movements],
            "total_movement": sum((abs(m.net_amount) for m in movements), ZERO),
        }

    @mcp.tool
    @with_auth_retry
    async def analyze_equity_movements(
        tenant_id: str | None = None,
        organization_name: str | None = None,
        equity_account_name: str = "Future Fund",
        months_back: int = 12,
    ) -> dict:
        """
        Track manual journal movements in equity accounts matching a name.

        Useful for finding when an equity reserve was created or topped up.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name
            equity_account_name: Equity account name to search for (default: 'Future Fund')
            months_back: Months of history from the start of that month (default: 12)

        Returns:
            Matching equity accounts, each with its movements and net total
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)

        accounts = await _fetch_accounts(
            session,
            entity.entity_id,
            f'Type=="EQUITY" AND Name.Contains("{_name_filter(equity_account_name)}")',
        )
        start = months_before(date.today(), months_back).replace(day=1)

        results = []
        if accounts:
            entries = await _fetch_journals(
                session, entity.entity_id, [f"Date >= {_xero_datetime(start)}"]
            )
            for account in accounts:
                movements = account_movements(entries, account.code, equity_account_name)
                results.append(
                    {
                        "account": account.model_dump(),
                        "transaction_count": len(movements),
                        "transactions": [m.model_dump() for m in movements],
                        "total_movements": sum((m.net_amount for m in movements), ZERO),
                    }
                )

        return {
            "tenant_id": entity.entity_id,
            "tenant_name": entity.display_name,
            "search_term": equity_account_name,
            "months_analyzed": months_back,
            "start_date": start.isoformat(),
            "accounts_found": len(results),
            "accounts": results,
        }

    @mcp.tool
    @with_auth_retry
    async def get_outstanding_invoices(
        tenant_id: str | None = None,
        organization_name: str | None = None,
    ) -> dict:
        """
        Get approved sales invoices that still have an amount due.

        Args:
            tenant_id: Xero tenant ID (optional if organization_name provided)
            organization_name: Organization name

        Returns:
            Dict with invoices, their count, and the total amount outstanding
        """
        session: XeroSession = await get_client()
        entity = await resolve_entity(session.token_store, tenant_id, organization_name)

        invoices: list[Invoice] = []
        for page in range(1, MAX_PAGES + 1):
            response = await session.get(
                "/Invoices",
                entity.entity_id,
                params={"Statuses": "AUTHORISED", "where": 'Type=="ACCREC"', "page": page},
            )
            batch = response.json().get("Invoices", [])
            if not batch:
                break
            invoices.extend(
                inv for inv in map(_parse_invoice, batch) if inv.amount_due > ZERO
            )

        total_outstanding = sum((inv.amount_due for inv in invoices), ZERO)

        return {
            "tenant_id": entity.entity_id,
            "tenant_name": entity.display_name,
            "count": len(invoices),
            "total_outstanding": total_outstanding,
            "invoices": [inv.model_dump() for inv in invoices],
        }
