# ABOUTME: Tests for the MCP tool functions
# ABOUTME: Drives each tool against a fake Xero session serving canned JSON

from decimal import Decimal

import httpx
import pytest
from conftest import FakeCredentials

from ledgerizer.exceptions import ComparisonPrereqMissingError, ValidationError
from ledgerizer.tools.accounts import register_account_tools
from ledgerizer.tools.ledger import MAX_PAGES, register_ledger_tools
from ledgerizer.tools.organizations import register_organization_tools
from ledgerizer.tools.trial_balance import register_trial_balance_tools
from ledgerizer.types import Entity, Severity


def _section(title, rows):
    return {
        "RowType": "Section",
        "Title": title,
        "Rows": [
            {"RowType": "Row", "Cells": [{"Value": name}, {"Value": amount}]}
            for name, amount in rows
        ],
    }


def _report(name, *sections):
    return {"Reports": [{"ReportName": name, "Rows": list(sections)}]}


BALANCE_SHEET = _report(
    "Balance Sheet",
    _section("Bank", [("Westpac Cheque", "80,000.00"), ("ANZ Savings", "20,000.00")]),
    _section("Current Assets", [("Debtors", "5,000.00")]),
    _section("Current Liabilities", [("GST", "5,000.00")]),
    _section("Equity", [("Capital", "60,000.00"), ("Future Fund Reserve", "50,000.00")]),
)

PROFIT_AND_LOSS = _report(
    "Profit and Loss",
    _section("Income", [("Sales", "12,000.00")]),
    _section("Less Operating Expenses", [("Rent", "2,000.00")]),
)


class CapturingMCP:
    """Collects functions registered with @mcp.tool."""

    def __init__(self) -> None:
        self.tools = {}

    def tool(self, fn):
        self.tools[fn.__name__] = fn
        return fn


class FakeSession:
    """XeroSession stand-in returning canned JSON by path."""

    def __init__(self, responses: dict, entities: list[Entity]) -> None:
        self.responses = responses
        self.token_store = FakeCredentials(entities)
        self.requests = []

    async def get(self, path, tenant_id, **kwargs):
        params = kwargs.get("params") or {}
        self.requests.append((path, tenant_id, params))
        payload = self.responses.get(path, {})
        if callable(payload):
            payload = payload(params)
        return httpx.Response(200, json=payload)


@pytest.fixture
def session(entities):
    return FakeSession(
        {
            "/Reports/BalanceSheet": BALANCE_SHEET,
            "/Reports/ProfitAndLoss": PROFIT_AND_LOSS,
        },
        entities + [Entity(entity_id="tenant-x", display_name="Dormant Co", is_usable=False)],
    )


@pytest.fixture
def tools(session):
    mcp = CapturingMCP()

    async def get_client():
        return session

    register_organization_tools(mcp, get_client)
    register_trial_balance_tools(mcp, get_client)
    register_account_tools(mcp, get_client)
    register_ledger_tools(mcp, get_client)
    return mcp.tools


def test_all_tools_registered(tools):
    assert set(tools) == {
        "get_organizations",
        "test_connection",
        "get_trial_balance",
        "get_consolidated_trial_balance",
        "compare_periods",
        "investigate_imbalance",
        "get_cash_position",
        "get_chart_of_accounts",
        "get_journal_entries",
        "find_unbalanced_transactions",
        "get_account_history",
        "analyze_equity_movements",
        "get_outstanding_invoices",
    }


def test_server_name(mcp_server):
    assert mcp_server.name == "ledgerizer"


class TestOrganizationTools:
    async def test_get_organizations(self, tools):
        result = await tools["get_organizations"]()

        assert result["total"] == 3
        assert [o["tenant_id"] for o in result["active"]] == ["tenant-a", "tenant-b"]
        assert result["expired"] == [{"tenant_id": "tenant-x", "tenant_name": "Dormant Co"}]


class TestTrialBalanceTools:
    async def test_get_trial_balance_by_name(self, tools, session):
        tb = await tools["get_trial_balance"](organization_name="Mining", report_date="2025-06-30")

        assert tb.entity_id == "tenant-a"
        assert tb.totals.total_assets == Decimal("105000.00")
        assert tb.totals.total_revenue == Decimal("12000.00")
        assert tb.totals.total_expenses == Decimal("2000.00")
        assert ("/Reports/ProfitAndLoss", "tenant-a", {
            "fromDate": "2025-06-30",
            "toDate": "2025-06-30",
        }) in session.requests

    async def test_get_trial_balance_requires_entity(self, tools):
        with pytest.raises(ValidationError):
            await tools["get_trial_balance"](report_date="2025-06-30")

    async def test_consolidated_skips_expired(self, tools, session):
        result = await tools["get_consolidated_trial_balance"](report_date="2025-06-30")

        assert [c.entity_id for c in result.companies] == ["tenant-a", "tenant-b"]
        assert result.consolidated.totals.total_assets == Decimal("210000.00")
        assert all(tenant != "tenant-x" for _, tenant, _ in session.requests)

    async def test_compare_periods_requires_from_date(self, tools, session):
        with pytest.raises(ComparisonPrereqMissingError):
            await tools["compare_periods"](tenant_id="tenant-a")
        assert session.requests == []

    async def test_compare_periods(self, tools, session):
        def balance_sheet(params):
            if params["date"] == "2025-05-31":
                return _report("Balance Sheet", _section("Bank", [("Westpac Cheque", "30,000.00")]))
            return BALANCE_SHEET

        session.responses["/Reports/BalanceSheet"] = balance_sheet

        result = await tools["compare_periods"](
            from_date="2025-05-31", to_date="2025-06-30", tenant_id="tenant-a"
        )

        assert result.account_changes[0].account_name == "Capital"
        assert result.changes.assets_change == Decimal("75000.00")
        assert [c.account_name for c in result.significant_changes] == []

    async def test_investigate_imbalance(self, tools):
        # debits 105000 + 2000, credits 5000 + 110000 + 12000
        result = await tools["investigate_imbalance"](
            tenant_id="tenant-a", report_date="2025-06-30"
        )

        assert result.status == "OUT_OF_BALANCE"
        assert result.difference == Decimal("-20000.00")
        assert result.severity is Severity.HIGH
        assert result.findings[0].account_name == "Future Fund Reserve"


class TestAccountTools:
    async def test_cash_position(self, tools):
        result = await tools["get_cash_position"](tenant_id="tenant-b", as_of_date="2025-06-30")

        assert result.total_cash == Decimal("100000.00")
        assert [a.name for a in result.bank_accounts] == ["Westpac Cheque", "ANZ Savings"]

    async def test_chart_of_accounts(self, tools, session):
        session.responses["/Accounts"] = {
            "Accounts": [
                {"AccountID": "3", "Code": "970", "Name": "Future Fund Reserve", "Type": "EQUITY",
                 "Class": "EQUITY", "Status": "ACTIVE"},
                {"AccountID": "1", "Code": "090", "Name": "Westpac Cheque", "Type": "BANK",
                 "Class": "ASSET", "Status": "ACTIVE"},
                {"AccountID": "2", "Code": "091", "Name": "Old Bank", "Type": "BANK",
                 "Class": "ASSET", "Status": "ARCHIVED"},
            ]
        }

        accounts = await tools["get_chart_of_accounts"](tenant_id="tenant-a", account_type="bank")

        assert [a.code for a in accounts] == ["090", "970"]
        assert session.requests[-1][2] == {"where": 'Type=="BANK"'}


class TestLedgerTools:
    async def test_journal_entries_filtered_by_account(self, tools, session):
        journals = [
            {
                "ManualJournalID": "j1",
                "Date": "/Date(1719705600000+0000)/",
                "Narration": "Reserve top-up",
                "Status": "POSTED",
                "JournalLines": [
                    {"AccountCode": "970", "Description": "Future Fund", "LineAmount": -5000},
                    {"AccountCode": "090", "Description": "Cash", "LineAmount": 5000},
                ],
            },
            {
                "ManualJournalID": "j2",
                "Date": "/Date(1717113600000+0000)/",
                "Narration": "Accrual",
                "Status": "POSTED",
                "JournalLines": [{"AccountCode": "400", "LineAmount": 100}],
            },
        ]
        session.responses["/ManualJournals"] = lambda params: (
            {"ManualJournals": journals} if params["page"] == 1 else {}
        )

        result = await tools["get_journal_entries"](
            tenant_id="tenant-a", date_from="2024-01-01", account="future fund"
        )

        assert result["count"] == 1
        assert result["entries"][0]["journal_id"] == "j1"
        assert session.requests[0][2]["where"] == "Date >= DateTime(2024,01,01)"

    async def test_journal_paging_stops_at_page_limit(self, tools, session):
        session.responses["/ManualJournals"] = lambda params: {
            "ManualJournals": [{"ManualJournalID": f"p{params['page']}", "JournalLines": []}]
        }

        result = await tools["get_journal_entries"](tenant_id="tenant-a")

        assert result["count"] == MAX_PAGES
        assert [p["page"] for _, _, p in session.requests] == list(range(1, MAX_PAGES + 1))

    async def test_outstanding_invoices(self, tools, session):
        invoices = [
            {"InvoiceID": "i1", "InvoiceNumber": "INV-1", "Contact": {"Name": "Rio"},
             "Status": "AUTHORISED", "Total": 1100, "AmountDue": 600},
            {"InvoiceID": "i2", "InvoiceNumber": "INV-2", "Status": "AUTHORISED",
             "Total": 500, "AmountDue": 0},
        ]
        session.responses["/Invoices"] = lambda params: (
            {"Invoices": invoices} if params["page"] == 1 else {}
        )

        result = await tools["get_outstanding_invoices"](tenant_id="tenant-a")

        assert result["count"] == 1
        assert result["total_outstanding"] == Decimal("600")
        assert result["invoices"][0]["contact_name"] == "Rio"


JUNE_30 = "/Date(1719705600000+0000)/"

RESERVE_JOURNALS = [
    {
        "ManualJournalID": "j1",
        "Date": JUNE_30,
        "Status": "POSTED",
        "JournalLines": [
            {"AccountCode": "970", "Description": "Future Fund", "LineAmount": -5000},
            {"AccountCode": "090", "Description": "Cash", "LineAmount": 5000},
        ],
    },
    {
        "ManualJournalID": "j2",
        "Date": JUNE_30,
        "Status": "POSTED",
        "JournalLines": [{"AccountCode": "400", "LineAmount": 100}],
    },
    {
        "ManualJournalID": "j3",
        "Date": JUNE_30,
        "Status": "POSTED",
        "JournalLines": [
            {"AccountCode": "970", "Description": "Future Fund top-up", "LineAmount": -250000},
        ],
    },
]

RESERVE_ACCOUNT = {
    "AccountID": "a970",
    "Code": "970",
    "Name": "Future Fund Reserve",
    "Type": "EQUITY",
    "Status": "ACTIVE",
}


def _first_page(key, items):
    return lambda params: {key: items} if params["page"] == 1 else {}


class TestInvestigationTools:
    """Journal-level tools the imbalance investigation points to."""

    @pytest.fixture(autouse=True)
    def journals(self, session):
        session.responses["/ManualJournals"] = _first_page("ManualJournals", RESERVE_JOURNALS)
        session.responses["/Accounts"] = {
            "Accounts": [
                RESERVE_ACCOUNT,
                {"AccountID": "a090", "Code": "090", "Name": "Westpac Cheque", "Type": "BANK"},
            ]
        }

    async def test_find_unbalanced_transactions(self, tools, session):
        result = await tools["find_unbalanced_transactions"](
            tenant_id="tenant-a", minimum_amount=1000, date_range="all"
        )

        assert [t["journal_id"] for t in result["transactions"]] == ["j3", "j1"]
        assert result["transactions"][0]["severity"] is Severity.HIGH
        assert result["transactions"][0]["flags"]["single_sided"] is True
        assert result["criteria"]["minimum_amount"] == Decimal("1000")
        assert result["criteria"]["start_date"] == "2000-01-01"
        assert result["summary"] == {
            "total_journals_analyzed": 3,
            "unbalanced_found": 1,
            "large_amount_found": 0,
            "critical_issues": 0,
            "future_fund_related": 2,
        }
        assert session.requests[0][2]["where"] == "Date >= DateTime(2000,01,01)"

    async def test_find_unbalanced_default_minimum(self, tools):
        result = await tools["find_unbalanced_transactions"](tenant_id="tenant-a")

        assert result["criteria"]["minimum_amount"] == Decimal("10000")
        assert [t["journal_id"] for t in result["transactions"]] == ["j3"]

    async def test_get_account_history(self, tools, session):
        result = await tools["get_account_history"](
            account_name="future fund", tenant_id="tenant-a"
        )

        assert result["account"]["code"] == "970"
        assert result["transaction_count"] == 2
        assert [t["journal_id"] for t in result["transactions"]] == ["j1", "j3"]
        assert result["total_movement"] == Decimal("255000")
        assert result["date_from"] == "All time"
        assert session.requests[0][2] == {"where": 'Name.Contains("future fund")'}

    async def test_get_account_history_unknown_account(self, tools):
        with pytest.raises(ValidationError, match="Suspense"):
            await tools["get_account_history"](account_name="Suspense", tenant_id="tenant-a")

    async def test_analyze_equity_movements(self, tools, session):
        session.responses["/Accounts"] = {"Accounts": [RESERVE_ACCOUNT]}

        result = await tools["analyze_equity_movements"](tenant_id="tenant-a", months_back=6)

        assert result["accounts_found"] == 1
        (account,) = result["accounts"]
        assert account["transaction_count"] == 2
        assert account["total_movements"] == Decimal("-255000")
        assert result["start_date"].endswith("-01")
        assert 'Type=="EQUITY"' in session.requests[0][2]["where"]

    async def test_analyze_equity_movements_no_match(self, tools, session):
        session.responses["/Accounts"] = {"Accounts": []}

        result = await tools["analyze_equity_movements"](tenant_id="tenant-a")

        assert result["accounts_found"] == 0
        assert all(path != "/ManualJournals" for path, _, _ in session.requests)
