# ABOUTME: MCP server entry point for Ledgerizer
# ABOUTME: Configures FastMCP and registers Xero trial balance tools

import logging
import os

from fastmcp import FastMCP

from ledgerizer.client import get_client
from ledgerizer.tools.accounts import register_account_tools
from ledgerizer.tools.ledger import register_ledger_tools
from ledgerizer.tools.organizations import register_organization_tools
from ledgerizer.tools.trial_balance import register_trial_balance_tools

logger = logging.getLogger(__name__)


def create_server() -> FastMCP:
    """
    Create and configure the Ledgerizer MCP server.

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(
        name="ledgerizer",
        instructions="""
Ledgerizer provides trial balance analysis across multiple Xero
organizations (legal entities). You can:

- List connected organizations (get_organizations)
- Get one organization's trial balance as of a date (get_trial_balance)
- Get a consolidated trial balance across every connected organization
  (get_consolidated_trial_balance)
- Compare an organization's trial balance between two dates (compare_periods)
- Triage an out-of-balance trial balance (investigate_imbalance)
- Check cash, the chart of accounts, manual journals, and outstanding invoices

Organizations can be addressed by tenant_id or by (partial) organization_name.
Dates are YYYY-MM-DD and default to today.

Trial balances combine the Balance Sheet with a single-day P&L, so revenue
and expense figures are cumulative-to-date snapshots, not period activity.
Keep that in mind when reading revenue/expense changes in compare_periods.

For investigating an imbalance:
- investigate_imbalance() rates severity and flags likely accounts (advisory only)
- compare_periods() narrows down when balances moved
- get_journal_entries() finds manual postings affecting an account
- find_unbalanced_transactions() flags manual journals that don't net to zero
- get_account_history() lists the journal movements of one account
- analyze_equity_movements() tracks when an equity reserve moved
- get_chart_of_accounts() confirms how an account is classified
""",
    )

    # Register all tools with access to the client factory
    register_organization_tools(mcp, get_client)
    register_trial_balance_tools(mcp, get_client)
    register_account_tools(mcp, get_client)
    register_ledger_tools(mcp, get_client)

    return mcp


def main() -> None:
    """Run the MCP server."""
    logging.basicConfig(
        level=os.environ.get("LEDGERIZER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    server = create_server()
    server.run()


if __name__ == "__main__":
    main()
