# ABOUTME: Organization tools for connected Xero tenants
# ABOUTME: List active/expired connections and check the token store

from typing import TYPE_CHECKING

from ledgerizer.auth import token_file
from ledgerizer.client import with_auth_retry

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from ledgerizer.xero import XeroSession


def register_organization_tools(mcp: "FastMCP", get_client: "Callable") -> None:
    """Register organization tools with the MCP server."""

    @mcp.tool
    @with_auth_retry
    async def get_organizations() -> dict:
        """
        List the Xero organizations with stored credentials.

        Active organizations can be queried by tenant_id or by
        organization_name. Expired ones need to be reconnected.

        Returns:
            Dict with active and expired organizations
        """
        session: XeroSession = await get_client()
        entities = await session.token_store.list_entities()

        return {
            "total": len(entities),
            "active": [
                {"tenant_id": e.entity_id, "tenant_name": e.display_name}
                for e in entities
                if e.is_usable
            ],
            "expired": [
                {"tenant_id": e.entity_id, "tenant_name": e.display_name}
                for e in entities
                if not e.is_usable
            ],
        }

    @mcp.tool
    async def test_connection() -> dict:
        """
        Check that the token store is readable and report connection counts.

        Returns:
            Token store location and active/expired counts
        """
        session: XeroSession = await get_client()
        entities = await session.token_store.list_entities()
        active = [e for e in entities if e.is_usable]

        path = token_file()
        return {
            "token_file": str(path),
            "token_file_exists": path.exists(),
            "connections": len(entities),
            "active_connections": len(active),
            "active_organizations": [e.display_name for e in active],
        }
