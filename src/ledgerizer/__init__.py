# ABOUTME: Ledgerizer package for Xero trial balance MCP integration
# ABOUTME: Exports create_server function and version info

from ledgerizer.server import create_server

__version__ = "0.1.0"
__all__ = ["create_server", "__version__"]
