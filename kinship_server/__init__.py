"""Kinship Server - FastMCP server for multi-tenant family trees.

Keeps parent, child and spouse links consistent as people are added, edited
and removed, and rebuilds the family trees that contain the caller.

Usage:
    kinship-server --family-id FAM123 --email me@example.com --role admin
    KINSHIP_FAMILY_ID=FAM123 python -m kinship_server
"""

import logging

from fastmcp import FastMCP

from .mcp_resources import register_resources
from .mcp_tools import register_tools
from .state import configure
from .telemetry import initialize_tracing

logger = logging.getLogger(__name__)

# Initialize tracing FIRST (before creating server)
# No-op unless KINSHIP_TRACING_ENABLED is 'true'
initialize_tracing()

mcp = FastMCP("Kinship Family Tree Server")

register_tools(mcp)
register_resources(mcp)

_initialized = False


def initialize():
    """Configure from env vars and open the person store.

    Safe to call multiple times.
    """
    global _initialized
    if _initialized:
        return
    configure()
    _initialized = True
    logger.info("Kinship server initialized")


__all__ = ["mcp", "initialize"]
