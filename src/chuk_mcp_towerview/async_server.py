#!/usr/bin/env python3
"""
Async Tower Visibility MCP Server using chuk-mcp-server

Computes which terrain around a tower is visible from its top, using
OpenTopography elevation rasters and an Earth-curvature corrected
line-of-sight test. Visibility rasters are stored in chuk-artifacts.

Storage is managed through chuk-mcp-server's built-in artifact store context.
"""

import logging

from chuk_mcp_server import ChukMCPServer

from .constants import ServerConfig
from .core.tower_manager import TowerViewManager
from .tools.discovery import register_discovery_tools
from .tools.visibility import register_visibility_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the MCP server instance
mcp = ChukMCPServer(ServerConfig.NAME)

# Create tower view manager instance
manager = TowerViewManager()

# Register all tool modules
register_discovery_tools(mcp, manager)
register_visibility_tools(mcp, manager)

# Run the server
if __name__ == "__main__":
    logger.info("Starting Tower Visibility MCP Server...")
    logger.info("Storage: Using chuk-mcp-server artifact store context")
    mcp.run(stdio=True)
