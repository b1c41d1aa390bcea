"""
Shared helper for running chuk-mcp-towerview MCP tools directly from Python.

Registers every tool on a minimal stand-in for the MCP server and sets up an
in-memory artifact store, so demo scripts can call tools as plain async
functions without a transport layer.

Usage:
    from tool_runner import ToolRunner

    async def main():
        runner = ToolRunner()
        result = await runner.run("tower_visibility", lat=50.9, lng=6.9)
        print(result)
"""

from __future__ import annotations

import json
import os
from typing import Any

from chuk_mcp_towerview.core.tower_manager import ProgressCallback, TowerViewManager
from chuk_mcp_towerview.tools.discovery import register_discovery_tools
from chuk_mcp_towerview.tools.visibility import register_visibility_tools


class _MiniMCP:
    """Minimal MCP server that captures tools registered via @mcp.tool."""

    def __init__(self) -> None:
        self._tools: dict[str, Any] = {}

    def tool(self) -> Any:
        def decorator(fn: Any) -> Any:
            self._tools[fn.__name__] = fn
            return fn

        return decorator

    def get_tool(self, name: str) -> Any:
        return self._tools[name]


def _init_artifact_store() -> None:
    """Initialize an in-memory artifact store for demo use."""
    os.environ.setdefault("CHUK_ARTIFACTS_PROVIDER", "memory")
    from chuk_artifacts import ArtifactStore
    from chuk_mcp_server import set_global_artifact_store

    store = ArtifactStore(storage_provider="memory", session_provider="memory")
    set_global_artifact_store(store)


class ToolRunner:
    """
    Run chuk-mcp-towerview MCP tools directly from Python.

    run() returns parsed JSON, run_text() the human-readable output.
    An optional progress callback receives (job_id, percent) updates.
    """

    def __init__(self, progress_callback: ProgressCallback | None = None) -> None:
        _init_artifact_store()
        self._mcp = _MiniMCP()
        self.manager = TowerViewManager(progress_callback=progress_callback)
        register_discovery_tools(self._mcp, self.manager)
        register_visibility_tools(self._mcp, self.manager)

    @property
    def tool_names(self) -> list[str]:
        return list(self._mcp._tools.keys())

    async def run(self, tool_name: str, **kwargs: Any) -> dict[str, Any]:
        """Call a tool by name and return parsed JSON."""
        fn = self._mcp.get_tool(tool_name)
        return json.loads(await fn(**kwargs))

    async def run_text(self, tool_name: str, **kwargs: Any) -> str:
        """Call a tool by name with output_mode='text'."""
        fn = self._mcp.get_tool(tool_name)
        return await fn(output_mode="text", **kwargs)
