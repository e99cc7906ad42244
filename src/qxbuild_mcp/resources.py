"""MCP Resources for builder state."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from .build import BuilderRegistry


def register_resources(mcp: FastMCP, registry: BuilderRegistry) -> None:
    """Register MCP resources."""

    @mcp.resource("builds://state", mime_type="application/json")
    async def builds_state_resource() -> str:
        """Builders grouped by qx.build file (JSON).

        Contains: state, running build ids, status line, diagnostic counts.
        Updates when: builders start/stop, builds start, qx.build changes.
        """
        return json.dumps(registry.to_dict(), indent=2)

    @mcp.resource("builds://diagnostics", mime_type="application/json")
    async def builds_diagnostics_resource() -> str:
        """Diagnostics of the latest build of every builder (JSON).

        Keyed by builder, then by file path (or workspace directory).
        """
        return json.dumps(registry.context.diagnostics.to_dict(), indent=2)

    @mcp.resource("builds://notifications", mime_type="application/json")
    async def builds_notifications_resource() -> str:
        """User-visible notifications (JSON): config errors, syntax errors, restarts."""
        return json.dumps([n.to_dict() for n in registry.context.notifications], indent=2)
