"""MCP Server for qx.build builders."""

from __future__ import annotations

import asyncio
import logging

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .build import BuilderRegistry, BuildOrchestrator
from .config import sample_build_file
from .diagnostics import DiagnosticSeverity
from .resources import register_resources
from .settings import Settings
from .utils.project import get_workspace_roots

logger = logging.getLogger(__name__)

# Global registry (one per server process)
_registry: BuilderRegistry | None = None


def get_registry() -> BuilderRegistry:
    """Get or create the builder registry."""
    global _registry
    if _registry is None:
        _registry = BuilderRegistry(settings=Settings.from_env())
    return _registry


async def ensure_builders(ctx: Context | None, registry: BuilderRegistry) -> None:
    """Discover builders on first use."""
    if registry.workspaces:
        return
    roots = await get_workspace_roots(ctx)
    await registry.refresh([str(root) for root in roots])


def _diagnostics_for(builder: BuildOrchestrator, severity: str | None) -> dict:
    result = {}
    for target, items in builder.diagnostics:
        if severity:
            items = [d for d in items if d.severity.value == severity]
        if items:
            result[target] = [d.to_dict() for d in items]
    return result


def create_server(settings: Settings | None = None) -> FastMCP:
    """Create and configure the MCP server."""
    global _registry
    if settings is not None:
        _registry = BuilderRegistry(settings=settings)
    registry = get_registry()
    mcp = FastMCP("qxbuild-mcp")

    async def notify_state_changed(ctx: Context) -> None:
        """Notify client that builds://state resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl("builds://state"))
        except Exception:
            pass  # Notification failure shouldn't break the tool

    # ============== Builder Tools ==============

    @mcp.tool()
    async def list_builders(ctx: Context) -> dict:
        """List every builder found in qx.build files of the workspace.

        Each builder includes: name, configFile, state (stopped/watching),
        whether a build is running, and diagnostic counts per severity.
        """
        try:
            await ensure_builders(ctx, registry)
            return {"success": True, "data": registry.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def reload_builders(ctx: Context) -> dict:
        """Re-discover qx.build files and reconcile their builders.

        Builders whose config is unchanged keep running; changed builders
        restart; builders removed from qx.build are stopped.
        """
        try:
            roots = await get_workspace_roots(ctx)
            config_files = await registry.refresh([str(root) for root in roots])
            await notify_state_changed(ctx)
            return {"success": True, "data": {"configFiles": config_files}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def start_builder(ctx: Context, name: str = "all", config_file: str | None = None) -> dict:
        """
        Build and keep rebuilding on every source change (watch mode).

        Args:
            name: Builder name, or "all"
            config_file: qx.build file, required only when the name is ambiguous
        """
        try:
            await ensure_builders(ctx, registry)
            started = []
            for builder in registry.select(name, config_file):
                if not builder.is_watching:
                    await builder.start()
                    started.append(builder.name)
            await notify_state_changed(ctx)
            return {"success": True, "data": {"started": started}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def stop_builder(ctx: Context, name: str = "all", config_file: str | None = None) -> dict:
        """
        Stop watching and kill any running build.

        Args:
            name: Builder name, or "all"
            config_file: qx.build file, required only when the name is ambiguous
        """
        try:
            await ensure_builders(ctx, registry)
            stopped = []
            for builder in registry.select(name, config_file):
                await builder.stop()
                stopped.append(builder.name)
            await notify_state_changed(ctx)
            return {"success": True, "data": {"stopped": stopped}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def build_once(
        ctx: Context,
        name: str,
        config_file: str | None = None,
        wait: bool = True,
        timeout: float = 300.0,
    ) -> dict:
        """
        Run a single build without watching.

        Any running build of the builder is killed first. With wait=True the
        result includes the diagnostics and the tail of the build output.

        Args:
            name: Builder name
            config_file: qx.build file, required only when the name is ambiguous
            wait: Wait for the build to finish
            timeout: Seconds to wait
        """
        try:
            await ensure_builders(ctx, registry)
            builder = registry.get(name, config_file)
            build_id = await builder.build()
            data: dict = {"buildId": build_id}
            if wait:
                try:
                    await asyncio.wait_for(builder.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    data["timedOut"] = True
                data["diagnostics"] = _diagnostics_for(builder, None)
                data["output"] = registry.context.output.tail(builder.key, 50)
            await notify_state_changed(ctx)
            return {"success": True, "data": data}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_diagnostics(
        ctx: Context,
        name: str = "all",
        config_file: str | None = None,
        severity: str | None = None,
    ) -> dict:
        """
        Get compiler diagnostics of the latest build, grouped by file.

        Issues not attributable to a source file are reported against the
        workspace directory.

        Args:
            name: Builder name, or "all"
            config_file: qx.build file, required only when the name is ambiguous
            severity: Filter: error, warning, information or hint
        """
        try:
            if severity is not None:
                severity = DiagnosticSeverity(severity).value
            await ensure_builders(ctx, registry)
            data = {
                builder.key: _diagnostics_for(builder, severity)
                for builder in registry.select(name, config_file)
            }
            return {"success": True, "data": data}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def inspect_config(ctx: Context, name: str, config_file: str | None = None) -> dict:
        """
        Show the fully resolved configuration of a builder.

        All JSON pointers (file#dot.path) and build pointers (dir@builder)
        are expanded.
        """
        try:
            await ensure_builders(ctx, registry)
            builder = registry.get(name, config_file)
            return {"success": True, "data": builder.to_json()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_build_output(
        ctx: Context, name: str, config_file: str | None = None, lines: int = 50
    ) -> dict:
        """Get the last N lines of a builder's output.

        The user cannot see this output directly - summarize relevant
        information for them.

        Args:
            name: Builder name
            config_file: qx.build file, required only when the name is ambiguous
            lines: Number of lines to return (default 50)
        """
        try:
            await ensure_builders(ctx, registry)
            builder = registry.get(name, config_file)
            all_lines = registry.context.output.lines(builder.key)
            tail = registry.context.output.tail(builder.key, lines)
            return {
                "success": True,
                "data": {
                    "total_lines": len(all_lines),
                    "returned_lines": len(tail),
                    "status": builder.status,
                    "output": "\n".join(tail),
                },
            }
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_notifications(clear: bool = False) -> dict:
        """Get user-visible notifications: config errors, syntax errors, restarts."""
        try:
            notifications = [n.to_dict() for n in registry.context.notifications]
            if clear:
                registry.context.notifications.clear()
            return {"success": True, "data": {"notifications": notifications}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def sample_build_config() -> dict:
        """Get an example qx.build file to start from."""
        return {"success": True, "data": sample_build_file()}

    # ============== Prompts ==============

    @mcp.prompt()
    def build_prompt() -> list[dict]:
        """Guide for working with qx.build builders."""
        return [
            {
                "role": "user",
                "content": """Help me build my Qooxdoo project.

Workflow:
1. `list_builders()` to see the builders defined in qx.build files
2. `start_builder(name)` to build and rebuild on every source change,
   or `build_once(name)` for a single build
3. `get_diagnostics(name)` to read compiler errors and warnings per file
4. Fix the reported issues; watching builders rebuild automatically
5. `stop_builder(name)` when done

If a builder is missing, check `get_notifications()` for qx.build errors and
`inspect_config(name)` for the resolved configuration.
""",
            },
        ]

    register_resources(mcp, registry)

    logger.info("qxbuild MCP Server initialized")
    return mcp


async def shutdown() -> None:
    """Stop every builder of the global registry."""
    if _registry is not None:
        await _registry.close()

