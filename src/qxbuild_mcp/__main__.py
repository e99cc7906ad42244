"""Entry point for qxbuild-mcp server."""

import argparse
import asyncio
import logging
import os
import sys

from .server import create_server, get_registry, shutdown
from .settings import Settings
from .utils.project import configure_workspaces, get_workspace_roots_sync


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="qxbuild MCP Server - watch-mode Qooxdoo builds via MCP"
    )
    parser.add_argument(
        "--workspace",
        action="append",
        default=[],
        help="Workspace directory to search for qx.build files. May be repeated.",
    )
    parser.add_argument(
        "--project-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect the workspace by searching upward from the current "
        "working directory for a qx.build file (or .git). "
        "Cannot be used with --workspace.",
    )
    parser.add_argument(
        "--compiler",
        type=str,
        default=None,
        help="Compiler command (default: $QXBUILD_COMPILER or 'qx compile').",
    )
    return parser.parse_args(argv)


async def main() -> None:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args()
    if args.project_from_cwd and args.workspace:
        logger.error("--project-from-cwd cannot be used with --workspace")
        sys.exit(1)

    configure_workspaces(
        workspaces=args.workspace,
        use_project_from_cwd=args.project_from_cwd,
        startup_cwd=os.getcwd(),
    )
    settings = Settings.from_env()
    if args.compiler:
        settings.compiler = args.compiler

    mcp = create_server(settings)
    workspaces = [str(p) for p in get_workspace_roots_sync()]
    logger.info(f"Starting qxbuild MCP Server (workspaces: {workspaces})...")
    await get_registry().refresh(workspaces)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        await shutdown()
        logger.info("Server stopped")


def run() -> None:
    """Run the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
