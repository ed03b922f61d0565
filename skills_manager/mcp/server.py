"""MCP Server for the skills manager.

This module provides the main entry point for the MCP server.
"""

from __future__ import annotations

import argparse
import logging

from mcp.server.fastmcp import FastMCP

from skills_manager.cli.installer import SkillInstaller
from skills_manager.core.store import StateStore
from skills_manager.mcp.tools import register_tools
from skills_manager.remote.github import GitHubClient


def create_server(
    store: StateStore,
    skills_dir: str | None = None,
    token: str | None = None,
) -> FastMCP:
    """
    Create and configure an MCP server with skill management tools.

    The server provides 6 tools:
    - skills_install: Install a skill from GitHub or skills.sh
    - skills_update: Update a GitHub-installed skill
    - skills_uninstall: Remove a skill
    - skills_scan: Threat-scan an installed skill
    - skills_check_updates: Check tracked skills for newer releases
    - skills_freeze: Pin or unpin a skill

    Args:
        store: State store the tools read and write
        skills_dir: Skills directory (default: the store's setting)
        token: GitHub token (default: settings, then GITHUB_TOKEN)

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(
        name="skills-manager",
    )

    client = GitHubClient(token=token or store.github_token())
    installer = SkillInstaller(store, client=client, skills_dir=skills_dir)
    register_tools(mcp, installer)

    return mcp


def main() -> None:
    """Main entry point for the MCP server CLI."""
    parser = argparse.ArgumentParser(
        description="Skills Manager MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start server (default mode)
  skills-manager-server

  # Start with a custom skills directory
  skills-manager-server --skills-dir /path/to/skills

  # Start with SSE transport
  skills-manager-server --transport sse

Environment Variables:
  SKILLS_MANAGER_HOME: State directory (default: ~/.skills-manager)
  SKILLS_DIR: Skills directory (default: $SKILLS_MANAGER_HOME/skills)
  GITHUB_TOKEN: Token for higher GitHub API rate limits
        """,
    )

    parser.add_argument(
        "--skills-dir", "-s",
        type=str,
        default=None,
        help="Skills directory",
    )

    parser.add_argument(
        "--state",
        type=str,
        default=None,
        help="State file (default: ~/.skills-manager/state.json)",
    )

    parser.add_argument(
        "--transport", "-t",
        type=str,
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress all logging output",
    )

    args = parser.parse_args()

    # Suppress logging if --quiet is set
    if args.quiet:
        logging.disable(logging.CRITICAL)
        logging.getLogger().handlers = []
        logging.getLogger("mcp").setLevel(logging.CRITICAL)
        logging.getLogger("uvicorn").setLevel(logging.CRITICAL)

    store = StateStore.open(args.state)
    mcp = create_server(store, skills_dir=args.skills_dir)

    # Run server
    if args.transport == "stdio":
        mcp.run(transport="stdio")
    elif args.transport == "sse":
        mcp.run(transport="sse")


if __name__ == "__main__":
    main()
