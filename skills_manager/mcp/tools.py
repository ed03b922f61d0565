"""MCP Tool definitions for the skills manager.

Provides 6 tools with the skills_ prefix so an agent can manage its own skills:

- skills_install: Install from GitHub, a monorepo path or skills.sh
- skills_update: Update a GitHub-installed skill (frozen skills are refused)
- skills_uninstall: Remove a skill and its tracked state
- skills_scan: Threat-scan an installed skill
- skills_check_updates: Compare tracked skills against their latest releases
- skills_freeze: Pin or unpin a skill
"""

# pyright: reportUnusedFunction=false

from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from skills_manager.cli.installer import SkillInstaller
from skills_manager.core.types import InstallResult, RiskLevel
from skills_manager.core.versions import VersionTracker


PAST_TENSE = {"install": "Installed", "update": "Updated"}


def format_result(result: InstallResult, action: str = "install") -> str:
    """Render an InstallResult as tool output."""
    if result.success:
        return f"{PAST_TENSE[action]} '{result.bundle_name}'"
    errors = "\n".join(f"- {error}" for error in result.errors) or "- Unknown error"
    return f"Error: {action} failed\n{errors}"


def register_tools(mcp: FastMCP, installer: SkillInstaller) -> None:
    """
    Register all skill management tools on an MCP server.

    Args:
        mcp: FastMCP server instance
        installer: Installer sharing the server's store and GitHub client
    """
    tracker = VersionTracker(installer.store, installer.client)

    # ============================================
    # Tool 1: skills_install
    # ============================================

    @mcp.tool()
    async def skills_install(
        source: str = Field(description="owner/repo, owner/repo/path/to/skill, a GitHub URL or a skills.sh URL"),
        version: str = Field(default="", description="Release tag to install (default: latest stable release)"),
    ) -> str:
        """Install a skill into the skills directory.

        The skill is downloaded to a staging folder, validated (SKILL.md with
        name and description), and only then swapped into place. A failed
        install leaves any previous version untouched.

        Examples:
        - skills_install(source="owner/pdf-skill")
        - skills_install(source="https://github.com/owner/skills/tree/main/skills/pdf")
        - skills_install(source="owner/pdf-skill", version="v1.2.0")
        """
        result = await installer.install_source(source, version=version or None)
        output = format_result(result)
        if result.success:
            scan = installer.scan(result.bundle_name)
            if scan.risk_level != RiskLevel.CLEAN:
                findings = "\n".join(f"- {finding}" for finding in scan.findings)
                output += f"\nScan: {scan.risk_level.value}\n{findings}"
        return output

    # ============================================
    # Tool 2: skills_update
    # ============================================

    @mcp.tool()
    async def skills_update(
        name: str = Field(description="Installed skill name"),
        version: str = Field(default="", description="Release tag to update to (default: latest)"),
    ) -> str:
        """Update a GitHub-installed skill. Frozen skills are refused."""
        result = await installer.update(name, target_version=version or None)
        return format_result(result, action="update")

    # ============================================
    # Tool 3: skills_uninstall
    # ============================================

    @mcp.tool()
    def skills_uninstall(
        name: str = Field(description="Installed skill name"),
    ) -> str:
        """Remove an installed skill and forget its version state."""
        try:
            installer.skill_path(name)
        except ValueError as e:
            return f"Error: {e}"
        if installer.delete(name):
            return f"Uninstalled '{name}'"
        return f"Error: could not remove files of '{name}' (state entry removed)"

    # ============================================
    # Tool 4: skills_scan
    # ============================================

    @mcp.tool()
    def skills_scan(
        name: str = Field(description="Installed skill name"),
    ) -> str:
        """Scan a skill's SKILL.md and scripts/ for risky commands and prompt injection.

        Returns JSON with the overall risk level (clean, warning or danger)
        and one finding per matched pattern per file.
        """
        try:
            path = installer.skill_path(name)
        except ValueError as e:
            return f"Error: {e}"
        if not installer.fs.is_dir(path):
            return f"Error: skill '{name}' not found"
        return installer.scan(name).model_dump_json(indent=2)

    # ============================================
    # Tool 5: skills_check_updates
    # ============================================

    @mcp.tool()
    async def skills_check_updates() -> str:
        """Check every non-frozen GitHub-installed skill for a newer release."""
        results = await tracker.check_all_updates()
        report = {
            name: {
                "current": state.version,
                "latest": results[name].latest_version if name in results else None,
                "has_update": results[name].has_update if name in results else None,
            }
            for name, state in installer.store.updatable()
        }
        return json.dumps(report, indent=2)

    # ============================================
    # Tool 6: skills_freeze
    # ============================================

    @mcp.tool()
    def skills_freeze(
        name: str = Field(description="Installed skill name"),
        frozen: bool = Field(default=True, description="True to pin the skill, False to allow updates again"),
    ) -> str:
        """Pin a skill at its current version, or unpin it."""
        if not (tracker.freeze(name) if frozen else tracker.unfreeze(name)):
            return f"Error: skill '{name}' is not tracked"
        return f"{'Frozen' if frozen else 'Unfrozen'} '{name}'"
