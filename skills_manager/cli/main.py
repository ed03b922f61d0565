"""CLI entry point for skills-manager.

Provides commands for installing, updating, pinning, scanning and removing
skills fetched from GitHub, skills.sh or zip archives.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from skills_manager.cli.installer import SkillInstaller
from skills_manager.core.store import DEFAULT_SKILLS_DIR, StateStore
from skills_manager.core.types import InstallResult, RiskLevel
from skills_manager.core.versions import VersionTracker
from skills_manager.remote.github import GitHubClient
from skills_manager.remote.registry import BOARDS, fetch_registry_page
from skills_manager.remote.resolver import resolve


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="skills-manager",
        description="Manage AI agent skills - install, update and scan skills from GitHub and skills.sh.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Install a skill from a GitHub repository (latest release)
  skills-manager install owner/my-skill

  # Install a specific release
  skills-manager install https://github.com/owner/my-skill --version v1.2.0

  # Install one skill from a repository holding many
  skills-manager install https://github.com/owner/skills/tree/main/skills/pdf

  # Install from the skills.sh catalog
  skills-manager install https://skills.sh/owner/skills/pdf

  # Install every skill in a zip archive
  skills-manager install-archive ./skills.zip

  # Pin a skill, then check everything else for updates
  skills-manager freeze my-skill
  skills-manager check-updates

  # Scan an installed skill for risky content
  skills-manager scan my-skill
        """,
    )

    # Global options
    parser.add_argument(
        "--dir", "-d",
        type=str,
        default=None,
        help=f"Skills directory (default: {DEFAULT_SKILLS_DIR})",
    )
    parser.add_argument(
        "--state",
        type=str,
        default=None,
        help="State file (default: ~/.skills-manager/state.json)",
    )
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="GitHub token (default: settings, then GITHUB_TOKEN)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only show errors",
    )
    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Install command
    install_parser = subparsers.add_parser(
        "install",
        help="Install a skill from GitHub or skills.sh",
        description="Fetch a skill, validate it and install it to the skills directory.",
    )
    install_parser.add_argument(
        "source",
        help="owner/repo, owner/repo/path, a GitHub URL or a skills.sh URL",
    )
    install_parser.add_argument(
        "--version", "-v",
        type=str,
        dest="release",
        default=None,
        help="Release tag to install (default: latest stable release)",
    )
    install_parser.add_argument(
        "--scan",
        action="store_true",
        help="Print a threat scan of the installed skill",
    )

    archive_parser = subparsers.add_parser(
        "install-archive",
        help="Install every skill in a zip archive",
        description="Install each folder containing a SKILL.md in a zip archive as its own skill.",
    )
    archive_parser.add_argument("path", help="Path to the zip archive")

    register_parser = subparsers.add_parser(
        "register",
        help="Track an existing local skill folder",
        description="Validate a skill folder in place and record it as a local skill.",
    )
    register_parser.add_argument("path", help="Skill folder inside the skills directory (absolute, or relative to it)")

    # Update command
    update_parser = subparsers.add_parser(
        "update",
        help="Update a GitHub-installed skill",
        description="Re-install a skill from its repository. Frozen skills are skipped.",
    )
    update_parser.add_argument("name", nargs="?", default=None, help="Skill to update")
    update_parser.add_argument(
        "--version", "-v",
        type=str,
        dest="release",
        default=None,
        help="Release tag to update to (default: latest stable release)",
    )
    update_parser.add_argument(
        "--all", "-a",
        action="store_true",
        help="Update every skill with a newer release (requires auto_update)",
    )

    # Uninstall command
    uninstall_parser = subparsers.add_parser(
        "uninstall",
        help="Uninstall a skill",
        description="Remove an installed skill and its tracked state.",
    )
    uninstall_parser.add_argument("name", help="Name of the skill to uninstall")

    freeze_parser = subparsers.add_parser("freeze", help="Pin a skill at its current version")
    freeze_parser.add_argument("name", help="Skill to pin")

    unfreeze_parser = subparsers.add_parser("unfreeze", help="Allow a pinned skill to update again")
    unfreeze_parser.add_argument("name", help="Skill to unpin")

    subparsers.add_parser(
        "check-updates",
        help="Check GitHub-installed skills for newer releases",
        description="Compare each non-frozen GitHub skill against its latest stable release.",
    )

    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan an installed skill for risky content",
        description="Check SKILL.md and scripts/ for risky commands and prompt injection.",
    )
    scan_parser.add_argument("name", help="Skill to scan")

    releases_parser = subparsers.add_parser(
        "releases",
        help="List releases of a skill repository",
    )
    releases_parser.add_argument("source", help="owner/repo or a GitHub URL")

    search_parser = subparsers.add_parser(
        "search",
        help="Show one page of the skills.sh leaderboard",
    )
    search_parser.add_argument(
        "--board", "-b",
        choices=BOARDS,
        default="all-time",
        help="Leaderboard to show (default: all-time)",
    )
    search_parser.add_argument(
        "--page", "-p",
        type=int,
        default=0,
        help="Zero-based page number",
    )

    return parser


def configure_logging(args: argparse.Namespace) -> None:
    """Configure logging from --verbose/--quiet."""
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    if not args.verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _open_store(args: argparse.Namespace) -> StateStore:
    return StateStore.open(Path(args.state).expanduser() if args.state else None)


def _make_installer(args: argparse.Namespace, store: StateStore) -> SkillInstaller:
    client = GitHubClient(token=args.token or store.github_token())
    return SkillInstaller(store, client=client, skills_dir=args.dir)


def _print_result(result: InstallResult, action: str = "Installed") -> int:
    if result.success:
        print(f"✓ {action} {result.bundle_name}")
        return 0
    label = f" {result.bundle_name}" if result.bundle_name else ""
    print(f"✗ Failed{label}:", file=sys.stderr)
    for error in result.errors:
        print(f"  {error}", file=sys.stderr)
    return 1


def _print_scan(installer: SkillInstaller, name: str) -> None:
    scan = installer.scan(name)
    if scan.risk_level == RiskLevel.CLEAN:
        print("  Scan: clean")
        return
    print(f"  Scan: {scan.risk_level.value}")
    for finding in scan.findings:
        print(f"    {finding}")


async def cmd_install(args: argparse.Namespace) -> int:
    """Handle the install command."""
    store = _open_store(args)
    installer = _make_installer(args, store)
    async with installer.client:
        print(f"Installing from {args.source}...")
        if args.release:
            print(f"  Using release: {args.release}")
        result = await installer.install_source(args.source, version=args.release)

    code = _print_result(result)
    if result.success:
        print(f"  Location: {installer.skill_path(result.bundle_name)}")
        if args.scan:
            _print_scan(installer, result.bundle_name)
    return code


async def cmd_install_archive(args: argparse.Namespace) -> int:
    """Handle the install-archive command."""
    path = Path(args.path).expanduser()
    try:
        data = path.read_bytes()
    except OSError as e:
        print(f"✗ Could not read {path}: {e}", file=sys.stderr)
        return 1

    store = _open_store(args)
    installer = _make_installer(args, store)
    async with installer.client:
        result = await installer.install_from_archive(data)

    for name in result.installed:
        print(f"✓ Installed {name}")
    for error in result.errors:
        print(f"✗ {error}", file=sys.stderr)
    return 0 if result.success else 1


def cmd_register(args: argparse.Namespace) -> int:
    """Handle the register command."""
    store = _open_store(args)
    installer = SkillInstaller(store, skills_dir=args.dir)
    return _print_result(installer.register_local(args.path), action="Registered")


async def cmd_update(args: argparse.Namespace) -> int:
    """Handle the update command."""
    store = _open_store(args)
    installer = _make_installer(args, store)

    if not args.all and not args.name:
        print("✗ Specify a skill name or --all", file=sys.stderr)
        return 1

    async with installer.client:
        if not args.all:
            return _print_result(await installer.update(args.name, args.release), action="Updated")

        if not store.settings.auto_update:
            print("✗ Automatic updates are disabled in settings (auto_update)", file=sys.stderr)
            return 1

        tracker = VersionTracker(store, installer.client)
        checks = await tracker.check_all_updates()
        pending = [name for name, check in checks.items() if check.has_update]
        if not pending:
            print("All skills are up to date")
            return 0

        code = 0
        for name in pending:
            print(f"Updating {name} to {checks[name].latest_version}...")
            code |= _print_result(await installer.update(name), action="Updated")
        return code


def cmd_uninstall(args: argparse.Namespace) -> int:
    """Handle the uninstall command."""
    store = _open_store(args)
    installer = SkillInstaller(store, skills_dir=args.dir)
    if store.get(args.name) is None and not installer.fs.exists(installer.skill_path(args.name)):
        print(f"✗ Skill '{args.name}' is not installed", file=sys.stderr)
        return 1

    if installer.delete(args.name):
        print(f"✓ Uninstalled {args.name}")
        return 0
    print(f"✗ Could not remove files of {args.name}; its state entry was removed", file=sys.stderr)
    return 1


def cmd_freeze(args: argparse.Namespace, frozen: bool) -> int:
    """Handle the freeze and unfreeze commands."""
    store = _open_store(args)
    if not store.set_frozen(args.name, frozen):
        print(f"✗ Skill '{args.name}' is not tracked", file=sys.stderr)
        return 1
    print(f"✓ {'Frozen' if frozen else 'Unfrozen'} {args.name}")
    return 0


async def cmd_check_updates(args: argparse.Namespace) -> int:
    """Handle the check-updates command."""
    store = _open_store(args)
    async with GitHubClient(token=args.token or store.github_token()) as client:
        tracker = VersionTracker(store, client)
        results = await tracker.check_all_updates()

    tracked = store.updatable()
    if not tracked:
        print("No GitHub-installed skills to check")
        return 0

    for name, state in tracked:
        check = results.get(name)
        if check is None:
            print(f"  {name}: unavailable")
        elif check.has_update:
            print(f"  {name}: {state.version} -> {check.latest_version}")
        else:
            print(f"  {name}: up to date ({state.version})")

    frozen = [name for name, state in store.all().items() if state.frozen]
    if frozen:
        print(f"Frozen: {', '.join(sorted(frozen))}")
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    """Handle the scan command."""
    store = _open_store(args)
    installer = SkillInstaller(store, skills_dir=args.dir)
    if not installer.fs.is_dir(installer.skill_path(args.name)):
        print(f"✗ Skill '{args.name}' is not installed", file=sys.stderr)
        return 1

    print(f"{args.name}:")
    _print_scan(installer, args.name)
    return 0


async def cmd_releases(args: argparse.Namespace) -> int:
    """Handle the releases command."""
    locator = resolve(args.source)
    if not locator.repo_id:
        print("✗ Releases can only be listed for GitHub repositories", file=sys.stderr)
        return 1

    store = _open_store(args)
    async with GitHubClient(token=args.token or store.github_token()) as client:
        releases = await client.fetch_releases(locator.repo_id)

    if not releases:
        print(f"No releases found for {locator.repo_id}")
        return 0
    for release in releases:
        marker = " (prerelease)" if release.is_prerelease else ""
        published = f"  {release.published_at}" if release.published_at else ""
        print(f"  {release.tag}{marker}{published}")
    return 0


async def cmd_search(args: argparse.Namespace) -> int:
    """Handle the search command."""
    store = _open_store(args)
    async with GitHubClient() as client:
        page = await fetch_registry_page(client.http, store.settings.registry_url, args.board, args.page)

    if not page.skills:
        print("No skills found")
        return 0
    for skill in page.skills:
        print(f"  {skill}")
        if skill.description:
            print(f"    {skill.description}")
    if page.has_more:
        print(f"More results: --page {page.page + 1}")
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    # If no command specified, print help
    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args)

    # Dispatch to command handler
    try:
        if args.command == "install":
            return asyncio.run(cmd_install(args))
        elif args.command == "install-archive":
            return asyncio.run(cmd_install_archive(args))
        elif args.command == "register":
            return cmd_register(args)
        elif args.command == "update":
            return asyncio.run(cmd_update(args))
        elif args.command == "uninstall":
            return cmd_uninstall(args)
        elif args.command == "freeze":
            return cmd_freeze(args, frozen=True)
        elif args.command == "unfreeze":
            return cmd_freeze(args, frozen=False)
        elif args.command == "check-updates":
            return asyncio.run(cmd_check_updates(args))
        elif args.command == "scan":
            return cmd_scan(args)
        elif args.command == "releases":
            return asyncio.run(cmd_releases(args))
        elif args.command == "search":
            return asyncio.run(cmd_search(args))
        else:
            parser.print_help()
            return 1
    except Exception as e:
        # install/update convert their own errors; this covers the read-only commands
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
