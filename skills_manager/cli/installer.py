"""Skill installer module.

Installs skills from GitHub repositories, monorepo subdirectories, skills.sh
catalog entries and zip archives, registers local skill folders, and updates
or removes installed skills.

Every install follows the same protocol: write to a hidden staging directory,
validate it, then promote it over the final path with a backup that is
restored if the swap fails.
"""

from __future__ import annotations

import logging
import os
import zipfile
from collections.abc import Awaitable
from pathlib import Path

from skills_manager.core.archive import read_archive, split_bundles
from skills_manager.core.errors import (
    FrozenError,
    NoManifestError,
    NotFoundError,
    SkillsManagerError,
    UnrecognizedSourceError,
    ValidationFailedError,
)
from skills_manager.core.filesystem import FileSystem, LocalFileSystem
from skills_manager.core.frontmatter import MANIFEST_TEMPLATE, TemplateField, backfill, parse_frontmatter, set_fields
from skills_manager.core.scanner import ScanCache, ThreatScanner
from skills_manager.core.staging import cleanup, promote, staging_path, write_file_set
from skills_manager.core.store import StateStore
from skills_manager.core.types import (
    ArchiveInstallResult,
    BundleLocator,
    FileSet,
    InstallResult,
    LocatorKind,
    ReleaseDescriptor,
    ScanResult,
    SourceKind,
    VersionState,
    utc_now,
)
from skills_manager.core.validator import SKILL_FILE_NAME, read_declared_name, validate_bundle
from skills_manager.core.versions import BASELINE_VERSION
from skills_manager.remote.github import GitHubClient
from skills_manager.remote.locator import find_subpath
from skills_manager.remote.resolver import resolve

logger = logging.getLogger(__name__)


class SkillInstaller:
    """Handles skill installation, update and removal."""

    def __init__(
        self,
        store: StateStore,
        client: GitHubClient | None = None,
        fs: FileSystem | None = None,
        skills_dir: Path | str | None = None,
    ) -> None:
        """
        Initialize the installer.

        Args:
            store: State store owned by the caller
            client: GitHub client (created on first use from the store's token)
            fs: FileSystem to write through (defaults to the local disk)
            skills_dir: Directory to install skills to (defaults to the store's setting)
        """
        self.store = store
        self._client = client
        self.fs = fs or LocalFileSystem()
        self.skills_dir = Path(skills_dir) if skills_dir is not None else store.skills_dir()
        self.scan_cache = ScanCache(ThreatScanner(self.fs))

    @property
    def client(self) -> GitHubClient:
        """GitHub client, only opened once an operation needs the network."""
        if self._client is None:
            self._client = GitHubClient(token=self.store.github_token())
        return self._client

    @property
    def has_client(self) -> bool:
        return self._client is not None

    # ----- paths and metadata ---------------------------------------------

    def skill_path(self, bundle_id: str) -> Path:
        """Final install directory of a skill."""
        if not bundle_id or "/" in bundle_id or "\\" in bundle_id or bundle_id.startswith("."):
            raise ValueError(f"Invalid skill id: '{bundle_id}'")
        return self.skills_dir / bundle_id

    def manifest_template(self) -> list[TemplateField]:
        """Fields backfilled into SKILL.md on install when missing."""
        category = self.store.settings.default_category
        return [
            TemplateField(t.field, category) if t.field == "category" and category else t
            for t in MANIFEST_TEMPLATE
        ]

    def _normalize_manifest(
        self,
        bundle_id: str,
        stamps: dict[str, str],
        version: str | None = None,
    ) -> None:
        """Backfill template fields and stamp provenance into SKILL.md."""
        skill_file = self.skill_path(bundle_id) / SKILL_FILE_NAME
        content = self.fs.read_text(skill_file)

        updated = backfill(content, self.manifest_template())
        fields = dict(stamps)
        if version:
            fields["version"] = version
        elif not parse_frontmatter(updated).get("version"):
            fields["version"] = BASELINE_VERSION
        updated = set_fields(updated, fields)

        if updated != content:
            self.fs.write(skill_file, updated)

    def _record(self, bundle_id: str, state: VersionState) -> None:
        self.store.set(bundle_id, state)
        self.scan_cache.invalidate(bundle_id)

    # ----- staging protocol -----------------------------------------------

    def _stage_and_promote(self, bundle_id: str, files: FileSet) -> None:
        """
        Write files to staging, validate, and promote to the final path.

        Staging is always removed afterwards; a prior install is only replaced
        once the staged copy has validated.

        Raises:
            NoManifestError: No SKILL.md in files
            ValidationFailedError: Staged content is not a valid skill
            PromotionError: The swap failed (the previous install is restored)
        """
        if SKILL_FILE_NAME not in files:
            raise NoManifestError(bundle_id)

        final = self.skill_path(bundle_id)
        staged = staging_path(self.skills_dir, bundle_id)
        try:
            write_file_set(self.fs, staged, files)
            validation = validate_bundle(self.fs, staged)
            if not validation.valid:
                raise ValidationFailedError(validation.errors)
            promote(self.fs, staged, final)
        finally:
            cleanup(self.fs, staged)
        self.scan_cache.invalidate(bundle_id)
        logger.info("Installed %s to %s", bundle_id, final)

    async def _guarded(self, bundle_name: str, operation: Awaitable[InstallResult]) -> InstallResult:
        """Run an install operation, converting errors to a failure result."""
        try:
            return await operation
        except ValidationFailedError as e:
            logger.warning("Validation failed for %s: %s", bundle_name, e)
            return InstallResult.failure(*e.errors, bundle_name=bundle_name)
        except SkillsManagerError as e:
            logger.error("Installing %s failed: %s", bundle_name, e)
            return InstallResult.failure(str(e), bundle_name=bundle_name)
        except Exception as e:
            logger.exception("Unexpected error installing %s", bundle_name)
            return InstallResult.failure(f"Installation failed: {e}", bundle_name=bundle_name)

    # ----- network installs -----------------------------------------------

    async def install_source(
        self,
        source: str,
        version: str | None = None,
        token: str | None = None,
    ) -> InstallResult:
        """Resolve a source reference and install it."""
        try:
            locator = resolve(source)
        except UnrecognizedSourceError as e:
            return InstallResult.failure(str(e))
        return await self.install(locator, version=version, token=token)

    async def install(
        self,
        locator: BundleLocator,
        version: str | None = None,
        token: str | None = None,
    ) -> InstallResult:
        """
        Install a skill from a resolved locator.

        Args:
            locator: Where to fetch the skill from
            version: Release tag to install (standalone repositories only)
            token: Token overriding the client's for this install

        Returns:
            InstallResult indicating success or failure
        """
        client = self.client.with_token(token) if token else self.client

        if locator.kind == LocatorKind.STANDALONE:
            operation = self._install_repo(client, str(locator.repo_id), version)
        elif locator.kind == LocatorKind.MONOREPO:
            if version:
                logger.info("Ignoring version %s for monorepo skill %s", version, locator)
            operation = self._install_monorepo(client, str(locator.repo_id), str(locator.subpath))
        else:
            operation = self._install_indirect(client, str(locator.indirect_id), version)

        return await self._guarded(locator.bundle_id, operation)

    async def _resolve_release(
        self,
        client: GitHubClient,
        repo_id: str,
        version: str | None,
    ) -> ReleaseDescriptor | None:
        if not version:
            return await client.fetch_latest_release(repo_id)

        releases = await client.fetch_releases(repo_id)
        release = next((r for r in releases if r.tag == version), None)
        if release is None:
            # Prereleases are filtered from the list when stable ones exist
            release = await client.fetch_release_by_tag(repo_id, version)
        if release is None:
            raise NotFoundError(f"Release {version} not found for {repo_id}")
        return release

    async def _install_repo(
        self,
        client: GitHubClient,
        repo_id: str,
        version: str | None = None,
        bundle_id: str | None = None,
    ) -> InstallResult:
        bundle_id = bundle_id or repo_id.split("/")[-1]

        release = await self._resolve_release(client, repo_id, version)
        files = await client.fetch_bundle_files(repo_id, release)
        if SKILL_FILE_NAME not in files:
            raise NoManifestError(repo_id)

        self._stage_and_promote(bundle_id, files)

        tag = release.tag if release is not None and release.tag else None
        self._normalize_manifest(
            bundle_id,
            {
                "origin": SourceKind.REMOTE.value,
                "origin-repo": repo_id,
                "origin-url": f"https://github.com/{repo_id}",
            },
            version=tag,
        )
        self._record(bundle_id, VersionState(source=SourceKind.REMOTE, repo_id=repo_id, version=tag))
        return InstallResult.ok(bundle_id)

    async def _install_monorepo(
        self,
        client: GitHubClient,
        repo_id: str,
        subpath: str,
        bundle_id: str | None = None,
    ) -> InstallResult:
        subpath = subpath.strip("/")
        bundle_id = bundle_id or subpath.split("/")[-1]
        ref = await client.fetch_default_branch(repo_id)

        files = await client.fetch_subpath_files(repo_id, subpath, ref)
        if SKILL_FILE_NAME not in files:
            located = await find_subpath(client, repo_id, subpath, ref)
            if located is not None and located != subpath:
                logger.info("Resolved %s in %s to %s", subpath, repo_id, located or "<root>")
                subpath = located
                files = await client.fetch_subpath_files(repo_id, subpath, ref)
        if SKILL_FILE_NAME not in files:
            raise NoManifestError(f"{repo_id}/{subpath}")

        self._stage_and_promote(bundle_id, files)

        origin_repo = f"{repo_id}/{subpath}" if subpath else repo_id
        origin_url = f"https://github.com/{repo_id}/tree/{ref}/{subpath}" if subpath else f"https://github.com/{repo_id}"
        self._normalize_manifest(
            bundle_id,
            {
                "origin": SourceKind.REMOTE.value,
                "origin-repo": origin_repo,
                "origin-url": origin_url,
            },
        )
        self._record(
            bundle_id,
            VersionState(source=SourceKind.REMOTE, repo_id=repo_id, subpath=subpath or None),
        )
        return InstallResult.ok(bundle_id)

    async def _install_indirect(
        self,
        client: GitHubClient,
        indirect_id: str,
        version: str | None = None,
    ) -> InstallResult:
        source = await client.fetch_indirect_source(indirect_id)
        if source is None:
            return InstallResult.failure(f"Could not resolve skills.sh skill '{indirect_id}'")

        repo_id, subpath = source
        if not subpath:
            # Catalog ids look like owner/repo/skill; the tail is a locator hint
            parts = [p for p in indirect_id.split("/") if p]
            if len(parts) > 2:
                subpath = "/".join(parts[2:])
        if subpath:
            return await self._install_monorepo(client, repo_id, subpath)
        return await self._install_repo(client, repo_id, version)

    # ----- archive and local ----------------------------------------------

    async def install_from_archive(self, data: bytes) -> ArchiveInstallResult:
        """
        Install every skill contained in a zip archive.

        Each skill is staged, validated and promoted on its own; one skill's
        failure does not block the others.

        Args:
            data: Raw zip archive bytes

        Returns:
            ArchiveInstallResult listing installed skill ids and errors
        """
        result = ArchiveInstallResult()
        try:
            bundles = split_bundles(read_archive(data))
        except zipfile.BadZipFile as e:
            result.errors.append(f"Invalid zip archive: {e}")
            return result

        if not bundles:
            result.errors.append(f"No {SKILL_FILE_NAME} found in archive")
            return result

        for bundle_id, files in bundles.items():
            try:
                self._stage_and_promote(bundle_id, files)
                self._normalize_manifest(bundle_id, {"origin": SourceKind.ARCHIVE.value})
                self._record(bundle_id, VersionState(source=SourceKind.ARCHIVE))
                result.installed.append(bundle_id)
            except ValidationFailedError as e:
                result.errors.extend(f"{bundle_id}: {error}" for error in e.errors)
            except Exception as e:
                logger.exception("Installing %s from archive failed", bundle_id)
                result.errors.append(f"{bundle_id}: {e}")

        return result

    def register_local(self, path: Path | str) -> InstallResult:
        """
        Register an existing skill folder without copying it.

        The folder must sit directly in the skills directory, so that later
        scans and removals by id act on the registered files.

        Args:
            path: Skill directory, absolute or relative to the skills directory

        Returns:
            InstallResult with the skill's declared name
        """
        skill_dir = Path(path).expanduser()
        if not skill_dir.is_absolute():
            candidate = self.skills_dir / skill_dir
            skill_dir = candidate if self.fs.is_dir(candidate) else skill_dir.absolute()
        skill_dir = Path(os.path.normpath(skill_dir.absolute()))

        skills_root = Path(os.path.normpath(self.skills_dir.absolute()))
        if skill_dir.parent != skills_root or skill_dir.name.startswith("."):
            return InstallResult.failure(f"{skill_dir} is not a folder in the skills directory {self.skills_dir}")

        bundle_id = skill_dir.name
        existing = self.store.get(bundle_id)
        if existing is not None and existing.source != SourceKind.LOCAL:
            return InstallResult.failure(
                f"Skill '{bundle_id}' is already installed from {existing.source.value}",
                bundle_name=bundle_id,
            )

        try:
            validation = validate_bundle(self.fs, skill_dir)
            if not validation.valid:
                return InstallResult.failure(*validation.errors)

            name = read_declared_name(self.fs, skill_dir) or bundle_id
            self._record(bundle_id, VersionState(source=SourceKind.LOCAL))
            return InstallResult.ok(name)
        except Exception as e:
            logger.exception("Registering %s failed", skill_dir)
            return InstallResult.failure(f"Registration failed: {e}")

    # ----- update and delete ----------------------------------------------

    async def update(self, bundle_id: str, target_version: str | None = None) -> InstallResult:
        """
        Update a GitHub-installed skill to target_version (or the latest release).

        Frozen skills are rejected before any network or disk access.
        """
        state = self.store.get(bundle_id)
        if state is None:
            return InstallResult.failure(f"Skill '{bundle_id}' is not installed", bundle_name=bundle_id)
        if state.frozen:
            return InstallResult.failure(str(FrozenError(bundle_id)), bundle_name=bundle_id)
        if state.source != SourceKind.REMOTE or not state.repo_id:
            return InstallResult.failure("Not a GitHub-installed skill", bundle_name=bundle_id)

        if state.subpath:
            operation = self._install_monorepo(self.client, state.repo_id, state.subpath, bundle_id=bundle_id)
        else:
            operation = self._install_repo(self.client, state.repo_id, target_version, bundle_id=bundle_id)

        result = await self._guarded(bundle_id, operation)
        if result.success:
            fresh = self.store.get(bundle_id)
            if fresh is not None:
                self.store.set(
                    bundle_id,
                    fresh.model_copy(
                        update={"installed_at": state.installed_at, "last_updated_at": utc_now()}
                    ),
                )
        return result

    def delete(self, bundle_id: str) -> bool:
        """
        Remove a skill's files and its state entry.

        The state entry is removed even when deleting the files fails.

        Returns:
            True if the skill directory was removed (or already absent)
        """
        removed = True
        try:
            self.fs.remove_dir_recursive(self.skill_path(bundle_id))
        except Exception as e:
            logger.warning("Failed to remove files of %s: %s", bundle_id, e)
            removed = False

        try:
            self.store.remove(bundle_id)
        except Exception as e:
            logger.error("Failed to remove state of %s: %s", bundle_id, e)
            removed = False

        self.scan_cache.invalidate(bundle_id)
        return removed

    # ----- scanning -------------------------------------------------------

    def scan(self, bundle_id: str) -> ScanResult:
        """Threat scan of an installed skill, cached until its content changes."""
        return self.scan_cache.get(bundle_id, self.skill_path(bundle_id))
