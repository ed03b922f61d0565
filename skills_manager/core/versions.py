"""Version coercion, update checks and freeze state."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, NamedTuple

from skills_manager.core.errors import SkillsManagerError
from skills_manager.core.types import UpdateCheckResult

if TYPE_CHECKING:
    from skills_manager.core.store import StateStore
    from skills_manager.remote.github import GitHubClient

logger = logging.getLogger(__name__)

# Tag written to manifests when a release carries none
BASELINE_VERSION = "1.0.0"

_COERCE_RE = re.compile(r"(?<!\d)(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?!\d)")


class Version(NamedTuple):
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def coerce_version(text: str | None) -> Version | None:
    """
    Coerce a loose version string into a comparable Version.

    The first ``major[.minor[.patch]]`` run wins, so ``v2``, ``2.1`` and
    ``release-2.1.0`` all coerce; missing parts default to 0.

    Returns:
        Version, or None if the string holds no number
    """
    if not text:
        return None
    match = _COERCE_RE.search(text)
    if not match:
        return None
    major, minor, patch = match.groups()
    return Version(int(major), int(minor or 0), int(patch or 0))


class VersionTracker:
    """Answers update-available queries and manages the frozen flag."""

    def __init__(self, store: StateStore, client: GitHubClient) -> None:
        self.store = store
        self.client = client

    async def check_for_update(
        self,
        repo_id: str,
        local_version: str,
        token: str | None = None,
    ) -> UpdateCheckResult | None:
        """
        Compare a local version against the latest stable release.

        Returns:
            UpdateCheckResult, or None when no comparison is possible (no
            release, unparseable version, or a fetch error). Never raises.
        """
        client = self.client.with_token(token) if token else self.client
        try:
            latest = await client.fetch_latest_release(repo_id)
        except SkillsManagerError as e:
            logger.info("Update check for %s unavailable: %s", repo_id, e)
            return None
        if latest is None:
            return None

        local = coerce_version(local_version)
        remote = coerce_version(latest.tag)
        if local is None or remote is None:
            return None

        return UpdateCheckResult(has_update=remote > local, latest_version=latest.tag)

    async def check_bundle(self, bundle_id: str) -> UpdateCheckResult | None:
        """Check a tracked remote skill for an update."""
        state = self.store.get(bundle_id)
        if state is None or not state.repo_id or not state.version:
            return None
        return await self.check_for_update(state.repo_id, state.version)

    async def check_all_updates(self) -> dict[str, UpdateCheckResult]:
        """
        Check every remote, non-frozen skill for updates.

        Returns:
            Mapping of skill id to result, for skills where a comparison was possible
        """
        results: dict[str, UpdateCheckResult] = {}
        for bundle_id, state in self.store.updatable():
            if not state.repo_id or not state.version:
                continue
            result = await self.check_for_update(state.repo_id, state.version)
            if result is not None:
                results[bundle_id] = result
        return results

    def freeze(self, bundle_id: str) -> bool:
        return self.store.set_frozen(bundle_id, True)

    def unfreeze(self, bundle_id: str) -> bool:
        return self.store.set_frozen(bundle_id, False)

    def toggle_frozen(self, bundle_id: str) -> bool:
        """Flip the frozen flag. Returns False if the skill is unknown."""
        state = self.store.get(bundle_id)
        if state is None:
            return False
        return self.store.set_frozen(bundle_id, not state.frozen)

    def is_frozen(self, bundle_id: str) -> bool:
        state = self.store.get(bundle_id)
        return bool(state and state.frozen)
