"""Persistent settings and per-skill version state.

Everything lives in one JSON document. The store is owned by the application
root and passed to the installer and version tracker; every mutation is a
read-modify-write followed by a save, so it expects a single writer.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from skills_manager.core.types import Settings, SourceKind, StoreDocument, VersionState

logger = logging.getLogger(__name__)

# Application home (overridable with SKILLS_MANAGER_HOME)
DEFAULT_HOME = Path(os.environ.get("SKILLS_MANAGER_HOME", Path.home() / ".skills-manager"))

# Default skills directory (overridable with SKILLS_DIR)
DEFAULT_SKILLS_DIR = Path(os.environ.get("SKILLS_DIR", DEFAULT_HOME / "skills"))

# State document file name
STATE_FILE_NAME = "state.json"


class StateStore:
    """Settings plus a mapping from local skill id to VersionState."""

    def __init__(self, path: Path | str | None = None) -> None:
        """
        Initialize the store.

        Args:
            path: JSON document to persist to. None keeps state in memory only.
        """
        self.path = Path(path) if path is not None else None
        self._data = StoreDocument()

    @classmethod
    def open(cls, path: Path | str | None = None) -> StateStore:
        """Create a store at path (default: ~/.skills-manager/state.json) and load it."""
        store = cls(path if path is not None else DEFAULT_HOME / STATE_FILE_NAME)
        store.load()
        return store

    def load(self) -> None:
        """Load the document, keeping defaults for anything missing or unreadable."""
        if self.path is None or not self.path.exists():
            self._data = StoreDocument()
            return
        try:
            raw: dict[str, Any] = json.loads(self.path.read_text(encoding="utf-8"))
            self._data = StoreDocument.model_validate(raw)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.error("Failed to load state from %s: %s", self.path, e)
            self._data = StoreDocument()

    def save(self) -> None:
        """Write the document atomically (temp file + rename)."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = self._data.model_dump_json(indent=2)
        fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ----- settings -------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._data.settings

    def update_settings(self, **changes: Any) -> Settings:
        """Apply and persist settings changes."""
        self._data.settings = self._data.settings.model_copy(update=changes)
        self.save()
        return self._data.settings

    def skills_dir(self) -> Path:
        """Configured skills directory, falling back to the default."""
        if self.settings.skills_dir:
            return Path(self.settings.skills_dir).expanduser()
        return DEFAULT_SKILLS_DIR

    def github_token(self) -> str | None:
        """Configured token, falling back to the GITHUB_TOKEN environment variable."""
        token = self.settings.github_token or os.environ.get("GITHUB_TOKEN", "")
        return token.strip() or None

    # ----- skill state ----------------------------------------------------

    def get(self, bundle_id: str) -> VersionState | None:
        state = self._data.skills.get(bundle_id)
        return state.model_copy() if state is not None else None

    def set(self, bundle_id: str, state: VersionState) -> None:
        self._data.skills[bundle_id] = state.model_copy()
        self.save()

    def remove(self, bundle_id: str) -> bool:
        removed = self._data.skills.pop(bundle_id, None) is not None
        if removed:
            self.save()
        return removed

    def all(self) -> dict[str, VersionState]:
        return {name: state.model_copy() for name, state in self._data.skills.items()}

    def by_source(self, source: SourceKind) -> list[tuple[str, VersionState]]:
        """All skills installed from a given source kind."""
        return [(name, state) for name, state in self.all().items() if state.source == source]

    def updatable(self) -> list[tuple[str, VersionState]]:
        """Remote skills that are not frozen."""
        return [
            (name, state)
            for name, state in self.by_source(SourceKind.REMOTE)
            if not state.frozen
        ]

    def set_frozen(self, bundle_id: str, frozen: bool) -> bool:
        """Set the frozen flag. Returns False if the skill is unknown."""
        state = self._data.skills.get(bundle_id)
        if state is None:
            return False
        state.frozen = frozen
        self.save()
        return True
