"""Tests for the persisted state store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from skills_manager.core.store import DEFAULT_SKILLS_DIR, StateStore
from skills_manager.core.types import SourceKind, VersionState


class TestStateStore:
    """Tests for StateStore persistence and queries."""

    def test_roundtrip(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = StateStore.open(path)
        store.set("demo", VersionState(source=SourceKind.REMOTE, repo_id="owner/demo", version="v1.0.0"))

        reopened = StateStore.open(path)

        state = reopened.get("demo")
        assert state is not None
        assert state.repo_id == "owner/demo"
        assert state.version == "v1.0.0"
        assert json.loads(path.read_text())["skills"]["demo"]["source"] == "remote"

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        store = StateStore.open(tmp_path / "nope" / "state.json")
        assert store.all() == {}
        assert store.settings.auto_update is True

    def test_corrupt_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json")

        store = StateStore.open(path)

        assert store.all() == {}

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = StateStore.open(tmp_path / "state.json")
        store.set("a", VersionState(source=SourceKind.LOCAL))
        store.set("b", VersionState(source=SourceKind.LOCAL))
        assert sorted(p.name for p in tmp_path.iterdir()) == ["state.json"]

    def test_get_returns_copy(self) -> None:
        """Test callers cannot mutate stored state in place."""
        store = StateStore()
        store.set("demo", VersionState(source=SourceKind.REMOTE, repo_id="owner/demo"))

        state = store.get("demo")
        assert state is not None
        state.frozen = True

        assert store.get("demo").frozen is False

    def test_remove(self) -> None:
        store = StateStore()
        store.set("demo", VersionState(source=SourceKind.LOCAL))
        assert store.remove("demo") is True
        assert store.remove("demo") is False
        assert store.get("demo") is None

    def test_by_source_and_updatable(self) -> None:
        store = StateStore()
        store.set("remote", VersionState(source=SourceKind.REMOTE, repo_id="o/r"))
        store.set("frozen", VersionState(source=SourceKind.REMOTE, repo_id="o/f", frozen=True))
        store.set("archive", VersionState(source=SourceKind.ARCHIVE))

        assert [name for name, _ in store.by_source(SourceKind.REMOTE)] == ["remote", "frozen"]
        assert [name for name, _ in store.updatable()] == ["remote"]

    def test_set_frozen(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = StateStore.open(path)
        store.set("demo", VersionState(source=SourceKind.REMOTE, repo_id="o/r"))

        assert store.set_frozen("demo", True) is True
        assert store.set_frozen("ghost", True) is False
        assert StateStore.open(path).get("demo").frozen is True


class TestSettings:
    """Tests for settings and environment fallbacks."""

    def test_update_settings_persists(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        store = StateStore.open(path)

        store.update_settings(auto_update=False, default_category="tools")

        reopened = StateStore.open(path)
        assert reopened.settings.auto_update is False
        assert reopened.settings.default_category == "tools"

    def test_skills_dir(self, tmp_path: Path) -> None:
        store = StateStore()
        assert store.skills_dir() == DEFAULT_SKILLS_DIR

        store.update_settings(skills_dir=str(tmp_path))
        assert store.skills_dir() == tmp_path

    def test_github_token_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        store = StateStore()

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        assert store.github_token() is None

        monkeypatch.setenv("GITHUB_TOKEN", "from-env")
        assert store.github_token() == "from-env"

        store.update_settings(github_token="from-settings")
        assert store.github_token() == "from-settings"
