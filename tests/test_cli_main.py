"""Tests for the command-line entry point."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from conftest import manifest
from skills_manager.cli.main import create_parser, main


@pytest.fixture
def workspace(tmp_path: Path) -> dict[str, Path]:
    """A skills directory holding one local skill, plus a state file path."""
    skills_dir = tmp_path / "skills"
    skill = skills_dir / "local-skill"
    (skill / "scripts").mkdir(parents=True)
    (skill / "SKILL.md").write_text(manifest("local-skill"))
    (skill / "scripts" / "wipe.sh").write_text("rm -rf ./build\n")
    return {"skills": skills_dir, "skill": skill, "state": tmp_path / "state.json"}


def run(monkeypatch: pytest.MonkeyPatch, workspace: dict[str, Path], *args: str) -> int:
    argv = ["skills-manager", "--state", str(workspace["state"]), "--dir", str(workspace["skills"]), *args]
    monkeypatch.setattr(sys, "argv", argv)
    return main()


class TestParser:
    """Tests for argument parsing."""

    def test_install_options(self) -> None:
        args = create_parser().parse_args(["install", "owner/repo", "--version", "v1.0.0", "--scan"])
        assert args.command == "install"
        assert args.source == "owner/repo"
        assert args.release == "v1.0.0"
        assert args.scan is True

    def test_update_all(self) -> None:
        args = create_parser().parse_args(["update", "--all"])
        assert args.all is True
        assert args.name is None

    def test_search_board_choices(self) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["search", "--board", "weekly"])


class TestCommands:
    """Tests for commands that need no network."""

    def test_no_command_prints_help(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        monkeypatch.setattr(sys, "argv", ["skills-manager"])
        assert main() == 0
        assert "usage" in capsys.readouterr().out

    def test_register_freeze_uninstall(
        self, monkeypatch: pytest.MonkeyPatch, workspace: dict[str, Path], capsys
    ) -> None:
        assert run(monkeypatch, workspace, "register", "local-skill") == 0
        assert "✓ Registered local-skill" in capsys.readouterr().out

        assert run(monkeypatch, workspace, "freeze", "local-skill") == 0
        state = json.loads(workspace["state"].read_text())
        assert state["skills"]["local-skill"]["frozen"] is True

        assert run(monkeypatch, workspace, "unfreeze", "local-skill") == 0
        assert run(monkeypatch, workspace, "uninstall", "local-skill") == 0
        assert not workspace["skill"].exists()
        assert json.loads(workspace["state"].read_text())["skills"] == {}

    def test_freeze_unknown(self, monkeypatch: pytest.MonkeyPatch, workspace: dict[str, Path], capsys) -> None:
        assert run(monkeypatch, workspace, "freeze", "ghost") == 1
        assert "not tracked" in capsys.readouterr().err

    def test_update_needs_target(self, monkeypatch: pytest.MonkeyPatch, workspace: dict[str, Path]) -> None:
        assert run(monkeypatch, workspace, "update") == 1

    def test_update_frozen(self, monkeypatch: pytest.MonkeyPatch, workspace: dict[str, Path], capsys) -> None:
        run(monkeypatch, workspace, "register", "local-skill")
        run(monkeypatch, workspace, "freeze", "local-skill")
        capsys.readouterr()

        assert run(monkeypatch, workspace, "update", "local-skill") == 1
        assert "frozen" in capsys.readouterr().err

    def test_scan(self, monkeypatch: pytest.MonkeyPatch, workspace: dict[str, Path], capsys) -> None:
        assert run(monkeypatch, workspace, "scan", "local-skill") == 0
        out = capsys.readouterr().out
        assert "Scan: danger" in out
        assert "scripts/wipe.sh" in out

    def test_scan_missing(self, monkeypatch: pytest.MonkeyPatch, workspace: dict[str, Path]) -> None:
        assert run(monkeypatch, workspace, "scan", "ghost") == 1
