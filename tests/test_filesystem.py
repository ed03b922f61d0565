"""Tests for FileSystem implementations and staging helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from skills_manager.core.errors import PromotionError
from skills_manager.core.filesystem import FileSystem, InMemoryFileSystem, LocalFileSystem, PathLike
from skills_manager.core.staging import (
    backup_path,
    cleanup,
    make_dirs,
    promote,
    staging_path,
    write_file_set,
)


@pytest.fixture(params=["memory", "local"])
def any_fs(request: pytest.FixtureRequest, tmp_path: Path) -> tuple[FileSystem, Path]:
    """Both FileSystem implementations, each with an empty root to work in."""
    if request.param == "memory":
        fs = InMemoryFileSystem()
        root = Path("/work")
        fs.mkdir(root)
        return fs, root
    return LocalFileSystem(), tmp_path


class TestFileSystemPrimitives:
    """Tests shared by every FileSystem implementation."""

    def test_write_and_read(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        fs.write(root / "a.txt", "hello")
        assert fs.exists(root / "a.txt")
        assert not fs.is_dir(root / "a.txt")
        assert fs.read_text(root / "a.txt") == "hello"

    def test_write_bytes(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        fs.write(root / "b.bin", b"\x00\x01")
        assert fs.exists(root / "b.bin")

    def test_read_missing(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        with pytest.raises(FileNotFoundError):
            fs.read_text(root / "missing.txt")

    def test_mkdir_single_level(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        fs.mkdir(root / "sub")
        assert fs.is_dir(root / "sub")
        with pytest.raises(FileExistsError):
            fs.mkdir(root / "sub")
        with pytest.raises(FileNotFoundError):
            fs.mkdir(root / "x" / "y")

    def test_list_dir(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        fs.mkdir(root / "sub")
        fs.write(root / "sub" / "nested.txt", "n")
        fs.write(root / "top.txt", "t")

        listing = fs.list_dir(root)

        assert [p.name for p in listing.files] == ["top.txt"]
        assert [p.name for p in listing.dirs] == ["sub"]

    def test_rename_directory(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        fs.mkdir(root / "src")
        fs.write(root / "src" / "f.txt", "f")

        fs.rename(root / "src", root / "dst")

        assert not fs.exists(root / "src")
        assert fs.read_text(root / "dst" / "f.txt") == "f"

    def test_rename_onto_existing(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        fs.mkdir(root / "src")
        fs.mkdir(root / "dst")
        with pytest.raises(FileExistsError):
            fs.rename(root / "src", root / "dst")

    def test_remove(self, any_fs: tuple[FileSystem, Path]) -> None:
        fs, root = any_fs
        fs.mkdir(root / "tree")
        fs.write(root / "tree" / "f.txt", "f")
        fs.write(root / "g.txt", "g")

        fs.remove_file(root / "g.txt")
        fs.remove_dir_recursive(root / "tree")
        fs.remove_dir_recursive(root / "never-existed")

        assert not fs.exists(root / "g.txt")
        assert not fs.exists(root / "tree")


class TestInMemoryFileSystem:
    """Tests specific to the in-memory implementation."""

    def test_paths_normalised(self) -> None:
        fs = InMemoryFileSystem()
        make_dirs(fs, "/a/b")
        fs.write("/a/./b/../b/c.txt", "c")
        assert fs.read_text(Path("/a/b/c.txt")) == "c"

    def test_write_requires_parent(self) -> None:
        with pytest.raises(FileNotFoundError):
            InMemoryFileSystem().write("/missing/file.txt", "x")

    def test_refuses_to_remove_root(self) -> None:
        with pytest.raises(PermissionError):
            InMemoryFileSystem().remove_dir_recursive("/")


class TestStaging:
    """Tests for staging, promotion and cleanup."""

    def test_staging_paths_are_hidden_and_unique(self) -> None:
        first = staging_path("/skills", "demo")
        second = staging_path("/skills", "demo")
        assert first.name.startswith(".demo.staging-")
        assert first != second
        assert backup_path("/skills/demo").name.startswith(".demo.backup-")

    def test_make_dirs(self) -> None:
        fs = InMemoryFileSystem()
        make_dirs(fs, "/a/b/c")
        make_dirs(fs, "/a/b/c")
        assert fs.is_dir("/a/b/c")

    def test_make_dirs_through_file(self) -> None:
        fs = InMemoryFileSystem()
        fs.write("/file", "x")
        with pytest.raises(NotADirectoryError):
            make_dirs(fs, "/file")

    def test_write_file_set(self) -> None:
        fs = InMemoryFileSystem()
        write_file_set(fs, "/stage", {"SKILL.md": "s", "scripts/lib/x.py": "x", "logo.png": b"\x89PNG"})
        assert fs.read_text("/stage/scripts/lib/x.py") == "x"
        assert fs.files["/stage/logo.png"] == b"\x89PNG"

    @pytest.mark.parametrize("bad", ["../escape.txt", "/etc/passwd", "a/../../b"])
    def test_write_file_set_rejects_escape(self, bad: str) -> None:
        with pytest.raises(ValueError):
            write_file_set(InMemoryFileSystem(), "/stage", {bad: "x"})

    def test_promote_fresh(self) -> None:
        fs = InMemoryFileSystem()
        write_file_set(fs, "/skills/.demo.staging-1", {"SKILL.md": "new"})

        promote(fs, "/skills/.demo.staging-1", "/skills/demo")

        assert fs.read_text("/skills/demo/SKILL.md") == "new"
        assert fs.list_dir("/skills").dirs == [Path("/skills/demo")]

    def test_promote_replaces_and_drops_backup(self) -> None:
        fs = InMemoryFileSystem()
        write_file_set(fs, "/skills/demo", {"SKILL.md": "old"})
        write_file_set(fs, "/skills/.demo.staging-1", {"SKILL.md": "new"})

        promote(fs, "/skills/.demo.staging-1", "/skills/demo")

        assert fs.read_text("/skills/demo/SKILL.md") == "new"
        assert fs.list_dir("/skills").dirs == [Path("/skills/demo")]

    def test_promote_rollback_failure_reported(self) -> None:
        """Test a failed rollback is carried on the error."""

        class BrokenFileSystem(InMemoryFileSystem):
            def rename(self, src: PathLike, dst: PathLike) -> None:
                if ".demo.backup-" in str(dst):
                    super().rename(src, dst)
                    return
                raise OSError(f"cannot rename {src}")

        fs = BrokenFileSystem()
        write_file_set(fs, "/skills/demo", {"SKILL.md": "old"})
        write_file_set(fs, "/skills/.demo.staging-1", {"SKILL.md": "new"})

        with pytest.raises(PromotionError) as exc_info:
            promote(fs, "/skills/.demo.staging-1", "/skills/demo")

        assert exc_info.value.rollback_error is not None
        assert "rollback also failed" in str(exc_info.value)

    def test_cleanup_never_raises(self) -> None:
        class StuckFileSystem(InMemoryFileSystem):
            def remove_dir_recursive(self, path: PathLike) -> None:
                raise PermissionError("busy")

        assert cleanup(StuckFileSystem(), "/skills/.demo.staging-1") is False
        assert cleanup(InMemoryFileSystem(), "/skills/.demo.staging-1") is True
