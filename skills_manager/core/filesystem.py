"""FileSystem capability used by the installer and scanner.

Provides a small set of primitives: exists, read, write, list, mkdir (single
level), rename, remove file, remove directory tree. Recursive directory
creation and rename-with-rollback are built on top of these in
``skills_manager.core.staging``.
"""

from __future__ import annotations

import os
import posixpath
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Union

PathLike = Union[str, os.PathLike]


@dataclass
class DirListing:
    """Immediate children of a directory, as full paths."""

    files: list[Path] = field(default_factory=list)
    dirs: list[Path] = field(default_factory=list)


class FileSystem(ABC):
    """Directory I/O primitives."""

    @abstractmethod
    def exists(self, path: PathLike) -> bool:
        """Return True if a file or directory exists at path."""

    @abstractmethod
    def is_dir(self, path: PathLike) -> bool:
        """Return True if path is an existing directory."""

    @abstractmethod
    def read_text(self, path: PathLike) -> str:
        """Read a UTF-8 text file (like Unix cat)."""

    @abstractmethod
    def write(self, path: PathLike, content: str | bytes) -> None:
        """Write a file. The parent directory must already exist."""

    @abstractmethod
    def list_dir(self, path: PathLike) -> DirListing:
        """List a directory's files and subdirectories (like Unix ls)."""

    @abstractmethod
    def mkdir(self, path: PathLike) -> None:
        """Create a single directory level. Raises FileExistsError if present."""

    @abstractmethod
    def rename(self, src: PathLike, dst: PathLike) -> None:
        """Rename src to dst (like Unix mv). dst must not exist."""

    @abstractmethod
    def remove_file(self, path: PathLike) -> None:
        """Remove a single file (like Unix rm)."""

    @abstractmethod
    def remove_dir_recursive(self, path: PathLike) -> None:
        """Remove a directory tree (like Unix rm -rf). Missing paths are ignored."""


class LocalFileSystem(FileSystem):
    """FileSystem backed by the real disk."""

    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def is_dir(self, path: PathLike) -> bool:
        return Path(path).is_dir()

    def read_text(self, path: PathLike) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write(self, path: PathLike, content: str | bytes) -> None:
        target = Path(path)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")

    def list_dir(self, path: PathLike) -> DirListing:
        listing = DirListing()
        for item in sorted(Path(path).iterdir()):
            if item.is_dir():
                listing.dirs.append(item)
            else:
                listing.files.append(item)
        return listing

    def mkdir(self, path: PathLike) -> None:
        Path(path).mkdir(exist_ok=False)

    def rename(self, src: PathLike, dst: PathLike) -> None:
        target = Path(dst)
        if target.exists():
            raise FileExistsError(f"rename: {dst}: File exists")
        os.rename(src, target)

    def remove_file(self, path: PathLike) -> None:
        Path(path).unlink()

    def remove_dir_recursive(self, path: PathLike) -> None:
        target = Path(path)
        if not target.exists():
            return
        shutil.rmtree(target)


class InMemoryFileSystem(FileSystem):
    """Dictionary-backed FileSystem for tests.

    Paths are normalised to POSIX strings. The root ``/`` always exists.
    """

    def __init__(self) -> None:
        self.files: dict[str, str | bytes] = {}
        self.dirs: set[str] = {"/"}

    @staticmethod
    def _key(path: PathLike) -> str:
        text = PurePosixPath(os.fspath(path)).as_posix()
        return posixpath.normpath(posixpath.join("/", text))

    @staticmethod
    def _parent(key: str) -> str:
        return str(PurePosixPath(key).parent)

    def _children(self, key: str) -> list[str]:
        prefix = key.rstrip("/") + "/"
        return [
            p for p in list(self.files) + list(self.dirs)
            if p.startswith(prefix) and p != key
        ]

    def exists(self, path: PathLike) -> bool:
        key = self._key(path)
        return key in self.files or key in self.dirs

    def is_dir(self, path: PathLike) -> bool:
        return self._key(path) in self.dirs

    def read_text(self, path: PathLike) -> str:
        key = self._key(path)
        if key not in self.files:
            raise FileNotFoundError(f"cat: {path}: No such file or directory")
        content = self.files[key]
        if isinstance(content, bytes):
            return content.decode("utf-8")
        return content

    def write(self, path: PathLike, content: str | bytes) -> None:
        key = self._key(path)
        if self._parent(key) not in self.dirs:
            raise FileNotFoundError(f"write: {path}: No such file or directory")
        if key in self.dirs:
            raise IsADirectoryError(f"write: {path}: Is a directory")
        self.files[key] = content

    def list_dir(self, path: PathLike) -> DirListing:
        key = self._key(path)
        if key not in self.dirs:
            raise FileNotFoundError(f"ls: {path}: No such file or directory")
        listing = DirListing()
        for child in sorted(self._children(key)):
            if self._parent(child) != key:
                continue
            if child in self.dirs:
                listing.dirs.append(Path(child))
            else:
                listing.files.append(Path(child))
        return listing

    def mkdir(self, path: PathLike) -> None:
        key = self._key(path)
        if self.exists(key):
            raise FileExistsError(f"mkdir: {path}: File exists")
        if self._parent(key) not in self.dirs:
            raise FileNotFoundError(f"mkdir: {path}: No such file or directory")
        self.dirs.add(key)

    def rename(self, src: PathLike, dst: PathLike) -> None:
        src_key, dst_key = self._key(src), self._key(dst)
        if not self.exists(src_key):
            raise FileNotFoundError(f"rename: {src}: No such file or directory")
        if self.exists(dst_key):
            raise FileExistsError(f"rename: {dst}: File exists")
        if self._parent(dst_key) not in self.dirs:
            raise FileNotFoundError(f"rename: {dst}: No such file or directory")

        if src_key in self.files:
            self.files[dst_key] = self.files.pop(src_key)
            return

        moved = [src_key] + self._children(src_key)
        for old in moved:
            new = dst_key + old[len(src_key):]
            if old in self.dirs:
                self.dirs.discard(old)
                self.dirs.add(new)
            else:
                self.files[new] = self.files.pop(old)

    def remove_file(self, path: PathLike) -> None:
        key = self._key(path)
        if key not in self.files:
            raise FileNotFoundError(f"rm: {path}: No such file or directory")
        del self.files[key]

    def remove_dir_recursive(self, path: PathLike) -> None:
        key = self._key(path)
        if key == "/":
            raise PermissionError("rm: refusing to remove '/'")
        for child in self._children(key):
            self.files.pop(child, None)
            self.dirs.discard(child)
        self.dirs.discard(key)
        self.files.pop(key, None)
