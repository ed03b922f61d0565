"""Staging, promotion and rollback for skill installs.

A skill is written to a hidden, time-suffixed staging directory next to its
final location, validated there, and then swapped into place by renames. The
previous install is kept as a backup until the swap succeeds.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path, PurePosixPath

from skills_manager.core.errors import PromotionError
from skills_manager.core.filesystem import FileSystem, PathLike
from skills_manager.core.types import FileSet

logger = logging.getLogger(__name__)


def staging_path(skills_dir: PathLike, bundle_id: str) -> Path:
    """Hidden staging directory for a bundle, unique per call."""
    return Path(skills_dir) / f".{bundle_id}.staging-{time.time_ns()}"


def backup_path(final: PathLike) -> Path:
    final = Path(final)
    return final.parent / f".{final.name}.backup-{time.time_ns()}"


def make_dirs(fs: FileSystem, path: PathLike) -> None:
    """Create a directory and any missing parents (like mkdir -p)."""
    target = Path(path)
    missing: list[Path] = []
    current = target
    while not fs.exists(current):
        missing.append(current)
        if current.parent == current:
            break
        current = current.parent

    for directory in reversed(missing):
        try:
            fs.mkdir(directory)
        except FileExistsError:
            # Created concurrently by another install
            continue

    if not fs.is_dir(target):
        raise NotADirectoryError(f"mkdir: {target}: Not a directory")


def _safe_relative(rel_path: str) -> PurePosixPath:
    rel = PurePosixPath(rel_path.replace("\\", "/"))
    if rel.is_absolute() or ".." in rel.parts or not rel.parts:
        raise ValueError(f"Refusing to write outside the skill directory: {rel_path}")
    return rel


def write_file_set(fs: FileSystem, root: PathLike, files: FileSet) -> None:
    """Write every entry of a file set under root, creating subdirectories."""
    root = Path(root)
    make_dirs(fs, root)
    for rel_path, content in files.items():
        target = root.joinpath(*_safe_relative(rel_path).parts)
        make_dirs(fs, target.parent)
        fs.write(target, content)


def cleanup(fs: FileSystem, path: PathLike) -> bool:
    """
    Best-effort removal of a staging or backup directory.

    Failures are logged and never raised: cleanup must not change the outcome
    of the operation it follows.

    Returns:
        True if the path is gone afterwards
    """
    try:
        fs.remove_dir_recursive(path)
        return True
    except Exception as e:
        logger.warning("Cleanup of %s failed: %s", path, e)
        return False


def promote(fs: FileSystem, staged: PathLike, final: PathLike) -> None:
    """
    Swap a staged directory into its final location.

    If the final path exists it is renamed to a backup first. When any step
    fails, one rollback is attempted so that the previous install is back at
    the final path before the error propagates.

    Raises:
        PromotionError: If the swap failed (``rollback_error`` is set when the
            rollback failed as well)
    """
    staged, final = Path(staged), Path(final)
    backup: Path | None = None

    try:
        if fs.exists(final):
            candidate = backup_path(final)
            fs.rename(final, candidate)
            backup = candidate
        fs.rename(staged, final)
    except Exception as e:
        logger.error("Promotion of %s to %s failed: %s", staged, final, e)
        rollback_error: Exception | None = None
        if backup is not None:
            try:
                if fs.exists(final):
                    fs.remove_dir_recursive(final)
                fs.rename(backup, final)
                logger.info("Restored previous install at %s", final)
            except Exception as rollback_exc:
                logger.error("Rollback of %s failed: %s", final, rollback_exc)
                rollback_error = rollback_exc
        raise PromotionError(
            f"Failed to move {staged.name} into place at {final}: {e}",
            rollback_error=rollback_error,
        ) from e

    if backup is not None:
        cleanup(fs, backup)
