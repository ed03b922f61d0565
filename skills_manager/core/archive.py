"""Split a zip archive into the skills it contains.

Every SKILL.md marks a skill root (its parent directory). Archives produced by
"download as zip" usually wrap everything in one folder; when all roots share
a single top-level folder, that level is stripped.
"""

from __future__ import annotations

import io
import logging
import posixpath
import zipfile

from skills_manager.core.frontmatter import normalize_name, parse_frontmatter
from skills_manager.core.types import FileSet
from skills_manager.core.validator import SKILL_FILE_NAME

logger = logging.getLogger(__name__)

IGNORED_PREFIXES = ("__MACOSX/",)
IGNORED_NAMES = (".DS_Store",)

# Name for a skill whose SKILL.md sits at the archive root and declares no name
FALLBACK_SKILL_NAME = "skill"


def _entry_path(name: str) -> str | None:
    parts = [p for p in name.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts or ".." in parts or name.startswith("/"):
        return None
    return "/".join(parts)


def read_archive(data: bytes) -> FileSet:
    """
    Read every regular file of a zip archive.

    Unsafe entries (absolute paths, ``..``) and OS metadata are skipped.

    Raises:
        zipfile.BadZipFile: If data is not a zip archive
    """
    files: FileSet = {}
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            path = _entry_path(info.filename)
            if path is None:
                logger.warning("Skipping unsafe archive entry: %s", info.filename)
                continue
            if path.startswith(IGNORED_PREFIXES) or posixpath.basename(path) in IGNORED_NAMES:
                continue
            raw = archive.read(info)
            try:
                files[path] = raw.decode("utf-8")
            except UnicodeDecodeError:
                files[path] = raw
    return files


def shared_wrapper(roots: list[str]) -> str | None:
    """The single top-level folder shared by every root, if there is one.

    Only one level is detected, and only when every root sits below it.
    """
    if not roots or any("/" not in root for root in roots):
        return None
    firsts = {root.split("/", 1)[0] for root in roots}
    return firsts.pop() if len(firsts) == 1 else None


def _root_name(root: str, files: FileSet) -> str:
    if root:
        return posixpath.basename(root)
    manifest = files.get(SKILL_FILE_NAME)
    if isinstance(manifest, str):
        declared = parse_frontmatter(manifest).get("name")
        if declared:
            return normalize_name(declared)
    return FALLBACK_SKILL_NAME


def split_bundles(files: FileSet) -> dict[str, FileSet]:
    """
    Group archive files into skills keyed by local skill id.

    Each file belongs to the deepest skill root that contains it; files
    outside every root are dropped.
    """
    roots = sorted({posixpath.dirname(p) for p in files if posixpath.basename(p) == SKILL_FILE_NAME})
    if not roots:
        return {}

    wrapper = shared_wrapper(roots)
    if wrapper:
        prefix = wrapper + "/"
        files = {p[len(prefix):]: c for p, c in files.items() if p.startswith(prefix)}
        roots = [r[len(prefix):] for r in roots]

    # Deepest roots first so nested skills win over their parents
    by_depth = sorted(roots, key=len, reverse=True)
    grouped: dict[str, FileSet] = {root: {} for root in roots}
    for path, content in files.items():
        for root in by_depth:
            if not root:
                grouped[root][path] = content
                break
            if path.startswith(root + "/"):
                grouped[root][path[len(root) + 1:]] = content
                break

    bundles: dict[str, FileSet] = {}
    for root in roots:
        name = _root_name(root, grouped[root])
        if name in bundles:
            name = root.replace("/", "-") or name
        bundles[name] = grouped[root]
    return bundles
