"""Locate a skill's directory inside a multi-skill repository.

Catalog ids often differ from folder names (e.g. the id
"remotion-best-practices" lives at "skills/remotion/"), so every SKILL.md in
the tree is a candidate and the hint is matched in decreasing strictness.
"""

from __future__ import annotations

import logging
import posixpath
from typing import TYPE_CHECKING

from skills_manager.core.frontmatter import normalize_name, parse_frontmatter
from skills_manager.core.validator import SKILL_FILE_NAME

if TYPE_CHECKING:
    from skills_manager.remote.github import GitHubClient

logger = logging.getLogger(__name__)


def manifest_dirs(paths: list[str]) -> list[str]:
    """Directories (``""`` for the root) that contain a SKILL.md."""
    return [
        posixpath.dirname(path)
        for path in paths
        if posixpath.basename(path) == SKILL_FILE_NAME
    ]


async def find_subpath(
    client: GitHubClient,
    repo_id: str,
    hint: str,
    ref: str,
) -> str | None:
    """
    Find the directory of the skill best matching hint.

    Disambiguation order when several SKILL.md files exist:
    1. folder name equals the hint
    2. folder name contains the hint or the hint contains the folder name
    3. declared ``name`` equals the hint, then either contains the other

    Returns:
        Directory path relative to the repository root, or None if not found
    """
    tree = await client.fetch_tree(repo_id, ref)
    if not tree:
        return None

    candidates = manifest_dirs(tree)
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    wanted = hint.strip().strip("/").split("/")[-1].lower()
    if not wanted:
        return None

    def folder(directory: str) -> str:
        return posixpath.basename(directory).lower()

    for directory in candidates:
        if folder(directory) == wanted:
            return directory

    for directory in candidates:
        name = folder(directory)
        if name and (wanted in name or name in wanted):
            return directory

    declared: list[tuple[str, str]] = []
    for directory in candidates:
        path = posixpath.join(directory, SKILL_FILE_NAME) if directory else SKILL_FILE_NAME
        content = await client.fetch_raw(repo_id, ref, path)
        if content is None:
            continue
        name = parse_frontmatter(content).get("name")
        if name:
            declared.append((directory, normalize_name(name)))

    for directory, name in declared:
        if name == wanted:
            return directory
    for directory, name in declared:
        if wanted in name or name in wanted:
            return directory

    logger.info("No skill matching '%s' among %d candidates in %s", hint, len(candidates), repo_id)
    return None
