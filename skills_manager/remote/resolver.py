"""Parse user-supplied skill sources into locators.

Supported formats:
    owner/repo                                       -> standalone
    owner/repo/path/to/skill                         -> monorepo
    https://github.com/owner/repo(.git)              -> standalone
    https://github.com/owner/repo/tree/<ref>/<path>  -> monorepo
    https://skills.sh/<id>                           -> indirect
"""

from __future__ import annotations

import re

from skills_manager.core.errors import UnrecognizedSourceError
from skills_manager.core.types import BundleLocator, LocatorKind


INDIRECT_RE = re.compile(r"^https?://(?:www\.)?skills\.sh/(.*)$", re.IGNORECASE)
TREE_URL_RE = re.compile(r"github\.com/([^/\s]+)/([^/\s]+)/tree/[^/\s]+/(.+)$")
REPO_URL_RE = re.compile(r"github\.com/([^/\s]+)/([^/\s]+?)/?$")
SEGMENT_RE = re.compile(r"^[^\s/:]+$")


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


def _clean_subpath(path: str) -> str:
    return "/".join(part for part in path.split("/") if part)


def resolve(text: str) -> BundleLocator:
    """
    Resolve a source reference into a BundleLocator.

    Rules are tried in order and the first match wins.

    Raises:
        UnrecognizedSourceError: If no rule matches
    """
    trimmed = text.strip()
    if not trimmed:
        raise UnrecognizedSourceError(text)

    indirect = INDIRECT_RE.match(trimmed)
    if indirect:
        indirect_id = indirect.group(1).strip().rstrip("/")
        if not indirect_id:
            raise UnrecognizedSourceError(text)
        return BundleLocator(kind=LocatorKind.INDIRECT, indirect_id=indirect_id)

    tree = TREE_URL_RE.search(trimmed)
    if tree:
        owner, repo, path = tree.groups()
        subpath = _clean_subpath(path)
        if subpath:
            return BundleLocator(
                kind=LocatorKind.MONOREPO,
                repo_id=f"{owner}/{_strip_git_suffix(repo)}",
                subpath=subpath,
            )

    url = REPO_URL_RE.search(trimmed)
    if url:
        owner, repo = url.groups()
        repo = _strip_git_suffix(repo)
        if repo:
            return BundleLocator(kind=LocatorKind.STANDALONE, repo_id=f"{owner}/{repo}")

    if "://" in trimmed:
        raise UnrecognizedSourceError(text)

    segments = [part for part in trimmed.split("/") if part]
    if len(segments) < 2 or not all(SEGMENT_RE.match(s) for s in segments):
        raise UnrecognizedSourceError(text)

    repo_id = f"{segments[0]}/{_strip_git_suffix(segments[1])}"
    if len(segments) == 2:
        return BundleLocator(kind=LocatorKind.STANDALONE, repo_id=repo_id)
    return BundleLocator(
        kind=LocatorKind.MONOREPO,
        repo_id=repo_id,
        subpath="/".join(segments[2:]),
    )
