"""Remote side of the pipeline: source resolution and GitHub fetching."""

from skills_manager.remote.github import GitHubClient
from skills_manager.remote.locator import find_subpath
from skills_manager.remote.resolver import resolve

__all__ = [
    "GitHubClient",
    "find_subpath",
    "resolve",
]
