"""Pytest configuration and fixtures for skills-manager tests."""

from __future__ import annotations

import io
import zipfile
from typing import Any
from urllib.parse import unquote

import httpx
import pytest

from skills_manager.cli.installer import SkillInstaller
from skills_manager.core.filesystem import InMemoryFileSystem
from skills_manager.core.store import StateStore
from skills_manager.remote.github import GitHubClient

SKILLS_DIR = "/skills"


def manifest(
    name: str = "demo",
    description: str = "A demo skill",
    body: str = "Follow these steps.\n",
    extra: str = "",
) -> str:
    """Build SKILL.md content."""
    return f"---\nname: {name}\ndescription: {description}\n{extra}---\n\n{body}"


def make_zip(files: dict[str, str]) -> bytes:
    """Build a zip archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for path, content in files.items():
            archive.writestr(path, content)
    return buffer.getvalue()


class FakeGitHub:
    """In-process stand-in for the GitHub API, raw host and skills.sh catalog."""

    def __init__(self) -> None:
        self.releases: dict[str, list[dict[str, Any]]] = {}
        self.branches: dict[str, str] = {}
        self.trees: dict[tuple[str, str], list[str]] = {}
        self.files: dict[tuple[str, str, str], str] = {}
        self.assets: dict[str, str] = {}
        self.catalog: dict[str, dict[str, Any]] = {}
        # (host, path) -> (status, headers)
        self.failures: dict[tuple[str, str], tuple[int, dict[str, str]]] = {}
        self.requests: list[httpx.Request] = []

    def add_release(
        self,
        repo: str,
        tag: str,
        prerelease: bool = False,
        assets: list[dict[str, str]] | None = None,
    ) -> None:
        self.releases.setdefault(repo, []).append(
            {
                "tag_name": tag,
                "prerelease": prerelease,
                "published_at": "2024-01-01T00:00:00Z",
                "assets": assets or [],
            }
        )

    def add_tree(self, repo: str, ref: str, files: dict[str, str]) -> None:
        self.trees[(repo, ref)] = list(files)
        for path, content in files.items():
            self.files[(repo, ref, path)] = content

    def fail(self, host: str, path: str, status: int, headers: dict[str, str] | None = None) -> None:
        self.failures[(host, path)] = (status, headers or {})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = unquote(request.url.path)

        if (host, path) in self.failures:
            status, headers = self.failures[(host, path)]
            return httpx.Response(status, headers=headers, json={"message": "error"})

        if host == "api.github.com":
            return self._api(path)
        if host == "raw.githubusercontent.com":
            owner, repo, ref, rest = path.lstrip("/").split("/", 3)
            content = self.files.get((f"{owner}/{repo}", ref, rest))
            if content is None:
                return httpx.Response(404, text="404: Not Found")
            return httpx.Response(200, text=content)
        if host == "skills.sh":
            entry = self.catalog.get(path.removeprefix("/api/skills/"))
            if entry is None:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json=entry)
        if host == "github.com" and str(request.url) in self.assets:
            return httpx.Response(200, text=self.assets[str(request.url)])
        return httpx.Response(404)

    def _api(self, path: str) -> httpx.Response:
        parts = path.strip("/").split("/")
        repo = f"{parts[1]}/{parts[2]}"
        rest = parts[3:]

        if not rest:
            if repo not in self.branches:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"default_branch": self.branches[repo]})
        if rest == ["releases"]:
            if repo not in self.releases:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=self.releases[repo])
        if rest[:2] == ["releases", "tags"]:
            tag = "/".join(rest[2:])
            for release in self.releases.get(repo, []):
                if release["tag_name"] == tag:
                    return httpx.Response(200, json=release)
            return httpx.Response(404, json={"message": "Not Found"})
        if rest[:2] == ["git", "trees"]:
            tree = self.trees.get((repo, "/".join(rest[2:])))
            if tree is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(
                200,
                json={"tree": [{"path": p, "type": "blob"} for p in tree], "truncated": False},
            )
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Create an empty fake GitHub."""
    return FakeGitHub()


@pytest.fixture
def client(fake_github: FakeGitHub) -> GitHubClient:
    """Create a GitHubClient routed to the fake GitHub."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_github.handler))
    return GitHubClient(http=http)


@pytest.fixture
def fs() -> InMemoryFileSystem:
    return InMemoryFileSystem()


@pytest.fixture
def store() -> StateStore:
    """Create an in-memory StateStore."""
    return StateStore()


@pytest.fixture
def installer(store: StateStore, client: GitHubClient, fs: InMemoryFileSystem) -> SkillInstaller:
    """Create a SkillInstaller writing to an in-memory skills directory."""
    return SkillInstaller(store, client=client, fs=fs, skills_dir=SKILLS_DIR)
