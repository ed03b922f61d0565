"""GitHub client for fetching skill releases and files.

Every request is non-throwing on non-2xx responses; status codes are mapped to
the pipeline's error taxonomy only where a caller needs to act on them.
Individual file downloads that fail are skipped, so a partial skill is returned
rather than nothing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx

from skills_manager.core.errors import NotFoundError, RateLimitedError, RemoteError
from skills_manager.core.types import FileSet, ReleaseDescriptor
from skills_manager.core.validator import SKILL_FILE_NAME
from skills_manager.core.versions import Version, coerce_version

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
GITHUB_RAW = "https://raw.githubusercontent.com"
SKILLS_SH_API = "https://skills.sh/api/skills"

# Per-request timeout in seconds
DEFAULT_TIMEOUT = 30.0

# Used when the default branch cannot be determined
DEFAULT_BRANCH = "main"

RELEASES_PER_PAGE = 25
MAX_CONCURRENT_DOWNLOADS = 8


def sort_releases(releases: list[ReleaseDescriptor]) -> list[ReleaseDescriptor]:
    """
    Drop prereleases (unless nothing else exists) and sort newest first.

    Tags that cannot be coerced to a version sort after all others, keeping
    their original order.
    """
    stable = [r for r in releases if not r.is_prerelease]
    candidates = stable or list(releases)

    def key(release: ReleaseDescriptor) -> tuple[bool, Version]:
        version = coerce_version(release.tag)
        return (version is not None, version or Version(0, 0, 0))

    return sorted(candidates, key=key, reverse=True)


def _decode(content: bytes) -> str | bytes:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return content


class GitHubClient:
    """Async client for the GitHub REST API and raw content host."""

    def __init__(
        self,
        token: str | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """
        Initialize the client.

        Args:
            token: Optional token sent as a bearer Authorization header
            http: Shared httpx client (one is created when omitted)
            timeout: Per-request timeout in seconds for a created client
        """
        self.token = token or None
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def with_token(self, token: str | None) -> GitHubClient:
        """A client sharing this one's connection pool but using another token."""
        return GitHubClient(token=token, http=self.http)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ----- transport ------------------------------------------------------

    def _headers(self, accept: str | None = None, auth: bool = True) -> dict[str, str]:
        headers: dict[str, str] = {}
        if accept:
            headers["Accept"] = accept
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(
        self,
        url: str,
        accept: str | None = "application/vnd.github.v3+json",
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> httpx.Response:
        try:
            return await self.http.get(url, headers=self._headers(accept, auth), params=params)
        except httpx.HTTPError as e:
            raise RemoteError(f"Request to {url} failed: {e}") from e

    @staticmethod
    def _check(response: httpx.Response, repo_id: str) -> None:
        status = response.status_code
        if status == 200:
            return
        if status == 403:
            if response.headers.get("x-ratelimit-remaining") == "0":
                raise RateLimitedError()
            raise RemoteError(f"GitHub API forbidden (403) for {repo_id}")
        if status == 429:
            raise RateLimitedError()
        if status == 404:
            raise NotFoundError(f"Repository not found: {repo_id}")
        raise RemoteError(f"GitHub API error: {status}")

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from {response.url}: {e}") from e

    # ----- releases -------------------------------------------------------

    async def fetch_releases(self, repo_id: str) -> list[ReleaseDescriptor]:
        """
        Fetch releases for a repository, newest stable first.

        Raises:
            RateLimitedError: API quota exhausted
            NotFoundError: Repository does not exist or is private
            RemoteError: Any other failure
        """
        response = await self._get(
            f"{GITHUB_API}/repos/{repo_id}/releases",
            params={"per_page": RELEASES_PER_PAGE},
        )
        self._check(response, repo_id)
        payload = self._json(response)
        if not isinstance(payload, list):
            raise RemoteError(f"Unexpected releases payload for {repo_id}")
        releases = [ReleaseDescriptor.from_api(item) for item in payload if isinstance(item, dict)]
        return sort_releases(releases)

    async def fetch_latest_release(self, repo_id: str) -> ReleaseDescriptor | None:
        releases = await self.fetch_releases(repo_id)
        return releases[0] if releases else None

    async def fetch_release_by_tag(self, repo_id: str, tag: str) -> ReleaseDescriptor | None:
        """Look up a single release by tag, including prereleases."""
        response = await self._get(
            f"{GITHUB_API}/repos/{repo_id}/releases/tags/{quote(tag, safe='')}"
        )
        if response.status_code != 200:
            return None
        payload = self._json(response)
        return ReleaseDescriptor.from_api(payload) if isinstance(payload, dict) else None

    async def fetch_default_branch(self, repo_id: str) -> str:
        """Default branch of a repository; falls back to 'main' and never raises."""
        try:
            response = await self._get(f"{GITHUB_API}/repos/{repo_id}")
            if response.status_code == 200:
                payload = self._json(response)
                if isinstance(payload, dict) and payload.get("default_branch"):
                    return str(payload["default_branch"])
        except RemoteError as e:
            logger.debug("Default branch lookup for %s failed: %s", repo_id, e)
        return DEFAULT_BRANCH

    # ----- files ----------------------------------------------------------

    async def _download_asset(self, url: str) -> str | bytes | None:
        try:
            response = await self._get(url, accept="application/octet-stream")
        except RemoteError as e:
            logger.debug("Skipping asset %s: %s", url, e)
            return None
        if response.status_code != 200:
            logger.debug("Skipping asset %s: HTTP %s", url, response.status_code)
            return None
        return _decode(response.content)

    async def _fetch_blob(self, repo_id: str, ref: str, path: str) -> str | bytes | None:
        url = f"{GITHUB_RAW}/{repo_id}/{quote(ref, safe='')}/{quote(path, safe='/')}"
        try:
            response = await self._get(url, accept=None)
        except RemoteError as e:
            logger.debug("Skipping %s: %s", path, e)
            return None
        if response.status_code != 200:
            logger.debug("Skipping %s: HTTP %s", path, response.status_code)
            return None
        return _decode(response.content)

    async def fetch_raw(self, repo_id: str, ref: str, path: str) -> str | None:
        """Fetch a text file from the raw content host, or None."""
        content = await self._fetch_blob(repo_id, ref, path)
        return content if isinstance(content, str) else None

    async def _get_tree(self, repo_id: str, ref: str) -> list[str]:
        response = await self._get(
            f"{GITHUB_API}/repos/{repo_id}/git/trees/{quote(ref, safe='')}",
            params={"recursive": 1},
        )
        self._check(response, repo_id)
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise RemoteError(f"Unexpected tree payload for {repo_id}")
        if payload.get("truncated"):
            logger.warning("Tree for %s@%s is truncated; some files may be missing", repo_id, ref)
        return [
            str(entry["path"])
            for entry in payload.get("tree") or []
            if isinstance(entry, dict) and entry.get("type") == "blob" and entry.get("path")
        ]

    async def fetch_tree(self, repo_id: str, ref: str) -> list[str] | None:
        """Paths of every file in the repository at ref, or None on failure."""
        try:
            return await self._get_tree(repo_id, ref)
        except RemoteError as e:
            logger.info("Tree fetch for %s@%s failed: %s", repo_id, ref, e)
            return None

    async def _fetch_many(self, repo_id: str, ref: str, paths: list[str]) -> FileSet:
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_DOWNLOADS)

        async def fetch(path: str) -> tuple[str, str | bytes | None]:
            async with semaphore:
                return path, await self._fetch_blob(repo_id, ref, path)

        results = await asyncio.gather(*(fetch(p) for p in paths))
        return {path: content for path, content in results if content is not None}

    async def fetch_manifest(
        self,
        repo_id: str,
        release: ReleaseDescriptor | None = None,
    ) -> str | None:
        """SKILL.md from a release asset, else from the default branch."""
        if release is not None:
            asset = next((a for a in release.assets if a.name == SKILL_FILE_NAME), None)
            if asset is not None:
                content = await self._download_asset(asset.browser_download_url or asset.url)
                if isinstance(content, str):
                    return content
        return await self.fetch_raw(repo_id, "HEAD", SKILL_FILE_NAME)

    async def fetch_bundle_files(
        self,
        repo_id: str,
        release: ReleaseDescriptor | None = None,
    ) -> FileSet:
        """
        Fetch every file of a single-skill repository.

        SKILL.md and other non-zip release assets come first; the repository
        tree at the release tag (or HEAD) is then merged in for anything not
        already present, so scripts and references are captured even when a
        release only ships some of them.

        Returns:
            FileSet, possibly without SKILL.md (the caller rejects that case)
        """
        files: FileSet = {}

        manifest = await self.fetch_manifest(repo_id, release)
        if manifest is not None:
            files[SKILL_FILE_NAME] = manifest

        if release is not None:
            for asset in release.assets:
                if asset.name == SKILL_FILE_NAME or asset.name.lower().endswith(".zip"):
                    continue
                content = await self._download_asset(asset.browser_download_url or asset.url)
                if content is not None:
                    files[asset.name] = content

        ref = release.tag if release is not None and release.tag else "HEAD"
        tree = await self.fetch_tree(repo_id, ref)
        if tree:
            pending = [path for path in tree if path not in files]
            for path, content in (await self._fetch_many(repo_id, ref, pending)).items():
                files.setdefault(path, content)

        return files

    async def fetch_subpath_files(self, repo_id: str, subpath: str, ref: str) -> FileSet:
        """
        Fetch the files under a subdirectory, keyed relative to it.

        Raises:
            RemoteError: If the repository tree cannot be fetched
        """
        tree = await self._get_tree(repo_id, ref)
        prefix = subpath.strip("/") + "/" if subpath.strip("/") else ""
        paths = [path for path in tree if path.startswith(prefix)]
        fetched = await self._fetch_many(repo_id, ref, paths)
        return {path[len(prefix):]: content for path, content in fetched.items()}

    # ----- catalog --------------------------------------------------------

    async def fetch_indirect_source(self, indirect_id: str) -> tuple[str, str | None] | None:
        """
        Resolve a skills.sh catalog id to its GitHub repository.

        Returns:
            Tuple of (owner/repo, subpath or None), or None if unresolvable
        """
        url = f"{SKILLS_SH_API}/{quote(indirect_id, safe='')}"
        try:
            response = await self._get(url, accept="application/json", auth=False)
            if response.status_code != 200:
                return None
            data = self._json(response)
        except RemoteError as e:
            logger.info("skills.sh lookup for %s failed: %s", indirect_id, e)
            return None

        if not isinstance(data, dict):
            return None
        repo = str(data.get("repo") or data.get("source") or "").strip()
        if not repo:
            return None
        repo = repo.removeprefix("https://github.com/").removesuffix(".git").strip("/")
        subpath = str(data.get("subpath") or "").strip("/") or None
        return repo, subpath
