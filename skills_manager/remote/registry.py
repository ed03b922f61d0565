"""Single paginated fetch from the skills.sh catalog."""

from __future__ import annotations

from typing import Any

import httpx

from skills_manager.core.errors import RemoteError
from skills_manager.core.types import RegistryPage, RegistrySkill

BOARDS = ("all-time", "trending", "hot")


async def fetch_registry_page(
    http: httpx.AsyncClient,
    base_url: str,
    board: str = "all-time",
    page: int = 0,
) -> RegistryPage:
    """
    Fetch one page of a catalog leaderboard.

    Args:
        http: httpx client to use
        base_url: Catalog API root (e.g. https://skills.sh/api/skills)
        board: One of BOARDS
        page: Zero-based page number

    Raises:
        RemoteError: On transport failure or a non-200 response
    """
    if board not in BOARDS:
        raise ValueError(f"Unknown board '{board}'. Choose from: {', '.join(BOARDS)}")

    url = f"{base_url.rstrip('/')}/{board}/{page}"
    try:
        response = await http.get(url, headers={"Accept": "application/json"})
    except httpx.HTTPError as e:
        raise RemoteError(f"Registry request failed: {e}") from e

    if response.status_code != 200:
        raise RemoteError(f"Registry returned status {response.status_code}")

    try:
        data: dict[str, Any] = response.json()
    except ValueError as e:
        raise RemoteError(f"Registry returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise RemoteError("Registry returned an unexpected payload")

    skills = [
        RegistrySkill.model_validate(item)
        for item in data.get("skills") or []
        if isinstance(item, dict) and item.get("source") and item.get("name")
    ]
    return RegistryPage(
        skills=skills,
        has_more=bool(data.get("hasMore", False)),
        page=int(data.get("page", page)),
    )
