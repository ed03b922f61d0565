"""SKILL.md frontmatter handling.

Skills carry a YAML metadata block between ``---`` delimiters at the top of
SKILL.md. The block is read with ``yaml.safe_load``; top-level scalar values
are exposed as strings. Rewrites touch only the top-level keys they set.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import yaml


logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"^---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)", re.DOTALL)
FIELD_RE = re.compile(r"^([^\s#-][^:]*?):(?:\s+(.*))?$")


@dataclass(frozen=True)
class TemplateField:
    """A metadata field backfilled on install when missing."""

    field: str
    default: str


def split_frontmatter(content: str) -> tuple[str, str] | None:
    """
    Split SKILL.md content into its metadata block and body.

    Returns:
        Tuple of (metadata block, body) or None if there is no block
    """
    match = FRONTMATTER_RE.match(content)
    if not match:
        return None
    return match.group(1), content[match.end():]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.strip()
    return str(value)


def parse_frontmatter(content: str, strict: bool = False) -> dict[str, str]:
    """
    Parse the metadata block into a string-keyed mapping.

    Args:
        content: SKILL.md content
        strict: Raise yaml.YAMLError on malformed YAML instead of returning {}

    Returns:
        Top-level fields as strings ({} when there is no block)
    """
    parts = split_frontmatter(content)
    if parts is None:
        return {}

    try:
        data = yaml.safe_load(parts[0])
    except yaml.YAMLError:
        if strict:
            raise
        logger.debug("Unparseable frontmatter block", exc_info=True)
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(key): _as_text(value) for key, value in data.items()}


def manifest_body(content: str) -> str:
    """Return the instructions that follow the metadata block."""
    parts = split_frontmatter(content)
    return parts[1] if parts else content


def normalize_name(name: str) -> str:
    """Lower-case a declared name and hyphenate whitespace."""
    return re.sub(r"\s+", "-", name.strip().lower())


def _format_field(key: str, value: str) -> str:
    # Boolean flags are written bare so YAML readers see booleans
    data = {key: {"true": True, "false": False}.get(value, value)}
    # allow_unicode=True to keep non-ASCII values readable
    dumped = yaml.safe_dump(
        data,
        default_flow_style=False,
        allow_unicode=True,
        width=10_000,
    )
    return dumped.strip()


def set_fields(content: str, fields: dict[str, str]) -> str:
    """
    Set metadata fields, replacing existing entries and appending new ones.

    A replaced entry loses its continuation lines too. Content without a
    metadata block is returned unchanged.
    """
    parts = split_frontmatter(content)
    if parts is None or not fields:
        return content

    block, body = parts
    remaining = dict(fields)
    lines: list[str] = []
    replacing = False
    for line in block.splitlines():
        match = FIELD_RE.match(line)
        if match is None:
            if line.startswith("#"):
                replacing = False
            if not replacing:
                lines.append(line)
            continue
        key = match.group(1).strip()
        replacing = key in remaining
        if replacing:
            lines.append(_format_field(key, remaining.pop(key)))
        else:
            lines.append(line)
    for key, value in remaining.items():
        lines.append(_format_field(key, value))

    return "---\n" + "\n".join(lines) + "\n---\n" + body


def backfill(content: str, template: list[TemplateField]) -> str:
    """Add template fields that the metadata block does not declare."""
    existing = parse_frontmatter(content)
    missing = {t.field: t.default for t in template if not existing.get(t.field)}
    return set_fields(content, missing)


# Fields every installed SKILL.md is expected to declare
MANIFEST_TEMPLATE: list[TemplateField] = [
    TemplateField("category", "uncategorized"),
    TemplateField("disable-model-invocation", "false"),
    TemplateField("user-invocable", "true"),
]
