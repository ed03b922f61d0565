"""Structural validation of a skill directory."""

from __future__ import annotations

from pathlib import Path

import yaml

from skills_manager.core.filesystem import FileSystem, PathLike
from skills_manager.core.frontmatter import parse_frontmatter, split_frontmatter
from skills_manager.core.types import ValidationResult


# Skill file name constants
SKILL_FILE_NAME = "SKILL.md"

REQUIRED_FIELDS = ("name", "description")


def validate_bundle(fs: FileSystem, path: PathLike) -> ValidationResult:
    """
    Validate that a directory holds a well-formed skill.

    Checks that the directory and its SKILL.md exist, that SKILL.md starts
    with a ``---`` delimited metadata block, and that the required
    ``name`` and ``description`` fields are non-empty.

    Args:
        fs: FileSystem to read through
        path: Skill directory

    Returns:
        ValidationResult with the collected errors
    """
    skill_dir = Path(path)
    if not fs.is_dir(skill_dir):
        return ValidationResult(valid=False, errors=[f"Directory does not exist: {skill_dir}"])

    skill_file = skill_dir / SKILL_FILE_NAME
    if not fs.exists(skill_file):
        return ValidationResult(
            valid=False, errors=[f"{SKILL_FILE_NAME} not found in {skill_dir}"]
        )

    try:
        content = fs.read_text(skill_file)
    except (OSError, UnicodeDecodeError):
        return ValidationResult(valid=False, errors=[f"Could not read {skill_file}"])

    if split_frontmatter(content) is None:
        return ValidationResult(
            valid=False,
            errors=[f"{SKILL_FILE_NAME} is missing YAML frontmatter (--- delimiters)"],
        )

    try:
        fields = parse_frontmatter(content, strict=True)
    except yaml.YAMLError as e:
        return ValidationResult(
            valid=False, errors=[f"{SKILL_FILE_NAME} has invalid YAML frontmatter: {e}"]
        )
    errors = [
        f"Missing required frontmatter field: {name}"
        for name in REQUIRED_FIELDS
        if not fields.get(name)
    ]
    return ValidationResult(valid=not errors, errors=errors)


def read_declared_name(fs: FileSystem, path: PathLike) -> str | None:
    """Return the ``name`` declared in a skill directory's SKILL.md, if any."""
    try:
        content = fs.read_text(Path(path) / SKILL_FILE_NAME)
    except (OSError, UnicodeDecodeError):
        return None
    return parse_frontmatter(content).get("name") or None
