"""Exception hierarchy for the install/update pipeline.

Public installer operations catch these at their boundary and turn them into
failure results; they surface directly only from the lower-level modules.
"""

from __future__ import annotations


class SkillsManagerError(Exception):
    """Base class for all skills manager errors."""


class UnrecognizedSourceError(SkillsManagerError):
    """The source reference matches none of the supported formats."""

    def __init__(self, text: str) -> None:
        super().__init__(f"Unrecognized skill source: '{text}'")
        self.text = text


class RemoteError(SkillsManagerError):
    """A request to the hosting service failed."""


class RateLimitedError(RemoteError):
    """The API quota is exhausted."""

    def __init__(self) -> None:
        super().__init__(
            "GitHub API rate limit exceeded. Configure a token (GITHUB_TOKEN) for higher limits."
        )


class NotFoundError(RemoteError):
    """The repository or resource does not exist (or is private)."""


class NoManifestError(SkillsManagerError):
    """Fetched or staged content has no SKILL.md."""

    def __init__(self, source: str) -> None:
        super().__init__(f"No SKILL.md found in {source}")
        self.source = source


class ValidationFailedError(SkillsManagerError):
    """Staged content failed the structural check."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors) or "Validation failed")
        self.errors = errors


class FrozenError(SkillsManagerError):
    """An update was requested for a pinned skill."""

    def __init__(self, bundle_id: str) -> None:
        super().__init__(f"Skill '{bundle_id}' is frozen; unfreeze it before updating")
        self.bundle_id = bundle_id


class PromotionError(SkillsManagerError):
    """Swapping the staged skill into place failed.

    ``rollback_error`` is set when restoring the previous install also failed,
    in which case the final path may be missing.
    """

    def __init__(
        self,
        message: str,
        rollback_error: BaseException | None = None,
    ) -> None:
        if rollback_error is not None:
            message = f"{message}; rollback also failed: {rollback_error}"
        super().__init__(message)
        self.rollback_error = rollback_error
