"""Core type definitions for the skills manager."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field, model_validator


# Relative POSIX path -> content. Binary archive members stay bytes.
FileSet = dict[str, Union[str, bytes]]


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class LocatorKind(str, Enum):
    """Shape of a resolved source reference."""

    STANDALONE = "standalone"
    MONOREPO = "monorepo"
    INDIRECT = "indirect"


class SourceKind(str, Enum):
    """Where an installed skill came from."""

    LOCAL = "local"
    ARCHIVE = "archive"
    REMOTE = "remote"


class Severity(str, Enum):
    WARNING = "warning"
    DANGER = "danger"


class RiskLevel(str, Enum):
    CLEAN = "clean"
    WARNING = "warning"
    DANGER = "danger"


class BundleLocator(BaseModel):
    """A resolved reference describing where to fetch a skill from."""

    kind: LocatorKind
    repo_id: str | None = None
    subpath: str | None = None
    indirect_id: str | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> BundleLocator:
        if self.kind == LocatorKind.MONOREPO:
            if not self.subpath:
                raise ValueError("monorepo locator requires a subpath")
        elif self.subpath:
            raise ValueError(f"{self.kind.value} locator cannot carry a subpath")

        if self.kind == LocatorKind.INDIRECT:
            if not self.indirect_id:
                raise ValueError("indirect locator requires an indirect_id")
        elif not self.repo_id:
            raise ValueError(f"{self.kind.value} locator requires a repo_id")
        return self

    @property
    def bundle_id(self) -> str:
        """Local identifier the skill is installed under."""
        if self.kind == LocatorKind.MONOREPO and self.subpath:
            return self.subpath.rstrip("/").split("/")[-1]
        if self.repo_id:
            return self.repo_id.split("/")[-1]
        return (self.indirect_id or "").rstrip("/").split("/")[-1]

    def __str__(self) -> str:
        if self.kind == LocatorKind.MONOREPO:
            return f"{self.repo_id}/{self.subpath}"
        if self.kind == LocatorKind.INDIRECT:
            return f"skills.sh/{self.indirect_id}"
        return str(self.repo_id)


class ReleaseAsset(BaseModel):
    name: str
    url: str = ""
    browser_download_url: str = ""


class ReleaseDescriptor(BaseModel):
    """A published release of a skill repository."""

    tag: str
    is_prerelease: bool = False
    published_at: str | None = None
    assets: list[ReleaseAsset] = Field(default_factory=list)

    @classmethod
    def from_api(cls, payload: dict) -> ReleaseDescriptor:
        """Build from a GitHub releases API entry."""
        return cls(
            tag=str(payload.get("tag_name", "")),
            is_prerelease=bool(payload.get("prerelease", False)),
            published_at=payload.get("published_at"),
            assets=[
                ReleaseAsset(
                    name=str(asset.get("name", "")),
                    url=str(asset.get("url", "")),
                    browser_download_url=str(asset.get("browser_download_url", "")),
                )
                for asset in payload.get("assets") or []
            ],
        )


class InstallResult(BaseModel):
    """Result of an install, update or registration."""

    success: bool
    bundle_name: str = ""
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, bundle_name: str) -> InstallResult:
        """Create a success result."""
        return cls(success=True, bundle_name=bundle_name)

    @classmethod
    def failure(cls, *errors: str, bundle_name: str = "") -> InstallResult:
        """Create a failure result."""
        return cls(success=False, bundle_name=bundle_name, errors=list(errors))


class ArchiveInstallResult(BaseModel):
    """Result of installing every skill found in a zip archive."""

    installed: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.installed) and not self.errors


class VersionState(BaseModel):
    """Persisted provenance and update state of one installed skill."""

    source: SourceKind
    repo_id: str | None = None
    subpath: str | None = None
    version: str | None = None
    frozen: bool = False
    installed_at: str = Field(default_factory=utc_now)
    last_updated_at: str | None = None


class ThreatFinding(BaseModel):
    severity: Severity
    location: str
    pattern_id: str
    description: str

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.location}: {self.description}"


class ScanResult(BaseModel):
    """Point-in-time threat scan of one skill directory."""

    findings: list[ThreatFinding] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.CLEAN

    @classmethod
    def from_findings(cls, findings: list[ThreatFinding]) -> ScanResult:
        """Derive the overall risk level from individual findings."""
        if any(f.severity == Severity.DANGER for f in findings):
            level = RiskLevel.DANGER
        elif findings:
            level = RiskLevel.WARNING
        else:
            level = RiskLevel.CLEAN
        return cls(findings=list(findings), risk_level=level)


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class UpdateCheckResult(BaseModel):
    has_update: bool
    latest_version: str


class Settings(BaseModel):
    """User settings persisted alongside the skill state."""

    skills_dir: str = ""
    github_token: str = ""
    auto_update: bool = True
    default_category: str = "uncategorized"
    registry_url: str = "https://skills.sh/api/skills"


class StoreDocument(BaseModel):
    """The single persisted document: settings plus per-skill state."""

    settings: Settings = Field(default_factory=Settings)
    skills: dict[str, VersionState] = Field(default_factory=dict)


class RegistrySkill(BaseModel):
    """A skill listed in a public catalog."""

    source: str
    skill_id: str = Field(default="", alias="skillId")
    name: str
    installs: int = 0
    description: str | None = None

    model_config = {"populate_by_name": True}

    def __str__(self) -> str:
        return f"{self.name} ({self.source}) - {self.installs} installs"


class RegistryPage(BaseModel):
    skills: list[RegistrySkill] = Field(default_factory=list)
    has_more: bool = False
    page: int = 0
