"""Skills Manager - install, update and scan AI agent skills from GitHub."""

from skills_manager.core.types import (
    ArchiveInstallResult,
    BundleLocator,
    InstallResult,
    ScanResult,
    VersionState,
)

__version__ = "0.1.0"

__all__ = [
    "ArchiveInstallResult",
    "BundleLocator",
    "InstallResult",
    "ScanResult",
    "VersionState",
]
