"""Core modules for the skills manager.

Primary modules:
- StateStore: Persisted settings and per-skill version state
- VersionTracker: Update checks and freeze state
- ThreatScanner: Static risk scanning of skill content
- types: Type definitions (BundleLocator, InstallResult, etc.)
"""

from skills_manager.core.filesystem import FileSystem, InMemoryFileSystem, LocalFileSystem
from skills_manager.core.scanner import ScanCache, ThreatScanner
from skills_manager.core.store import StateStore
from skills_manager.core.types import (
    ArchiveInstallResult,
    BundleLocator,
    InstallResult,
    LocatorKind,
    ReleaseDescriptor,
    RiskLevel,
    ScanResult,
    SourceKind,
    VersionState,
)
from skills_manager.core.versions import VersionTracker, coerce_version

__all__ = [
    # Types
    "ArchiveInstallResult",
    "BundleLocator",
    "InstallResult",
    "LocatorKind",
    "ReleaseDescriptor",
    "RiskLevel",
    "ScanResult",
    "SourceKind",
    "VersionState",
    # Filesystem
    "FileSystem",
    "InMemoryFileSystem",
    "LocalFileSystem",
    # Primary modules
    "ScanCache",
    "StateStore",
    "ThreatScanner",
    "VersionTracker",
    "coerce_version",
]
