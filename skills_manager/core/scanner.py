"""Static threat scanning of skill content.

SKILL.md instructions are checked for operational-risk commands and prompt
injection; files under ``scripts/`` are checked for operational-risk commands
only. Results are point-in-time and cached per skill by ``ScanCache``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from skills_manager.core.filesystem import FileSystem, PathLike
from skills_manager.core.frontmatter import manifest_body
from skills_manager.core.types import ScanResult, Severity, ThreatFinding
from skills_manager.core.validator import SKILL_FILE_NAME

logger = logging.getLogger(__name__)

SCRIPTS_DIR_NAME = "scripts"


@dataclass(frozen=True)
class ThreatPattern:
    pattern_id: str
    regex: re.Pattern[str]
    severity: Severity
    description: str


def _p(pattern_id: str, regex: str, severity: Severity, description: str, flags: int = 0) -> ThreatPattern:
    return ThreatPattern(pattern_id, re.compile(regex, flags), severity, description)


W, D = Severity.WARNING, Severity.DANGER

OPERATIONAL_PATTERNS: tuple[ThreatPattern, ...] = (
    # Network calls
    _p("net-curl", r"\bcurl\b", W, "Network call: curl"),
    _p("net-wget", r"\bwget\b", W, "Network call: wget"),
    _p("net-fetch", r"\bfetch\s*\(", W, "Network call: fetch()"),
    _p("net-requests", r"\brequests\.(post|get|put)\b", W, "Network call: python requests"),
    _p("net-netcat", r"\bnc\s+-", D, "Network call: netcat"),
    # Destructive commands
    _p("destructive-rm-rf", r"\brm\s+-rf\b", D, "Destructive: rm -rf"),
    _p("destructive-shred", r"\bshred\b", D, "Destructive: shred"),
    _p("destructive-dd", r"\bdd\s+if=/dev/", D, "Destructive: dd from device"),
    # Remote code execution
    _p("rce-curl-pipe", r"curl\s.*\|\s*(ba)?sh\b", D, "Remote code execution: curl pipe to shell"),
    _p("exec-eval", r"\beval\s*\(", D, "Code execution: eval()"),
    _p("exec-exec", r"\bexec\s*\(", W, "Code execution: exec()"),
    # Credential access
    _p("cred-ssh", r"~/\.ssh", D, "Credential access: ~/.ssh"),
    _p("cred-aws", r"~/\.aws", D, "Credential access: ~/.aws"),
    _p("cred-env", r"~/\.env", W, "Credential access: ~/.env"),
    _p("cred-npmrc", r"~/\.npmrc", W, "Credential access: ~/.npmrc"),
)

PROMPT_INJECTION_PATTERNS: tuple[ThreatPattern, ...] = (
    _p(
        "inject-ignore-previous",
        r"ignore\s+(all\s+)?previous\s+instructions",
        D,
        "Prompt injection: ignore previous instructions",
        re.IGNORECASE,
    ),
    _p("inject-role-override", r"you\s+are\s+now\b", D, "Prompt injection: role override", re.IGNORECASE),
    _p(
        "inject-hidden-comment",
        r"<!--[\s\S]*?(ignore|override|forget)[\s\S]*?-->",
        D,
        "Prompt injection: hidden command in HTML comment",
        re.IGNORECASE,
    ),
    _p(
        "inject-do-not-follow",
        r"\bdo\s+not\s+follow\s+(the\s+)?(above|previous)\b",
        D,
        "Prompt injection: instruction override",
        re.IGNORECASE,
    ),
)


def _match(location: str, text: str, patterns: tuple[ThreatPattern, ...]) -> list[ThreatFinding]:
    return [
        ThreatFinding(
            severity=tp.severity,
            location=location,
            pattern_id=tp.pattern_id,
            description=tp.description,
        )
        for tp in patterns
        if tp.regex.search(text)
    ]


class ThreatScanner:
    """Pattern-matches skill content against a fixed rule set."""

    def __init__(self, fs: FileSystem) -> None:
        self.fs = fs

    def scan(self, bundle_path: PathLike) -> ScanResult:
        """
        Scan a skill directory.

        Args:
            bundle_path: Skill directory containing SKILL.md

        Returns:
            ScanResult with one finding per matching pattern per file
        """
        root = Path(bundle_path)
        findings: list[ThreatFinding] = []

        skill_file = root / SKILL_FILE_NAME
        if self.fs.exists(skill_file):
            try:
                body = manifest_body(self.fs.read_text(skill_file))
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Skipping unreadable %s: %s", skill_file, e)
            else:
                findings.extend(_match(SKILL_FILE_NAME, body, PROMPT_INJECTION_PATTERNS))
                findings.extend(_match(SKILL_FILE_NAME, body, OPERATIONAL_PATTERNS))

        scripts_dir = root / SCRIPTS_DIR_NAME
        if self.fs.is_dir(scripts_dir):
            for script in self._walk(scripts_dir):
                try:
                    content = self.fs.read_text(script)
                except (OSError, UnicodeDecodeError) as e:
                    logger.debug("Skipping unreadable %s: %s", script, e)
                    continue
                location = script.relative_to(root).as_posix()
                findings.extend(_match(location, content, OPERATIONAL_PATTERNS))

        return ScanResult.from_findings(findings)

    def _walk(self, directory: Path) -> list[Path]:
        try:
            listing = self.fs.list_dir(directory)
        except OSError as e:
            logger.debug("Skipping unlistable %s: %s", directory, e)
            return []
        files = list(listing.files)
        for sub in listing.dirs:
            files.extend(self._walk(sub))
        return files


class ScanCache:
    """Scan results keyed by skill id; callers invalidate on content change."""

    def __init__(self, scanner: ThreatScanner) -> None:
        self.scanner = scanner
        self._results: dict[str, ScanResult] = {}

    def get(self, bundle_id: str, bundle_path: PathLike) -> ScanResult:
        if bundle_id not in self._results:
            self._results[bundle_id] = self.scanner.scan(bundle_path)
        return self._results[bundle_id]

    def invalidate(self, bundle_id: str) -> None:
        self._results.pop(bundle_id, None)

    def clear(self) -> None:
        self._results.clear()
