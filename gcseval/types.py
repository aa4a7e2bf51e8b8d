"""
Shared type definitions for gcseval.

This module contains the result records passed between the process runner,
the gcloud facade, the signed URL validator and the tests, kept here to avoid
circular imports.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Verdict(str, Enum):
    """Binary verdict - deterministic, no subjective interpretation."""
    PASS = "PASS"
    FAIL = "FAIL"
    ERROR = "ERROR"


# ============================================================================
# Command execution
# ============================================================================


@dataclass(frozen=True)
class CommandResult:
    """
    Outcome of one external command invocation.

    Never constructed directly by the runner; it returns one of the two
    variants below so callers can tell "the command ran and failed" apart
    from "the command could not be started":

        match result:
            case CompletedCommand(exit_code=0):
                ...
            case FailedCommand(reason=reason):
                ...
    """

    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int

    @property
    def success(self) -> bool:
        """Sole success signal: exit code 0."""
        return self.exit_code == 0

    @property
    def combined_output(self) -> str:
        """stdout and stderr joined by a newline, skipping empty streams."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(command={self.command!r}, exit_code={self.exit_code}, "
            f"duration_ms={self.duration_ms}, stdout={self.stdout[:100]!r}, "
            f"stderr={self.stderr[:100]!r})"
        )


@dataclass(frozen=True, repr=False)
class CompletedCommand(CommandResult):
    """The process started and exited; exit_code is its real exit status."""


@dataclass(frozen=True, repr=False)
class FailedCommand(CommandResult):
    """The process could not be run at all (shell missing, I/O error)."""

    reason: str = ""

    @classmethod
    def from_error(cls, command: str, error: BaseException, duration_ms: int = 0) -> "FailedCommand":
        reason = str(error) or type(error).__name__
        return cls(
            command=command,
            exit_code=-1,
            stdout="",
            stderr=reason,
            duration_ms=duration_ms,
            reason=reason,
        )


# ============================================================================
# Signed URL validation
# ============================================================================

# Sentinel status codes
STATUS_NOT_OBSERVED = 0
STATUS_ERROR = -1


@dataclass(frozen=True)
class SignedUrlValidationResult:
    """Verdict of opening one signed URL in a real browser."""

    url: str
    status_code: int
    phishing_detected: bool
    page_title: Optional[str] = None
    page_content: Optional[str] = None
    screenshot_path: Optional[str] = None
    download_started: bool = False
    matched_indicator: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"))

    @property
    def is_success(self) -> bool:
        return self.status_code == 200 and not self.phishing_detected

    @property
    def verdict(self) -> Verdict:
        """ERROR when validation itself failed, FAIL on any bad signal."""
        if self.status_code == STATUS_ERROR:
            return Verdict.ERROR
        if self.is_success:
            return Verdict.PASS
        return Verdict.FAIL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "verdict": self.verdict.value,
            "url": self.url,
            "status_code": self.status_code,
            "phishing_detected": self.phishing_detected,
            "matched_indicator": self.matched_indicator,
            "download_started": self.download_started,
            "page_title": self.page_title,
            "screenshot_path": self.screenshot_path,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return (
            f"SignedUrlValidationResult(url={self.url!r}, status={self.status_code}, "
            f"phishing={self.phishing_detected}, title={self.page_title!r})"
        )
