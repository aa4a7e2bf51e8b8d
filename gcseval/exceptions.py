"""
Exceptions raised when the harness itself cannot proceed.

Ordinary gcloud failures (non-zero exit) are never raised; they come back as
CommandResult values so tests can assert on expected failures.
"""
from typing import Optional


class HarnessError(Exception):
    """Base class for all gcseval errors."""


class ConfigurationError(HarnessError):
    """A required configuration value is missing or invalid."""


class CommandTimeout(HarnessError):
    """A command did not finish within its timeout and was killed."""

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"Command timed out after {timeout:g} seconds: {command}")
        self.command = command
        self.timeout = timeout


class CommandOutputError(HarnessError):
    """Base for errors that carry the raw text of a gcloud invocation."""

    def __init__(self, message: str, output: str, command: Optional[str] = None) -> None:
        super().__init__(f"{message}: {output}")
        self.output = output
        self.command = command


class ListFailure(CommandOutputError):
    """`gcloud storage ls` failed for a reason other than "nothing matched"."""


class SignFailure(CommandOutputError):
    """`gcloud storage sign-url` exited non-zero."""


class ParseFailure(CommandOutputError):
    """gcloud output did not match any known shape."""


class UploadFailure(CommandOutputError):
    """A fixture upload failed, so the test cannot start."""


class DownloadFailure(CommandOutputError):
    """A fixture download failed."""
