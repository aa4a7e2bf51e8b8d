"""
Facade over the ``gcloud storage`` command line.

Maps harness operations (copy, list, delete, sign) onto gcloud command lines
run through ProcessRunner, and turns their text output into typed values via
gcseval.parsing.
"""
import logging
from typing import Any, Dict, List, Optional

from gcseval.config import HarnessConfig
from gcseval.exceptions import CommandTimeout, ListFailure, ParseFailure, SignFailure
from gcseval.parsing import (
    is_no_match_error,
    is_remote,
    parse_auth_accounts,
    parse_json_document,
    parse_listing,
    parse_signed_url,
)
from gcseval.runner import ProcessRunner
from gcseval.types import CommandResult
from gcseval.utils.retry import RetryPolicy, retry_until

logger = logging.getLogger(__name__)

GCLOUD = "gcloud"


def quote_local(path: str) -> str:
    """Double-quote a local path containing whitespace for the shell line."""
    if any(ch.isspace() for ch in path) and not (path.startswith('"') and path.endswith('"')):
        return f'"{path}"'
    return path


class GCloudStorageCli:
    """
    gcloud storage operations used by the tests.

    Non-zero exits from copy/delete/execute come back as CommandResult values.
    Listing and signing raise, because their callers need a parsed value.

    Example:
        cli = GCloudStorageCli(ProcessRunner(), retry_policy=RetryPolicy(3, 1.0))
        cli.copy("/tmp/a file.txt", "gs://bucket/a.txt")
        assert cli.list_objects("gs://bucket/a.txt") == ["gs://bucket/a.txt"]
    """

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        retry_policy: Optional[RetryPolicy] = None,
        executable: str = GCLOUD,
    ) -> None:
        self.runner = runner or ProcessRunner()
        self.retry_policy = retry_policy or RetryPolicy()
        self.executable = executable

    @classmethod
    def from_config(cls, config: HarnessConfig) -> "GCloudStorageCli":
        return cls(
            runner=ProcessRunner(timeout=config.command_timeout_seconds),
            retry_policy=RetryPolicy(
                max_attempts=config.retry_attempts,
                delay=config.retry_delay_seconds,
            ),
        )

    def execute(self, command: str) -> CommandResult:
        return self.runner.execute(command)

    def _storage(self, *args: str) -> CommandResult:
        return self.execute(" ".join([self.executable, "storage", *args]))

    # ------------------------------------------------------------------
    # Copy / list / delete
    # ------------------------------------------------------------------

    def copy(self, source: str, destination: str, recursive: bool = False) -> CommandResult:
        """
        Copy between local paths and gs:// paths.

        The local side is quoted when it contains whitespace; remote to remote
        copies are passed through untouched.
        """
        if not is_remote(source) and is_remote(destination):
            source = quote_local(source)
        elif is_remote(source) and not is_remote(destination):
            destination = quote_local(destination)

        args = ["cp"]
        if recursive:
            args.append("-r")
        args.extend([source, destination])
        return self._storage(*args)

    def list_objects(self, path: str, recursive: bool = False) -> List[str]:
        """
        List object paths under a gs:// path or prefix.

        Returns:
            Object paths in gcloud's output order; empty when nothing matched

        Raises:
            ListFailure: If gcloud failed for any other reason
        """
        result = self._storage("ls", "-r", path) if recursive else self._storage("ls", path)

        if not result.success:
            if is_no_match_error(result.stderr):
                return []
            raise ListFailure("Failed to list bucket", result.stderr, result.command)

        return parse_listing(result.stdout)

    def list_objects_json(self, path: str) -> List[Dict[str, Any]]:
        """
        List with ``--json`` and return the raw resource records.

        Raises:
            ListFailure: If gcloud failed for a reason other than "nothing matched"
            ParseFailure: If the output is not a JSON array
        """
        result = self._storage("ls", "--json", path)
        if not result.success:
            if is_no_match_error(result.stderr):
                return []
            raise ListFailure("Failed to list bucket", result.stderr, result.command)

        records = parse_json_document(result.stdout) if result.stdout else []
        if not isinstance(records, list):
            raise ParseFailure("Expected a JSON array from ls --json", result.stdout, result.command)
        return records

    def delete_object(self, path: str, *more_paths: str, recursive: bool = False) -> CommandResult:
        """
        Delete one or more objects in a single gcloud invocation.

        With several paths, partial success is only visible through the
        aggregate exit code and stderr.
        """
        args = ["rm"]
        if recursive:
            args.append("-r")
        args.append(path)
        args.extend(more_paths)
        return self._storage(*args)

    def describe_object(self, path: str) -> Dict[str, Any]:
        """
        Object metadata from ``gcloud storage objects describe``.

        Raises:
            ListFailure: If the object cannot be described
            ParseFailure: If the output is not a JSON object
        """
        result = self._storage("objects", "describe", path, "--format=json")
        if not result.success:
            raise ListFailure("Failed to describe object", result.stderr, result.command)

        metadata = parse_json_document(result.stdout)
        if not isinstance(metadata, dict):
            raise ParseFailure("Expected a JSON object from objects describe", result.stdout, result.command)
        return metadata

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def generate_signed_url(self, path: str, duration_minutes: int) -> str:
        """
        Generate a signed URL for an object.

        Raises:
            SignFailure: If gcloud exited non-zero
            ParseFailure: If no URL could be found in the output
        """
        result = self._storage("sign-url", path, f"--duration={duration_minutes}m")
        if not result.success:
            raise SignFailure("Failed to generate signed URL", result.stderr, result.command)

        url = parse_signed_url(result.stdout)
        logger.debug(f"Signed URL for {path}: {url}")
        return url

    # ------------------------------------------------------------------
    # Environment checks
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        """Check if gcloud CLI is available."""
        try:
            return self.execute(f"{self.executable} --version").success
        except CommandTimeout as e:
            logger.error(f"gcloud CLI not available: {e}")
            return False

    def is_authenticated(self) -> bool:
        """True when ``gcloud auth list`` reports at least one account."""
        try:
            result = self.execute(f"{self.executable} auth list --format=json")
            if not result.success:
                return False
            return len(parse_auth_accounts(result.stdout)) > 0
        except (CommandTimeout, ParseFailure) as e:
            logger.error(f"Failed to check authentication status: {e}")
            return False

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def execute_with_retry(self, command: str, max_attempts: Optional[int] = None) -> CommandResult:
        """
        Run a command until it succeeds or max_attempts is reached.

        Returns:
            The first successful result, otherwise the last failing one
        """
        policy = self.retry_policy
        if max_attempts is not None:
            policy = RetryPolicy(
                max_attempts=max_attempts,
                delay=policy.delay,
                cancel_event=policy.cancel_event,
            )

        def run_command() -> CommandResult:
            return self.execute(command)

        return retry_until(run_command, lambda result: result.success, policy, logger)
