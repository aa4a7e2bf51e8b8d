"""
Process runner for gcloud command lines.

Runs a full command line through a shell so quoting, globs and pipes in the
line behave as written, capturing stdout and stderr separately.

Failure contract:
- non-zero exit            -> CompletedCommand with that exit code
- shell cannot be started  -> FailedCommand (exit code -1, reason in stderr)
- timeout                  -> the child process group is killed and CommandTimeout is raised

Output is decoded as UTF-8; undecodable bytes are replaced, never raised.
"""
import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from gcseval.exceptions import CommandTimeout
from gcseval.types import CommandResult, CompletedCommand, FailedCommand

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
# Upper bound on collecting output after the process group was killed
REAP_TIMEOUT = 2.0
DEFAULT_SHELL = "/bin/bash"
FALLBACK_SHELL = "/bin/sh"

# Typical gcloud install locations, for test processes started with a minimal PATH
EXTRA_PATH_DIRS = (
    "~/google-cloud-sdk/bin",
    "/usr/local/bin",
    "/opt/homebrew/bin",
    "/usr/bin",
    "/bin",
)


def resolve_shell(environ: Optional[Mapping[str, str]] = None) -> str:
    """Pick the shell: $SHELL, else /bin/bash, else /bin/sh if that path is missing."""
    environ = os.environ if environ is None else environ
    shell = environ.get("SHELL") or DEFAULT_SHELL
    if not Path(shell).exists():
        shell = FALLBACK_SHELL
    return shell


def build_path(current_path: Optional[str]) -> str:
    """Append the known gcloud install locations to a PATH value."""
    parts: List[str] = [current_path] if current_path else []
    parts.extend(os.path.expanduser(d) for d in EXTRA_PATH_DIRS)
    return os.pathsep.join(parts)


class ProcessRunner:
    """
    Runs command lines in a child shell and returns CommandResult values.

    Example:
        runner = ProcessRunner(timeout=30)
        result = runner.execute("gcloud storage ls gs://my-bucket")
        if not result.success:
            print(result.stderr)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        env: Optional[Dict[str, str]] = None,
        shell: Optional[str] = None,
    ) -> None:
        self.timeout = timeout
        self.base_env = env or {}
        self._shell = shell

    @property
    def shell(self) -> str:
        if self._shell is None:
            self._shell = resolve_shell()
        return self._shell

    def build_env(self) -> Dict[str, str]:
        """Child environment: os.environ + base env, with PATH extended."""
        full_env = dict(os.environ)
        full_env.update(self.base_env)
        full_env["PATH"] = build_path(full_env.get("PATH"))
        return full_env

    def execute(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """
        Execute a command line and capture its output.

        Args:
            command: Full command line, passed to the shell as one argument
            timeout: Timeout in seconds (defaults to the runner's timeout)

        Returns:
            CompletedCommand, or FailedCommand if the process could not run

        Raises:
            CommandTimeout: If the command outlived the timeout
        """
        timeout = self.timeout if timeout is None else timeout
        logger.info(f"Executing command: {command}")
        start = time.monotonic()

        try:
            process = subprocess.Popen(
                [self.shell, "-c", command],
                env=self.build_env(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except OSError as e:
            duration_ms = _elapsed_ms(start)
            logger.error(f"Error executing command: {e}")
            return FailedCommand.from_error(command, e, duration_ms)

        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            _kill_group(process)
            try:
                process.communicate(timeout=REAP_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.warning(f"Output pipes still open after killing: {command}")
            logger.error(f"Command timed out after {timeout:g}s: {command}")
            raise CommandTimeout(command, timeout)
        except OSError as e:
            _kill_group(process)
            process.wait()
            duration_ms = _elapsed_ms(start)
            logger.error(f"Error reading command output: {e}")
            return FailedCommand.from_error(command, e, duration_ms)

        duration_ms = _elapsed_ms(start)
        result = CompletedCommand(
            command=command,
            exit_code=process.returncode,
            stdout=(stdout or "").strip(),
            stderr=(stderr or "").strip(),
            duration_ms=duration_ms,
        )

        if result.success:
            logger.info(f"Command executed successfully in {duration_ms} ms")
        else:
            logger.warning(f"Command failed with exit code: {result.exit_code}")
            logger.warning(f"Stderr: {result.stderr}")

        return result


def _kill_group(process: subprocess.Popen) -> None:
    """SIGKILL the session started for the child, including its grandchildren."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug(f"Process group {process.pid} already exited")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
