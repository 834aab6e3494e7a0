"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running git, plus the
output formatting helpers used by the release pipelines.
"""

from __future__ import annotations

import logging
import subprocess
from typing import NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 60.0

# Exit status reported when git is killed for exceeding its timeout,
# matching coreutils `timeout`.
TIMEOUT_RETURNCODE = 124


class GitResult(NamedTuple):
    """Outcome of a git invocation.

    Attributes:
        returncode: Process exit status (TIMEOUT_RETURNCODE on timeout).
        stdout: Stripped standard output.
    """

    returncode: int
    stdout: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def lines(self) -> list[str]:
        """Non-empty stdout lines, or [] when the command failed."""
        if not self.ok:
            return []
        return [line for line in self.stdout.splitlines() if line.strip()]


def git_result(*args: str, timeout: float | None = DEFAULT_GIT_TIMEOUT) -> GitResult:
    """Run a git command without raising on failure.

    Args:
        *args: Arguments to pass to git (e.g., "log", "--merges").
        timeout: Seconds before the process is killed. A timeout is reported
                 as a non-zero result rather than an exception.

    Returns:
        GitResult with the exit status and stripped stdout.
    """
    try:
        result = subprocess.run(
            ["git", *args], capture_output=True, text=True, check=False, timeout=timeout
        )
    except subprocess.TimeoutExpired:
        logger.warning("git %s timed out after %ss", " ".join(args), timeout)
        return GitResult(TIMEOUT_RETURNCODE, "")
    if result.returncode != 0:
        logger.debug("git %s exited %d: %s", " ".join(args), result.returncode, result.stderr.strip())
    return GitResult(result.returncode, result.stdout.strip())


def git(*args: str, check: bool = True, timeout: float | None = DEFAULT_GIT_TIMEOUT) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        timeout: Seconds before the process is killed.

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], capture_output=True, text=True, check=check, timeout=timeout
    )
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
