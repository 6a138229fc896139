"""Subprocess wrapper for zipalign, apksigner, jarsigner and keytool."""

import logging
import subprocess
from dataclasses import dataclass

from secureapk.exceptions import ProcessError

logger = logging.getLogger(__name__)

# Arguments whose following value is a secret
_SECRET_FLAGS = frozenset(
    {"--ks-pass", "--key-pass", "-storepass", "-keypass", "-srcstorepass"}
)


def redact(command: list[str]) -> list[str]:
    """Return a copy of command with password arguments masked."""
    redacted: list[str] = []
    hide_next = False
    for arg in command:
        redacted.append("****" if hide_next else arg)
        hide_next = not hide_next and arg in _SECRET_FLAGS
    return redacted


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured output of one tool run.

    `command` is the redacted command line, safe to log or display.
    """

    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout.strip()


def run_tool(
    command: list[str],
    *,
    check: bool = True,
    timeout: float | None = None,
) -> ProcessResult:
    """Run an SDK or JDK tool and capture its output.

    Args:
        command: Executable followed by its arguments.
        check: Raise ProcessError when the tool exits non-zero.
        timeout: Seconds before the tool is killed; None waits forever.

    Raises:
        ProcessError: If the executable is missing, the timeout expires,
            or check is set and the exit status is non-zero. The error
            carries the redacted command line.
    """
    safe_command = redact(command)
    logger.debug("Running %s", " ".join(safe_command))

    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ProcessError(safe_command, -1, f"Timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise ProcessError(safe_command, -1, f"Executable not found: {command[0]}") from e
    except OSError as e:
        # Not executable, wrong architecture, and similar exec failures
        raise ProcessError(safe_command, -1, f"Cannot execute {command[0]}: {e}") from e

    result = ProcessResult(
        command=safe_command,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
    if check and not result.success:
        raise ProcessError(safe_command, result.returncode, result.stderr)

    logger.debug("%s exited %d", safe_command[0], result.returncode)
    return result
