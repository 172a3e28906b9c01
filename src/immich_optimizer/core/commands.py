"""External tool execution for task steps."""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from typing import TYPE_CHECKING

from .base import ProcessingError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

LOG = logging.getLogger(__name__)

STDERR_TAIL_LENGTH = 500


class StepError(ProcessingError):
    """A task step exited with an error or could not be started."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        return_code: int | None = None,
        stderr: str | None = None,
        file_path: Path | None = None,
    ) -> None:
        """Initialize step error with detailed context."""
        super().__init__(message, file_path=file_path)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


def missing_executables(executables: Iterable[str]) -> list[str]:
    """Return the executables that cannot be found on PATH."""
    return sorted({exe for exe in executables if not shutil.which(exe)})


class CommandRunner:
    """Runs step commands with uniform error handling."""

    def __init__(self, default_timeout: float | None = None) -> None:
        self.default_timeout = default_timeout

    def run(
        self,
        command: list[str],
        *,
        cwd: Path | None = None,
        timeout: float | None = None,
        file_path: Path | None = None,
    ) -> subprocess.CompletedProcess:
        """Run a command, raising StepError unless it exits with 0."""
        timeout = timeout if timeout is not None else self.default_timeout
        LOG.debug("Running step command: %s", " ".join(command))
        start_time = time.time()

        try:
            result = subprocess.run(  # noqa: S603
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
                encoding="utf-8",
                errors="replace",
            )
        except subprocess.TimeoutExpired as e:
            msg = f"Step command timed out after {timeout}s: {command[0]}"
            raise StepError(msg, command=command, file_path=file_path) from e
        except OSError as e:
            msg = f"Unable to start step command {command[0]}: {e}"
            raise StepError(msg, command=command, file_path=file_path) from e

        LOG.debug("Step command completed in %.2fs", time.time() - start_time)

        if result.returncode != 0:
            error_msg = f"{command[0]} failed with return code {result.returncode}"
            stderr = (result.stderr or "").strip()
            if stderr:
                error_msg += f": {stderr[-STDERR_TAIL_LENGTH:]}"
            raise StepError(
                error_msg,
                command=command,
                return_code=result.returncode,
                stderr=result.stderr,
                file_path=file_path,
            )

        return result
