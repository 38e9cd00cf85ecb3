"""
Process runner — execute native package tools and capture their output.

Every adapter that shells out (npm, pip, go) goes through a
``ProcessRunner``.  Like a receipt, the result carries success or
failure as data: ``execute`` never raises.  Tests swap in a runner
with canned results.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)

EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


class ProcessResult(BaseModel):
    """Captured outcome of one process invocation."""

    command: str
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def error(self) -> str:
        """Best human-readable failure message."""
        return self.stderr.strip() or self.stdout.strip() or f"{self.command} exited with code {self.exit_code}"


class ProcessRunner:
    """Run a command with arguments, never through a shell."""

    def __init__(self, default_timeout: int = 60):
        self.default_timeout = default_timeout

    def which(self, command: str) -> str | None:
        return shutil.which(command)

    def execute(
        self,
        command: str,
        args: list[str] | tuple[str, ...] = (),
        *,
        cwd: Path | str | None = None,
        timeout: int | None = None,
    ) -> ProcessResult:
        timeout = timeout or self.default_timeout
        argv = [command, *args]
        label = " ".join(argv)

        logger.debug("Executing: %s (cwd=%s)", label, cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            return ProcessResult(
                command=label,
                stderr=f"{command}: command not found",
                exit_code=EXIT_NOT_FOUND,
            )
        except subprocess.TimeoutExpired:
            return ProcessResult(
                command=label,
                stderr=f"Command timed out after {timeout}s",
                exit_code=EXIT_TIMEOUT,
                duration_ms=int(timeout * 1000),
            )
        except OSError as e:
            return ProcessResult(
                command=label,
                stderr=f"Command execution error: {e}",
                exit_code=1,
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result.returncode != 0:
            logger.debug("%s exited with %d", label, result.returncode)
        return ProcessResult(
            command=label,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.returncode,
            duration_ms=elapsed_ms,
        )
