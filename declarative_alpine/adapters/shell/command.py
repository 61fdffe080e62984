"""
Shell command runner — execute external utilities for real.

Commands run without a shell, from an argv list. Output is captured
in full after the process exits; the exit status is the only success
signal.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from declarative_alpine.adapters.base import CommandRunner, display_argv
from declarative_alpine.core.models.action import Receipt

logger = logging.getLogger(__name__)


class ShellCommandRunner(CommandRunner):
    """Execute commands with subprocess and capture output.

    Args:
        timeout: Seconds before a command is killed. None (the default)
            waits for as long as the command takes.
    """

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self, program: str) -> bool:
        return shutil.which(program) is not None

    def run(self, argv: list[str], *, sensitive: bool = False) -> Receipt:
        shown = display_argv(argv, sensitive)
        logger.debug("Executing: %s", " ".join(shown))
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )

            elapsed_ms = int((time.monotonic() - start) * 1000)
            output = result.stdout.strip()
            stderr = result.stderr.strip()

            if result.returncode == 0:
                return Receipt.success(
                    runner=self.name,
                    command=shown,
                    output=output,
                    duration_ms=elapsed_ms,
                    return_code=result.returncode,
                    metadata={"stderr": stderr},
                )
            else:
                return Receipt.failure(
                    runner=self.name,
                    command=shown,
                    error=stderr or f"Command exited with code {result.returncode}",
                    duration_ms=elapsed_ms,
                    return_code=result.returncode,
                    metadata={"stdout": output},
                )

        except subprocess.TimeoutExpired:
            return Receipt.failure(
                runner=self.name,
                command=shown,
                error=f"Command timed out after {self._timeout}s",
                metadata={"timeout": self._timeout},
            )
        except Exception as e:
            return Receipt.failure(
                runner=self.name,
                command=shown,
                error=f"Command execution error: {e}",
            )
