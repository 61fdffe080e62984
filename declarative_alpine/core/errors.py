"""
Error taxonomy — every failure a reconciliation can surface.

The set is closed: callers catch ``ReconcileError`` and get one of
the four kinds below. Malformed records inside a store are not errors;
they are skipped at read time.
"""

from __future__ import annotations

from pathlib import Path


class ReconcileError(Exception):
    """Base class for all reconciliation failures."""


class StoreUnavailableError(ReconcileError):
    """A required backing file does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Required store not found: {path}")


class StoreIOError(ReconcileError):
    """Reading or writing a backing or backup file failed."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"I/O failure on {path}: {reason}")


class ExternalCommandError(ReconcileError):
    """An external command exited non-zero (or could not be started)."""

    def __init__(self, command: list[str], stderr: str, return_code: int | None = None):
        self.command = list(command)
        self.stderr = stderr
        self.return_code = return_code
        super().__init__(f"Command '{' '.join(self.command)}' failed: {stderr}")


class DeserializationError(ReconcileError):
    """The desired-state document is missing, unreadable or invalid."""
