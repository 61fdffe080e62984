"""
Declaration contract — the shape every managed domain implements.

A declaration knows how to read its slice of the host (get_current),
compare it to what was declared (compute_diff), and converge the host
(apply). Each domain brings its own Current/Desired/Diff types; they
are never collapsed into one shared shape.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, TypeVar

from declarative_alpine.adapters.base import CommandRunner
from declarative_alpine.core.errors import ExternalCommandError
from declarative_alpine.core.models.action import Receipt

CurrentT = TypeVar("CurrentT")
DesiredT = TypeVar("DesiredT")
DiffT = TypeVar("DiffT")


@dataclass
class ApplyResult:
    """What an apply did (or, on dry-run, would have done)."""

    domain: str
    dry_run: bool = False
    changes: list[str] = field(default_factory=list)
    backups: list[Path] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "dry_run": self.dry_run,
            "changed": self.changed,
            "changes": list(self.changes),
            "backups": [str(p) for p in self.backups],
        }


class Declaration(ABC, Generic[CurrentT, DesiredT, DiffT]):
    """Abstract base class for a reconcilable domain.

    Contract:
        - get_current() reads the backing stores fresh on every call.
        - compute_diff() is pure: no I/O, no mutation of its arguments.
        - apply(diff, dry_run=True) mutates nothing.
        - apply(diff, dry_run=False) backs up, writes, then activates,
          and rolls back its files if any step fails.
    """

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    @abstractmethod
    def name(self) -> str:
        """The domain identifier (e.g., 'packages', 'users')."""

    @abstractmethod
    def get_current(self) -> CurrentT:
        """Rebuild current state from the backing stores."""

    @abstractmethod
    def compute_diff(self, current: CurrentT, desired: DesiredT) -> DiffT:
        """Minimal change set taking ``current`` to ``desired``."""

    @abstractmethod
    def apply(self, diff: DiffT, dry_run: bool = False) -> ApplyResult:
        """Converge the host by applying ``diff``."""

    def _run_checked(self, argv: list[str], *, sensitive: bool = False) -> Receipt:
        """Run a command and raise if it fails."""
        receipt = self._runner.run(argv, sensitive=sensitive)
        if receipt.failed:
            raise ExternalCommandError(
                receipt.command,
                receipt.error or "",
                receipt.return_code,
            )
        return receipt

    def _require(self, programs: list[str]) -> None:
        """Raise before any write if a program this apply needs is missing."""
        for program in programs:
            if not self._runner.is_available(program):
                raise ExternalCommandError([program], f"{program}: command not found", 127)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
