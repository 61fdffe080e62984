"""
Runner base — the contract between the domains and external utilities.

The domains never call subprocess directly. Every privileged tool
(package manager, password hasher, directory creator) goes through a
CommandRunner, which lets tests swap in a double that needs no root.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from declarative_alpine.core.models.action import Receipt

# Placeholder shown instead of sensitive argv entries
REDACTED = "<redacted>"


def display_argv(argv: list[str], sensitive: bool) -> list[str]:
    """The argv as it may appear in logs, receipts and errors."""
    if not sensitive:
        return list(argv)
    return argv[:1] + [REDACTED] * (len(argv) - 1)


class CommandRunner(ABC):
    """Abstract base class for all command runners.

    Runners execute one argv and return a Receipt.
    They NEVER raise exceptions: failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'shell', 'mock')."""

    @abstractmethod
    def is_available(self, program: str) -> bool:
        """Check whether ``program`` can be executed. Never raises."""

    @abstractmethod
    def run(self, argv: list[str], *, sensitive: bool = False) -> Receipt:
        """Run ``argv`` to completion and return a receipt.

        When ``sensitive`` is set, everything after argv[0] is masked
        in logs and in the receipt. MUST never raise.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
