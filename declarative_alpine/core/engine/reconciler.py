"""
Reconcile driver — one domain's get_current → compute_diff → apply.

Flow:
    lock → read current → diff against desired → report diff → apply → unlock

Any stage that raises aborts the cycle; later stages are not attempted.
The diff is handed to ``report`` before apply so an operator always
sees what is about to change (or, on failure, what was attempted).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from declarative_alpine.core.declarations.base import ApplyResult, Declaration
from declarative_alpine.core.persistence.lock import exclusive_lock

logger = logging.getLogger(__name__)

DiffReporter = Callable[[str, Any], None]


@dataclass
class ReconcileReport:
    """Outcome of one domain's reconcile cycle."""

    domain: str
    diff: Any
    result: ApplyResult | None = None

    def to_dict(self) -> dict:
        data: dict = {"domain": self.domain, "diff": self.diff.to_dict()}
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data


def _log_diff(domain: str, diff: Any) -> None:
    logger.info("%s diff: %s", domain, diff.to_dict())


@contextmanager
def _maybe_locked(lock_path: Path | None) -> Iterator[None]:
    with exclusive_lock(lock_path) if lock_path is not None else nullcontext():
        yield


def plan(
    declaration: Declaration,
    desired: Any,
    lock_path: Path | None = None,
) -> ReconcileReport:
    """Compute a domain's diff without applying it."""
    with _maybe_locked(lock_path):
        current = declaration.get_current()
        diff = declaration.compute_diff(current, desired)
    return ReconcileReport(domain=declaration.name, diff=diff)


def reconcile(
    declaration: Declaration,
    desired: Any,
    dry_run: bool = False,
    report: DiffReporter | None = None,
    lock_path: Path | None = None,
) -> ReconcileReport:
    """Run one full reconcile cycle for ``declaration``.

    Args:
        declaration: The domain to converge.
        desired: That domain's desired state.
        dry_run: Compute and report, but mutate nothing.
        report: Called with (domain, diff) before apply. Defaults to logging.
        lock_path: Advisory lock held for the whole cycle. None skips locking.

    Returns:
        ReconcileReport with the diff and the apply result.
    """
    report = report or _log_diff

    with _maybe_locked(lock_path):
        current = declaration.get_current()
        diff = declaration.compute_diff(current, desired)
        report(declaration.name, diff)
        result = declaration.apply(diff, dry_run=dry_run)

    logger.info(
        "%s reconcile %s: %d change(s)",
        declaration.name,
        "planned" if dry_run else "applied",
        len(result.changes),
    )
    return ReconcileReport(domain=declaration.name, diff=diff, result=result)
