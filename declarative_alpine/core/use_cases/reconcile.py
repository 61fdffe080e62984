"""
Reconcile use cases — the ``apply`` and ``diff`` verbs.

Load the desired-state document, then run each managed domain through
the driver in order (packages, then users). The first failure stops
the run: later domains are not touched.

Non-dry-run applies are written to the audit ledger, failures included.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from declarative_alpine.adapters.base import CommandRunner
from declarative_alpine.core.config.loader import load_desired_state
from declarative_alpine.core.declarations import build_declaration
from declarative_alpine.core.engine.reconciler import (
    DiffReporter,
    ReconcileReport,
    plan,
    reconcile,
)
from declarative_alpine.core.errors import ReconcileError
from declarative_alpine.core.models.desired import DesiredState
from declarative_alpine.core.persistence.audit import (
    AuditEntry,
    AuditWriter,
    generate_operation_id,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Result of an apply or diff run across all managed domains."""

    dry_run: bool = False
    operation_id: str = ""
    reports: list[ReconcileReport] = field(default_factory=list)
    failed_domain: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {
            "operation_id": self.operation_id,
            "dry_run": self.dry_run,
            "domains": [r.to_dict() for r in self.reports],
        }
        if self.error:
            result["error"] = self.error
            result["failed_domain"] = self.failed_domain
        return result


def _desired_for(desired: DesiredState, domain: str) -> object:
    return getattr(desired, domain)


def _default_runner() -> CommandRunner:
    from declarative_alpine.adapters.shell.command import ShellCommandRunner

    return ShellCommandRunner()


def run_diff(
    config_path: Path | None = None,
    runner: CommandRunner | None = None,
) -> ReconcileResult:
    """Compute every managed domain's diff without applying anything."""
    result = ReconcileResult(dry_run=True, operation_id=generate_operation_id())
    runner = runner or _default_runner()

    try:
        desired = load_desired_state(config_path)
    except ReconcileError as e:
        result.error = str(e)
        return result

    for domain in desired.managed_domains:
        declaration = build_declaration(domain, desired.system, runner)
        try:
            result.reports.append(plan(declaration, _desired_for(desired, domain)))
        except ReconcileError as e:
            logger.error("%s diff failed: %s", domain, e)
            result.failed_domain = domain
            result.error = str(e)
            break

    return result


def run_apply(
    config_path: Path | None = None,
    dry_run: bool = False,
    runner: CommandRunner | None = None,
    report: DiffReporter | None = None,
) -> ReconcileResult:
    """Reconcile every managed domain toward the desired state.

    Args:
        config_path: Desired-state document (default: ./config.toml).
        dry_run: Report diffs and planned changes, mutate nothing.
        runner: Command runner for external utilities (default: real shell).
        report: Called with (domain, diff) before each domain's apply.

    Returns:
        ReconcileResult with one report per domain that got as far as a diff.
    """
    result = ReconcileResult(dry_run=dry_run, operation_id=generate_operation_id())
    runner = runner or _default_runner()

    try:
        desired = load_desired_state(config_path)
    except ReconcileError as e:
        result.error = str(e)
        return result

    system = desired.system
    audit = AuditWriter(system.audit_log) if system.audit_log and not dry_run else None

    for domain in desired.managed_domains:
        declaration = build_declaration(domain, system, runner)
        start = time.monotonic()
        try:
            outcome = reconcile(
                declaration,
                _desired_for(desired, domain),
                dry_run=dry_run,
                report=report,
                lock_path=system.lock_file,
            )
        except ReconcileError as e:
            logger.error("%s reconcile failed: %s", domain, e)
            result.failed_domain = domain
            result.error = str(e)
            if audit:
                audit.write(AuditEntry(
                    operation_id=result.operation_id,
                    domain=domain,
                    status="failed",
                    duration_ms=int((time.monotonic() - start) * 1000),
                    errors=[str(e)],
                ))
            break

        result.reports.append(outcome)
        if audit and outcome.result is not None:
            audit.write(AuditEntry(
                operation_id=result.operation_id,
                domain=domain,
                status="ok",
                changes=outcome.result.changes,
                backups=[str(p) for p in outcome.result.backups],
                duration_ms=int((time.monotonic() - start) * 1000),
            ))

    return result
