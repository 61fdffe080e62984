"""
Packages domain — the apk world file.

The world file lists the atoms an operator asked for explicitly.
Reconciling rewrites it in full and runs the upgrade command, which
makes apk install what is newly listed and drop what no longer is.
Atoms dropped from the world are never passed to ``apk del``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from declarative_alpine.adapters.base import CommandRunner
from declarative_alpine.core.declarations.base import ApplyResult, Declaration
from declarative_alpine.core.models.desired import SystemConfig
from declarative_alpine.core.models.state import PackagesDiff
from declarative_alpine.core.persistence.record_store import (
    guarded_write,
    read_atoms,
    write_atoms,
)

logger = logging.getLogger(__name__)


class PackagesDeclaration(Declaration[frozenset[str], Sequence[str], PackagesDiff]):
    """Declared package atoms against the apk world file."""

    def __init__(self, system: SystemConfig, runner: CommandRunner):
        super().__init__(runner)
        self._system = system

    @property
    def name(self) -> str:
        return "packages"

    def get_current(self) -> frozenset[str]:
        atoms = read_atoms(self._system.world_file)
        logger.debug("World file %s lists %d atoms", self._system.world_file, len(atoms))
        return atoms

    def compute_diff(self, current: frozenset[str], desired: Sequence[str]) -> PackagesDiff:
        wanted = frozenset(desired)
        return PackagesDiff(
            to_install=wanted - current,
            to_remove=current - wanted,
        )

    def apply(self, diff: PackagesDiff, dry_run: bool = False) -> ApplyResult:
        result = ApplyResult(domain=self.name, dry_run=dry_run)

        # Re-read: the world may have moved since the diff was computed
        current = self.get_current()
        new_world = (current | diff.to_install) - diff.to_remove

        result.changes = [f"+ {a}" for a in sorted(new_world - current)]
        result.changes += [f"- {a}" for a in sorted(current - new_world)]

        if dry_run or new_world == current:
            return result

        self._require(self._system.upgrade_command[:1])
        world = self._system.world_file
        with guarded_write([world], self._system.backup_suffix) as backups:
            result.backups = backups
            write_atoms(world, new_world)
            logger.info("World file rewritten with %d atoms", len(new_world))
            self._run_checked(self._system.upgrade_command)

        return result
