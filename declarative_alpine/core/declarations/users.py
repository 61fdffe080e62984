"""
Users domain — local accounts across passwd, shadow and group.

Current state comes from the identity file (passwd) cross-referenced
with group member lists. The credential file (shadow) is only ever
written: passwords are hashed on the way in and never read back, which
is why a declared password marks its user changed on every run.

An apply edits all three databases in memory first (running the
password hasher along the way), then writes them, then creates home
directories. The three files are backed up together before the first
write and restored together if any later step fails.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from declarative_alpine.adapters.base import CommandRunner, display_argv
from declarative_alpine.core.declarations.base import ApplyResult, Declaration
from declarative_alpine.core.errors import ExternalCommandError
from declarative_alpine.core.models.desired import SystemConfig, UserSpec
from declarative_alpine.core.models.state import UserRecord, UsersDiff
from declarative_alpine.core.persistence.record_store import (
    drop_record,
    find_record,
    guarded_write,
    join_record,
    read_lines,
    record_key,
    split_record,
    write_lines,
)

logger = logging.getLogger(__name__)

# Lowest uid/gid handed out to accounts and groups created here
FIRST_DYNAMIC_ID = 1000

PASSWD_FIELDS = 7
GROUP_FIELDS = 4
SHADOW_FIELDS = 9

# Aging fields (lastchg, min, max, warn) for shadow records that lack them
SHADOW_AGING_DEFAULTS = ("19345", "0", "99999", "7")


def next_free_id(taken: Iterable[int]) -> int:
    """One past the highest id in ``taken``, never below FIRST_DYNAMIC_ID."""
    # System ids count too, so a host with nobody (65534) allocates 65535
    return max([FIRST_DYNAMIC_ID - 1, *taken]) + 1


def parse_identity(line: str) -> UserRecord | None:
    """Parse one passwd line. Returns None for malformed records."""
    fields = split_record(line)
    if len(fields) < PASSWD_FIELDS:
        return None
    try:
        uid, gid = int(fields[2]), int(fields[3])
    except ValueError:
        return None
    return UserRecord(
        username=fields[0],
        uid=uid,
        gid=gid,
        home=fields[5],
        shell=fields[6],
    )


def group_members(fields: Sequence[str]) -> list[str]:
    """Member list of a split group record (empty if the field is missing)."""
    if len(fields) < GROUP_FIELDS:
        return []
    return [m for m in fields[3].split(",") if m]


def memberships(group_lines: Iterable[str]) -> dict[str, set[str]]:
    """Map each username to the groups listing it as a member."""
    result: dict[str, set[str]] = {}
    for line in group_lines:
        fields = split_record(line)
        for member in group_members(fields):
            result.setdefault(member, set()).add(fields[0])
    return result


def _ids_in(lines: Iterable[str], index: int) -> list[int]:
    ids = []
    for line in lines:
        fields = split_record(line)
        if len(fields) > index and fields[index].isdigit():
            ids.append(int(fields[index]))
    return ids


def _pad(fields: list[str], width: int) -> list[str]:
    return fields + [""] * (width - len(fields))


@dataclass
class _AccountTables:
    """In-memory copies of the three databases being edited."""

    passwd: list[str]
    shadow: list[str]
    group: list[str]
    reserved_gids: set[int] = field(default_factory=set)

    def allocate_uid(self) -> int:
        return next_free_id(_ids_in(self.passwd, 2))

    def allocate_gid(self) -> int:
        gid = next_free_id([*_ids_in(self.group, 2), *self.reserved_gids])
        self.reserved_gids.add(gid)
        return gid

    def identity_index(self, username: str) -> int | None:
        """Index of the first well-formed passwd record for ``username``."""
        for i, line in enumerate(self.passwd):
            record = parse_identity(line)
            if record is not None and record.username == username:
                return i
        return None

    def put_identity(self, spec: UserSpec, uid: int, gid: int, comment: str = "") -> None:
        """Write the passwd record for ``spec``, dropping malformed twins."""
        line = join_record([spec.username, "x", str(uid), str(gid), comment, spec.home, spec.shell])
        idx = self.identity_index(spec.username)
        if idx is None:
            idx = find_record(self.passwd, spec.username)
        if idx is None:
            self.passwd.append(line)
            return
        self.passwd[idx] = line
        self.passwd = [
            entry
            for i, entry in enumerate(self.passwd)
            if i == idx
            or record_key(entry) != spec.username
            or parse_identity(entry) is not None
        ]

    def put_credential(self, username: str, hashed: str) -> None:
        idx = find_record(self.shadow, username)
        if idx is None:
            fields = [username, hashed, *SHADOW_AGING_DEFAULTS]
        else:
            fields = split_record(self.shadow[idx])
            fields[1:2] = [hashed]
            for i, default in enumerate(SHADOW_AGING_DEFAULTS, start=2):
                if len(fields) <= i:
                    fields.append(default)
        line = join_record(_pad(fields, SHADOW_FIELDS))
        if idx is None:
            self.shadow.append(line)
        else:
            self.shadow[idx] = line

    def sync_groups(self, username: str, wanted: frozenset[str]) -> None:
        """Make ``username`` a member of exactly the ``wanted`` groups."""
        present: set[str] = set()
        for i, line in enumerate(self.group):
            fields = split_record(line)
            name = fields[0]
            members = group_members(fields)
            if name in wanted:
                present.add(name)
                if username in members:
                    continue
                members.append(username)
            elif username in members:
                members.remove(username)
            else:
                continue
            fields = _pad(fields, GROUP_FIELDS)
            fields[3] = ",".join(members)
            self.group[i] = join_record(fields)

        for name in sorted(wanted - present):
            gid = self.allocate_gid()
            self.group.append(join_record([name, "x", str(gid), username]))
            logger.info("Created group %s (gid %d)", name, gid)

    def remove_user(self, username: str) -> None:
        self.passwd = drop_record(self.passwd, username)
        self.shadow = drop_record(self.shadow, username)
        self.sync_groups(username, frozenset())


class UsersDeclaration(Declaration[dict[str, UserRecord], Sequence[UserSpec], UsersDiff]):
    """Declared accounts against passwd/shadow/group."""

    def __init__(self, system: SystemConfig, runner: CommandRunner):
        super().__init__(runner)
        self._system = system

    @property
    def name(self) -> str:
        return "users"

    @property
    def store_paths(self) -> list[Path]:
        return [self._system.passwd_file, self._system.shadow_file, self._system.group_file]

    def get_current(self) -> dict[str, UserRecord]:
        passwd = read_lines(self._system.passwd_file)
        members = memberships(read_lines(self._system.group_file))

        current: dict[str, UserRecord] = {}
        for line_num, line in enumerate(passwd, start=1):
            record = parse_identity(line)
            if record is None:
                logger.debug("Skipping malformed identity record at line %d", line_num)
                continue
            if record.username in current:
                continue
            groups = frozenset(members.get(record.username, ()))
            current[record.username] = record.model_copy(update={"groups": groups})
        return current

    def compute_diff(
        self,
        current: dict[str, UserRecord],
        desired: Sequence[UserSpec],
    ) -> UsersDiff:
        wanted = {spec.username for spec in desired}
        return UsersDiff(
            to_add=tuple(s for s in desired if s.username not in current),
            to_update=tuple(
                (s.username, s)
                for s in desired
                if s.username in current and not current[s.username].matches(s)
            ),
            to_remove=tuple(name for name in current if name not in wanted),
        )

    def apply(self, diff: UsersDiff, dry_run: bool = False) -> ApplyResult:
        result = ApplyResult(domain=self.name, dry_run=dry_run)
        result.changes = [f"+ user {s.username}" for s in diff.to_add]
        result.changes += [f"~ user {name}" for name, _ in diff.to_update]
        result.changes += [f"- user {name}" for name in diff.to_remove]

        if dry_run or diff.is_empty:
            return result

        self._require(self._programs_needed(diff))
        passwd_file, shadow_file, group_file = self.store_paths
        tables = _AccountTables(
            passwd=read_lines(passwd_file),
            shadow=read_lines(shadow_file),
            group=read_lines(group_file),
        )

        with guarded_write(self.store_paths, self._system.backup_suffix) as backups:
            result.backups = backups

            homes: list[str] = []
            for spec in diff.to_add:
                self._add(tables, spec)
                homes.append(spec.home)
            for username, spec in diff.to_update:
                self._update(tables, username, spec)
            for username in diff.to_remove:
                tables.remove_user(username)
                logger.info("Removed user %s", username)

            write_lines(passwd_file, tables.passwd)
            write_lines(shadow_file, tables.shadow)
            write_lines(group_file, tables.group)

            for home in homes:
                self._ensure_home(home)

        return result

    def _programs_needed(self, diff: UsersDiff) -> list[str]:
        specs = [*diff.to_add, *(spec for _, spec in diff.to_update)]
        needed = []
        if any(s.password is not None and not s.password_is_hashed for s in specs):
            needed.append(self._system.hash_command[0])
        if any(not Path(s.home).exists() for s in diff.to_add):
            needed.append(self._system.mkdir_command[0])
        return needed

    # ── Per-user steps ──────────────────────────────────────────

    def _add(self, tables: _AccountTables, spec: UserSpec) -> None:
        uid = spec.uid if spec.uid is not None else tables.allocate_uid()
        gid = spec.gid if spec.gid is not None else tables.allocate_gid()
        tables.put_identity(spec, uid, gid)
        self._sync_credential_and_groups(tables, spec)
        logger.info("Added user %s (uid %d, gid %d)", spec.username, uid, gid)

    def _update(self, tables: _AccountTables, username: str, spec: UserSpec) -> None:
        idx = tables.identity_index(username)
        if idx is None:
            logger.warning("User %s changed since the diff was computed, re-adding", username)
            self._add(tables, spec)
            return

        existing = parse_identity(tables.passwd[idx])
        comment = split_record(tables.passwd[idx])[4]
        uid = spec.uid if spec.uid is not None else existing.uid
        gid = spec.gid if spec.gid is not None else existing.gid
        tables.put_identity(spec, uid, gid, comment=comment)
        self._sync_credential_and_groups(tables, spec)
        logger.info("Updated user %s", username)

    def _sync_credential_and_groups(self, tables: _AccountTables, spec: UserSpec) -> None:
        hashed = self._credential_for(spec)
        if hashed is not None:
            tables.put_credential(spec.username, hashed)
        tables.sync_groups(spec.username, spec.groups)

    def _credential_for(self, spec: UserSpec) -> str | None:
        """The shadow hash for ``spec``, running the hasher for plaintext."""
        if spec.password is None:
            return None
        if spec.password_is_hashed:
            return spec.password

        argv = [*self._system.hash_command, spec.password]
        hashed = self._run_checked(argv, sensitive=True).output.strip()
        if not hashed:
            raise ExternalCommandError(
                display_argv(argv, sensitive=True),
                "hash command printed nothing",
            )
        if ":" in hashed or "\n" in hashed:
            raise ExternalCommandError(
                display_argv(argv, sensitive=True),
                f"unusable credential for {spec.username}",
            )
        return hashed

    def _ensure_home(self, home: str) -> None:
        if Path(home).exists():
            return
        self._run_checked([*self._system.mkdir_command, home])
        logger.info("Created home directory %s", home)
