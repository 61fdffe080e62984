"""
Record store helpers — line-oriented access to OS text databases.

Covers the two shapes the domains need: newline-delimited atoms
(the apk world file) and colon-delimited records keyed by their
first field (passwd, shadow, group).

Writes are atomic (write to temp file, then rename) and keep the
original file's mode and ownership. Backups are sibling copies made
before the first write; ``guarded_write`` restores them if anything
inside the block fails.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from declarative_alpine.core.errors import StoreIOError, StoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_SUFFIX = ".bak"
FIELD_SEP = ":"


# ── Reading ──────────────────────────────────────────────────────


def read_lines(path: Path) -> list[str]:
    """Read a store as a list of lines, without trailing newlines.

    Raises:
        StoreUnavailableError: If the file does not exist.
        StoreIOError: If it exists but cannot be read.
    """
    if not path.is_file():
        raise StoreUnavailableError(path)
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise StoreIOError(path, str(e)) from e


def read_atoms(path: Path) -> frozenset[str]:
    """Read a newline-delimited store into a set. Blank lines are ignored."""
    return frozenset(line.strip() for line in read_lines(path) if line.strip())


def split_record(line: str) -> list[str]:
    return line.split(FIELD_SEP)


def join_record(fields: Sequence[str]) -> str:
    return FIELD_SEP.join(fields)


def record_key(line: str) -> str:
    """The key (first field) of a colon-delimited record."""
    return line.split(FIELD_SEP, 1)[0]


def find_record(lines: Sequence[str], key: str) -> int | None:
    """Index of the first record keyed ``key``, or None."""
    for i, line in enumerate(lines):
        if FIELD_SEP in line and record_key(line) == key:
            return i
    return None


def drop_record(lines: Sequence[str], key: str) -> list[str]:
    """A copy of ``lines`` without any record keyed ``key``."""
    return [line for line in lines if not (FIELD_SEP in line and record_key(line) == key)]


# ── Writing ──────────────────────────────────────────────────────


def write_lines(path: Path, lines: Sequence[str]) -> None:
    """Replace a store's content with ``lines`` (atomic write).

    The new file inherits the old file's permission bits and, when
    running as root, its owner and group.
    """
    content = "".join(f"{line}\n" for line in lines)

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            if path.exists():
                _copy_ownership(path, tmp)
            tmp.replace(path)
            logger.debug("Wrote %d records to %s", len(lines), path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.error("Failed to write %s: %s", path, e)
        raise StoreIOError(path, str(e)) from e


def write_atoms(path: Path, atoms: frozenset[str] | set[str]) -> None:
    """Write a set of atoms, one per line, sorted."""
    write_lines(path, sorted(atoms))


def _copy_ownership(src: Path, dst: Path) -> None:
    st = src.stat()
    os.chmod(dst, st.st_mode & 0o7777)
    if os.geteuid() == 0:
        os.chown(dst, st.st_uid, st.st_gid)


# ── Backups ──────────────────────────────────────────────────────


def backup_path(path: Path, suffix: str = DEFAULT_BACKUP_SUFFIX) -> Path:
    """The sibling file a backup of ``path`` is written to."""
    return path.with_name(path.name + suffix)


def backup_file(path: Path, suffix: str = DEFAULT_BACKUP_SUFFIX) -> Path:
    """Copy ``path`` to its sibling backup, preserving metadata.

    Returns:
        Path of the backup file.
    """
    target = backup_path(path, suffix)
    if not path.is_file():
        raise StoreUnavailableError(path)
    try:
        shutil.copy2(path, target)
    except OSError as e:
        raise StoreIOError(target, str(e)) from e
    logger.info("Backed up %s → %s", path, target)
    return target


def restore_file(backup: Path, path: Path) -> None:
    """Put a backup's content back in place. The backup is kept."""
    try:
        shutil.copy2(backup, path)
    except OSError as e:
        raise StoreIOError(path, f"restore from {backup} failed: {e}") from e
    logger.warning("Restored %s from %s", path, backup)


@contextmanager
def guarded_write(
    paths: Sequence[Path],
    suffix: str = DEFAULT_BACKUP_SUFFIX,
) -> Iterator[list[Path]]:
    """Back up ``paths`` as one unit; restore all of them on failure.

    Every file is copied before the block runs. If the block raises,
    each file is restored from its backup and the original exception
    propagates. Backups are left on disk either way.

    Yields:
        The backup paths, in the order of ``paths``.
    """
    backups: list[Path] = []
    for path in paths:
        backups.append(backup_file(path, suffix))

    try:
        yield backups
    except Exception:
        logger.warning("Mutation failed, rolling back %d file(s)", len(paths))
        for path, backup in zip(paths, backups):
            try:
                restore_file(backup, path)
            except StoreIOError as e:
                logger.error("Rollback incomplete: %s (backup left at %s)", e, backup)
        raise
