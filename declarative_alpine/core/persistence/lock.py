"""
Advisory lock — one reconciliation at a time per host.

Held across a domain's full get_current → apply cycle so that two
invocations cannot interleave reads and writes of the same databases.
Only cooperating processes are excluded; tools that do not take the
lock (adduser, passwd) are not.
"""

from __future__ import annotations

import fcntl
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from declarative_alpine.core.errors import StoreIOError

logger = logging.getLogger(__name__)


@contextmanager
def exclusive_lock(path: Path) -> Iterator[None]:
    """Block until an exclusive flock on ``path`` is held.

    The lock file is created if needed and left in place afterwards.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
    except OSError as e:
        raise StoreIOError(path, f"cannot open lock file: {e}") from e

    try:
        logger.debug("Waiting for lock %s", path)
        fcntl.flock(fd, fcntl.LOCK_EX)
        logger.debug("Lock acquired: %s", path)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Lock released: %s", path)
    finally:
        os.close(fd)
