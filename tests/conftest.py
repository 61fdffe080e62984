"""
Shared test fixtures — a fake host under tmp_path.

Every store path is redirected into a temp directory and every
external command goes to a MockCommandRunner, so nothing here needs
root or a real apk.
"""

import textwrap
from pathlib import Path

import pytest

from declarative_alpine.adapters.mock import MockCommandRunner
from declarative_alpine.core.models.desired import SystemConfig
from declarative_alpine.core.persistence.audit import AuditEntry

PASSWD = textwrap.dedent("""\
    root:x:0:0:root:/root:/bin/ash
    daemon:x:2:2:daemon:/sbin:/sbin/nologin
    bob:x:1000:1000:Bob Builder:/home/bob:/bin/ash
    nobody:x:65534:65534:nobody:/:/sbin/nologin
""")

SHADOW = textwrap.dedent("""\
    root:!::0:::::
    daemon:!::0:::::
    bob:$6$oldsalt$oldhash:19000:0:99999:7:::
    nobody:!::0:::::
""")

GROUP = textwrap.dedent("""\
    root:x:0:root
    daemon:x:2:root,bin,daemon
    wheel:x:10:root
    audio:x:18:bob
    users:x:100:bob
    nogroup:x:65533:
""")


@pytest.fixture
def host(tmp_path: Path) -> Path:
    """A directory laid out like a small Alpine /etc."""
    etc = tmp_path / "etc"
    (etc / "apk").mkdir(parents=True)
    (etc / "apk" / "world").write_text("vim\ncurl\n")
    (etc / "passwd").write_text(PASSWD)
    (etc / "shadow").write_text(SHADOW)
    (etc / "group").write_text(GROUP)
    (tmp_path / "home").mkdir()
    return tmp_path


@pytest.fixture
def system(host: Path) -> SystemConfig:
    """SystemConfig pointing every store at the fake host."""
    return SystemConfig(
        world_file=host / "etc" / "apk" / "world",
        passwd_file=host / "etc" / "passwd",
        shadow_file=host / "etc" / "shadow",
        group_file=host / "etc" / "group",
        lock_file=host / "run" / "declarative-alpine.lock",
        audit_log=host / "var" / "log" / "audit.ndjson",
    )


@pytest.fixture
def runner() -> MockCommandRunner:
    """A runner that succeeds for everything and records every argv."""
    mock = MockCommandRunner()
    mock.set_output("mkpasswd", "$6$salt$hashed")
    return mock


@pytest.fixture
def snapshot(system: SystemConfig):
    """Callable returning the content of every store file, keyed by name."""
    paths = [system.world_file, system.passwd_file, system.shadow_file, system.group_file]

    def _take() -> dict[str, str]:
        return {p.name: p.read_text() for p in paths}

    return _take


@pytest.fixture
def read_ledger():
    """Callable parsing an NDJSON audit ledger into entries, oldest first."""

    def _read(path: Path) -> list[AuditEntry]:
        lines = path.read_text(encoding="utf-8").splitlines()
        return [AuditEntry.model_validate_json(line) for line in lines if line]

    return _read
