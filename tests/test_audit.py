"""
Tests for the audit ledger.
"""

import json
from pathlib import Path

from declarative_alpine.core.persistence.audit import (
    AuditEntry,
    AuditWriter,
    generate_operation_id,
)


class TestAuditWriter:
    def test_write_and_read(self, tmp_path: Path, read_ledger):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        writer.write(AuditEntry(
            operation_id="op-001",
            domain="packages",
            status="ok",
            changes=["+ git"],
        ))

        entries = read_ledger(writer.path)
        assert len(entries) == 1
        assert entries[0].domain == "packages"
        assert entries[0].changes == ["+ git"]

    def test_append_multiple(self, tmp_path: Path, read_ledger):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        for i in range(5):
            writer.write(AuditEntry(operation_id=f"op-{i:03d}", domain="users"))

        entries = read_ledger(writer.path)
        assert [e.operation_id for e in entries] == [f"op-{i:03d}" for i in range(5)]

    def test_appends_to_existing_ledger(self, tmp_path: Path, read_ledger):
        path = tmp_path / "audit.ndjson"
        path.write_text('{"operation_id": "earlier", "domain": "packages"}\n')
        AuditWriter(path=path).write(AuditEntry(operation_id="later", domain="users"))
        assert [e.operation_id for e in read_ledger(path)] == ["earlier", "later"]

    def test_creates_parent_directories(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "deep" / "nested" / "audit.ndjson")
        writer.write(AuditEntry(operation_id="test"))
        assert writer.path.is_file()

    def test_unwritable_ledger_does_not_raise(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        AuditWriter(path=blocker / "audit.ndjson").write(AuditEntry(operation_id="x"))

    def test_ndjson_format(self, tmp_path: Path):
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path=path)
        writer.write(AuditEntry(operation_id="op-1"))
        writer.write(AuditEntry(operation_id="op-2"))

        lines = path.read_text().strip().split("\n")
        assert len(lines) == 2
        for line in lines:
            assert "operation_id" in json.loads(line)


def test_operation_ids_unique():
    ids = {generate_operation_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("op-") for i in ids)
