"""Tests for the SQLite catalog store."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from asmdoc.index.storage import SQLiteCatalogStore
from asmdoc.models import DocComment, MemberInfo, ModuleInfo, TypeInfo

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _module(module_id: str, origin: str | None = None) -> ModuleInfo:
    return ModuleInfo(module_id, "Lib", has_documentation=True, origin_path=origin, indexed_at=NOW)


def _type(module_id: str, full_name: str) -> TypeInfo:
    namespace, _, name = full_name.rpartition(".")
    return TypeInfo(
        id=f"T:{full_name}",
        module_id=module_id,
        namespace=namespace,
        name=name,
        full_name=full_name,
        kind="Class",
        signature=f"public class {name}",
    )


def _populate(store: SQLiteCatalogStore, module_id: str, *full_names: str) -> None:
    with store.transaction():
        store.save_module(_module(module_id))
        for full_name in full_names:
            store.save_type(_type(module_id, full_name))


class TestSchema:
    """Tests for database initialization."""

    def test_tables_created(self, store: SQLiteCatalogStore) -> None:
        rows = store.connection.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        ).fetchall()
        assert {row["name"] for row in rows} >= {"modules", "types", "members", "documentation"}

    def test_reopen_keeps_data(self, tmp_path: Path) -> None:
        db_path = tmp_path / "reopen.db"
        first = SQLiteCatalogStore(db_path)
        _populate(first, "m1", "Lib.A")
        first.close()

        second = SQLiteCatalogStore(db_path)
        try:
            assert second.get_type("T:Lib.A") is not None
        finally:
            second.close()

    def test_transaction_rolls_back(self, store: SQLiteCatalogStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.save_module(_module("m1"))
                raise RuntimeError("boom")
        assert store.get_module("m1") is None


class TestModules:
    """Tests for module records."""

    def test_round_trip(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            store.save_module(_module("m1", "/tmp/Lib.dll"))
        module = store.get_module("m1")
        assert module is not None
        assert module.origin_path == "/tmp/Lib.dll"
        assert module.indexed_at == NOW
        assert module.has_documentation is True

    def test_list_in_insertion_order(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            for module_id in ("b", "a", "c"):
                store.save_module(_module(module_id))
        assert [m.id for m in store.list_modules()] == ["b", "a", "c"]

    def test_replace_module_by_origin(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            store.save_module(_module("old", "/x/Lib.dll"))
            store.save_type(_type("old", "Lib.A"))
            store.save_documentation("T:Lib.A", DocComment(summary="A"), updated_at=NOW)
        with store.transaction():
            replaced = store.replace_module(_module("new", "/x/Lib.dll"))
        assert replaced == ["old"]
        assert store.get_module("old") is None
        assert store.get_type("T:Lib.A") is None
        # documentation rows are keyed by identifier and outlive the module
        assert store.get_documentation("T:Lib.A") is not None

    def test_replace_module_without_origin(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            store.save_module(_module("one"))
            assert store.replace_module(_module("two")) == []
        assert len(store.list_modules()) == 2


class TestEntities:
    """Tests for type and member records."""

    def test_insert_or_replace(self, store: SQLiteCatalogStore) -> None:
        _populate(store, "m1", "Lib.A")
        changed = _type("m1", "Lib.A")
        changed.signature = "public sealed class A"
        with store.transaction():
            store.save_type(changed)
        stored = store.get_type("T:Lib.A")
        assert stored is not None
        assert stored.signature == "public sealed class A"

    def test_members_and_owner(self, store: SQLiteCatalogStore) -> None:
        _populate(store, "m1", "Lib.A")
        with store.transaction():
            store.save_member(MemberInfo("M:Lib.A.Run", "T:Lib.A", "Run", "Method", "void Run()"))
            store.save_member(MemberInfo("P:Lib.A.Name", "T:Lib.A", "Name", "Property", "string Name { get; }"))
        assert [m.name for m in store.list_members("T:Lib.A")] == ["Run", "Name"]
        assert store.count_members("m1") == 2
        owner = store.module_for_entity("M:Lib.A.Run")
        assert owner is not None and owner.id == "m1"
        assert store.module_for_entity("T:Lib.A").id == "m1"  # type: ignore[union-attr]
        assert store.module_for_entity("M:Lib.Missing") is None


class TestFindTypes:
    """Tests for filtering, ordering and windowing of types."""

    def test_ordered_by_full_name(self, store: SQLiteCatalogStore) -> None:
        _populate(store, "m1", "Lib.Zeta", "Lib.Alpha", "Lib.Core.Beta")
        found = store.find_types("m1", None, limit=10, offset=0)
        assert [t.full_name for t in found] == ["Lib.Alpha", "Lib.Core.Beta", "Lib.Zeta"]

    def test_scoped_to_module(self, store: SQLiteCatalogStore) -> None:
        _populate(store, "m1", "Lib.A")
        _populate(store, "m2", "Other.B")
        assert [t.id for t in store.find_types("m2", None, limit=10, offset=0)] == ["T:Other.B"]

    def test_case_insensitive_search(self, store: SQLiteCatalogStore) -> None:
        _populate(store, "m1", "Lib.Calculator", "Lib.Person", "Tools.Hammer")
        assert [t.name for t in store.find_types("m1", "CALC", limit=10, offset=0)] == ["Calculator"]
        assert store.count_types("m1", "tools") == 1
        assert store.count_types("m1", "lib") == 2

    def test_like_wildcards_are_literal(self, store: SQLiteCatalogStore) -> None:
        _populate(store, "m1", "Lib.Foo_Bar", "Lib.FooXBar")
        assert [t.name for t in store.find_types("m1", "o_b", limit=10, offset=0)] == ["Foo_Bar"]
        assert store.count_types("m1", "%") == 0

    def test_limit_and_offset(self, store: SQLiteCatalogStore) -> None:
        _populate(store, "m1", "Lib.A", "Lib.B", "Lib.C")
        assert [t.name for t in store.find_types("m1", None, limit=2, offset=1)] == ["B", "C"]
        assert store.find_types("m1", None, limit=2, offset=10) == []


class TestDocumentation:
    """Tests for the two documentation layers."""

    def test_authored_round_trip(self, store: SQLiteCatalogStore) -> None:
        comment = DocComment(summary="Adds.", parameters={"a": "A"})
        with store.transaction():
            store.save_documentation("M:Lib.A.Add", comment, updated_at=NOW)
        record = store.get_documentation("M:Lib.A.Add")
        assert record is not None
        assert record.authored.summary == "Adds."
        assert record.authored.parameters == {"a": "A"}
        assert record.authored.exceptions == {}
        assert record.last_updated == NOW

    def test_synthetic_keeps_authored(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            store.save_documentation("T:Lib.A", DocComment(summary="Authored"), updated_at=NOW)
            store.save_synthetic("T:Lib.A", summary="Synthetic", example=None, updated_at=NOW)
        record = store.get_documentation("T:Lib.A")
        assert record is not None
        assert record.authored.summary == "Authored"
        assert record.synthetic_summary == "Synthetic"

    def test_authored_keeps_synthetic(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            store.save_synthetic("T:Lib.A", summary="S", example="e()", updated_at=NOW)
            store.save_documentation("T:Lib.A", DocComment(summary="A"), updated_at=NOW)
        record = store.get_documentation("T:Lib.A")
        assert record is not None
        assert (record.synthetic_summary, record.synthetic_example) == ("S", "e()")

    def test_synthetic_none_keeps_previous(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            store.save_synthetic("T:Lib.A", summary="S", example="e()", updated_at=NOW)
            store.save_synthetic("T:Lib.A", summary=None, example="f()", updated_at=NOW)
        record = store.get_documentation("T:Lib.A")
        assert record is not None
        assert (record.synthetic_summary, record.synthetic_example) == ("S", "f()")

    def test_clear_documentation(self, store: SQLiteCatalogStore) -> None:
        with store.transaction():
            store.save_documentation("T:Lib.A", DocComment(summary="A"), updated_at=NOW)
            store.save_synthetic("T:Lib.A", summary="S", example=None, updated_at=NOW)
            store.clear_documentation("T:Lib.A", updated_at=NOW)
            store.clear_documentation("T:Lib.Missing", updated_at=NOW)
        record = store.get_documentation("T:Lib.A")
        assert record is not None
        assert record.authored.summary is None
        assert record.synthetic_summary == "S"
        assert store.get_documentation("T:Lib.Missing") is None

    def test_missing_record(self, store: SQLiteCatalogStore) -> None:
        assert store.get_documentation("T:Nope") is None

    def test_connection_is_sqlite(self, store: SQLiteCatalogStore) -> None:
        assert isinstance(store.connection, sqlite3.Connection)
