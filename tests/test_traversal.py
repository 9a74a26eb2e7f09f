"""Tests for tree traversal, path normalization and table flushing."""

import itertools
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from conftest import FakeStore, RecordingProgress
from docstore_export.export.models import LogicalTable
from docstore_export.export.traversal import (
    collection_names,
    discover,
    flush_tables,
    normalize_collection_path,
    traverse,
)
from docstore_export.export.writers import JsonWriter, SqlWriter
from docstore_export.schema.models import ColumnType, DocumentRecord
from docstore_export.stores.base import StoreError


class TestNormalization:
    """Document ids drop out of collection paths."""

    def test_root(self) -> None:
        assert normalize_collection_path("users") == "users"

    def test_nested(self) -> None:
        assert normalize_collection_path("users/u1/orders") == "users__orders"
        assert normalize_collection_path("a/1/b/2/c") == "a__b__c"

    def test_collection_names(self) -> None:
        assert collection_names("users/u1/orders/o9/items") == ("users", "orders", "items")

    def test_same_names_any_ids_normalize_equal(self) -> None:
        """Paths with the same collection names normalize identically."""
        ids = ["u1", "u2", "x-y", "0", "long_document_id"]
        for first, second in itertools.product(ids, repeat=2):
            assert normalize_collection_path(
                f"users/{first}/orders/{second}/items"
            ) == normalize_collection_path("users/abc/orders/def/items")

    def test_different_names_normalize_differently(self) -> None:
        paths = ["users", "users/u1/orders", "users/u1/carts", "shops/s1/orders"]
        normalized = {normalize_collection_path(p) for p in paths}
        assert len(normalized) == len(paths)


class TestDiscover:
    """Breadth-first discovery groups documents into logical tables."""

    @pytest.mark.asyncio
    async def test_flat_collection(self) -> None:
        store = FakeStore(
            {
                "users": {
                    "u1": {"name": "Ada", "age": 30},
                    "u2": {"name": "Grace", "email": "g@example.com"},
                    "u3": {"name": "Linus", "age": 40.5},
                }
            }
        )
        discovery = await discover(store, "users")

        assert [t.name for t in discovery.tables] == ["users"]
        assert discovery.total_docs == 3
        assert discovery.subcollection_types == 0

        schema, rows = discovery.tables[0].flatten()
        assert list(schema) == ["id", "name", "age", "email", "_path"]
        assert schema["age"] == ColumnType.FLOAT
        assert len(rows) == 3

    @pytest.mark.asyncio
    async def test_one_level_of_nesting(self, nested_store) -> None:
        discovery = await discover(nested_store, "users")
        tables = {t.name: t for t in discovery.tables}

        assert set(tables) == {"users", "users__orders"}
        assert len(tables["users"].records) == 2
        assert [r.path for r in tables["users__orders"].records] == [
            "users/u1/orders/o1",
            "users/u1/orders/o2",
        ]
        assert discovery.subcollection_types == 1
        assert discovery.total_docs == 4

    @pytest.mark.asyncio
    async def test_sibling_subcollections_share_a_table(self) -> None:
        store = FakeStore(
            {
                "users": {"u1": {}, "u2": {}},
                "users/u1/orders": {"o1": {"total": 1}},
                "users/u2/orders": {"o2": {"total": 2}, "o3": {"total": 3}},
            }
        )
        discovery = await discover(store, "users")
        tables = {t.name: t for t in discovery.tables}

        assert [r.id for r in tables["users__orders"].records] == ["o1", "o2", "o3"]
        assert discovery.subcollection_types == 1

    @pytest.mark.asyncio
    async def test_deep_nesting(self) -> None:
        store = FakeStore(
            {
                "a": {"1": {}},
                "a/1/b": {"2": {}},
                "a/1/b/2/c": {"3": {}},
                "a/1/b/2/c/3/d": {"4": {"deep": True}},
            }
        )
        discovery = await discover(store, "a")

        assert [t.name for t in discovery.tables] == ["a", "a__b", "a__b__c", "a__b__c__d"]
        assert discovery.subcollection_types == 3

    @pytest.mark.asyncio
    async def test_empty_subcollection_creates_no_table(self) -> None:
        store = FakeStore({"users": {"u1": {}}, "users/u1/orders": {}})
        discovery = await discover(store, "users")

        assert [t.name for t in discovery.tables] == ["users"]
        assert discovery.subcollection_types == 0

    @pytest.mark.asyncio
    async def test_join_collision_gets_suffix(self) -> None:
        """("a", "b__c") and ("a", "b", "c") both join to a__b__c."""
        store = FakeStore(
            {
                "a": {"x": {}},
                "a/x/b__c": {"y": {}},
                "a/x/b": {"z": {}},
                "a/x/b/z/c": {"w": {}},
            }
        )
        discovery = await discover(store, "a")
        names = [t.name for t in discovery.tables]

        assert names == ["a", "a__b__c", "a__b", "a__b__c_2"]

    @pytest.mark.asyncio
    async def test_reports_progress(self, nested_store) -> None:
        progress = RecordingProgress()
        await discover(nested_store, "users", progress=progress)

        assert "Collecting: users" in progress.messages
        assert "Collecting: users/u1/orders" in progress.messages
        assert any(m.startswith("Reading...") for m in progress.messages)
        assert "Checking subcollections... 2/2" in progress.messages

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, store_error) -> None:
        store = FakeStore(
            {"users": {"u1": {}}, "users/u1/orders": {"o1": {}}},
            failures={"users/u1/orders": store_error},
        )
        with pytest.raises(StoreError):
            await discover(store, "users")


class TestFlush:
    """Each table is written once to each sink."""

    def test_skips_empty_tables(self) -> None:
        sink = MagicMock()
        sink.name = "json"
        assert flush_tables([LogicalTable(name="empty")], [sink]) == []
        sink.write.assert_not_called()

    def test_writes_each_table_to_each_sink(self) -> None:
        records = [DocumentRecord(id="u1", path="users/u1", data={"a": 1})]
        sinks = [MagicMock(), MagicMock()]
        for index, sink in enumerate(sinks):
            sink.name = f"sink{index}"

        flush_tables([LogicalTable(name="users", records=records)], sinks)

        for sink in sinks:
            sink.write.assert_called_once()
            table_name, schema, rows = sink.write.call_args.args
            assert table_name == "users"
            assert list(schema) == ["id", "a", "_path"]
            assert rows[0].values["a"] == 1


class TestTraverse:
    """End-to-end traversal with real writers."""

    @pytest.mark.asyncio
    async def test_result_counts(self, nested_store, tmp_path: Path) -> None:
        sinks = [JsonWriter(tmp_path / "json"), SqlWriter(tmp_path / "sql")]
        result = await traverse(nested_store, "users", sinks)

        assert result.root == "users"
        assert result.total_docs == 4
        assert result.subcollection_types == 1
        assert result.files_by_sink == {"json": 2, "sql": 2}
        assert (tmp_path / "json" / "users__orders.json").exists()
        assert (tmp_path / "sql" / "users.sql").exists()

    @pytest.mark.asyncio
    async def test_reexport_is_byte_identical(self, nested_store, tmp_path: Path) -> None:
        """Running twice over an unchanged tree rewrites identical files."""
        sinks = [JsonWriter(tmp_path / "json"), SqlWriter(tmp_path / "sql")]

        await traverse(nested_store, "users", sinks)
        first = {p.name: p.read_bytes() for p in tmp_path.rglob("*.*")}

        await traverse(nested_store, "users", sinks)
        second = {p.name: p.read_bytes() for p in tmp_path.rglob("*.*")}

        assert first == second
        assert len(first) == 4
