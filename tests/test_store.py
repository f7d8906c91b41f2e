"""Tests for the Record Store read contract and change feed."""

from unittest.mock import MagicMock

import pytest

from signalgraph.store import FetchFailure, RecordStore


class TestSelect:
    def test_filters_and_orders(self, store):
        store.insert("signals", {"id": "s1", "user_id": "u1", "created_at": "2025-01-01"})
        store.insert("signals", {"id": "s2", "user_id": "u1", "created_at": "2025-01-03"})
        store.insert("signals", {"id": "s3", "user_id": "u2", "created_at": "2025-01-02"})
        rows = store.select("signals", eq={"user_id": "u1"}, order_by="created_at", descending=True)
        assert [r["id"] for r in rows] == ["s2", "s1"]

    def test_empty_table(self, store):
        assert store.select("insights") == []

    def test_unknown_table_is_fetch_failure(self, store):
        with pytest.raises(FetchFailure) as exc:
            store.select("memories")
        assert exc.value.table == "memories"

    def test_unknown_column_is_fetch_failure(self, store):
        with pytest.raises(FetchFailure):
            store.select("signals", order_by="nonexistent")

    def test_get(self, store):
        store.insert("clusters", {"id": "c1", "name": "Energy"})
        assert store.get("clusters", "c1")["name"] == "Energy"
        assert store.get("clusters", "c2") is None

    def test_explicit_db_path(self, temp_data_dir):
        other = RecordStore(temp_data_dir / "other.db")
        other.insert("signals", {"id": "s1"})
        assert (temp_data_dir / "other.db").exists()
        assert RecordStore().select("signals") == []


class TestWrites:
    def test_insert_returns_stored_row(self, store):
        row = store.insert("insights", {"id": "i1", "signal_ids": ["a"]})
        assert row["signal_ids"] == ["a"]
        assert row["sort_order"] == 0
        assert row["created_at"]

    def test_update_returns_full_row(self, store):
        store.insert("positions", {"id": "p1", "user_id": "u1", "title": "Draft"})
        row = store.update("positions", "p1", tone="firm")
        assert row["title"] == "Draft"
        assert row["tone"] == "firm"

    def test_update_missing(self, store):
        assert store.update("positions", "nope", tone="firm") is None

    def test_delete(self, store):
        store.insert("signals", {"id": "s1"})
        assert store.delete("signals", "s1") is True
        assert store.delete("signals", "s1") is False


class TestSubscriptions:
    def test_insert_event_carries_full_row(self, store):
        received = []
        store.subscribe("positions", received.append)
        store.insert("positions", {"id": "p1", "user_id": "u1", "title": "T"})
        assert len(received) == 1
        event = received[0]
        assert event.event == "INSERT"
        assert event.table == "positions"
        assert event.new["title"] == "T"
        assert "created_at" in event.new

    def test_update_event_has_new_and_old(self, store):
        store.insert("positions", {"id": "p1", "title": "Old"})
        received = []
        store.subscribe("positions", received.append)
        store.update("positions", "p1", title="New")
        assert received[0].event == "UPDATE"
        assert received[0].new["title"] == "New"
        assert received[0].old["title"] == "Old"

    def test_delete_event_has_old(self, store):
        store.insert("signals", {"id": "s1", "user_id": "u1"})
        received = []
        store.subscribe("signals", received.append, eq={"user_id": "u1"})
        store.delete("signals", "s1")
        assert received[0].event == "DELETE"
        assert received[0].old["id"] == "s1"
        assert received[0].new == {}

    def test_other_tables_not_delivered(self, store):
        callback = MagicMock()
        store.subscribe("positions", callback)
        store.insert("signals", {"id": "s1"})
        callback.assert_not_called()

    def test_equality_filter(self, store):
        callback = MagicMock()
        store.subscribe("positions", callback, eq={"user_id": "u1"})
        store.insert("positions", {"id": "p1", "user_id": "u2"})
        store.insert("positions", {"id": "p2", "user_id": "u1"})
        assert callback.call_count == 1
        assert callback.call_args[0][0].new["id"] == "p2"

    def test_failed_write_publishes_nothing(self, store):
        callback = MagicMock()
        store.subscribe("positions", callback)
        assert store.update("positions", "missing", title="x") is None
        assert store.delete("positions", "missing") is False
        callback.assert_not_called()

    def test_unsubscribe_stops_delivery(self, store):
        callback = MagicMock()
        sub = store.subscribe("signals", callback)
        assert store.channel_count == 1
        store.remove_channel(sub)
        store.insert("signals", {"id": "s1"})
        callback.assert_not_called()
        assert store.channel_count == 0
        assert not sub.active

    def test_unsubscribe_idempotent(self, store):
        keep = store.subscribe("signals", MagicMock())
        sub = store.subscribe("signals", MagicMock())
        sub.unsubscribe()
        sub.unsubscribe()
        store.remove_channel(sub)
        assert store.channel_count == 1
        assert keep.active

    def test_failing_callback_does_not_block_others(self, store):
        bad = MagicMock(side_effect=RuntimeError("boom"))
        good = MagicMock()
        store.subscribe("signals", bad)
        store.subscribe("signals", good)
        store.insert("signals", {"id": "s1"})
        bad.assert_called_once()
        good.assert_called_once()

    def test_unsubscribe_from_inside_callback(self, store):
        calls = []

        def once(event):
            calls.append(event)
            sub.unsubscribe()

        sub = store.subscribe("signals", once)
        store.insert("signals", {"id": "s1"})
        store.insert("signals", {"id": "s2"})
        assert len(calls) == 1
        assert store.channel_count == 0
