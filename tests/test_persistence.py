"""Tests for the tracked-list persistence back ends."""

import json
from unittest.mock import Mock, patch

import pytest

from models.data_models import CIJob, TrackedPR
from storage.json_store import JsonFileStore
from storage.supabase_client import SupabaseKVStore
from storage.tracked_list import TRACKED_PRS_KEY, TrackedListRepository


class TestJsonFileStore:
    def test_missing_file_reads_none(self, tmp_path):
        store = JsonFileStore(tmp_path / "state.json")
        assert store.get("anything") is None

    def test_set_then_get(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        store = JsonFileStore(path)
        store.set("a", [1, 2])
        store.set("b", {"x": 1})

        assert store.get("a") == [1, 2]
        assert json.loads(path.read_text()) == {"a": [1, 2], "b": {"x": 1}}
        assert not (tmp_path / "nested" / "state.json.tmp").exists()

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        store = JsonFileStore(path)

        assert store.get("a") is None
        store.set("a", 1)
        assert store.get("a") == 1


class TestSupabaseKVStore:
    @pytest.fixture
    def kv(self):
        with patch("storage.supabase_client.create_client") as mock_create:
            mock_create.return_value = Mock()
            yield SupabaseKVStore("https://test.supabase.co", "key")

    def test_get_returns_value(self, kv):
        query = kv.client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = Mock(data=[{"value": [{"repo": "o/r"}]}])

        assert kv.get(TRACKED_PRS_KEY) == [{"repo": "o/r"}]
        kv.client.table.assert_called_with("tracker_state")
        kv.client.table.return_value.select.return_value.eq.assert_called_with("key", TRACKED_PRS_KEY)

    def test_get_missing_key(self, kv):
        query = kv.client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = Mock(data=[])
        assert kv.get("missing") is None

    def test_set_upserts_on_key(self, kv):
        kv.set("tracked_prs", [])

        args, kwargs = kv.client.table.return_value.upsert.call_args
        assert args[0]["key"] == "tracked_prs"
        assert args[0]["value"] == []
        assert kwargs == {"on_conflict": "key"}

    def test_errors_propagate(self, kv):
        kv.client.table.return_value.upsert.return_value.execute.side_effect = Exception("boom")
        with pytest.raises(Exception):
            kv.set("tracked_prs", [])


class TestTrackedListRepository:
    def test_save_omits_transient_and_derived_fields(self, tmp_path):
        store = JsonFileStore(tmp_path / "state.json")
        repository = TrackedListRepository(store)
        record = TrackedPR(
            repo="o/r",
            number=1,
            title="Add retries",
            jobs=[CIJob(name="build", status="failure", job_id=9)],
            is_loading=True,
            last_error="HTTP 500",
            representative_run_id=555,
        )

        repository.save([record])

        saved = store.get(TRACKED_PRS_KEY)[0]
        assert saved["title"] == "Add retries"
        assert saved["jobs"] == [{"name": "build", "status": "failure", "job_id": 9}]
        for field in ("is_loading", "last_error", "representative_run_id", "ci_status"):
            assert field not in saved

    def test_round_trip_keeps_order_and_ids(self, tmp_path):
        repository = TrackedListRepository(JsonFileStore(tmp_path / "state.json"))
        records = [TrackedPR(repo="o/r", number=2), TrackedPR(repo="o/r", number=1)]

        repository.save(records)
        loaded = repository.load()

        assert [(r.id, r.number) for r in loaded] == [(r.id, r.number) for r in records]

    def test_malformed_entries_are_skipped(self):
        store = Mock()
        store.get.return_value = [{"repo": "o/r", "number": 1}, {"title": "no repo"}, "junk"]

        loaded = TrackedListRepository(store).load()

        assert [r.number for r in loaded] == [1]

    def test_unreadable_state_is_empty(self):
        store = Mock()
        store.get.side_effect = Exception("offline")
        assert TrackedListRepository(store).load() == []

    def test_non_list_state_is_empty(self):
        store = Mock()
        store.get.return_value = {"repo": "o/r"}
        assert TrackedListRepository(store).load() == []
