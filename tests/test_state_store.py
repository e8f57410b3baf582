"""
Tests for the durable position record.
"""
import json

import pytest

from lpkeeper.state.state import NO_POSITION, PositionRecord, StateStore
from lpkeeper.state.state_atomic import AtomicStateStore

ACCOUNT = "0xAbCdEf0000000000000000000000000000000001"


class TestPositionRecord:
    def test_default_is_none(self):
        rec = PositionRecord()
        assert rec.position_id == NO_POSITION
        assert rec.last_checked_at == 0
        assert not rec.has_position

    def test_dict_keys(self):
        rec = PositionRecord("42", 1700000000000)
        assert rec.to_dict() == {"positionId": "42", "lastCheckedAt": 1700000000000}
        assert PositionRecord.from_dict(rec.to_dict()) == rec

    def test_legacy_keys(self):
        rec = PositionRecord.from_dict({"tokenId": "17", "lastCheck": 5})
        assert rec == PositionRecord("17", 5)

    def test_legacy_zero_means_no_position(self):
        rec = PositionRecord.from_dict({"tokenId": "0", "lastCheck": 0})
        assert not rec.has_position

    def test_numeric_id_is_stringified(self):
        assert PositionRecord.from_dict({"positionId": 99}).position_id == "99"

    @pytest.mark.parametrize("data", [{}, {"positionId": ""}, {"positionId": "  "}])
    def test_invalid(self, data):
        with pytest.raises(ValueError):
            PositionRecord.from_dict(data)


class TestStateStore:
    def test_path_uses_lowercased_account(self, tmp_path):
        store = StateStore(ACCOUNT, str(tmp_path))
        assert store.path.name == f"bot_state_{ACCOUNT.lower()}.json"

    def test_missing_file_loads_default(self, tmp_path):
        store = StateStore(ACCOUNT, str(tmp_path))
        assert store.load() == PositionRecord()

    def test_save_then_load(self, tmp_path):
        store = StateStore(ACCOUNT, str(tmp_path))
        saved = store.save("123")
        assert saved.position_id == "123"
        assert saved.last_checked_at > 0
        assert store.load() == saved
        assert not store.tmp.exists()

    def test_corrupt_file_loads_default(self, tmp_path):
        store = StateStore(ACCOUNT, str(tmp_path))
        store.path.write_text("{not json")
        assert store.load() == PositionRecord()

    def test_non_object_loads_default(self, tmp_path):
        store = StateStore(ACCOUNT, str(tmp_path))
        store.path.write_text(json.dumps(["123"]))
        assert store.load() == PositionRecord()

    def test_legacy_file(self, tmp_path):
        store = StateStore(ACCOUNT, str(tmp_path))
        store.path.write_text(json.dumps({"tokenId": "77", "lastCheck": 10}))
        assert store.load().position_id == "77"

    def test_save_error_propagates(self, tmp_path):
        store = StateStore(ACCOUNT, str(tmp_path))
        store.tmp.mkdir()  # writing a file over a directory fails
        with pytest.raises(OSError):
            store.save("1")


class TestAtomicStateStore:
    @pytest.mark.asyncio
    async def test_roundtrip(self, tmp_path):
        store = AtomicStateStore(ACCOUNT, str(tmp_path))
        assert (await store.load()).position_id == NO_POSITION
        await store.save("5")
        assert (await store.load()).position_id == "5"
        await store.save(NO_POSITION)
        assert not (await store.load()).has_position
