import pytest

from errors import PersistFailure
from fakes import FakeStore, make_item
from models import EnrichedRecord, GeoResult
from persist import persist_records


def _records(*ids: int) -> list[EnrichedRecord]:
    geo = GeoResult(address="广州", lat=23.13, lng=113.26)
    return [EnrichedRecord.from_item(make_item(i), geo) for i in ids]


def test_persist_records_empty_batch_makes_no_store_call(store: FakeStore) -> None:
    assert persist_records(store, []) == 0
    assert store.insert_calls == 0


def test_persist_records_inserts_whole_batch_once(store: FakeStore) -> None:
    assert persist_records(store, _records(1, 2, 3)) == 3
    assert store.insert_calls == 1
    assert set(store.rows) == {1, 2, 3}


def test_persist_records_failure_leaves_nothing_behind() -> None:
    store = FakeStore(fail_insert=True)

    with pytest.raises(PersistFailure, match="3 records"):
        persist_records(store, _records(1, 2, 3))

    assert store.insert_calls == 1
    assert store.rows == {}
