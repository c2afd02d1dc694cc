import pytest

from dedup import filter_new_ids, select_new_items
from errors import DedupFailure
from fakes import FakeStore, make_item


def test_filter_new_ids_preserves_candidate_order(store: FakeStore) -> None:
    store.rows = {2: object(), 4: object()}  # type: ignore[dict-item]

    assert filter_new_ids(store, [5, 4, 3, 2, 1]) == [5, 3, 1]


def test_filter_new_ids_uses_a_single_query(store: FakeStore) -> None:
    filter_new_ids(store, list(range(60)))

    assert len(store.select_calls) == 1
    assert store.select_calls[0] == list(range(60))


def test_filter_new_ids_empty_store_means_all_new(store: FakeStore) -> None:
    assert filter_new_ids(store, [10, 11]) == [10, 11]


def test_filter_new_ids_no_candidates_skips_store(store: FakeStore) -> None:
    assert filter_new_ids(store, []) == []
    assert store.select_calls == []


def test_filter_new_ids_collapses_repeated_ids(store: FakeStore) -> None:
    assert filter_new_ids(store, [7, 8, 7]) == [7, 8]
    assert store.select_calls == [[7, 8]]


def test_filter_new_ids_fails_closed_on_store_error() -> None:
    store = FakeStore(fail_select=True)

    with pytest.raises(DedupFailure, match="select exploded"):
        filter_new_ids(store, [1, 2, 3])


def test_select_new_items_returns_items_in_feed_order(store: FakeStore) -> None:
    store.rows = {2: object()}  # type: ignore[dict-item]
    items = [make_item(3), make_item(2), make_item(1)]

    assert [item.id for item in select_new_items(store, items)] == [3, 1]


def test_select_new_items_keeps_first_of_duplicate_items(store: FakeStore) -> None:
    items = [make_item(1, "first"), make_item(1, "second")]

    selected = select_new_items(store, items)

    assert len(selected) == 1
    assert selected[0].rich_text == "first"
