"""Deduplication against the record store (one batched query per run)."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

from errors import DedupFailure
from models import FeedItem

LOGGER = logging.getLogger(__name__)


class ExistenceIndex(Protocol):
    def existing_ids(self, ids: Iterable[int]) -> set[int]: ...


def filter_new_ids(store: ExistenceIndex, ids: Sequence[int]) -> list[int]:
    """Return the IDs not yet in the store, preserving candidate order.

    Fails closed: a store error aborts with DedupFailure instead of treating
    every candidate as new. Repeated IDs keep their first position only.
    """
    candidates = list(dict.fromkeys(ids))
    if not candidates:
        return []

    try:
        existing = store.existing_ids(candidates)
    except Exception as exc:  # any store error must abort the run
        raise DedupFailure(f"Existence query failed for {len(candidates)} ids: {exc}") from exc

    new_ids = [i for i in candidates if i not in existing]
    LOGGER.info(
        "Dedup: candidates=%s existing=%s new=%s",
        len(candidates),
        len(candidates) - len(new_ids),
        len(new_ids),
    )
    return new_ids


def select_new_items(store: ExistenceIndex, items: Sequence[FeedItem]) -> list[FeedItem]:
    """Keep the feed items whose id is not yet stored, in feed order."""
    new_ids = set(filter_new_ids(store, [item.id for item in items]))
    selected: list[FeedItem] = []
    for item in items:
        if item.id in new_ids:
            selected.append(item)
            new_ids.discard(item.id)
    return selected
