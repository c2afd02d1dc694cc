"""Single batch insert of enriched records."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from errors import PersistFailure
from models import EnrichedRecord

LOGGER = logging.getLogger(__name__)


class RecordSink(Protocol):
    def insert_records(self, records: Sequence[EnrichedRecord]) -> None: ...


def persist_records(store: RecordSink, records: Sequence[EnrichedRecord]) -> int:
    """Write all records in one insert and return how many were written.

    An empty batch makes no store call. Any insert error discards the whole
    batch for this run; records are neither retried nor written one by one.
    """
    if not records:
        LOGGER.info("Persist: nothing to insert")
        return 0

    try:
        store.insert_records(list(records))
    except Exception as exc:  # the batch is all-or-nothing
        raise PersistFailure(f"Batch insert of {len(records)} records failed: {exc}") from exc

    LOGGER.info("Persist: inserted %s records", len(records))
    return len(records)
