"""Concurrent geo enrichment of new feed items."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

from geo_client import GeoInferencer, strip_markup
from models import EnrichedRecord, FeedItem

DEFAULT_MAX_WORKERS = 8

LOGGER = logging.getLogger(__name__)


def max_workers_from_env() -> int:
    """Pool size from GEO_MAX_WORKERS, read at call time so .env values apply."""
    return int(os.getenv("GEO_MAX_WORKERS", str(DEFAULT_MAX_WORKERS)))


def enrich_item(item: FeedItem, inferencer: GeoInferencer) -> EnrichedRecord:
    """Infer the location of one item and combine it with the item's fields."""
    geo = inferencer.infer(strip_markup(item.rich_text))
    if geo.is_unknown:
        LOGGER.info("No location resolved for item id=%s, storing unknown sentinel", item.id)
    return EnrichedRecord.from_item(item, geo)


def enrich_items(
    items: Sequence[FeedItem],
    inferencer: GeoInferencer,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[EnrichedRecord]:
    """Enrich every item on a bounded thread pool and return the successes.

    A failing item is logged and dropped; it never cancels or delays the others.
    Returns once every submitted task has settled. Result order is unspecified.
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    if not items:
        return []

    LOGGER.info("Enriching %s new items (max_workers=%s)", len(items), max_workers)
    records: list[EnrichedRecord] = []

    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as executor:
        future_to_item = {executor.submit(enrich_item, item, inferencer): item for item in items}

        for future in as_completed(future_to_item):
            item = future_to_item[future]
            try:
                record = future.result()
            except Exception as exc:  # per-item isolation: skip and keep going
                LOGGER.warning("Skipping item id=%s: %s", item.id, exc)
                continue
            records.append(record)
            LOGGER.debug("Enriched item id=%s address=%s", item.id, record.address)

    LOGGER.info(
        "Enrichment complete: succeeded=%s skipped=%s", len(records), len(items) - len(records)
    )
    return records
