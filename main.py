"""Entrypoints for the live news geo-tagging pipeline.

Each run is independent: fetch the current feed page, drop items already in the
store, infer a location for the rest, and insert the successes in one batch.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from dedup import select_new_items
from enrichment import enrich_items, max_workers_from_env
from geo_client import GeoInferencer, build_inferencer
from persist import persist_records
from sina_feed import fetch_feed
from supabase_store import SupabaseStore

ON_DEMAND_ACK = "任务已触发！请在日志中查看进度。"


@dataclass(slots=True)
class RunStats:
    """Counters for one pipeline run; ``error`` is set when a phase aborted it."""

    fetched: int = 0
    new: int = 0
    enriched: int = 0
    skipped: int = 0
    persisted: int = 0
    error: str | None = None


def run(
    store: SupabaseStore | None = None,
    inferencer: GeoInferencer | None = None,
    max_workers: int | None = None,
) -> RunStats:
    """Run one fetch -> dedup -> enrich -> persist pass. Never raises."""
    stats = RunStats()
    try:
        if store is None:
            store = SupabaseStore.from_env()
        if inferencer is None:
            inferencer = build_inferencer()

        items = fetch_feed()
        stats.fetched = len(items)
        logging.info("Fetched %s items from the live feed", stats.fetched)

        new_items = select_new_items(store, items)
        stats.new = len(new_items)
        if not new_items:
            logging.info("No new items. Run complete.")
            return stats

        if max_workers is None:
            max_workers = max_workers_from_env()
        records = enrich_items(new_items, inferencer, max_workers=max_workers)
        stats.enriched = len(records)
        stats.skipped = stats.new - stats.enriched

        stats.persisted = persist_records(store, records)
    except Exception as exc:  # one run's failure must not take the process down
        stats.error = f"{type(exc).__name__}: {exc}"
        logging.exception("Pipeline run aborted: %s", exc)
        return stats

    logging.info(
        "Run complete. fetched=%s new=%s enriched=%s skipped=%s persisted=%s",
        stats.fetched,
        stats.new,
        stats.enriched,
        stats.skipped,
        stats.persisted,
    )
    return stats


def on_schedule() -> RunStats:
    """Scheduled trigger (cron)."""
    logging.info("Scheduled run starting")
    return run()


def on_demand() -> str:
    """Manual trigger; returns the acknowledgement shown to the caller."""
    logging.info("On-demand run starting")
    run()
    return ON_DEMAND_ACK


def main() -> None:
    """Initialize config and execute one scheduled pipeline run."""
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    on_schedule()


if __name__ == "__main__":
    main()
