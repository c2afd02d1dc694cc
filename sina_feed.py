"""Sina 7x24 live feed ingestion helpers."""

from __future__ import annotations

import logging
from typing import Any

import requests

from errors import FetchFailure
from models import FeedItem

# Public endpoint behind the finance live page; one page of the most recent items.
SINA_FEED_URL = "https://zhibo.sina.com.cn/api/zhibo/feed?zhibo_id=152&page_size=60"
REQUEST_TIMEOUT_SECONDS = 20

LOGGER = logging.getLogger(__name__)


def fetch_feed() -> list[FeedItem]:
    """Fetch the current feed page and normalize it into FeedItem objects.

    Raises:
        FetchFailure: the endpoint is unreachable, answers with an error status,
            or the body does not have the expected shape.
    """
    try:
        response = requests.get(SINA_FEED_URL, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as exc:
        raise FetchFailure(f"Feed request failed: {exc}") from exc
    except ValueError as exc:
        raise FetchFailure(f"Feed returned a non-JSON body: {exc}") from exc

    items = _parse_feed_payload(payload)
    LOGGER.info("Feed fetch: returned=%s", len(items))
    return items


def _parse_feed_payload(payload: Any) -> list[FeedItem]:
    """Parse the API payload (result.data.feed.list) into FeedItem objects."""
    try:
        raw_items = payload["result"]["data"]["feed"]["list"]
    except (KeyError, TypeError) as exc:
        raise FetchFailure("Unexpected feed payload shape: missing result.data.feed.list") from exc

    if not isinstance(raw_items, list):
        raise FetchFailure("Unexpected feed payload shape: feed list is not a list")

    parsed: list[FeedItem] = []
    for raw in raw_items:
        try:
            item_id = int(raw["id"])
            rich_text = raw["rich_text"]
            create_time = raw["create_time"]
        except (KeyError, TypeError, ValueError) as exc:
            raise FetchFailure(f"Feed item missing required fields: {raw!r}") from exc

        if not isinstance(rich_text, str) or not isinstance(create_time, str):
            raise FetchFailure(f"Feed item rich_text/create_time must be strings: {raw!r}")

        parsed.append(FeedItem(id=item_id, rich_text=rich_text, create_time=create_time))

    return parsed
