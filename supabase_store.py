"""Supabase (PostgREST) table client for enriched records."""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Iterable, Sequence
from typing import Any

import requests

from models import EnrichedRecord

DEFAULT_TABLE = "earth724"
REQUEST_TIMEOUT_SECONDS = 30
MAX_RETRIES = 3

LOGGER = logging.getLogger(__name__)


class SupabaseStore:
    """Existence check and bulk insert against one Supabase table.

    Reads are retried with exponential backoff. Inserts are sent once: the
    whole batch goes out as a single JSON array, which PostgREST writes in one
    statement, so a failure leaves no rows behind.
    """

    def __init__(self, url: str, key: str, table: str = DEFAULT_TABLE) -> None:
        self._rest_url = f"{url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }
        self.table = table

    @classmethod
    def from_env(cls) -> SupabaseStore:
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_SECRET_KEY")
        if not url:
            raise RuntimeError("SUPABASE_URL environment variable is required")
        if not key:
            raise RuntimeError("SUPABASE_SECRET_KEY environment variable is required")
        return cls(url=url, key=key, table=os.getenv("SUPABASE_TABLE", DEFAULT_TABLE))

    def existing_ids(self, ids: Iterable[int]) -> set[int]:
        """Return the subset of ``ids`` already stored, in one IN query."""
        id_list = ",".join(str(int(i)) for i in ids)
        response = self._request_with_backoff(
            method="GET",
            params={"select": "id", "id": f"in.({id_list})"},
        )
        rows = response.json()
        if not isinstance(rows, list):
            raise RuntimeError(f"Unexpected Supabase select response: {rows!r}")
        return {int(row["id"]) for row in rows}

    def insert_records(self, records: Sequence[EnrichedRecord]) -> None:
        """Insert every record in a single request (all-or-nothing)."""
        headers = {**self._headers, "Prefer": "return=minimal"}
        response = requests.post(
            self._rest_url,
            headers=headers,
            json=[record.to_row() for record in records],
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        if not response.ok:
            raise RuntimeError(
                f"Supabase insert into {self.table} failed ({response.status_code}): "
                f"{response.text[:400]}"
            )
        LOGGER.info("Inserted %s rows into %s", len(records), self.table)

    def _request_with_backoff(
        self,
        *,
        method: str,
        params: dict[str, Any],
    ) -> requests.Response:
        """Send a read request with exponential backoff.

        Only transport errors and HTTP 429 are retried; any other error status
        fails on the first response.
        """
        delay_seconds = 1.0
        last_error: Exception | None = None

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = requests.request(
                    method=method,
                    url=self._rest_url,
                    headers=self._headers,
                    params=params,
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt >= MAX_RETRIES:
                    break
                LOGGER.warning(
                    "Supabase %s failed on attempt %s/%s: %s", method, attempt, MAX_RETRIES, exc
                )
                time.sleep(delay_seconds)
                delay_seconds *= 2
                continue

            if response.status_code == 429 and attempt < MAX_RETRIES:
                time.sleep(delay_seconds)
                delay_seconds *= 2
                continue
            if not response.ok:
                raise RuntimeError(
                    f"Supabase {method} failed ({response.status_code}): {_response_text(response)}"
                )
            return response

        raise RuntimeError(f"Supabase request failed after retries: {last_error}")


def _response_text(response: requests.Response) -> str:
    try:
        return json.dumps(response.json())
    except ValueError:
        return response.text[:400]
