"""Shared typed models for the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

UNKNOWN_ADDRESS = "未知"


@dataclass(frozen=True, slots=True)
class FeedItem:
    """One raw entry from the live news feed."""

    id: int
    rich_text: str
    create_time: str


@dataclass(frozen=True, slots=True)
class GeoResult:
    """Location inferred for one item (WGS84 degrees)."""

    address: str
    lat: float
    lng: float

    @classmethod
    def unknown(cls) -> GeoResult:
        return cls(address=UNKNOWN_ADDRESS, lat=0.0, lng=0.0)

    @property
    def is_unknown(self) -> bool:
        return self == GeoResult.unknown()


@dataclass(frozen=True, slots=True)
class EnrichedRecord:
    """Persisted row: the feed item plus its inferred location."""

    id: int
    rich_text: str
    create_time: str
    address: str
    latitude: float
    longitude: float

    @classmethod
    def from_item(cls, item: FeedItem, geo: GeoResult) -> EnrichedRecord:
        return cls(
            id=item.id,
            rich_text=item.rich_text,
            create_time=item.create_time,
            address=geo.address,
            latitude=geo.lat,
            longitude=geo.lng,
        )

    def to_row(self) -> dict[str, Any]:
        """Column mapping used by the store table."""
        return {
            "id": self.id,
            "rich_text": self.rich_text,
            "create_time": self.create_time,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
