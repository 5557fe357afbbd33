"""Value objects shared by signals and clusters."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    @staticmethod
    def in_range(latitude: float, longitude: float) -> bool:
        return (
            math.isfinite(latitude)
            and math.isfinite(longitude)
            and -90.0 <= latitude <= 90.0
            and -180.0 <= longitude <= 180.0
        )

    @classmethod
    def parse(cls, latitude: object, longitude: object) -> Coordinates | None:
        """Build coordinates from loosely typed input; ``None`` when missing or out of range."""

        if latitude is None or longitude is None or isinstance(latitude, bool):
            return None
        try:
            lat, lng = float(latitude), float(longitude)  # pyright: ignore[reportArgumentType]
        except (TypeError, ValueError):
            return None
        if not cls.in_range(lat, lng):
            return None
        return cls(latitude=lat, longitude=lng)


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Closed interval ``[start, end]``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("time range start must not be after end")

    @classmethod
    def instant(cls, at: datetime) -> TimeRange:
        return cls(start=at, end=at)

    def extend(self, at: datetime) -> TimeRange:
        return TimeRange(start=min(self.start, at), end=max(self.end, at))

    def overlaps(self, start: datetime | None, end: datetime | None) -> bool:
        if start is not None and self.end < start:
            return False
        return not (end is not None and self.start > end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True, slots=True, kw_only=True)
class Location:
    """Everything a source told us about where an event happened."""

    coordinates: Coordinates | None = None
    zip_code: str | None = None
    county_fips: str | None = None
    state_code: str | None = None
    city: str | None = None
    address: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any(
            (
                self.coordinates,
                self.zip_code,
                self.county_fips,
                self.state_code,
                self.city,
                self.address,
            )
        )
