"""Ports for location lookups used by geo resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from losslocator.domain.model import Coordinates


@dataclass(frozen=True, slots=True)
class GeoLookup:
    """What a reverse geocoder knows about a point."""

    zip_code: str | None = None
    county_fips: str | None = None
    state_code: str | None = None


@runtime_checkable
class ReverseGeocoder(Protocol):
    """Resolve coordinates; raises ``TransientSourceError`` on timeouts and 5xx."""

    def reverse(self, coordinates: Coordinates) -> GeoLookup | None: ...


@dataclass(frozen=True, slots=True)
class CrosswalkRow:
    zip_code: str
    county_fips: str
    state_code: str | None = None


@dataclass(slots=True)
class ZipCountyCrosswalk:
    """In-memory ZIP to county lookup, loaded once per run."""

    _county_by_zip: dict[str, str] = field(default_factory=dict)
    _state_by_zip: dict[str, str] = field(default_factory=dict)
    _zips_by_county: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: Iterable[CrosswalkRow]) -> ZipCountyCrosswalk:
        crosswalk = cls()
        for row in rows:
            crosswalk.add(row)
        return crosswalk

    def add(self, row: CrosswalkRow) -> None:
        self._county_by_zip[row.zip_code] = row.county_fips
        if row.state_code:
            self._state_by_zip[row.zip_code] = row.state_code
        zips = self._zips_by_county.setdefault(row.county_fips, [])
        if row.zip_code not in zips:
            zips.append(row.zip_code)

    def county_for_zip(self, zip_code: str) -> str | None:
        return self._county_by_zip.get(zip_code)

    def state_for_zip(self, zip_code: str) -> str | None:
        return self._state_by_zip.get(zip_code)

    def zips_for_county(self, county_fips: str) -> tuple[str, ...]:
        return tuple(sorted(self._zips_by_county.get(county_fips, ())))

    def __len__(self) -> int:
        return len(self._county_by_zip)


__all__ = ["CrosswalkRow", "GeoLookup", "ReverseGeocoder", "ZipCountyCrosswalk"]
