"""Location precision annotations."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import ResolutionLevel


@dataclass(frozen=True, slots=True, kw_only=True)
class GeoAnnotation:
    resolution_level: ResolutionLevel
    zip_codes: tuple[str, ...] = ()
    county_fips: str | None = None
    state_code: str | None = None

    def merge(self, other: GeoAnnotation | None) -> GeoAnnotation:
        """Combine two annotations keeping the most precise level and the union of ZIPs."""

        if other is None:
            return self
        level = max(
            (self.resolution_level, other.resolution_level),
            key=lambda value: value.precision,
        )
        zip_codes = tuple(dict.fromkeys((*self.zip_codes, *other.zip_codes)))
        return GeoAnnotation(
            resolution_level=level,
            zip_codes=zip_codes,
            county_fips=self.county_fips or other.county_fips,
            state_code=self.state_code or other.state_code,
        )
