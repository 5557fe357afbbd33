"""Opportunistic location-precision annotation for signals."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from losslocator.domain.errors import TransientSourceError
from losslocator.domain.model import GeoAnnotation, ResolutionLevel
from losslocator.domain.ports.geocoding import ZipCountyCrosswalk

if TYPE_CHECKING:
    from losslocator.domain.model import Coordinates, Location, Signal
    from losslocator.domain.ports.geocoding import GeoLookup, ReverseGeocoder

log = getLogger(__name__)


class GeoResolver:
    """Fill in ZIPs, county FIPS and the resolution level from whatever is known.

    Precision order is point > zip > county > state. Lookup failures only cost
    precision; they never fail the record.
    """

    def __init__(
        self,
        *,
        crosswalk: ZipCountyCrosswalk | None = None,
        geocoder: ReverseGeocoder | None = None,
    ) -> None:
        self.crosswalk = crosswalk or ZipCountyCrosswalk()
        self._geocoder = geocoder
        self._lookups: dict[tuple[float, float], GeoLookup | None] = {}
        self.geocoder_failures = 0

    def resolve(self, signal: Signal) -> Signal:
        annotation = self.annotate(signal.location)
        if annotation is None:
            return signal
        if signal.geo is not None:
            annotation = signal.geo.merge(annotation)
        return replace(signal, geo=annotation)

    def annotate(self, location: Location) -> GeoAnnotation | None:
        coordinates = location.coordinates
        zip_code = location.zip_code
        county_fips = location.county_fips
        state_code = location.state_code

        if coordinates is not None and (zip_code is None or county_fips is None):
            lookup = self._reverse(coordinates)
            if lookup is not None:
                zip_code = zip_code or lookup.zip_code
                county_fips = county_fips or lookup.county_fips
                state_code = state_code or lookup.state_code

        if zip_code is not None:
            county_fips = county_fips or self.crosswalk.county_for_zip(zip_code)
            state_code = state_code or self.crosswalk.state_for_zip(zip_code)
            zip_codes: tuple[str, ...] = (zip_code,)
        elif county_fips is not None:
            zip_codes = self.crosswalk.zips_for_county(county_fips)
        else:
            zip_codes = ()

        if coordinates is not None:
            level = ResolutionLevel.POINT
        elif zip_code is not None:
            level = ResolutionLevel.ZIP
        elif county_fips is not None:
            level = ResolutionLevel.COUNTY
        elif state_code is not None:
            level = ResolutionLevel.STATE
        else:
            return None

        return GeoAnnotation(
            resolution_level=level,
            zip_codes=zip_codes,
            county_fips=county_fips,
            state_code=state_code,
        )

    def _reverse(self, coordinates: Coordinates) -> GeoLookup | None:
        if self._geocoder is None:
            return None
        cache_key = (round(coordinates.latitude, 4), round(coordinates.longitude, 4))
        if cache_key in self._lookups:
            return self._lookups[cache_key]
        try:
            lookup = self._geocoder.reverse(coordinates)
        except TransientSourceError as exc:
            self.geocoder_failures += 1
            log.warning(
                "Reverse geocoding failed for %.4f,%.4f; keeping known location: %s",
                coordinates.latitude,
                coordinates.longitude,
                exc,
            )
            return None
        self._lookups[cache_key] = lookup
        return lookup
