"""Census Bureau reverse geocoder (``geographies/coordinates``), no key required."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from losslocator.adapters.http_resilience import default_client_factory
from losslocator.config.sources import get_census_geocoder_config
from losslocator.domain.errors import TransientSourceError
from losslocator.domain.ports.geocoding import GeoLookup

if TYPE_CHECKING:
    from collections.abc import Callable

    from losslocator.adapters.http_resilience import SourceClient
    from losslocator.config.http_resilience import ResilienceConfig
    from losslocator.config.sources import CensusGeocoderConfig
    from losslocator.domain.model import Coordinates
    from losslocator.domain.ports.geocoding import ReverseGeocoder

log = getLogger(__name__)

COORDINATES_PATH = "/geocoder/geographies/coordinates"


class _Geography(BaseModel):
    model_config = ConfigDict(extra="ignore")

    geoid: str | None = Field(default=None, alias="GEOID")
    zcta5: str | None = Field(default=None, alias="ZCTA5")
    stusab: str | None = Field(default=None, alias="STUSAB")


class _Result(BaseModel):
    model_config = ConfigDict(extra="ignore")

    geographies: dict[str, list[_Geography]] = Field(default_factory=dict)


class GeographiesResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: _Result | None = None

    def layer(self, fragment: str) -> _Geography | None:
        """First feature of the first layer whose name contains ``fragment``.

        Layer names carry the vintage ("2020 Census ZIP Code Tabulation Areas"),
        so they are matched by fragment.
        """

        if self.result is None:
            return None
        for name, features in self.result.geographies.items():
            if fragment in name and features:
                return features[0]
        return None

    def to_lookup(self) -> GeoLookup | None:
        zcta = self.layer("ZIP Code Tabulation Areas")
        county = self.layer("Counties")
        state = self.layer("States")
        lookup = GeoLookup(
            zip_code=(zcta.zcta5 or zcta.geoid) if zcta else None,
            county_fips=county.geoid if county else None,
            state_code=state.stusab if state else None,
        )
        if lookup == GeoLookup():
            return None
        return lookup


def _has_geographies(payload: object) -> bool:
    """Only answers that located the point are worth keeping."""

    if not isinstance(payload, dict):
        return False
    result = payload.get("result")
    return isinstance(result, dict) and bool(result.get("geographies"))


@dataclass(slots=True)
class CensusReverseGeocoder:
    config: CensusGeocoderConfig = field(
        default_factory=lambda: get_census_geocoder_config(cache_predicate=_has_geographies)
    )
    client_factory: Callable[[ResilienceConfig], SourceClient] = field(
        default=default_client_factory
    )

    def reverse(self, coordinates: Coordinates) -> GeoLookup | None:
        return asyncio.run(self._reverse_async(coordinates))

    async def _reverse_async(self, coordinates: Coordinates) -> GeoLookup | None:
        params = {
            "x": f"{coordinates.longitude:.6f}",
            "y": f"{coordinates.latitude:.6f}",
            "benchmark": self.config.benchmark,
            "vintage": self.config.vintage,
            "layers": "all",
            "format": "json",
        }
        try:
            async with self.client_factory(self.config.resilience) as client:
                response = await client.get(COORDINATES_PATH, params=params)
        except httpx.TransportError as exc:
            raise TransientSourceError(f"census geocoder: {type(exc).__name__}: {exc}") from exc

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientSourceError(f"census geocoder: HTTP {response.status_code}")
        if response.is_error:
            log.warning("Census geocoder rejected %s: HTTP %d", params, response.status_code)
            return None
        try:
            return GeographiesResponse.model_validate(response.json()).to_lookup()
        except (ValueError, ValidationError) as exc:
            # maintenance pages come back as 200 HTML
            raise TransientSourceError(f"census geocoder: unreadable answer: {exc}") from exc


if TYPE_CHECKING:
    _geocoder_check: ReverseGeocoder = CensusReverseGeocoder()
