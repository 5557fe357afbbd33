"""Pydantic models for raw source payloads, one variant per source type."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Timestamp = str | int | float | None


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _coerce_identifier(value: object) -> object:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(int(value))
    return _blank_to_none(value)


class _AddressedPayload(_Payload):
    """Shared address and point fields of incident-style feeds."""

    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = Field(default=None, validation_alias=AliasChoices("zip", "zip_code"))
    latitude: float | None = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float | None = Field(
        default=None,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )

    @field_validator("address", "city", "state", "zip", "latitude", "longitude", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        return _blank_to_none(value)

    @field_validator("zip", mode="before")
    @classmethod
    def _zip_to_text(cls, value: object) -> object:
        if isinstance(value, int):
            return f"{value:05d}"
        return value


# Weather --------------------------------------------------------------------


class Geometry(_Payload):
    type: str
    coordinates: Any = None


class WeatherProperties(_Payload):
    id: str | None = None
    event: str | None = None
    severity: str | None = None
    certainty: str | None = None
    mag: float | None = Field(default=None, validation_alias=AliasChoices("mag", "magnitude"))
    onset: Timestamp = None
    effective: Timestamp = None
    sent: Timestamp = None
    time: Timestamp = None
    area_desc: str | None = Field(default=None, alias="areaDesc")
    place: str | None = None

    @field_validator("event", "severity", "certainty", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        return _blank_to_none(value)

    @property
    def is_alert(self) -> bool:
        """NWS CAP alerts carry severity/certainty; storm reports carry magnitudes."""
        return self.severity is not None or self.certainty is not None


class WeatherFeature(_Payload):
    id: str | None = None
    properties: WeatherProperties
    geometry: Geometry | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        return _coerce_identifier(value)


# Fire -----------------------------------------------------------------------


class FireCommercialIncident(_AddressedPayload):
    id: str
    incident_date: Timestamp = None
    incident_type: str | None = None
    severity: float | None = None
    estimated_loss: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        return _coerce_identifier(value)


class FireStateIncident(_AddressedPayload):
    id: str
    incident_type: str | None = None
    incident_date: Timestamp = None
    alarm_time: Timestamp = None
    property_use: str | None = None
    estimated_loss: float | None = None

    @field_validator("id", "incident_type", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        return _coerce_identifier(value)


# CAD ------------------------------------------------------------------------


class CadIncident(_AddressedPayload):
    id: str
    call_type: str | None = None
    call_time: Timestamp = None
    priority: str | None = None
    status: str | None = None
    units_assigned: list[str] = Field(default_factory=list)

    @field_validator("id", "priority", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        return _coerce_identifier(value)


# News -----------------------------------------------------------------------


class NewsArticle(_Payload):
    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "guid"))
    title: str = ""
    summary: str | None = Field(
        default=None,
        validation_alias=AliasChoices("summary", "description", "content"),
    )
    link: str | None = None
    published: Timestamp = Field(
        default=None,
        validation_alias=AliasChoices("published", "pubDate", "updated"),
    )
    feed: str | None = Field(default=None, validation_alias=AliasChoices("feed", "source"))

    @property
    def text(self) -> str:
        return " ".join(part for part in (self.title, self.summary) if part)


# Declarations ---------------------------------------------------------------


class DisasterDeclaration(_Payload):
    disaster_number: int = Field(alias="disasterNumber")
    declaration_type: str | None = Field(default=None, alias="declarationType")
    declaration_date: Timestamp = Field(default=None, alias="declarationDate")
    incident_type: str | None = Field(default=None, alias="incidentType")
    incident_begin_date: Timestamp = Field(default=None, alias="incidentBeginDate")
    declaration_title: str | None = Field(default=None, alias="declarationTitle")
    designated_area: str | None = Field(default=None, alias="designatedArea")
    state: str | None = None
    fips_state_code: str | None = Field(default=None, alias="fipsStateCode")
    fips_county_code: str | None = Field(default=None, alias="fipsCountyCode")
    latitude: float | None = None
    longitude: float | None = None

    @field_validator("fips_state_code", "fips_county_code", mode="before")
    @classmethod
    def _fips_to_text(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return _blank_to_none(value)

    @property
    def county_fips(self) -> str | None:
        """Five-digit county FIPS; statewide declarations use county code 000."""

        if not self.fips_state_code or not self.fips_county_code:
            return None
        county = self.fips_county_code.zfill(3)
        if county == "000":
            return None
        return f"{self.fips_state_code.zfill(2)}{county}"
