"""Event normalization: raw source payloads to canonical signals."""

from __future__ import annotations

from .normalizer import EventNormalizer, geometry_centroid, normalize_record, parse_timestamp
from .tables import DEFAULT_SEVERITY, DEFAULT_SOURCE_CONFIDENCE

__all__ = [
    "DEFAULT_SEVERITY",
    "DEFAULT_SOURCE_CONFIDENCE",
    "EventNormalizer",
    "geometry_centroid",
    "normalize_record",
    "parse_timestamp",
]
