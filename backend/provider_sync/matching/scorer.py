"""Weighted confidence scoring between a primary and a secondary record."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Protocol

from provider_sync.matching.similarity import (
    extract_domain,
    haversine_meters,
    name_similarity,
    phones_match,
    tag_similarity,
    trigram_similarity,
)
from provider_sync.models.enums import MatchClassification


SCORER_VERSION = "match-v1"

NAME_WEIGHT = 0.40
PHONE_WEIGHT = 0.25
ADDRESS_WEIGHT = 0.15
GEO_WEIGHT = 0.10
WEBSITE_WEIGHT = 0.05
TAG_WEIGHT = 0.05

AUTO_MATCH_THRESHOLD = 0.85
PARTIAL_MATCH_THRESHOLD = 0.65

GEO_MAX_DISTANCE_METERS = 500.0
GEO_PROXIMITY_METERS = 200.0

# An equal phone plus a plausible name is treated as the same business even when
# the address fields disagree or are missing on one side.
PHONE_CORROBORATION_MIN_NAME = 0.5
PHONE_CORROBORATED_CONFIDENCE = 0.90


class MatchableRecord(Protocol):
    name: str
    phone_normalized: str | None
    address: str | None
    latitude: float | None
    longitude: float | None
    website: str | None
    tags_json: list[str]


@dataclass(slots=True, frozen=True)
class MatchBreakdown:
    """Per-field contributions behind one confidence score."""

    name_score: float
    phone_match: bool
    address_score: float
    geo_distance_meters: float | None
    geo_score: float
    within_proximity: bool
    website_match: bool
    tag_score: float
    phone_corroborated: bool
    confidence: float

    @property
    def classification(self) -> MatchClassification:
        return classify_confidence(self.confidence)

    def as_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["scorer_version"] = SCORER_VERSION
        return payload


def classify_confidence(confidence: float) -> MatchClassification:
    """Map a confidence in [0, 1] to auto / partial / none."""

    if confidence >= AUTO_MATCH_THRESHOLD:
        return MatchClassification.AUTO
    if confidence >= PARTIAL_MATCH_THRESHOLD:
        return MatchClassification.PARTIAL
    return MatchClassification.NONE


def score_pair(primary: MatchableRecord, secondary: MatchableRecord) -> MatchBreakdown:
    """Score how likely two records describe the same provider."""

    name_score = name_similarity(primary.name, secondary.name)
    phone_match = phones_match(primary.phone_normalized, secondary.phone_normalized)
    address_score = trigram_similarity(primary.address, secondary.address)

    geo_distance: float | None = None
    geo_score = 0.0
    if _has_coordinates(primary) and _has_coordinates(secondary):
        geo_distance = haversine_meters(
            primary.latitude,  # type: ignore[arg-type]
            primary.longitude,  # type: ignore[arg-type]
            secondary.latitude,  # type: ignore[arg-type]
            secondary.longitude,  # type: ignore[arg-type]
        )
        geo_score = max(0.0, 1.0 - geo_distance / GEO_MAX_DISTANCE_METERS)

    primary_domain = extract_domain(primary.website)
    website_match = primary_domain is not None and primary_domain == extract_domain(secondary.website)
    tag_score = tag_similarity(primary.tags_json, secondary.tags_json)

    weighted = (
        name_score * NAME_WEIGHT
        + (1.0 if phone_match else 0.0) * PHONE_WEIGHT
        + address_score * ADDRESS_WEIGHT
        + geo_score * GEO_WEIGHT
        + (1.0 if website_match else 0.0) * WEBSITE_WEIGHT
        + tag_score * TAG_WEIGHT
    )
    phone_corroborated = phone_match and name_score >= PHONE_CORROBORATION_MIN_NAME
    if phone_corroborated:
        weighted = max(weighted, PHONE_CORROBORATED_CONFIDENCE)
    confidence = min(1.0, max(0.0, weighted))

    return MatchBreakdown(
        name_score=_round(name_score),
        phone_match=phone_match,
        address_score=_round(address_score),
        geo_distance_meters=round(geo_distance, 1) if geo_distance is not None else None,
        geo_score=_round(geo_score),
        within_proximity=geo_distance is not None and geo_distance <= GEO_PROXIMITY_METERS,
        website_match=website_match,
        tag_score=_round(tag_score),
        phone_corroborated=phone_corroborated,
        confidence=_round(confidence),
    )


def _has_coordinates(record: MatchableRecord) -> bool:
    return record.latitude is not None and record.longitude is not None


def _round(value: float) -> float:
    return round(value, 4)
