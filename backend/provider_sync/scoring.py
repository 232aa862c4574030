"""Quality score derivation from source ratings.

The quality score is a fixed weighted blend of five 0-100 sub-scores. Only
client satisfaction and perceived value are driven by source ratings today;
the other three have no source signal and take ``NEUTRAL_SUB_SCORE`` so that
providers with partial data are not pushed to the bottom of a category.
"""

from __future__ import annotations

from dataclasses import dataclass

RATING_SCALE_MAX = 5.0
NORMALIZED_SCALE_MAX = 100.0
NEUTRAL_SUB_SCORE = 80.0
DEFAULT_RATING = 4.0

CLIENT_SATISFACTION_WEIGHT = 0.25
SERVICE_QUALITY_WEIGHT = 0.25
PUNCTUALITY_WEIGHT = 0.20
COMMUNICATION_WEIGHT = 0.15
VALUE_PERCEIVED_WEIGHT = 0.15


@dataclass(slots=True, frozen=True)
class QualityScore:
    client_satisfaction: float
    service_quality: float
    punctuality: float
    communication: float
    value_perceived: float
    overall: float


def available_ratings(*ratings: float | None) -> list[float]:
    """Ratings that carry a signal (present and above zero)."""

    return [rating for rating in ratings if rating is not None and rating > 0]


def combined_rating(*ratings: float | None) -> float:
    """Arithmetic mean of available ratings on the 0-5 scale, else the default."""

    present = available_ratings(*ratings)
    if not present:
        return DEFAULT_RATING
    return round(sum(present) / len(present), 1)


def rating_signal(*ratings: float | None) -> float:
    """Average available rating normalized to 0-100, or the neutral default."""

    present = available_ratings(*ratings)
    if not present:
        return NEUTRAL_SUB_SCORE
    average = sum(present) / len(present)
    return _clamp(average / RATING_SCALE_MAX * NORMALIZED_SCALE_MAX)


def compute_quality_score(*ratings: float | None) -> QualityScore:
    """Compute all sub-scores and the weighted overall score."""

    signal = rating_signal(*ratings)
    client_satisfaction = signal
    service_quality = NEUTRAL_SUB_SCORE
    punctuality = NEUTRAL_SUB_SCORE
    communication = NEUTRAL_SUB_SCORE
    value_perceived = signal

    overall = (
        client_satisfaction * CLIENT_SATISFACTION_WEIGHT
        + service_quality * SERVICE_QUALITY_WEIGHT
        + punctuality * PUNCTUALITY_WEIGHT
        + communication * COMMUNICATION_WEIGHT
        + value_perceived * VALUE_PERCEIVED_WEIGHT
    )
    return QualityScore(
        client_satisfaction=client_satisfaction,
        service_quality=service_quality,
        punctuality=punctuality,
        communication=communication,
        value_perceived=value_perceived,
        overall=_clamp(overall),
    )


def _clamp(value: float) -> float:
    return min(NORMALIZED_SCALE_MAX, max(0.0, value))
