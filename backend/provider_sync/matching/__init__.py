"""Provider matching package."""

from provider_sync.matching.pairing import PairingPlan, ScoredPair, UnpairedRecord, plan_pairs
from provider_sync.matching.scorer import (
    AUTO_MATCH_THRESHOLD,
    PARTIAL_MATCH_THRESHOLD,
    SCORER_VERSION,
    MatchBreakdown,
    classify_confidence,
    score_pair,
)

__all__ = [
    "AUTO_MATCH_THRESHOLD",
    "PARTIAL_MATCH_THRESHOLD",
    "SCORER_VERSION",
    "MatchBreakdown",
    "PairingPlan",
    "ScoredPair",
    "UnpairedRecord",
    "classify_confidence",
    "plan_pairs",
    "score_pair",
]
