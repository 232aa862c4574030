"""Greedy maximum-weight pairing of primary and secondary records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

from provider_sync.matching.scorer import MatchableRecord, MatchBreakdown, score_pair
from provider_sync.models.enums import MatchClassification


class _IdentifiedRecord(MatchableRecord, Protocol):
    id: int


RecordT = TypeVar("RecordT", bound=_IdentifiedRecord)


@dataclass(slots=True)
class ScoredPair(Generic[RecordT]):
    primary: RecordT
    secondary: RecordT
    breakdown: MatchBreakdown

    @property
    def confidence(self) -> float:
        return self.breakdown.confidence

    @property
    def classification(self) -> MatchClassification:
        return self.breakdown.classification


@dataclass(slots=True)
class UnpairedRecord(Generic[RecordT]):
    record: RecordT
    best_breakdown: MatchBreakdown | None = None

    @property
    def best_confidence(self) -> float:
        return self.best_breakdown.confidence if self.best_breakdown is not None else 0.0


@dataclass(slots=True)
class PairingPlan(Generic[RecordT]):
    """Pairs chosen for one category plus the records left over on each side."""

    pairs: list[ScoredPair[RecordT]] = field(default_factory=list)
    unpaired_primary: list[UnpairedRecord[RecordT]] = field(default_factory=list)
    unpaired_secondary: list[UnpairedRecord[RecordT]] = field(default_factory=list)


def plan_pairs(primary_records: list[RecordT], secondary_records: list[RecordT]) -> PairingPlan[RecordT]:
    """Pair records greedily by descending confidence.

    Every (primary, secondary) pair is scored; pairs classified auto or partial
    are taken highest-first when neither side has been used yet. A record that
    loses a contested pair stays eligible for its next-best partner. Ties are
    broken by ascending record ids so repeated runs pick identical pairs.
    """

    best_by_primary: dict[int, MatchBreakdown] = {}
    best_by_secondary: dict[int, MatchBreakdown] = {}
    eligible: list[ScoredPair[RecordT]] = []

    for primary in primary_records:
        for secondary in secondary_records:
            breakdown = score_pair(primary, secondary)
            _keep_best(best_by_primary, primary.id, breakdown)
            _keep_best(best_by_secondary, secondary.id, breakdown)
            if breakdown.classification is MatchClassification.NONE:
                continue
            eligible.append(ScoredPair(primary=primary, secondary=secondary, breakdown=breakdown))

    eligible.sort(key=lambda pair: (-pair.confidence, pair.primary.id, pair.secondary.id))

    plan: PairingPlan[RecordT] = PairingPlan()
    used_primary: set[int] = set()
    used_secondary: set[int] = set()
    for pair in eligible:
        if pair.primary.id in used_primary or pair.secondary.id in used_secondary:
            continue
        used_primary.add(pair.primary.id)
        used_secondary.add(pair.secondary.id)
        plan.pairs.append(pair)

    plan.unpaired_primary = [
        UnpairedRecord(record=record, best_breakdown=best_by_primary.get(record.id))
        for record in primary_records
        if record.id not in used_primary
    ]
    plan.unpaired_secondary = [
        UnpairedRecord(record=record, best_breakdown=best_by_secondary.get(record.id))
        for record in secondary_records
        if record.id not in used_secondary
    ]
    return plan


def _keep_best(best: dict[int, MatchBreakdown], record_id: int, breakdown: MatchBreakdown) -> None:
    current = best.get(record_id)
    if current is None or breakdown.confidence > current.confidence:
        best[record_id] = breakdown
