"""Fixture-backed source adapter used for seeding and local runs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from provider_sync.matching.similarity import name_similarity
from provider_sync.models.enums import SourceType
from provider_sync.schemas.source_record import SourceRecordCreate
from provider_sync.sources.adapter_interface import SourceAdapter
from provider_sync.sources.errors import SourceUnavailableError

_LOOKUP_MIN_NAME_SIMILARITY = 0.6


class StaticSourceAdapter(SourceAdapter):
    """Serve a fixed set of records as if they came from an upstream API."""

    def __init__(self, source_type: SourceType, records: list[SourceRecordCreate]) -> None:
        self.source_type = source_type
        mismatched = [record.native_id for record in records if record.source_type is not source_type]
        if mismatched:
            raise ValueError(f"Records {mismatched} do not belong to source '{source_type.value}'")
        self._records = list(records)

    @classmethod
    def from_json_file(cls, source_type: SourceType, path: str | Path) -> "StaticSourceAdapter":
        """Load records from ``{"records": [...]}`` JSON; ``source_type`` is filled in."""

        fixture_path = Path(path)
        try:
            payload = json.loads(fixture_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SourceUnavailableError(f"Failed to load source fixture: {fixture_path}") from exc
        raw_records: list[dict[str, Any]] = payload.get("records", []) if isinstance(payload, dict) else payload
        try:
            records = [
                SourceRecordCreate.model_validate({**raw, "source_type": source_type.value})
                for raw in raw_records
            ]
        except ValidationError as exc:
            raise SourceUnavailableError(f"Source fixture failed validation: {fixture_path}: {exc}") from exc
        return cls(source_type, records)

    def search(self, category: str, location: str, limit: int) -> list[SourceRecordCreate]:
        _ = location
        matches = [record for record in self._records if record.category_slug == category]
        return matches[: max(limit, 0)]

    def lookup(self, name: str, category: str, location: str) -> SourceRecordCreate | None:
        _ = location
        best: tuple[float, SourceRecordCreate] | None = None
        for record in self._records:
            if record.category_slug != category:
                continue
            score = name_similarity(name, record.name)
            if score < _LOOKUP_MIN_NAME_SIMILARITY:
                continue
            if best is None or score > best[0]:
                best = (score, record)
        return best[1] if best is not None else None
