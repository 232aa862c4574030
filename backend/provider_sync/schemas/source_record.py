"""Source record payload schema."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator

from provider_sync.matching.similarity import normalize_phone
from provider_sync.models.enums import SourceType


class SourceRecordCreate(BaseModel):
    """Normalized observation produced by a source adapter."""

    source_type: SourceType
    native_id: str = Field(min_length=1, max_length=255)
    category_slug: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    review_count: int = Field(default=0, ge=0)
    photo_url: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    phone: str | None = None
    website: str | None = None
    price_range: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_closed: bool = False
    raw_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("native_id", "category_slug", "name")
    @classmethod
    def strip_required_text(cls, value: str) -> str:
        cleaned = " ".join(value.split())
        if not cleaned:
            raise ValueError("Value cannot be blank.")
        return cleaned

    @field_validator(
        "photo_url",
        "address",
        "city",
        "state",
        "zip_code",
        "country",
        "phone",
        "website",
        "price_range",
    )
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = " ".join(value.split())
        return cleaned or None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in value:
            cleaned = tag.strip()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return seen

    @computed_field  # type: ignore[prop-decorator]
    @property
    def phone_normalized(self) -> str | None:
        return normalize_phone(self.phone)
