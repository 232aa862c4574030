"""Canonical provider identity resolution.

A merge looks up the canonical row it should update by walking an ordered
resolver chain: primary native id, secondary native id, then (name, category).
All lookups are scoped to one category, because the same upstream business can
be listed separately under several categories.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from provider_sync.errors import CategoryNotFoundError, IdentityConflictError
from provider_sync.models.canonical_provider import CanonicalProvider
from provider_sync.models.category import Category


@dataclass(slots=True, frozen=True)
class ProviderIdentity:
    """Keys a merge can be resolved by."""

    category_id: int
    name: str
    primary_source_id: str | None = None
    secondary_source_id: str | None = None


IdentityResolver = Callable[[Session, ProviderIdentity], list[CanonicalProvider]]


def resolve_category(db: Session, slug: str) -> Category:
    category = db.scalar(select(Category).where(Category.slug == slug))
    if category is None:
        raise CategoryNotFoundError(slug)
    return category


def by_primary_source_id(db: Session, identity: ProviderIdentity) -> list[CanonicalProvider]:
    if identity.primary_source_id is None:
        return []
    return list(
        db.scalars(
            select(CanonicalProvider).where(
                CanonicalProvider.category_id == identity.category_id,
                CanonicalProvider.primary_source_id == identity.primary_source_id,
            )
        ).all()
    )


def by_secondary_source_id(db: Session, identity: ProviderIdentity) -> list[CanonicalProvider]:
    if identity.secondary_source_id is None:
        return []
    return list(
        db.scalars(
            select(CanonicalProvider).where(
                CanonicalProvider.category_id == identity.category_id,
                CanonicalProvider.secondary_source_id == identity.secondary_source_id,
            )
        ).all()
    )


def by_name_and_category(db: Session, identity: ProviderIdentity) -> list[CanonicalProvider]:
    """Case-insensitive exact name hits whose source slots do not belong to someone else."""

    rows = db.scalars(
        select(CanonicalProvider)
        .where(
            CanonicalProvider.category_id == identity.category_id,
            func.lower(CanonicalProvider.name) == identity.name.strip().lower(),
        )
        .order_by(CanonicalProvider.id.asc())
    ).all()
    return [
        row
        for row in rows
        if _slot_free(row.primary_source_id, identity.primary_source_id)
        and _slot_free(row.secondary_source_id, identity.secondary_source_id)
    ]


def _slot_free(current: str | None, incoming: str | None) -> bool:
    return incoming is None or current is None or current == incoming


RESOLVER_CHAIN: tuple[tuple[str, IdentityResolver], ...] = (
    ("primary_source_id", by_primary_source_id),
    ("secondary_source_id", by_secondary_source_id),
    ("name_and_category", by_name_and_category),
)


def resolve_provider(db: Session, identity: ProviderIdentity) -> CanonicalProvider | None:
    """Return the canonical row for ``identity``, or None when a new row is needed.

    The native-id resolvers must agree: a primary hit and a secondary hit on
    different rows is a conflict. Several rows sharing the (name, category) key
    are also a conflict. Otherwise the first resolver with a hit wins.
    """

    hits: dict[str, list[CanonicalProvider]] = {}
    for resolver_name, resolver in RESOLVER_CHAIN[:2]:
        hits[resolver_name] = resolver(db, identity)

    native_rows = {row.id: row for rows in hits.values() for row in rows}
    if len(native_rows) > 1:
        raise IdentityConflictError(
            f"Source ids for '{identity.name}' resolve to different providers",
            sorted(native_rows),
        )
    if native_rows:
        return next(iter(native_rows.values()))

    _, name_resolver = RESOLVER_CHAIN[2]
    name_rows = name_resolver(db, identity)
    if len(name_rows) > 1:
        raise IdentityConflictError(
            f"Several providers named '{identity.name}' exist in this category",
            [row.id for row in name_rows],
        )
    return name_rows[0] if name_rows else None
