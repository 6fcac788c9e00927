"""Catalog access: the user's existing categories and tags.

Exports
-------
- ``load_catalog(...)``: read-only :class:`~finance_import.models.Catalog`
  snapshot used by the matcher and validator for one import job.
- ``create_category(...)`` / ``create_tag(...)``: idempotent creation keyed
  on the normalized name; return the existing row with ``created=False`` when
  the key is already taken.
- ``normalize_name(...)`` and ``validate_name(...)``: display-name helpers
  applied before anything is written.
"""

from __future__ import annotations

from dataclasses import dataclass

from db.models.finance import FiCategory, FiTag
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .models import Catalog, CatalogEntry, Polarity
from .normalizers import normalize_category, normalize_tag
from .validation import MAX_NAME_LENGTH

_logger = get_logger("finance_import.catalog")

# ---------------------------
# Name normalization/validation
# ---------------------------


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``.

    Does not change case or accents; only the comparison key does.
    """

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, max_len: int = MAX_NAME_LENGTH) -> NameValidation:
    """Check a display name before it is stored.

    Rules
    -----
    - Non-empty after trimming, at most ``max_len`` characters.
    - Must contain at least one letter or digit (a non-empty comparison key).
    """

    n = normalize_name(name)
    if not n:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    if not normalize_category(n):
        return NameValidation(False, "Name must contain a letter or a digit")
    return NameValidation(True, None)


def _checked_name(name: str, what: str) -> str:
    n = normalize_name(name)
    v = validate_name(n)
    if not v.ok:
        raise ValueError(f"Invalid {what} name {name!r}: {v.reason}")
    return n


# ---------------------------
# Snapshot
# ---------------------------


def load_catalog(session: Session, user_id: int) -> Catalog:
    """Return the active categories and all tags of ``user_id``.

    Categories are ordered by ``sort_order`` (unset last) then name; tags by
    name. The order matters: the matcher picks the first entry on ties.
    """

    cat_rows = (
        session.execute(
            select(FiCategory)
            .where(FiCategory.user_id == user_id, FiCategory.is_active.is_(True))
            .order_by(func.coalesce(FiCategory.sort_order, 10_000), FiCategory.name, FiCategory.id)
        )
        .scalars()
        .all()
    )
    tag_rows = (
        session.execute(
            select(FiTag).where(FiTag.user_id == user_id).order_by(FiTag.name, FiTag.id)
        )
        .scalars()
        .all()
    )
    catalog = Catalog(
        categories=tuple(CatalogEntry(id=str(r.id), name=r.name, type=r.type) for r in cat_rows),
        tags=tuple(CatalogEntry(id=str(r.id), name=r.name) for r in tag_rows),
    )
    _logger.debug(
        "catalog for user %s: %d categories, %d tags",
        user_id,
        len(catalog.categories),
        len(catalog.tags),
    )
    return catalog


# ---------------------------
# Creation
# ---------------------------


@dataclass(frozen=True, slots=True)
class CreateResult:
    id: int
    name: str
    created: bool


def create_category(
    session: Session,
    *,
    user_id: int,
    name: str,
    type: Polarity,
    color: str | None = None,
    sort_order: int | None = None,
) -> CreateResult:
    """Create a category unless one with the same normalized key exists.

    Callers own the transaction scope; the new row is flushed so its id is
    available immediately.
    """

    display = _checked_name(name, "category")
    if type not in ("income", "expense"):
        raise ValueError(f"Invalid category type: {type!r}")
    key = normalize_category(display)

    existing = (
        session.execute(
            select(FiCategory).where(FiCategory.user_id == user_id, FiCategory.name_key == key)
        )
        .scalars()
        .first()
    )
    if existing is not None:
        return CreateResult(id=existing.id, name=existing.name, created=False)

    row = FiCategory(
        user_id=user_id,
        name=display,
        name_key=key,
        type=type,
        color=color,
        sort_order=sort_order,
        is_active=True,
    )
    session.add(row)
    session.flush()
    _logger.info("created category %r (%s) id=%s", display, type, row.id)
    return CreateResult(id=row.id, name=row.name, created=True)


def create_tag(session: Session, *, user_id: int, name: str) -> CreateResult:
    """Create a tag unless one with the same normalized key exists."""

    display = _checked_name(name, "tag")
    key = normalize_tag(display)
    existing = (
        session.execute(select(FiTag).where(FiTag.user_id == user_id, FiTag.name_key == key))
        .scalars()
        .first()
    )
    if existing is not None:
        return CreateResult(id=existing.id, name=existing.name, created=False)

    row = FiTag(user_id=user_id, name=display, name_key=key)
    session.add(row)
    session.flush()
    _logger.info("created tag %r id=%s", display, row.id)
    return CreateResult(id=row.id, name=row.name, created=True)


__all__ = [
    "CreateResult",
    "NameValidation",
    "create_category",
    "create_tag",
    "load_catalog",
    "normalize_name",
    "validate_name",
]
