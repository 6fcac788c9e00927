"""Entity extractor: distinct categories and tags referenced by an import."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .logging_setup import get_logger
from .models import (
    DeclaredCategory,
    DetectedCategory,
    DetectedTag,
    ExtractedEntities,
    ParsedTransaction,
)
from .normalizers import normalize_category

_logger = get_logger("finance_import.entities")


def extract_entities(
    transactions: Iterable[ParsedTransaction],
    declared: Sequence[DeclaredCategory] | None = None,
) -> ExtractedEntities:
    """Collect categories and tags with usage counts.

    Categories from a categories sheet (``declared``) come first, in sheet
    order and with the sheet's polarity. Categories seen only in transactions
    follow in first-seen order; their polarity comes from the first
    transaction and becomes ``expense`` as soon as a transaction of the other
    type references the same key. Counts always reflect transaction usage.
    """

    # key -> [display name, polarity, count, declared]
    cats: dict[str, list] = {}
    for d in declared or ():
        key = normalize_category(d.name)
        if not key or key in cats:
            continue
        cats[key] = [d.name.strip(), d.type, 0, True]

    tags: dict[str, list] = {}
    for tx in transactions:
        if tx.category:
            entry = cats.get(tx.category)
            if entry is None:
                cats[tx.category] = [tx.raw_category or tx.category, tx.type, 1, False]
            else:
                entry[2] += 1
                if not entry[3] and entry[1] != tx.type:
                    entry[1] = "expense"
        for i, key in enumerate(tx.tags):
            tag = tags.get(key)
            if tag is None:
                name = tx.raw_tags[i] if i < len(tx.raw_tags) else key
                tags[key] = [name, 1]
            else:
                tag[1] += 1

    categories = tuple(
        DetectedCategory(key=k, name=name, type=polarity, count=count, declared=is_declared)
        for k, (name, polarity, count, is_declared) in cats.items()
    )
    detected_tags = tuple(DetectedTag(key=k, name=name, count=count) for k, (name, count) in tags.items())
    _logger.info(
        "extracted %d categories (%d declared) and %d tags",
        len(categories),
        sum(1 for c in categories if c.declared),
        len(detected_tags),
    )
    return ExtractedEntities(categories=categories, tags=detected_tags)


__all__ = ["extract_entities"]
