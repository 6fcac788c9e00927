"""Reconciliation matcher: detected names against the existing catalog.

Scoring (both sides compared as normalized keys):

- identical keys score ``1.0``;
- one key containing the other scores ``0.9``;
- otherwise ``1 - levenshtein / max(len_a, len_b)``.

The best catalog entry is taken when its score is strictly above the
threshold (``0.7`` for categories, ``0.8`` for tags); the first entry reaching
the best score wins ties. Everything here is pure and never raises for data.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from rapidfuzz.distance import Levenshtein

from .logging_setup import get_logger
from .models import (
    CatalogEntry,
    DecisionAction,
    DetectedCategory,
    DetectedTag,
    EntityKind,
    Polarity,
    ReconciliationDecision,
)
from .normalizers import normalize_category, normalize_tag

_logger = get_logger("finance_import.reconcile")

CATEGORY_THRESHOLD = 0.7
TAG_THRESHOLD = 0.8

# Scores are rounded so that threshold comparisons are exact at the boundary
# (1 - 3/10 must compare equal to 0.7).
_PRECISION = 4


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance with unit cost for insert, delete and substitute."""

    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Confidence in ``[0, 1]`` that keys ``a`` and ``b`` name the same entity.

    An empty key on either side scores ``0.0``.
    """

    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.9
    distance = levenshtein_distance(a, b)
    return round(1.0 - distance / max(len(a), len(b)), _PRECISION)


def best_match(
    key: str,
    entries: Iterable[CatalogEntry],
    *,
    threshold: float,
    normalize=normalize_category,
) -> tuple[CatalogEntry | None, float]:
    """Return ``(entry, confidence)`` for the best entry above ``threshold``.

    ``(None, 0.0)`` when no entry scores strictly above the threshold.
    """

    best: CatalogEntry | None = None
    best_score = 0.0
    for entry in entries:
        score = similarity(key, normalize(entry.name))
        if score > best_score:
            best, best_score = entry, score
    if best is None or best_score <= threshold:
        return None, 0.0
    return best, best_score


def _decide(
    kind: EntityKind,
    *,
    raw_name: str,
    key: str,
    count: int,
    polarity: Polarity | None,
    match: tuple[CatalogEntry | None, float],
) -> ReconciliationDecision:
    entry, confidence = match
    if entry is None:
        return ReconciliationDecision(
            kind=kind,
            raw_name=raw_name,
            key=key,
            action="create",
            confidence=0.0,
            count=count,
            polarity=polarity,
        )
    return ReconciliationDecision(
        kind=kind,
        raw_name=raw_name,
        key=key,
        action="map",
        confidence=confidence,
        count=count,
        polarity=polarity,
        system_id=entry.id,
        system_name=entry.name,
    )


def reconcile_categories(
    detected: Sequence[DetectedCategory],
    catalog: Sequence[CatalogEntry],
    *,
    threshold: float = CATEGORY_THRESHOLD,
) -> tuple[ReconciliationDecision, ...]:
    """One decision per detected category, in input order."""

    decisions = tuple(
        _decide(
            "category",
            raw_name=c.name,
            key=c.key,
            count=c.count,
            polarity=c.type,
            match=best_match(c.key, catalog, threshold=threshold),
        )
        for c in detected
    )
    _log_summary("category", decisions)
    return decisions


def reconcile_tags(
    detected: Sequence[DetectedTag],
    catalog: Sequence[CatalogEntry],
    *,
    threshold: float = TAG_THRESHOLD,
) -> tuple[ReconciliationDecision, ...]:
    """One decision per detected tag, in input order."""

    decisions = tuple(
        _decide(
            "tag",
            raw_name=t.name,
            key=t.key,
            count=t.count,
            polarity=None,
            match=best_match(t.key, catalog, threshold=threshold, normalize=normalize_tag),
        )
        for t in detected
    )
    _log_summary("tag", decisions)
    return decisions


def _log_summary(kind: str, decisions: Sequence[ReconciliationDecision]) -> None:
    mapped = sum(1 for d in decisions if d.action == "map")
    _logger.info(
        "%s decisions: %d map, %d create", kind, mapped, len(decisions) - mapped
    )
    for d in decisions:
        _logger.debug(
            "%s %r -> %s %s (%.4f)", kind, d.raw_name, d.action, d.system_id or "-", d.confidence
        )


def override_decision(
    decision: ReconciliationDecision,
    action: DecisionAction,
    *,
    system_id: str | None = None,
    system_name: str | None = None,
) -> ReconciliationDecision:
    """Return a copy of ``decision`` with a user-chosen action.

    ``map`` requires ``system_id``; a manual choice carries confidence 1.0.
    ``create`` and ``ignore`` clear any matched entry.
    """

    if action == "map":
        if not system_id:
            raise ValueError("a 'map' decision needs a system_id")
        return replace(
            decision,
            action="map",
            confidence=1.0,
            system_id=system_id,
            system_name=system_name,
        )
    if action not in ("create", "ignore"):
        raise ValueError(f"unknown action: {action!r}")
    return replace(decision, action=action, confidence=0.0, system_id=None, system_name=None)


__all__ = [
    "CATEGORY_THRESHOLD",
    "TAG_THRESHOLD",
    "best_match",
    "levenshtein_distance",
    "override_decision",
    "reconcile_categories",
    "reconcile_tags",
    "similarity",
]
