"""Persistence integration for confirmed imports.

Writes a :class:`~finance_import.pipeline.CommitPlan` to the shared database
owned by ``libs/db`` (SQLAlchemy ORM models in ``db.models.finance``).

Scope:
- Materialize ``create`` decisions as new categories/tags; resolve ``map``
  decisions to existing ids; leave ``ignore``d categories uncategorized.
- Insert transactions, skipping any whose fingerprint already exists, so the
  same file can be imported twice without duplicating rows.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from db.models.finance import FiTransaction, FiTransactionTag
from sqlalchemy import select
from sqlalchemy.orm import Session

from .catalog import create_category, create_tag
from .logging_setup import get_logger
from .models import ReconciliationDecision
from .normalizers import normalize_category, parse_iso_date
from .pipeline import CommitPlan, TransactionPayload

_logger = get_logger("finance_import.persistence")

_CENT = Decimal("0.01")


def compute_fingerprint(
    *,
    user_id: int,
    account_id: int,
    date: str,
    amount: Decimal,
    description: str,
    reference: str,
) -> str:
    """Compute a stable SHA-256 fingerprint over canonical fields.

    Fields used: user, account, date (YYYY-MM-DD), signed amount (2dp string),
    description (trimmed) and the ``<SOURCE>-<row>`` reference.
    """

    payload = {
        "user": int(user_id),
        "account": int(account_id),
        "date": date.strip(),
        "amount": f"{amount.quantize(_CENT, rounding=ROUND_HALF_UP):.2f}",
        "description": description.strip(),
        "reference": reference.strip(),
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def payload_fingerprint(p: TransactionPayload) -> str:
    return compute_fingerprint(
        user_id=p.user_id,
        account_id=p.account_id,
        date=p.date,
        amount=p.amount,
        description=p.description,
        reference=p.reference,
    )


@dataclass(slots=True)
class CommitResult:
    """Outcome of :func:`commit_import`."""

    inserted: int = 0
    skipped_duplicates: int = 0
    rejected: list[str] = field(default_factory=list)
    rejected_names: list[str] = field(default_factory=list)
    transaction_ids: list[int] = field(default_factory=list)
    created_category_ids: dict[str, int] = field(default_factory=dict)
    created_tag_ids: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Decision resolution
# ---------------------------------------------------------------------------


def _reject_name(result: CommitResult, error: ValueError) -> None:
    # The entity is skipped; its transactions are stored without it.
    _logger.warning("not creating: %s", error)
    result.rejected_names.append(str(error))


def _resolve_categories(
    session: Session, plan: CommitPlan, result: CommitResult
) -> dict[str, int]:
    declared = {normalize_category(d.name): d for d in plan.declared_categories}
    ids: dict[str, int] = {}
    for d in plan.category_decisions:
        if d.action == "map" and d.system_id is not None:
            ids[d.key] = int(d.system_id)
        elif d.action == "create":
            extra = declared.get(d.key)
            try:
                res = create_category(
                    session,
                    user_id=plan.user_id,
                    name=d.raw_name,
                    type=d.polarity or "expense",
                    color=extra.color if extra else None,
                    sort_order=extra.sort_order if extra else None,
                )
            except ValueError as e:
                _reject_name(result, e)
                continue
            ids[d.key] = res.id
            if res.created:
                result.created_category_ids[d.key] = res.id
    return ids


def _resolve_tags(
    session: Session,
    user_id: int,
    decisions: tuple[ReconciliationDecision, ...],
    result: CommitResult,
) -> dict[str, int]:
    ids: dict[str, int] = {}
    for d in decisions:
        if d.action == "map" and d.system_id is not None:
            ids[d.key] = int(d.system_id)
        elif d.action == "create":
            try:
                res = create_tag(session, user_id=user_id, name=d.raw_name)
            except ValueError as e:
                _reject_name(result, e)
                continue
            ids[d.key] = res.id
            if res.created:
                result.created_tag_ids[d.key] = res.id
    return ids


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------


def commit_import(session: Session, plan: CommitPlan) -> CommitResult:
    """Write ``plan`` using ``session`` (callers own the transaction scope).

    Transactions whose date is not a real ``YYYY-MM-DD`` date, or whose amount
    rounds to zero cents, cannot be stored and are reported in
    ``CommitResult.rejected`` by reference.
    """

    result = CommitResult()
    category_ids = _resolve_categories(session, plan, result)
    tag_ids = _resolve_tags(session, plan.user_id, plan.tag_decisions, result)

    fingerprints = {payload_fingerprint(p): p for p in plan.transactions}
    existing: set[str] = set()
    if fingerprints:
        existing = set(
            session.execute(
                select(FiTransaction.fingerprint_sha256).where(
                    FiTransaction.fingerprint_sha256.in_(list(fingerprints))
                )
            )
            .scalars()
            .all()
        )

    for fp, p in fingerprints.items():
        if fp in existing:
            result.skipped_duplicates += 1
            continue
        tx_date = parse_iso_date(p.date)
        if tx_date is None:
            _logger.warning("not storing %s: invalid date %r", p.reference, p.date)
            result.rejected.append(p.reference)
            continue
        amount = p.amount.quantize(_CENT, rounding=ROUND_HALF_UP)
        if amount == 0:
            _logger.warning("not storing %s: amount %s rounds to zero", p.reference, p.amount)
            result.rejected.append(p.reference)
            continue
        row = FiTransaction(
            user_id=p.user_id,
            account_id=p.account_id,
            fingerprint_sha256=fp,
            reference=p.reference,
            date=tx_date,
            description=p.description,
            amount=amount,
            type=p.type,
            category_id=category_ids.get(p.category_key) if p.category_key else None,
            notes=p.notes,
        )
        session.add(row)
        session.flush()
        for tag_id in dict.fromkeys(tag_ids[k] for k in p.tag_keys if k in tag_ids):
            session.add(FiTransactionTag(transaction_id=row.id, tag_id=tag_id))
        result.inserted += 1
        result.transaction_ids.append(row.id)

    session.flush()
    _logger.info(
        "commit: %d inserted, %d duplicates skipped, %d rejected, %d categories and %d tags created",
        result.inserted,
        result.skipped_duplicates,
        len(result.rejected),
        len(result.created_category_ids),
        len(result.created_tag_ids),
    )
    return result


__all__ = ["CommitResult", "commit_import", "compute_fingerprint", "payload_fingerprint"]
