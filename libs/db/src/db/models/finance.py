from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: fi_categories
# ---------------------------


class FiCategory(Base):
    __tablename__ = "fi_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Normalized comparison key (lower-case, accent-free, single-spaced). The
    # import engine matches on this column; ``name`` is display-only.
    name_key: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    color: Mapped[str | None] = mapped_column(String, nullable=True)
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name_key", name="uq_fi_categories_user_key"),
        CheckConstraint("type in ('income','expense')", name="ck_fi_categories_type"),
    )


# ---------------------------
# Reference: fi_tags
# ---------------------------


class FiTag(Base):
    __tablename__ = "fi_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    name_key: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (UniqueConstraint("user_id", "name_key", name="uq_fi_tags_user_key"),)


# ---------------------------
# Core: fi_transactions
# ---------------------------


class FiTransaction(Base):
    __tablename__ = "fi_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    account_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Deduplication key for idempotent re-imports; see
    # ``finance_import.persistence.compute_fingerprint``.
    fingerprint_sha256: Mapped[str] = mapped_column(CHAR(64), nullable=False, unique=True)
    reference: Mapped[str | None] = mapped_column(String, nullable=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Signed by type: expenses are stored negative, income positive.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("fi_categories.id"), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint("type in ('income','expense')", name="ck_fi_tx_type"),
        CheckConstraint(
            "(type = 'expense' AND amount < 0) OR (type = 'income' AND amount > 0)",
            name="ck_fi_tx_amount_sign",
        ),
    )


class FiTransactionTag(Base):
    __tablename__ = "fi_transaction_tags"

    transaction_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("fi_transactions.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("fi_tags.id", ondelete="CASCADE"), primary_key=True
    )


__all__ = [
    "Base",
    "FiCategory",
    "FiTag",
    "FiTransaction",
    "FiTransactionTag",
]
