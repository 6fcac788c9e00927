"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the finance catalog and transaction tables written by
``finance_import``.
"""

from .finance import Base, FiCategory, FiTag, FiTransaction, FiTransactionTag

__all__ = [
    "Base",
    "FiCategory",
    "FiTag",
    "FiTransaction",
    "FiTransactionTag",
]
