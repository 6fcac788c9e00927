"""Cell-text normalizers shared by every import stage.

All functions here are pure and total: bad input yields ``None`` (or is
returned unchanged for dates) rather than raising, so one malformed cell can
never abort a whole file. Vocabularies are kept as lookup tables to make them
testable and easy to extend per locale.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date
from decimal import Decimal, InvalidOperation

from .models import Polarity

# ---------------------------------------------------------------------------
# Category / tag keys
# ---------------------------------------------------------------------------

_NON_WORD_RE = re.compile(r"[^\w\s]+|_+")


def normalize_category(text: str | None) -> str:
    """Return the comparison key for a category or tag name.

    Lower-cases, strips accents (NFD decomposition minus combining marks),
    turns runs of punctuation into a single space, collapses whitespace and
    trims. ``normalize_category(normalize_category(x)) == normalize_category(x)``.
    """

    if not text:
        return ""
    s = unicodedata.normalize("NFD", text.lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = _NON_WORD_RE.sub(" ", s)
    return " ".join(s.split())


# Tags share the category key rules.
normalize_tag = normalize_category


# ---------------------------------------------------------------------------
# Transaction type
# ---------------------------------------------------------------------------

TYPE_VOCABULARY: tuple[tuple[Polarity, tuple[str, ...]], ...] = (
    ("income", ("receita", "income", "entrada", "ganho")),
    ("expense", ("despesa", "expense", "saída", "saida", "gasto")),
)
"""Substring vocabulary per polarity; income is tested first."""


def normalize_type(text: str | None) -> Polarity | None:
    """Map a free-text type label onto ``income``/``expense``.

    Case-insensitive substring match against :data:`TYPE_VOCABULARY`.
    Returns ``None`` when nothing matches so callers can fall back to the
    amount's sign.
    """

    if not text:
        return None
    s = text.strip().lower()
    if not s:
        return None
    for polarity, words in TYPE_VOCABULARY:
        if any(w in s for w in words):
            return polarity
    return None


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_RE = re.compile(r"R\$|US\$|[$€£¥]|\b(?:BRL|USD|EUR|GBP)\b", re.IGNORECASE)


def parse_amount(text: str | None, *, decimal_separator: str = ".") -> Decimal | None:
    """Parse a currency string into a signed ``Decimal``.

    - Currency symbols/codes and all whitespace are removed.
    - With ``decimal_separator=","`` dots are thousands separators and the
      comma is the decimal point (``"R$ 1.234,56"`` -> ``1234.56``); with
      ``"."`` commas are thousands separators.
    - A leading ``+``/``-`` or surrounding parentheses set the sign.

    Returns ``None`` for empty or non-numeric input.
    """

    if text is None:
        return None
    s = _CURRENCY_RE.sub("", text)
    s = "".join(s.split())
    if not s:
        return None

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]
    if s[:1] in {"+", "-"}:
        negative = negative or s[0] == "-"
        s = s[1:]
    # Accounting exports sometimes put the sign inside the parentheses or
    # after the currency symbol; one more pass covers both.
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]

    if decimal_separator == ",":
        s = s.replace(".", "").replace(",", ".")
    else:
        s = s.replace(",", "")

    if not s or not all(ch.isdigit() or ch == "." for ch in s):
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    if not d.is_finite():
        return None
    return -d if negative else d


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

# Recognized literal shapes, each with the group order (year, month, day).
DATE_PATTERNS: tuple[tuple[re.Pattern[str], tuple[int, int, int]], ...] = (
    (re.compile(r"^([0-9]{4})-([0-9]{2})-([0-9]{2})$"), (1, 2, 3)),  # YYYY-MM-DD
    (re.compile(r"^([0-9]{2})/([0-9]{2})/([0-9]{4})$"), (3, 2, 1)),  # DD/MM/YYYY
    (re.compile(r"^([0-9]{2})-([0-9]{2})-([0-9]{4})$"), (3, 2, 1)),  # DD-MM-YYYY
    (re.compile(r"^([0-9]{4})/([0-9]{2})/([0-9]{2})$"), (1, 2, 3)),  # YYYY/MM/DD
)

_ISO_DATE_RE = DATE_PATTERNS[0][0]


def format_date(text: str) -> str:
    """Rewrite a recognized date shape into ``YYYY-MM-DD``.

    Only the four literal shapes in :data:`DATE_PATTERNS` are recognized.
    Anything else is returned unchanged; validation flags it later.
    """

    s = text.strip()
    for pattern, (y, m, d) in DATE_PATTERNS:
        match = pattern.match(s)
        if match:
            return f"{match.group(y)}-{match.group(m)}-{match.group(d)}"
    return text


def parse_iso_date(text: str) -> date | None:
    """Return the calendar date for a ``YYYY-MM-DD`` string, else ``None``."""

    if not _ISO_DATE_RE.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


__all__ = [
    "DATE_PATTERNS",
    "TYPE_VOCABULARY",
    "format_date",
    "normalize_category",
    "normalize_tag",
    "normalize_type",
    "parse_amount",
    "parse_iso_date",
]
