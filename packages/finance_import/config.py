"""Import options and environment-backed defaults.

``ImportOptions`` is validated once, up front, so configuration mistakes
surface as a ``pydantic.ValidationError`` before any pipeline stage runs.

Environment variables (all optional):

- ``FI_CSV_DELIMITER``: ``,`` (default), ``;`` or ``tab``
- ``FI_CSV_HAS_HEADER``: ``1``/``0`` (default ``1``)
- ``FI_DECIMAL_SEPARATOR``: ``.`` (default) or ``,``
- ``FI_CSV_ENCODING``: any Python codec name (default ``utf-8-sig``)
- ``FI_READ_TIMEOUT``: seconds allowed for the asynchronous file read
"""

from __future__ import annotations

import codecs
import os
from os import PathLike
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"{name} must be one of 1/0/true/false/yes/no, got {raw!r}")


def _env_delimiter() -> str | None:
    raw = os.getenv("FI_CSV_DELIMITER")
    if raw is None:
        return None
    if raw.strip().lower() in {"tab", "\\t"} or raw == "\t":
        return "\t"
    return raw.strip()


class ImportOptions(BaseModel):
    """How to decode and interpret one input file."""

    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    format: Literal["csv", "xlsx"] = "csv"
    delimiter: Literal[",", ";", "\t"] = ","
    has_header: bool = True
    decimal_separator: Literal[".", ","] = "."
    encoding: str = "utf-8-sig"
    source_label: str | None = None

    @field_validator("encoding")
    @classmethod
    def _known_codec(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError as exc:
            raise ValueError(f"unknown encoding: {v!r}") from exc
        return v

    @field_validator("source_label")
    @classmethod
    def _label_non_blank(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def reference_prefix(self) -> str:
        """Prefix of the ``<SOURCE>-<row>`` reference stamped on each row."""

        return (self.source_label or self.format).upper()

    @classmethod
    def from_env(cls, **overrides: Any) -> ImportOptions:
        """Build options from ``FI_*`` environment defaults plus overrides."""

        values: dict[str, Any] = {}
        delimiter = _env_delimiter()
        if delimiter is not None:
            values["delimiter"] = delimiter
        has_header = _env_bool("FI_CSV_HAS_HEADER")
        if has_header is not None:
            values["has_header"] = has_header
        sep = os.getenv("FI_DECIMAL_SEPARATOR")
        if sep is not None and sep.strip():
            values["decimal_separator"] = sep.strip()
        encoding = os.getenv("FI_CSV_ENCODING")
        if encoding is not None and encoding.strip():
            values["encoding"] = encoding.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @classmethod
    def for_path(cls, path: str | PathLike[str], **overrides: Any) -> ImportOptions:
        """Like :meth:`from_env`, inferring ``format`` from the file suffix."""

        suffix = Path(path).suffix.lower()
        if "format" not in overrides or overrides["format"] is None:
            overrides["format"] = "xlsx" if suffix in {".xlsx", ".xlsm"} else "csv"
        return cls.from_env(**overrides)


def read_timeout_from_env() -> float | None:
    """Return ``FI_READ_TIMEOUT`` in seconds, or ``None`` for no timeout."""

    raw = os.getenv("FI_READ_TIMEOUT")
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"FI_READ_TIMEOUT must be a number of seconds, got {raw!r}") from exc
    return value if value > 0 else None


__all__ = ["ImportOptions", "read_timeout_from_env"]
