"""File ingestion: decoding, column mapping and row parsing."""

from .category_sheet import parse_category_sheet
from .columns import ColumnMapping, apply_overrides, auto_map_columns, match_header
from .decoder import DecodedFile, DecodeError, classify_sheet, decode, decode_csv, decode_xlsx, preview_rows
from .rows import parse_row, parse_rows, split_tags

__all__ = [
    "ColumnMapping",
    "DecodeError",
    "DecodedFile",
    "apply_overrides",
    "auto_map_columns",
    "classify_sheet",
    "decode",
    "decode_csv",
    "decode_xlsx",
    "match_header",
    "parse_category_sheet",
    "parse_row",
    "parse_rows",
    "preview_rows",
    "split_tags",
]
