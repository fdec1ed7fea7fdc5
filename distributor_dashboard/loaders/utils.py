"""
Shared utilities for sheet ingestion: table reading, date normalisation,
amount coercion, header renaming.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..config import MISSING

logger = logging.getLogger(__name__)

_MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_US_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{4})$")

# Serial numbers outside this range are not plausible invoice/ship dates
_SERIAL_MIN = 25569  # 1970-01-01
_SERIAL_MAX = 73051  # 2099-12-31


class SourceError(ValueError):
    """Raised when an export does not carry the columns that identify it."""


_XLSX_MAGIC = b"PK\x03\x04"  # xlsx is a zip archive


def sheet_format(source: Any, fmt: str | None = None) -> str:
    """Sheet format ("xlsx" or "csv") of a path or file object.

    An explicit `fmt` wins. Paths go by suffix; file objects are sniffed
    for the zip signature and their position is restored.
    """
    if fmt is not None:
        fmt = fmt.lower().lstrip(".")
        if fmt not in ("csv", "xlsx", "xlsm"):
            raise ValueError(f"Unsupported sheet format '{fmt}'")
        return "csv" if fmt == "csv" else "xlsx"
    if isinstance(source, (str, Path)):
        return "xlsx" if Path(str(source)).suffix.lower() in (".xlsx", ".xlsm") else "csv"
    if hasattr(source, "read") and hasattr(source, "seek"):
        pos = source.tell()
        head = source.read(len(_XLSX_MAGIC))
        source.seek(pos)
        if isinstance(head, bytes) and head == _XLSX_MAGIC:
            return "xlsx"
    return "csv"


def read_table(source: Any, fmt: str | None = None) -> pd.DataFrame:
    """Read a CSV or XLSX export into a string-typed DataFrame.

    The format comes from `fmt`, else from `sheet_format`. CSV is tried as
    UTF-8 (with BOM) first and falls back to latin-1. Every cell is read
    as text and stripped; fully blank rows are dropped.
    """
    try:
        if sheet_format(source, fmt) == "xlsx":
            df = pd.read_excel(source, dtype=str, engine="openpyxl")
        else:
            try:
                df = pd.read_csv(source, dtype=str, encoding="utf-8-sig", keep_default_na=False)
            except UnicodeDecodeError:
                logger.info("UTF-8 decoding failed for %s, retrying with latin-1", source)
                if hasattr(source, "seek"):
                    source.seek(0)
                df = pd.read_csv(source, dtype=str, encoding="latin-1", keep_default_na=False)
    except Exception:
        logger.exception("Failed to read sheet export: %s", source)
        raise

    df.columns = [str(c).replace("\ufeff", "").strip() for c in df.columns]
    df = df.fillna("")
    df = df.apply(lambda col: col.astype(str).str.strip())

    blank = (df == "").all(axis=1)
    if blank.any():
        df = df[~blank].reset_index(drop=True)

    logger.info("Read %d rows from %s", len(df), source)
    return df


def rename_columns(df: pd.DataFrame, header_map: dict[str, str], required: list[str]) -> pd.DataFrame:
    """Rename raw headers to canonical names, adding missing columns as blanks.

    Raises SourceError if none of the `required` raw headers are present.
    """
    present = [h for h in required if h in df.columns]
    if not present and not df.empty:
        raise SourceError(
            f"Export is missing identifying columns {required}; got {list(df.columns)}"
        )

    out = df.rename(columns=header_map).copy()
    for canonical in header_map.values():
        if canonical not in out.columns:
            logger.warning("Column '%s' missing from export, filling blanks", canonical)
            out[canonical] = ""
    return out[list(dict.fromkeys(header_map.values()))]


def parse_sheet_date(val: Any) -> pd.Timestamp | None:
    """Convert a sheet date cell to a midnight pd.Timestamp.

    Accepts YYYY-MM-DD (optionally with a time part after 'T'), MM/DD/YYYY,
    DD-Mon-YYYY, datetime objects and Excel serial numbers. Impossible
    calendar dates (e.g. 2025-02-30) and anything else give None.
    """
    if val is None:
        return None
    if isinstance(val, (pd.Timestamp, datetime)):
        if pd.isna(val):
            return None
        return pd.Timestamp(val).normalize()
    if isinstance(val, (int, float)):
        if pd.isna(val) or not (_SERIAL_MIN <= val <= _SERIAL_MAX):
            return None
        return pd.Timestamp("1899-12-30") + pd.Timedelta(days=int(val))

    s = str(val).strip()
    if not s or s == MISSING:
        return None
    s = s.split("T")[0].split(" ")[0]

    year = month = day = None
    m = _ISO_RE.match(s)
    if m:
        year, month, day = (int(g) for g in m.groups())
    else:
        m = _US_RE.match(s)
        if m:
            month, day, year = (int(g) for g in m.groups())
        else:
            m = _DMY_RE.match(s)
            if m:
                day, year = int(m.group(1)), int(m.group(3))
                month = _MONTHS.get(m.group(2).upper())
            elif s.isdigit():
                return parse_sheet_date(int(s))

    if year is None or month is None:
        logger.warning("Could not parse date value: %s", val)
        return None
    try:
        return pd.Timestamp(year=year, month=month, day=day)
    except ValueError:
        logger.warning("Invalid calendar date: %s", val)
        return None


def parse_amount(val: Any, default: float | None = 0.0) -> float | None:
    """Coerce a money/number cell to float.

    Everything except digits, '.' and '-' is stripped first, so "$1,234.50"
    gives 1234.5. Returns `default` when nothing numeric remains.
    """
    if val is None:
        return default
    if isinstance(val, (int, float)):
        return default if pd.isna(val) else float(val)
    cleaned = re.sub(r"[^0-9.\-]+", "", str(val))
    if not cleaned:
        return default
    try:
        return float(cleaned)
    except ValueError:
        return default


def parse_int(val: Any, default: int | None = 0) -> int | None:
    """Leading-integer parse of a cell, e.g. "12 pcs" -> 12."""
    if val is None:
        return default
    if isinstance(val, (int, float)):
        return default if pd.isna(val) else int(val)
    m = re.match(r"^\s*(-?\d+)", str(val))
    if not m:
        return default
    return int(m.group(1))


def clean_text(val: Any, default: str = MISSING, upper: bool = False) -> str:
    """Strip a text cell, substituting `default` for blanks."""
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return default
    s = str(val).strip()
    if not s:
        return default
    return s.upper() if upper else s


def is_missing(val: Any) -> bool:
    """True for None, NaN, blank strings and the N/A sentinel."""
    if val is None:
        return True
    if isinstance(val, float) and pd.isna(val):
        return True
    s = str(val).strip()
    return not s or s == MISSING


def normalise_header(name: str) -> str:
    """Lower-case a header and drop spaces, underscores and '#'."""
    return re.sub(r"[\s_#]", "", str(name)).lower()


def to_iso(ts: pd.Timestamp | None) -> str | None:
    """Render a date as YYYY-MM-DD, or None."""
    if ts is None or pd.isna(ts):
        return None
    return ts.strftime("%Y-%m-%d")


def reference_date(today: Any = None) -> pd.Timestamp:
    """Midnight Timestamp for `today`, defaulting to the current date."""
    if today is None:
        return pd.Timestamp.today().normalize()
    return pd.Timestamp(today).normalize()


def distinct_values(series: pd.Series) -> list[str]:
    """Sorted distinct values of a text column, without blanks and N/A."""
    return sorted({str(v) for v in series if not is_missing(v)})
