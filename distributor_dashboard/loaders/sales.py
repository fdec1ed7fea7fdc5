"""
Loaders for the sell-out (sales) export and the serialization export.

Sales: one row per sold unit, keyed by invoice number and serial number.
Serialization: one row per serial shipped against a sales order line.
"""

import logging

import pandas as pd

from ..config import MISSING, SALE_HEADERS, SALES_FILE, SERIAL_HEADERS, SERIALS_FILE
from .utils import (
    clean_text,
    distinct_values,
    parse_amount,
    parse_int,
    parse_sheet_date,
    read_table,
    rename_columns,
)

logger = logging.getLogger(__name__)

SALE_COLUMNS = list(SALE_HEADERS.values())
SERIAL_COLUMNS = list(SERIAL_HEADERS.values())

_UPPER_SALE_COLUMNS = {"invoice_number", "serial_number", "mtm"}


def load_sales(src=SALES_FILE) -> pd.DataFrame:
    """Read the sales export from disk and parse it."""
    return parse_sales(read_table(src))


def parse_sales(raw: pd.DataFrame) -> pd.DataFrame:
    """Normalise raw sales rows.

    Returns
    -------
    DataFrame with columns:
        invoice_date, quantity, buyer_id, buyer_name, invoice_number,
        serial_number, model_name, mtm, segment, unit_price,
        total_revenue, local_currency

    Rows missing either the invoice number or the serial number are
    dropped.
    """
    if raw.empty:
        logger.warning("Sales export is empty")
        return pd.DataFrame(columns=SALE_COLUMNS)

    df = rename_columns(raw, SALE_HEADERS, required=["Invoice Number", "Serial Number / Barcode"])

    df["invoice_date"] = pd.to_datetime(df["invoice_date"].map(parse_sheet_date))
    df["quantity"] = df["quantity"].map(parse_int)
    df["unit_price"] = df["unit_price"].map(parse_amount)
    df["total_revenue"] = df["total_revenue"].map(parse_amount)
    for col in ("buyer_id", "buyer_name", "invoice_number", "serial_number",
                "model_name", "mtm", "segment", "local_currency"):
        upper = col in _UPPER_SALE_COLUMNS
        df[col] = df[col].map(lambda v, u=upper: clean_text(v, upper=u))

    keep = (df["invoice_number"] != MISSING) & (df["serial_number"] != MISSING)
    if (~keep).any():
        logger.warning("Dropped %d sales rows without invoice or serial number", (~keep).sum())
    df = df[keep].reset_index(drop=True)

    logger.info("Built sales with %d rows", len(df))
    return df[SALE_COLUMNS]


def load_serials(src=SERIALS_FILE) -> pd.DataFrame:
    """Read the serialization export from disk and parse it."""
    return parse_serials(read_table(src))


def parse_serials(raw: pd.DataFrame) -> pd.DataFrame:
    """Normalise serialization rows; every text field is upper-cased.

    Rows without a full serialization string are dropped.
    """
    if raw.empty:
        logger.warning("Serialization export is empty")
        return pd.DataFrame(columns=SERIAL_COLUMNS)

    df = rename_columns(raw, SERIAL_HEADERS, required=["Serialization", "SN"])
    for col in SERIAL_COLUMNS:
        df[col] = df[col].map(lambda v: clean_text(v, upper=True))

    df = df[df["full_serial"] != MISSING].reset_index(drop=True)
    logger.info("Built serials with %d rows", len(df))
    return df[SERIAL_COLUMNS]


def filter_options_for_sales(sales: pd.DataFrame) -> dict[str, list]:
    """Distinct dropdown values for the sales filters.

    Buyers are returned as {"id", "name"} dicts sorted by name.
    """
    if sales.empty:
        return {"buyers": [], "segments": [], "years": [], "quarters": []}

    buyers = (
        sales[sales["buyer_id"] != MISSING][["buyer_id", "buyer_name"]]
        .drop_duplicates(subset="buyer_id")
        .sort_values(["buyer_name", "buyer_id"])
    )
    dates = pd.to_datetime(sales["invoice_date"], errors="coerce").dropna()
    return {
        "buyers": [
            {"id": r.buyer_id, "name": r.buyer_name} for r in buyers.itertuples(index=False)
        ],
        "segments": distinct_values(sales["segment"]),
        "years": sorted({int(d.year) for d in dates}, reverse=True),
        "quarters": [f"Q{q}" for q in sorted({int(d.quarter) for d in dates})],
    }
