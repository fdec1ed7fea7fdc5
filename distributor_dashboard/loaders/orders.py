"""
Loader for the purchase-order tracking export.

Each row is one order line (sales order x MTM) placed with the factory.
Health flags (delayed production, delayed transit, at risk) are derived
against a reference date so that the same export always yields the same
table for a given `today`.
"""

import logging

import pandas as pd

from ..config import (
    LEFT_FACTORY_STATUSES,
    MISSING,
    NON_ACTIONABLE_FACTORY_STATUSES,
    ORDER_HEADERS,
    ORDERS_FILE,
)
from .utils import (
    clean_text,
    distinct_values,
    parse_amount,
    parse_int,
    parse_sheet_date,
    read_table,
    reference_date,
    rename_columns,
)

logger = logging.getLogger(__name__)

ORDER_COLUMNS = list(ORDER_HEADERS.values()) + [
    "order_value",
    "is_delayed_production",
    "is_delayed_transit",
    "is_at_risk",
]

_DATE_COLUMNS = ["ship_date", "date_issue_pi", "eta", "actual_arrival"]
_UPPER_COLUMNS = ["sales_order", "mtm"]


def load_orders(src=ORDERS_FILE, today: pd.Timestamp | None = None) -> pd.DataFrame:
    """Read the order export from disk (CSV or XLSX) and parse it."""
    return parse_orders(read_table(src), today=today)


def parse_orders(raw: pd.DataFrame, today: pd.Timestamp | None = None) -> pd.DataFrame:
    """Normalise raw order rows and attach health flags.

    Parameters
    ----------
    raw : DataFrame with the export's raw headers (see ORDER_HEADERS).
    today : Reference date for the delay/risk flags. Defaults to the
        current date.

    Returns
    -------
    DataFrame with columns ORDER_COLUMNS. Rows without a sales order
    number are dropped.
    """
    if raw.empty:
        logger.warning("Order export is empty")
        return pd.DataFrame(columns=ORDER_COLUMNS)

    today = reference_date(today)
    df = rename_columns(raw, ORDER_HEADERS, required=["Sales Order Number"])

    for col in df.columns:
        if col in _DATE_COLUMNS:
            df[col] = pd.to_datetime(df[col].map(parse_sheet_date))
        elif col == "qty":
            df[col] = df[col].map(parse_int)
        elif col in ("fob_unit_price", "landing_cost_unit_price"):
            df[col] = df[col].map(parse_amount)
        else:
            df[col] = df[col].map(lambda v, c=col: clean_text(v, upper=c in _UPPER_COLUMNS))

    dropped = (df["sales_order"] == MISSING).sum()
    if dropped:
        logger.warning("Dropped %d order rows without a sales order number", dropped)
    df = df[df["sales_order"] != MISSING].reset_index(drop=True)

    df["order_value"] = df["qty"] * df["fob_unit_price"]

    flags = df.apply(lambda r: order_flags(r, today), axis=1, result_type="expand")
    if flags.empty:
        flags = pd.DataFrame(columns=["is_delayed_production", "is_delayed_transit", "is_at_risk"])
    df = pd.concat([df, flags], axis=1)

    logger.info("Built orders with %d rows", len(df))
    return df[ORDER_COLUMNS]


def order_flags(row, today: pd.Timestamp) -> dict[str, bool]:
    """Compute delay and risk flags for one order line.

    An order is actionable unless the factory marked it Cancelled or
    awaiting Customer Action. Once an arrival date is recorded no flag
    applies.
    """
    status = row["factory_status"]
    ship_date = row["ship_date"]
    eta = row["eta"]
    arrived = pd.notna(row["actual_arrival"])

    actionable = status not in NON_ACTIONABLE_FACTORY_STATUSES
    left_factory = status in LEFT_FACTORY_STATUSES
    has_ship = pd.notna(ship_date)
    has_eta = pd.notna(eta)

    delayed_production = bool(
        actionable and not left_factory and has_ship and ship_date < today and not arrived
    )
    delayed_transit = bool(
        actionable and status == "Shipped" and has_eta and eta < today and not arrived
    )
    at_risk = bool(
        actionable
        and not left_factory
        and not delayed_production
        and has_ship
        and ship_date <= today
        and not arrived
    )
    return {
        "is_delayed_production": delayed_production,
        "is_delayed_transit": delayed_transit,
        "is_at_risk": at_risk,
    }


def filter_options_for_orders(orders: pd.DataFrame) -> dict[str, list]:
    """Distinct dropdown values for the order filters.

    Returns
    -------
    dict with keys product_lines, factory_statuses, local_statuses,
    years (descending) and quarters.
    """
    if orders.empty:
        return {
            "product_lines": [],
            "factory_statuses": [],
            "local_statuses": [],
            "years": [],
            "quarters": [],
        }

    pi_dates = pd.to_datetime(orders["date_issue_pi"], errors="coerce").dropna()
    return {
        "product_lines": distinct_values(orders["product_line"]),
        "factory_statuses": distinct_values(orders["factory_status"]),
        "local_statuses": distinct_values(orders["local_status"]),
        "years": sorted({int(d.year) for d in pi_dates}, reverse=True),
        "quarters": [f"Q{q}" for q in sorted({int(d.quarter) for d in pi_dates})],
    }

