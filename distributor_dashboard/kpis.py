"""
KPI computation functions: pure functions with no side effects.

Provides period-over-period growth, the recent-period revenue breakdown,
trend summaries, the KPI card dicts for orders, sales, inventory and
rebates, stock classification and display formatting.
"""

import logging
import math

import pandas as pd

from .config import GRANULARITIES, KPI_REGISTRY, PERIOD_LIMITS, STOCK_STATUSES
from .filters import matches_stock_status
from .transforms import group_by_period

logger = logging.getLogger(__name__)


def calc_growth(current: float, previous: float | None) -> float | None:
    """Percent change from `previous` to `current`.

    Returns None when there is no meaningful base: previous missing,
    NaN, zero or negative.
    """
    if previous is None or current is None:
        return None
    if pd.isna(previous) or pd.isna(current) or previous <= 0:
        return None
    return (current - previous) / previous * 100


def period_breakdown(
    sales: pd.DataFrame,
    granularity: str,
    limit: int | None = None,
    date_col: str = "invoice_date",
    value_col: str = "total_revenue",
) -> pd.DataFrame:
    """Revenue for the most recent periods with growth vs. the period before.

    Parameters
    ----------
    sales : Sales table (or any table with `date_col` and `value_col`).
    granularity : "weekly", "monthly" or "quarterly".
    limit : Number of most recent periods to keep. Defaults to
        PERIOD_LIMITS (4 quarters, 6 months, 8 weeks).

    Returns
    -------
    DataFrame with columns period, label, revenue, growth, oldest first.
    Growth compares each period with the chronologically previous period
    that has sales; the oldest period in the window has no growth.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity '{granularity}'")
    limit = PERIOD_LIMITS[granularity] if limit is None else limit
    grouped = group_by_period(sales, date_col, value_col, granularity)
    if grouped.empty or limit <= 0:
        return pd.DataFrame(columns=["period", "label", "revenue", "growth"])

    window = grouped.tail(limit).reset_index(drop=True).rename(columns={"value": "revenue"})
    previous = window["revenue"].shift(1)
    window["growth"] = pd.Series(
        [
            calc_growth(cur, prev) if i > 0 else None
            for i, (cur, prev) in enumerate(zip(window["revenue"], previous))
        ],
        dtype=object,
    )
    return window[["period", "label", "revenue", "growth"]]


def trend_summary(values) -> dict:
    """Min, max, mean, median and first-to-last growth of a series.

    The median of an even-length series is the upper of the two middle
    values. Growth is None unless there are at least two points and the
    first is positive.
    """
    vals = [float(v) for v in values if v is not None and not pd.isna(v)]
    if not vals:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "median": 0.0, "growth": None}

    ordered = sorted(vals)
    first, last = vals[0], vals[-1]
    return {
        "min": ordered[0],
        "max": ordered[-1],
        "avg": sum(vals) / len(vals),
        "median": ordered[len(ordered) // 2],
        "growth": calc_growth(last, first) if len(vals) > 1 and first > 0 else None,
    }


# ---------------------------------------------------------------------------
# KPI cards
# ---------------------------------------------------------------------------

def order_kpis(orders: pd.DataFrame) -> dict:
    """Headline order metrics.

    Backlog and open units count order lines with no arrival date.
    Average lead time uses only non-negative PI-to-arrival spans, and the
    on-time rate only lines that have both an ETA and an arrival.
    """
    if orders.empty:
        return {
            "total_orders": 0,
            "total_units": 0,
            "total_fob_value": 0.0,
            "total_landing_cost_value": 0.0,
            "open_units": 0,
            "backlog_value": 0.0,
            "delayed_orders_count": 0,
            "at_risk_orders_count": 0,
            "average_lead_time": 0.0,
            "on_time_arrival_rate": 0.0,
            "on_time_eligible_count": 0,
            "average_fob_price": 0.0,
            "average_landing_cost": 0.0,
            "unique_order_count": 0,
            "avg_order_value": 0.0,
        }

    qty = orders["qty"]
    fob_value = float(orders["order_value"].sum())
    landing_value = float((qty * orders["landing_cost_unit_price"]).sum())
    units = int(qty.sum())
    open_lines = orders["actual_arrival"].isna()

    pi = pd.to_datetime(orders["date_issue_pi"])
    arrival = pd.to_datetime(orders["actual_arrival"])
    lead = (arrival - pi).dt.days.dropna()
    lead = lead[lead >= 0]

    eta = pd.to_datetime(orders["eta"])
    eligible = eta.notna() & arrival.notna()
    on_time = int((arrival[eligible] <= eta[eligible]).sum())
    n_eligible = int(eligible.sum())

    unique_orders = orders["sales_order"].nunique()
    delayed = orders["is_delayed_production"].astype(bool) | orders["is_delayed_transit"].astype(bool)

    return {
        "total_orders": len(orders),
        "total_units": units,
        "total_fob_value": fob_value,
        "total_landing_cost_value": landing_value,
        "open_units": int(qty[open_lines].sum()),
        "backlog_value": float(orders.loc[open_lines, "order_value"].sum()),
        "delayed_orders_count": int(delayed.sum()),
        "at_risk_orders_count": int(orders["is_at_risk"].astype(bool).sum()),
        "average_lead_time": float(lead.mean()) if not lead.empty else 0.0,
        "on_time_arrival_rate": on_time / n_eligible * 100 if n_eligible else 0.0,
        "on_time_eligible_count": n_eligible,
        "average_fob_price": fob_value / units if units else 0.0,
        "average_landing_cost": landing_value / units if units else 0.0,
        "unique_order_count": unique_orders,
        "avg_order_value": fob_value / unique_orders if unique_orders else 0.0,
    }


def sales_kpis(sales: pd.DataFrame, reconciled: pd.DataFrame | None = None) -> dict:
    """Headline sales metrics.

    Profit and margin come from the reconciled sales (see
    rebates.reconcile_sales) restricted to the serials in `sales`; they
    are None when no reconciliation is supplied.
    """
    if sales.empty:
        return {
            "total_revenue": 0.0,
            "total_units": 0,
            "invoice_count": 0,
            "average_sale_price_per_unit": 0.0,
            "average_revenue_per_invoice": 0.0,
            "unique_buyers_count": 0,
            "total_profit": None if reconciled is None else 0.0,
            "average_gross_margin": None if reconciled is None else 0.0,
        }

    revenue = float(sales["total_revenue"].sum())
    units = int(sales["quantity"].sum())
    invoices = sales["invoice_number"].nunique()

    profit = margin = None
    if reconciled is not None:
        matched = reconciled[reconciled["serial_number"].isin(set(sales["serial_number"]))]
        profit = float(matched["unit_profit"].sum(skipna=True)) if not matched.empty else 0.0
        margin = profit / revenue * 100 if revenue > 0 else 0.0

    return {
        "total_revenue": revenue,
        "total_units": units,
        "invoice_count": invoices,
        "average_sale_price_per_unit": revenue / units if units else 0.0,
        "average_revenue_per_invoice": revenue / invoices if invoices else 0.0,
        "unique_buyers_count": sales["buyer_id"].nunique(),
        "total_profit": profit,
        "average_gross_margin": margin,
    }


def inventory_kpis(inventory: pd.DataFrame) -> dict:
    """Stock position totals. On-hand value counts positive positions only."""
    if inventory.empty:
        return {
            "total_onhand_value": 0.0,
            "total_otw_value": 0.0,
            "total_onhand_units": 0,
            "total_otw_units": 0,
            "unaccounted_units": 0,
            "oversold_items": 0,
        }

    on_hand_value = inventory["on_hand_value"]
    return {
        "total_onhand_value": float(on_hand_value[on_hand_value > 0].sum()),
        "total_otw_value": float(inventory["otw_value"].sum()),
        "total_onhand_units": int(inventory["on_hand_qty"].sum()),
        "total_otw_units": int(inventory["otw_qty"].sum()),
        "unaccounted_units": int(inventory["unaccounted_qty"].sum()),
        "oversold_items": int((inventory["on_hand_qty"] < 0).sum()),
    }


def rebate_kpis(programs: pd.DataFrame) -> dict:
    """Totals over rebate programs.

    A program is pending payment when its `update` note mentions
    "pending" (any case). Blank earned values count as zero.
    """
    if programs.empty:
        return {"total_earned": 0.0, "open_programs": 0, "pending_payment": 0, "total_pending_value": 0.0}

    earned = pd.to_numeric(programs["rebate_earned"], errors="coerce").fillna(0.0)
    pending = programs["update"].astype(str).str.lower().str.contains("pending", regex=False)
    return {
        "total_earned": float(earned.sum()),
        "open_programs": int((programs["status"] == "Open").sum()),
        "pending_payment": int(pending.sum()),
        "total_pending_value": float(earned[pending].sum()),
    }


def classify_stock(item) -> str:
    """Primary stock status of one inventory line.

    The first matching bucket in STOCK_STATUSES order wins, so an empty
    line with units on the way reads "otw" rather than "out_of_stock".
    """
    on_hand = item["on_hand_qty"]
    weeks = item["weeks_of_inventory"]
    otw = item["otw_qty"]
    for status in STOCK_STATUSES:
        if matches_stock_status(on_hand, weeks, otw, status):
            return status
    return "healthy"


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_currency(value: float | None, decimals: int = 0) -> str:
    """'$1,235' style; negatives as '-$1,235'; None as 'N/A'."""
    if value is None or pd.isna(value):
        return "N/A"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.{decimals}f}"


def format_compact(value: float | None, currency: bool = False) -> str:
    """Compact notation: 1.2K, 3.4M, 5.6B (with a leading '$' for currency)."""
    if value is None or pd.isna(value):
        return "N/A"
    sign = "-" if value < 0 else ""
    prefix = "$" if currency else ""
    v = abs(value)
    for divisor, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if v >= divisor:
            scaled = v / divisor
            text = f"{scaled:.1f}".rstrip("0").rstrip(".")
            return f"{sign}{prefix}{text}{suffix}"
    text = f"{v:.0f}" if float(v).is_integer() else f"{v:.1f}"
    return f"{sign}{prefix}{text}"


def format_kpi(key: str, value) -> str:
    """Render a KPI value according to its registry format."""
    fmt = KPI_REGISTRY.get(key, {}).get("fmt", "number")
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "N/A"
    if fmt == "currency":
        return format_currency(value)
    if fmt == "percent":
        return f"{value:.1f}%"
    if fmt == "days":
        return f"{value:.1f} days"
    return f"{value:,.0f}"


def kpi_cards(kpis: dict) -> list[dict]:
    """Card dicts (key, label, value, display) for every registered KPI in `kpis`."""
    cards = []
    for key, meta in KPI_REGISTRY.items():
        if key not in kpis:
            continue
        cards.append({
            "key": key,
            "label": meta["label"],
            "value": kpis[key],
            "display": format_kpi(key, kpis[key]),
        })
    return cards
