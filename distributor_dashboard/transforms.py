"""
Data transforms: bucket, group and rank the loader outputs, derive the
per-MTM inventory and per-buyer customer tables, and score models for
reorder, promotion and targeted selling.

Every function here is pure: inputs are never mutated and the same
inputs always give the same output. Time-dependent tables take an
explicit `today`.
"""

import logging
import math

import numpy as np
import pandas as pd

from .config import (
    AT_RISK_CUSTOMER_DAYS,
    BACKLOG_AGE_BUCKETS,
    CUSTOMER_TIERS,
    DEFAULT_TOP_N,
    GRANULARITIES,
    MISSING,
    NEW_CUSTOMER_DAYS,
    PRE_LAUNCH_MAX_ON_HAND,
    PRE_LAUNCH_MIN_OTW_QTY,
    PRE_LAUNCH_MIN_OTW_VALUE,
    PROMOTION_PRIORITIES,
    RUN_RATE_WINDOW_DAYS,
    SURPLUS_STOCK_QTY,
    TIER_SCORES,
)
from .loaders.utils import is_missing, reference_date

logger = logging.getLogger(__name__)

INVENTORY_COLUMNS = [
    "mtm",
    "model_name",
    "product_line",
    "total_shipped_qty",
    "total_arrived_qty",
    "total_sold_qty",
    "total_serialized_qty",
    "arrived_serialized_qty",
    "otw_serialized_qty",
    "on_hand_qty",
    "unaccounted_qty",
    "otw_qty",
    "otw_value",
    "average_landing_cost",
    "average_fob_cost",
    "on_hand_value",
    "weekly_run_rate",
    "weeks_of_inventory",
    "last_sale_date",
    "days_since_last_sale",
    "last_arrival_date",
    "days_since_last_arrival",
    "total_profit",
    "profit_margin",
]

CUSTOMER_COLUMNS = [
    "buyer_id",
    "buyer_name",
    "total_revenue",
    "total_units",
    "invoice_count",
    "first_purchase_date",
    "last_purchase_date",
    "days_since_last_purchase",
    "is_new",
    "is_at_risk",
    "tier",
]

_MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


# ---------------------------------------------------------------------------
# Period bucketing
# ---------------------------------------------------------------------------

def iso_week(date) -> tuple[int, int]:
    """ISO 8601 (week-year, week number) of a date.

    Days at a year boundary belong to the week-year of their Thursday,
    so 2024-12-30 is week 1 of 2025.
    """
    cal = pd.Timestamp(date).isocalendar()
    return int(cal[0]), int(cal[1])


def period_key(date, granularity: str) -> tuple[str, str]:
    """Return (sort_key, label) of the period that holds `date`.

    Sort keys order lexicographically in time:
        weekly    -> ("2025-W01", "Week 1, 2025")
        monthly   -> ("2025-01", "Jan 2025")
        quarterly -> ("2025-Q1", "Q1 2025")
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity '{granularity}'")
    ts = pd.Timestamp(date)
    if granularity == "weekly":
        year, week = iso_week(ts)
        return f"{year}-W{week:02d}", f"Week {week}, {year}"
    if granularity == "monthly":
        return f"{ts.year}-{ts.month:02d}", f"{_MONTH_ABBR[ts.month - 1]} {ts.year}"
    return f"{ts.year}-Q{ts.quarter}", f"Q{ts.quarter} {ts.year}"


def group_by_period(
    df: pd.DataFrame,
    date_col: str,
    value_col: str | None,
    granularity: str,
) -> pd.DataFrame:
    """Sum `value_col` (or count rows when None) per period.

    Returns
    -------
    DataFrame with columns period, label, value sorted oldest first.
    Rows without a date are skipped.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity '{granularity}'")

    dated = df[pd.to_datetime(df[date_col], errors="coerce").notna()] if not df.empty else df
    if dated.empty:
        return pd.DataFrame(columns=["period", "label", "value"])

    keys = [period_key(d, granularity) for d in pd.to_datetime(dated[date_col])]
    values = dated[value_col].astype(float) if value_col else pd.Series(1.0, index=dated.index)
    frame = pd.DataFrame({
        "period": [k[0] for k in keys],
        "label": [k[1] for k in keys],
        "value": values.to_numpy(),
    })
    out = (
        frame.groupby(["period", "label"], as_index=False)["value"]
        .sum()
        .sort_values("period", kind="mergesort")
        .reset_index(drop=True)
    )
    return out


# ---------------------------------------------------------------------------
# Categorical grouping and ranking
# ---------------------------------------------------------------------------

def group_by_field(
    df: pd.DataFrame,
    key_col: str,
    metrics: dict[str, tuple[str, str]],
) -> pd.DataFrame:
    """Aggregate per distinct value of `key_col`.

    Parameters
    ----------
    df : Source table.
    key_col : Categorical column to group on. Blank and N/A keys are skipped.
    metrics : Named aggregations, e.g. {"revenue": ("total_revenue", "sum")}.

    Returns
    -------
    DataFrame with `key_col` plus one column per metric, ordered by key.
    """
    columns = [key_col] + list(metrics)
    if df.empty:
        return pd.DataFrame(columns=columns)

    keyed = df[~df[key_col].map(is_missing)]
    if keyed.empty:
        return pd.DataFrame(columns=columns)
    return keyed.groupby(key_col, as_index=False, sort=True).agg(**metrics)[columns]


def top_n(df: pd.DataFrame, metric: str, n: int = DEFAULT_TOP_N) -> pd.DataFrame:
    """The `n` rows with the highest `metric`.

    Sorting is stable, so rows with equal metric keep their input order.
    Rows whose metric is missing sort last.
    """
    if n <= 0 or df.empty:
        return df.iloc[0:0]
    ranked = df.sort_values(metric, ascending=False, kind="mergesort", na_position="last")
    return ranked.head(n).reset_index(drop=True)


def rank_buyers(sales: pd.DataFrame, by: str = "revenue", n: int = DEFAULT_TOP_N) -> pd.DataFrame:
    """Top buyers by revenue or units.

    Returns
    -------
    DataFrame with columns buyer_name, revenue, units, invoices.
    """
    if by not in ("revenue", "units"):
        raise ValueError(f"Cannot rank buyers by '{by}'")
    grouped = group_by_field(
        sales,
        "buyer_name",
        {
            "revenue": ("total_revenue", "sum"),
            "units": ("quantity", "sum"),
            "invoices": ("invoice_number", "nunique"),
        },
    )
    return top_n(grouped, by, n)


def rank_models(
    sales: pd.DataFrame,
    by: str = "revenue",
    n: int = DEFAULT_TOP_N,
    profit_by_mtm: dict[str, dict] | None = None,
) -> pd.DataFrame:
    """Top models (MTMs) by revenue, units or profit.

    `profit_by_mtm` maps MTM -> {"profit", "revenue"} from the profit
    reconciliation. Ranking by profit requires it.

    Returns
    -------
    DataFrame with columns mtm, model_name, revenue, units and, when a
    profit map is supplied, profit and margin (percent, None when no
    costed revenue).
    """
    if by not in ("revenue", "units", "profit"):
        raise ValueError(f"Cannot rank models by '{by}'")
    if by == "profit" and profit_by_mtm is None:
        raise ValueError("Ranking by profit needs a profit map")

    grouped = group_by_field(
        sales,
        "mtm",
        {
            "model_name": ("model_name", "first"),
            "revenue": ("total_revenue", "sum"),
            "units": ("quantity", "sum"),
        },
    )
    if profit_by_mtm is not None:
        grouped = grouped.copy()
        grouped["profit"] = [
            profit_by_mtm.get(m, {}).get("profit", 0.0) for m in grouped["mtm"]
        ]
        grouped["margin"] = [
            _margin(profit_by_mtm.get(m)) for m in grouped["mtm"]
        ]
    return top_n(grouped, by, n)


def _margin(entry: dict | None) -> float | None:
    if not entry or not entry.get("revenue"):
        return None
    return entry["profit"] / entry["revenue"] * 100


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

def build_inventory(
    orders: pd.DataFrame,
    sales: pd.DataFrame,
    serials: pd.DataFrame,
    today=None,
    profit_by_mtm: dict[str, dict] | None = None,
) -> pd.DataFrame:
    """Derive stock position per MTM from orders, sales and serials.

    On-hand stock counts only serials that belong to an arrived order line
    (same SO and MTM) and have not been sold. Unaccounted stock is the gap
    between what arrived minus what sold and what is physically on hand.

    Parameters
    ----------
    orders : Output of parse_orders().
    sales : Output of parse_sales().
    serials : Output of parse_serials().
    today : Reference date for run rate and recency.
    profit_by_mtm : Optional MTM -> {"profit", "revenue"} map.

    Returns
    -------
    DataFrame with columns INVENTORY_COLUMNS, one row per MTM seen in
    the orders.
    """
    if orders.empty:
        logger.warning("No orders, inventory is empty")
        return pd.DataFrame(columns=INVENTORY_COLUMNS)

    today = reference_date(today)
    arrived = orders["actual_arrival"].notna()
    arrived_keys = set(zip(orders.loc[arrived, "sales_order"], orders.loc[arrived, "mtm"]))

    by_mtm = orders.assign(
        landing_value=orders["qty"] * orders["landing_cost_unit_price"]
    ).groupby("mtm", sort=True).agg(
        model_name=("model_name", "first"),
        product_line=("product_line", "first"),
        shipped=("qty", "sum"),
        fob_value=("order_value", "sum"),
        landing_value=("landing_value", "sum"),
        last_arrival=("actual_arrival", "max"),
    )
    arrived_qty = orders[arrived].groupby("mtm")["qty"].sum()
    otw_value = orders[~arrived].groupby("mtm")["order_value"].sum()

    sold_qty = sales.groupby("mtm")["quantity"].sum() if not sales.empty else pd.Series(dtype=float)
    sold_serials = set(sales["serial_number"]) if not sales.empty else set()

    if serials.empty:
        arrived_serialized = otw_serialized = on_hand = pd.Series(dtype=float)
    else:
        serial_arrived = pd.Series(
            [(so, m) in arrived_keys for so, m in zip(serials["sales_order"], serials["mtm"])],
            index=serials.index,
            dtype=bool,
        )
        unsold = ~serials["full_serial"].isin(sold_serials)
        arrived_serialized = serials[serial_arrived].groupby("mtm").size()
        otw_serialized = serials[~serial_arrived].groupby("mtm").size()
        on_hand = serials[serial_arrived & unsold].groupby("mtm").size()

    if sales.empty:
        recent_units = pd.Series(dtype=float)
        last_sale = pd.Series(dtype="datetime64[ns]")
    else:
        sale_dates = pd.to_datetime(sales["invoice_date"])
        window_start = today - pd.Timedelta(days=RUN_RATE_WINDOW_DAYS)
        recent_units = sales[sale_dates >= window_start].groupby("mtm")["quantity"].sum()
        last_sale = sales.assign(invoice_date=sale_dates).groupby("mtm")["invoice_date"].max()

    rows = []
    for mtm, agg in by_mtm.iterrows():
        shipped = int(agg["shipped"])
        arrived_units = int(arrived_qty.get(mtm, 0))
        sold = int(sold_qty.get(mtm, 0))
        on_hand_qty = int(on_hand.get(mtm, 0))
        arr_ser = int(arrived_serialized.get(mtm, 0))
        otw_ser = int(otw_serialized.get(mtm, 0))

        avg_fob = agg["fob_value"] / shipped if shipped > 0 else 0.0
        avg_landing = agg["landing_value"] / shipped if shipped > 0 else 0.0

        recent = float(recent_units.get(mtm, 0))
        run_rate = recent / (RUN_RATE_WINDOW_DAYS / 7) if recent > 0 else 0.0
        weeks = math.floor(on_hand_qty / run_rate) if on_hand_qty > 0 and run_rate > 0 else None

        last_sale_date = last_sale.get(mtm, pd.NaT)
        last_arrival_date = agg["last_arrival"]

        profit_entry = (profit_by_mtm or {}).get(mtm)
        rows.append({
            "mtm": mtm,
            "model_name": agg["model_name"],
            "product_line": agg["product_line"],
            "total_shipped_qty": shipped,
            "total_arrived_qty": arrived_units,
            "total_sold_qty": sold,
            "total_serialized_qty": arr_ser + otw_ser,
            "arrived_serialized_qty": arr_ser,
            "otw_serialized_qty": otw_ser,
            "on_hand_qty": on_hand_qty,
            "unaccounted_qty": (arrived_units - sold) - on_hand_qty,
            "otw_qty": shipped - arrived_units,
            "otw_value": float(otw_value.get(mtm, 0.0)),
            "average_landing_cost": avg_landing,
            "average_fob_cost": avg_fob,
            "on_hand_value": on_hand_qty * avg_fob,
            "weekly_run_rate": run_rate,
            "weeks_of_inventory": weeks,
            "last_sale_date": last_sale_date,
            "days_since_last_sale": _days_since(last_sale_date, today),
            "last_arrival_date": last_arrival_date,
            "days_since_last_arrival": _days_since(last_arrival_date, today),
            "total_profit": profit_entry["profit"] if profit_entry else None,
            "profit_margin": _margin(profit_entry),
        })

    out = pd.DataFrame(rows, columns=INVENTORY_COLUMNS)
    # keep whole weeks as ints, with None for "no sales" / "no stock"
    out["weeks_of_inventory"] = pd.Series([r["weeks_of_inventory"] for r in rows], dtype=object)
    logger.info("Built inventory with %d rows", len(out))
    return out


def _days_since(date, today: pd.Timestamp) -> int | None:
    if date is None or pd.isna(date):
        return None
    return int((today - pd.Timestamp(date).normalize()).days)


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def assign_tiers(n_customers: int) -> list[str]:
    """Tier labels for customers already ranked by revenue, best first.

    Cut-offs are ceil(n * share), so with 10 customers the top 1 is
    Platinum, the next 1 Gold, the next 3 Silver and the rest Bronze.
    """
    cutoffs = [(name, math.ceil(n_customers * share)) for name, share in CUSTOMER_TIERS]
    tiers = []
    for idx in range(n_customers):
        for name, cutoff in cutoffs:
            if idx < cutoff:
                tiers.append(name)
                break
    return tiers


def build_customers(sales: pd.DataFrame, today=None) -> pd.DataFrame:
    """Aggregate sales per buyer and classify recency and value tier.

    A buyer is new when their first purchase falls within the last
    NEW_CUSTOMER_DAYS, and at risk when their last purchase is more than
    AT_RISK_CUSTOMER_DAYS ago (or unknown).

    Returns
    -------
    DataFrame with columns CUSTOMER_COLUMNS sorted by revenue descending.
    """
    if sales.empty:
        return pd.DataFrame(columns=CUSTOMER_COLUMNS)

    today = reference_date(today)
    keyed = sales[sales["buyer_id"] != MISSING].assign(
        invoice_date=lambda d: pd.to_datetime(d["invoice_date"])
    )
    if keyed.empty:
        return pd.DataFrame(columns=CUSTOMER_COLUMNS)

    grouped = keyed.groupby("buyer_id", sort=False).agg(
        buyer_name=("buyer_name", "first"),
        total_revenue=("total_revenue", "sum"),
        total_units=("quantity", "sum"),
        invoice_count=("invoice_number", "nunique"),
        first_purchase_date=("invoice_date", "min"),
        last_purchase_date=("invoice_date", "max"),
    ).reset_index()

    new_since = today - pd.Timedelta(days=NEW_CUSTOMER_DAYS)
    grouped["days_since_last_purchase"] = [
        _days_since(d, today) for d in grouped["last_purchase_date"]
    ]
    grouped["is_new"] = grouped["first_purchase_date"].notna() & (
        grouped["first_purchase_date"] >= new_since
    )
    grouped["is_at_risk"] = [
        d is None or d > AT_RISK_CUSTOMER_DAYS for d in grouped["days_since_last_purchase"]
    ]

    grouped = grouped.sort_values("total_revenue", ascending=False, kind="mergesort")
    grouped = grouped.reset_index(drop=True)
    grouped["tier"] = assign_tiers(len(grouped))

    logger.info("Built customers with %d rows", len(grouped))
    return grouped[CUSTOMER_COLUMNS]


# ---------------------------------------------------------------------------
# Order health
# ---------------------------------------------------------------------------

def backlog_by_age(orders: pd.DataFrame, today=None) -> pd.DataFrame:
    """Open order value by product line and age since PI date.

    Only orders without an arrival date and with a PI date count.

    Returns
    -------
    DataFrame with a product_line column followed by one column per age
    bucket label, product lines in alphabetical order.
    """
    labels = [label for label, _ in BACKLOG_AGE_BUCKETS]
    if orders.empty:
        return pd.DataFrame(columns=["product_line"] + labels)

    today = reference_date(today)
    open_orders = orders[orders["actual_arrival"].isna() & orders["date_issue_pi"].notna()]
    if open_orders.empty:
        return pd.DataFrame(columns=["product_line"] + labels)

    ages = (today - pd.to_datetime(open_orders["date_issue_pi"])).dt.days
    buckets = ages.map(_age_bucket)
    table = (
        pd.DataFrame({
            "product_line": open_orders["product_line"].to_numpy(),
            "bucket": buckets.to_numpy(),
            "value": open_orders["order_value"].to_numpy(),
        })
        .pivot_table(index="product_line", columns="bucket", values="value", aggfunc="sum", fill_value=0.0)
        .reindex(columns=labels, fill_value=0.0)
        .sort_index()
    )
    table.columns.name = None
    return table.reset_index()


def _age_bucket(age_days: int) -> str:
    for label, upper in BACKLOG_AGE_BUCKETS:
        if upper is None or age_days <= upper:
            return label
    return BACKLOG_AGE_BUCKETS[-1][0]


def lead_times(orders: pd.DataFrame) -> pd.DataFrame:
    """Days from PI issue to actual arrival, per order line.

    Lines missing either date, or with arrival before the PI date, are
    left out.
    """
    columns = ["sales_order", "mtm", "product_line", "lead_time_days"]
    if orders.empty:
        return pd.DataFrame(columns=columns)

    done = orders[orders["date_issue_pi"].notna() & orders["actual_arrival"].notna()]
    days = (pd.to_datetime(done["actual_arrival"]) - pd.to_datetime(done["date_issue_pi"])).dt.days
    out = done.assign(lead_time_days=days)[columns]
    return out[out["lead_time_days"] >= 0].reset_index(drop=True)


def lead_time_distribution(orders: pd.DataFrame) -> pd.DataFrame:
    """Five-number summary, mean and count of lead times per product line.

    This is the box plot input; q1 and q3 use linear interpolation.
    """
    columns = ["product_line", "min", "q1", "median", "mean", "q3", "max", "count"]
    lt = lead_times(orders)
    if lt.empty:
        return pd.DataFrame(columns=columns)

    grouped = lt.groupby("product_line", sort=True)["lead_time_days"]
    out = pd.DataFrame({
        "min": grouped.min(),
        "q1": grouped.quantile(0.25),
        "median": grouped.median(),
        "mean": grouped.mean(),
        "q3": grouped.quantile(0.75),
        "max": grouped.max(),
        "count": grouped.size(),
    }).reset_index()
    return out[columns]


# ---------------------------------------------------------------------------
# Backorder recommendations
# ---------------------------------------------------------------------------

def sales_velocity(sales: pd.DataFrame, today=None) -> pd.DataFrame:
    """Units sold per MTM in the last 30, 60 and 90 days and all time.

    Returns
    -------
    DataFrame with columns mtm, last30, last60, last90, total, prev30
    (days 31 to 60, i.e. last60 - last30) and customers (distinct buyers
    in the last 90 days). One row per MTM that ever sold; sales without
    an invoice date only count towards the all-time total.
    """
    columns = ["mtm", "last30", "last60", "last90", "total", "prev30", "customers"]
    if sales.empty:
        return pd.DataFrame(columns=columns)

    today = reference_date(today)
    dates = pd.to_datetime(sales["invoice_date"])
    windows = {
        f"last{days}": np.where(dates >= today - pd.Timedelta(days=days), sales["quantity"], 0)
        for days in (30, 60, 90)
    }
    recent_buyer = sales["buyer_id"].where(dates >= today - pd.Timedelta(days=90))
    out = sales.assign(recent_buyer=recent_buyer, **windows).groupby("mtm", sort=True).agg(
        last30=("last30", "sum"),
        last60=("last60", "sum"),
        last90=("last90", "sum"),
        total=("quantity", "sum"),
        customers=("recent_buyer", "nunique"),
    ).reset_index()
    out["prev30"] = out["last60"] - out["last30"]
    return out[columns]


def backorder_candidates(
    inventory: pd.DataFrame,
    sales: pd.DataFrame,
    orders: pd.DataFrame,
    today=None,
) -> pd.DataFrame:
    """Sold-out MTMs with nothing on the way that sold in the last 90 days.

    Score = volume (log2 of 90-day units, capped at 40)
            + velocity (30 rising, 15 stable, 0 falling, 10 % band)
            + value (90-day units x landing cost, scaled to 20)
            + 10 for models first ordered within 90 days.
    Priority is High from 70, Medium from 35, else Low.

    `days_out_of_stock` counts from the last sale of the MTM, which is
    when its last unit left. It is None when no sale carries a date.
    """
    columns = [
        "mtm", "model_name", "priority", "priority_score", "sales_trend",
        "recent_sales_units", "sales_last_30_days", "estimated_backorder_value",
        "affected_customers", "in_stock_qty", "days_out_of_stock",
        "average_landing_cost", "first_order_date",
    ]
    if inventory.empty or sales.empty:
        return pd.DataFrame(columns=columns)

    today = reference_date(today)
    velocity = sales_velocity(sales, today).set_index("mtm")
    velocity = velocity[velocity["last90"] > 0]
    candidates = inventory[
        (inventory["on_hand_qty"] <= 0)
        & (inventory["otw_qty"] <= 0)
        & inventory["mtm"].isin(velocity.index)
    ]
    if candidates.empty:
        return pd.DataFrame(columns=columns)

    first_order = orders.groupby("mtm")["date_issue_pi"].min() if not orders.empty else pd.Series(dtype=object)
    new_since = today - pd.Timedelta(days=90)

    est_values = {
        r.mtm: velocity.at[r.mtm, "last90"] * r.average_landing_cost
        for r in candidates.itertuples(index=False)
    }
    max_value = max(max(est_values.values()), 1)

    rows = []
    for r in candidates.itertuples(index=False):
        v = velocity.loc[r.mtm]
        volume_score = min(40.0, math.log2(v["last90"] + 1) * 6)
        if v["last30"] > v["prev30"] * 1.1:
            velocity_score, trend = 30, "Increasing"
        elif v["prev30"] > v["last30"] * 1.1:
            velocity_score, trend = 0, "Decreasing"
        else:
            velocity_score, trend = 15, "Stable"
        value_score = est_values[r.mtm] / max_value * 20
        first = first_order.get(r.mtm, pd.NaT)
        new_bonus = 10 if pd.notna(first) and first >= new_since else 0

        score = round(volume_score + velocity_score + value_score + new_bonus)
        priority = "High" if score >= 70 else "Medium" if score >= 35 else "Low"
        rows.append({
            "mtm": r.mtm,
            "model_name": r.model_name,
            "priority": priority,
            "priority_score": score,
            "sales_trend": trend,
            "recent_sales_units": int(v["last90"]),
            "sales_last_30_days": int(v["last30"]),
            "estimated_backorder_value": est_values[r.mtm],
            "affected_customers": int(v["customers"]),
            "in_stock_qty": r.on_hand_qty,
            "days_out_of_stock": None if pd.isna(r.days_since_last_sale) else int(r.days_since_last_sale),
            "average_landing_cost": r.average_landing_cost,
            "first_order_date": first if pd.notna(first) else None,
        })

    out = pd.DataFrame(rows, columns=columns)
    return out.sort_values("priority_score", ascending=False, kind="mergesort").reset_index(drop=True)


# ---------------------------------------------------------------------------
# Promotions and sales opportunities
# ---------------------------------------------------------------------------

def _stock_pressure(weeks) -> tuple[int, str]:
    if weeks is None or pd.isna(weeks):
        return 40, "Untapped potential; this item has never been sold."
    weeks = int(weeks)
    if weeks > 52:
        return 35, f"High inventory ({weeks} weeks) presents a major market penetration opportunity."
    if weeks > 26:
        return 25, f"Significant stock ({weeks} weeks) allows for a sustained marketing campaign."
    if weeks > 12:
        return 15, f"Healthy stock level ({weeks} weeks) can support a promotional push."
    return 0, ""


def _stock_aging(days_since_sale, days_since_arrival) -> tuple[int, str]:
    if days_since_sale is None or pd.isna(days_since_sale):
        arrival = 0 if days_since_arrival is None or pd.isna(days_since_arrival) else days_since_arrival
        if arrival > 30:
            return 30, "New stock needs a launch campaign to build momentum."
        return 0, ""
    if days_since_sale > 90:
        return 25, "Stagnant sales require a market re-activation campaign."
    if days_since_sale > 60:
        return 15, "Slowing sales suggest a need for a marketing boost."
    if days_since_sale > 30:
        return 5, "Proactive push can prevent sales from stagnating."
    return 0, ""


def promotion_candidates(inventory: pd.DataFrame) -> pd.DataFrame:
    """Models worth a marketing push, with a priority and a one-line reason.

    A model qualifies when it has stock on hand, or when it is nearly
    sold out (at most PRE_LAUNCH_MAX_ON_HAND) with more than
    PRE_LAUNCH_MIN_OTW_QTY units on the way. Nearly sold-out models whose
    incoming stock is worth more than PRE_LAUNCH_MIN_OTW_VALUE are
    "Pre-Launch"; the rest need stock on hand and are scored:

        stock pressure  40 never sold, 35 > 52 weeks, 25 > 26, 15 > 12
        aging           30 unsold stock that arrived > 30 days ago,
                        else 25 / 15 / 5 for a last sale > 90 / 60 / 30 days
        value at risk   on-hand value scaled to 30 against the largest

    Priority is Urgent from 70, Recommended from 40, else Optional. The
    reason is the top-scoring factor, plus the runner-up when it scores
    above 10.

    Returns
    -------
    DataFrame sorted Urgent, Pre-Launch, Recommended, Optional, and by
    value (incoming value for Pre-Launch, on-hand value otherwise)
    within each priority. `promotion_score` is None for Pre-Launch rows.
    """
    columns = [
        "mtm", "model_name", "priority", "promotion_score", "reasoning",
        "in_stock_qty", "otw_qty", "in_stock_value", "otw_value",
        "weeks_of_inventory", "days_since_last_sale",
    ]
    if inventory.empty:
        return pd.DataFrame(columns=columns)

    near_launch = (inventory["on_hand_qty"] <= PRE_LAUNCH_MAX_ON_HAND) & (
        inventory["otw_qty"] > PRE_LAUNCH_MIN_OTW_QTY
    )
    candidates = inventory[(inventory["on_hand_qty"] > 0) | near_launch]
    if candidates.empty:
        return pd.DataFrame(columns=columns)
    max_value = max(candidates["on_hand_value"].max(), 1)

    rows = []
    for r in candidates.itertuples(index=False):
        days_since_sale = None if pd.isna(r.days_since_last_sale) else int(r.days_since_last_sale)
        row = {
            "mtm": r.mtm,
            "model_name": r.model_name,
            "in_stock_qty": r.on_hand_qty,
            "otw_qty": r.otw_qty,
            "in_stock_value": r.on_hand_value,
            "otw_value": r.otw_value,
            "days_since_last_sale": days_since_sale,
        }
        if (
            r.on_hand_qty <= PRE_LAUNCH_MAX_ON_HAND
            and r.otw_qty > PRE_LAUNCH_MIN_OTW_QTY
            and r.otw_value > PRE_LAUNCH_MIN_OTW_VALUE
        ):
            rows.append({
                **row,
                "priority": "Pre-Launch",
                "promotion_score": None,
                "reasoning": (
                    f"Key opportunity to build market hype with {r.otw_qty} incoming units "
                    "and capture early adopters."
                ),
                "weeks_of_inventory": None,
                "_sort_value": r.otw_value,
            })
            continue
        if r.on_hand_qty <= 0:
            continue

        value_score = min(30.0, r.on_hand_value / max_value * 30)
        factors = [
            _stock_pressure(r.weeks_of_inventory),
            _stock_aging(days_since_sale, r.days_since_last_arrival),
            (
                value_score,
                f"Significant capital tied to this stock (${r.on_hand_value:,.0f}) "
                "justifies a strategic marketing push.",
            ),
        ]
        score = sum(s for s, _ in factors)
        priority = "Urgent" if score >= 70 else "Recommended" if score >= 40 else "Optional"

        # stable sort: on equal scores the earlier factor leads
        reasons = sorted([f for f in factors if f[1]], key=lambda f: f[0], reverse=True)
        if reasons:
            reasoning = reasons[0][1]
            if len(reasons) > 1 and reasons[1][0] > 10:
                second = reasons[1][1]
                reasoning += f" Additionally: {second[0].lower()}{second[1:]}"
        else:
            reasoning = "Healthy stock levels. Suitable for brand-building campaigns."

        weeks = r.weeks_of_inventory
        rows.append({
            **row,
            "priority": priority,
            "promotion_score": round(score),
            "reasoning": reasoning,
            "weeks_of_inventory": None if weeks is None or pd.isna(weeks) else int(weeks),
            "_sort_value": r.on_hand_value,
        })

    if not rows:
        return pd.DataFrame(columns=columns)
    out = pd.DataFrame(rows)
    out["_rank"] = out["priority"].map({p: i for i, p in enumerate(PROMOTION_PRIORITIES)})
    out = out.sort_values(["_rank", "_sort_value"], ascending=[True, False], kind="mergesort")
    out = out.reset_index(drop=True)[columns]
    for col in ("promotion_score", "weeks_of_inventory", "days_since_last_sale"):
        out[col] = pd.Series([None if pd.isna(v) else int(v) for v in out[col]], dtype=object)
    return out


def sales_opportunities(
    customers: pd.DataFrame,
    sales: pd.DataFrame,
    inventory: pd.DataFrame,
    today=None,
) -> pd.DataFrame:
    """Surplus models matched to the customers who bought them before.

    Surplus means more than SURPLUS_STOCK_QTY units on hand. Each
    (customer, model) pair is scored out of roughly 100:

        tier      Platinum 30, Gold 22.5, Silver 15, Bronze 7.5
        stock     (on hand - SURPLUS_STOCK_QTY) / 20, capped at 15
        recency   35 / sqrt(days since their last purchase of it + 1)
        history   10 * log10(units they bought + 1), capped at 20

    Returns
    -------
    DataFrame in customer order (as given, normally by revenue), then
    inventory order, with the customer's past units and last purchase
    date for the model and `surplus_stock_value` at landing cost.
    """
    columns = [
        "customer_id", "customer_name", "customer_tier", "mtm", "model_name",
        "in_stock_qty", "otw_qty", "average_landing_cost", "surplus_stock_value",
        "customer_past_units", "customer_last_purchase_date", "opportunity_score",
    ]
    if customers.empty or sales.empty or inventory.empty:
        return pd.DataFrame(columns=columns)

    today = reference_date(today)
    surplus = inventory[inventory["on_hand_qty"] > SURPLUS_STOCK_QTY]
    bought = sales[sales["mtm"].isin(surplus["mtm"])]
    if surplus.empty or bought.empty:
        return pd.DataFrame(columns=columns)

    history = bought.assign(invoice_date=pd.to_datetime(bought["invoice_date"])).groupby(
        ["buyer_id", "mtm"], sort=False
    ).agg(past_units=("quantity", "sum"), last_purchase=("invoice_date", "max"))

    rows = []
    for c in customers.itertuples(index=False):
        for item in surplus.itertuples(index=False):
            if (c.buyer_id, item.mtm) not in history.index:
                continue
            past = history.loc[(c.buyer_id, item.mtm)]
            days = _days_since(past["last_purchase"], today)
            recency = 35 / math.sqrt(max(days, 0) + 1) if days is not None else 0.0
            score = (
                TIER_SCORES.get(c.tier, 0) * 7.5
                + min(15.0, (item.on_hand_qty - SURPLUS_STOCK_QTY) / 20)
                + recency
                + min(20.0, math.log10(past["past_units"] + 1) * 10)
            )
            rows.append({
                "customer_id": c.buyer_id,
                "customer_name": c.buyer_name,
                "customer_tier": c.tier,
                "mtm": item.mtm,
                "model_name": item.model_name,
                "in_stock_qty": item.on_hand_qty,
                "otw_qty": item.otw_qty,
                "average_landing_cost": item.average_landing_cost,
                "surplus_stock_value": item.on_hand_qty * item.average_landing_cost,
                "customer_past_units": int(past["past_units"]),
                "customer_last_purchase_date": past["last_purchase"],
                "opportunity_score": round(score),
            })

    logger.info("Found %d sales opportunities on %d surplus models", len(rows), len(surplus))
    return pd.DataFrame(rows, columns=columns)


def customer_opportunities(opportunities: pd.DataFrame) -> pd.DataFrame:
    """Roll sales opportunities up per customer.

    Customers without an opportunity do not appear. The customer score
    is the rounded mean of their opportunity scores.
    """
    columns = [
        "customer_id", "customer_name", "customer_tier",
        "opportunity_count", "total_opportunity_value", "customer_opportunity_score",
    ]
    if opportunities.empty:
        return pd.DataFrame(columns=columns)

    out = opportunities.groupby("customer_id", sort=False).agg(
        customer_name=("customer_name", "first"),
        customer_tier=("customer_tier", "first"),
        opportunity_count=("mtm", "size"),
        total_opportunity_value=("surplus_stock_value", "sum"),
        customer_opportunity_score=("opportunity_score", "mean"),
    ).reset_index()
    out["customer_opportunity_score"] = out["customer_opportunity_score"].round().astype(int)
    return out[columns]
