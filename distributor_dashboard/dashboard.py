"""
Dashboard-ready output functions.

These are the primary entry points for any front end. Each function
applies the page's filters, then returns a plain dict of KPIs, chart
series and table records. Dates in the output are ISO strings and
missing values are None.
"""

import logging
import math

import numpy as np
import pandas as pd

from .config import ACCESSORY_PRODUCT_LINES, DEFAULT_TOP_N, STOCK_STATUSES, TASK_COLUMNS
from .filters import (
    filter_customers,
    filter_inventory,
    filter_orders,
    filter_sales,
    filter_tasks,
    normalize_customer_filters,
    normalize_inventory_filters,
    normalize_order_filters,
    normalize_sales_filters,
    normalize_task_filters,
)
from .kpis import (
    classify_stock,
    inventory_kpis,
    kpi_cards,
    order_kpis,
    period_breakdown,
    rebate_kpis,
    sales_kpis,
    trend_summary,
)
from .loaders import filter_options_for_orders, filter_options_for_sales
from .loaders.utils import reference_date
from .rebates import (
    profitability_kpis,
    program_utilisation,
    reconcile_claims,
    validate_claims,
)
from .specs import SPEC_KEYS, build_spec_items, filter_by_specs, spec_distribution
from .tasks import group_by_status
from .transforms import (
    backlog_by_age,
    backorder_candidates,
    build_customers,
    build_inventory,
    customer_opportunities,
    group_by_field,
    group_by_period,
    lead_time_distribution,
    promotion_candidates,
    rank_buyers,
    rank_models,
    sales_opportunities,
)

logger = logging.getLogger(__name__)


def _clean(value):
    """Make one cell JSON-friendly."""
    if isinstance(value, (list, dict)):
        return value
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.strftime("%Y-%m-%d")
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if value is pd.NaT:
        return None
    return value


def to_records(df: pd.DataFrame) -> list[dict]:
    """DataFrame -> list of dicts with ISO dates and None for missing values."""
    if df.empty:
        return []
    return [
        {k: _clean(v) for k, v in row.items()}
        for row in df.to_dict("records")
    ]


def _series(df: pd.DataFrame) -> dict:
    """Chart series from a period/label/value frame."""
    return {
        "periods": list(df["period"]),
        "labels": list(df["label"]),
        "values": [float(v) for v in df["value"]],
    }


def get_order_overview(
    orders: pd.DataFrame,
    filters: dict | None = None,
    today=None,
) -> dict:
    """Everything the order page shows.

    Returns
    -------
    dict with keys: kpis, cards, order_value_trend (monthly by PI date),
    backlog_by_age, lead_time_distribution, value_by_product_line,
    status_counts, orders (records), filter_options.
    """
    today = reference_date(today)
    selected = filter_orders(orders, normalize_order_filters(filters or {}, today=today))
    logger.info("Order overview over %d of %d rows", len(selected), len(orders))

    kpis = order_kpis(selected)
    by_line = group_by_field(selected, "product_line", {"value": ("order_value", "sum")})
    status_counts = group_by_field(selected, "factory_status", {"count": ("sales_order", "size")})

    return {
        "kpis": kpis,
        "cards": kpi_cards(kpis),
        "order_value_trend": _series(group_by_period(selected, "date_issue_pi", "order_value", "monthly")),
        "backlog_by_age": to_records(backlog_by_age(selected, today)),
        "lead_time_distribution": to_records(lead_time_distribution(selected)),
        "value_by_product_line": to_records(by_line),
        "status_counts": to_records(status_counts),
        "orders": to_records(selected),
        "filter_options": filter_options_for_orders(orders),
    }


def get_sales_overview(
    sales: pd.DataFrame,
    filters: dict | None = None,
    granularity: str = "monthly",
    reconciled: pd.DataFrame | None = None,
    profit_by_mtm: dict | None = None,
    top: int = DEFAULT_TOP_N,
    today=None,
) -> dict:
    """Everything the sales page shows.

    Returns
    -------
    dict with keys: kpis, cards, revenue_trend, trend_summary,
    period_breakdown, top_buyers, top_models, revenue_by_segment,
    sales (records), filter_options.
    """
    today = reference_date(today)
    selected = filter_sales(sales, normalize_sales_filters(filters or {}, today=today))
    logger.info("Sales overview over %d of %d rows", len(selected), len(sales))

    kpis = sales_kpis(selected, reconciled)
    trend = group_by_period(selected, "invoice_date", "total_revenue", granularity)
    by_segment = group_by_field(selected, "segment", {"revenue": ("total_revenue", "sum")})

    return {
        "kpis": kpis,
        "cards": kpi_cards(kpis),
        "revenue_trend": _series(trend),
        "trend_summary": trend_summary(trend["value"]),
        "period_breakdown": to_records(period_breakdown(selected, granularity)),
        "top_buyers": to_records(rank_buyers(selected, "revenue", top)),
        "top_models": to_records(rank_models(selected, "revenue", top, profit_by_mtm)),
        "revenue_by_segment": to_records(by_segment),
        "sales": to_records(selected),
        "filter_options": filter_options_for_sales(sales),
    }


def get_customer_overview(
    sales: pd.DataFrame,
    filters: dict | None = None,
    inventory: pd.DataFrame | None = None,
    today=None,
) -> dict:
    """Customer list with tiers and recency flags.

    When an inventory table (from `build_inventory`) is supplied, surplus
    models are matched to the customers who bought them before.

    Returns
    -------
    dict with keys: tier_counts, new_count, at_risk_count, customers,
    opportunities (per-customer records, each with its `items`).
    """
    today = reference_date(today)
    customers = build_customers(sales, today)
    selected = filter_customers(customers, normalize_customer_filters(filters or {}))
    tier_counts = {} if customers.empty else customers["tier"].value_counts().to_dict()

    opportunities = []
    if inventory is not None:
        items = sales_opportunities(customers, sales, inventory, today)
        by_customer = {}
        for item in to_records(items):
            by_customer.setdefault(item["customer_id"], []).append(item)
        opportunities = [
            {**summary, "items": by_customer[summary["customer_id"]]}
            for summary in to_records(customer_opportunities(items))
        ]

    return {
        "tier_counts": {k: int(v) for k, v in tier_counts.items()},
        "new_count": int(customers["is_new"].sum()) if not customers.empty else 0,
        "at_risk_count": int(customers["is_at_risk"].sum()) if not customers.empty else 0,
        "customers": to_records(selected),
        "opportunities": opportunities,
    }


def get_inventory_overview(
    orders: pd.DataFrame,
    sales: pd.DataFrame,
    serials: pd.DataFrame,
    filters: dict | None = None,
    profit_by_mtm: dict | None = None,
    today=None,
) -> dict:
    """Everything the inventory page shows.

    Accessory product lines are left out. KPIs and status counts cover
    the whole stocked catalogue; the table honours the filters.

    Returns
    -------
    dict with keys: kpis, cards, status_counts, inventory (records),
    backorders (records), promotions (records).
    """
    today = reference_date(today)
    inventory = build_inventory(orders, sales, serials, today, profit_by_mtm)
    if not inventory.empty:
        inventory = inventory[~inventory["product_line"].isin(ACCESSORY_PRODUCT_LINES)].reset_index(drop=True)
        inventory = inventory.assign(
            stock_status=[classify_stock(r) for _, r in inventory.iterrows()]
        )

    selected = filter_inventory(inventory, normalize_inventory_filters(filters or {}))
    kpis = inventory_kpis(inventory)
    counts = {status: 0 for status in STOCK_STATUSES}
    if not inventory.empty:
        for status, n in inventory["stock_status"].value_counts().items():
            counts[status] = int(n)

    return {
        "kpis": kpis,
        "cards": kpi_cards(kpis),
        "status_counts": counts,
        "inventory": to_records(selected),
        "backorders": to_records(backorder_candidates(inventory, sales, orders, today)),
        "promotions": to_records(promotion_candidates(inventory)),
    }


def get_rebate_overview(
    programs: pd.DataFrame,
    details: pd.DataFrame,
    claims: pd.DataFrame,
    sales: pd.DataFrame | None = None,
    reconciled: pd.DataFrame | None = None,
) -> dict:
    """Rebate programs, claim eligibility and serial reconciliation.

    Returns
    -------
    dict with keys: kpis, cards, programs, claims, claim_status_counts,
    utilisation, reconciliation, reconciliation_counts, profitability.
    """
    kpis = rebate_kpis(programs)
    validated = validate_claims(claims, details)
    claim_counts = {} if validated.empty else validated["status"].value_counts().to_dict()

    reconciliation = reconcile_claims(sales if sales is not None else pd.DataFrame(), claims)
    recon_counts = {} if reconciliation.empty else reconciliation["status"].value_counts().to_dict()

    return {
        "kpis": kpis,
        "cards": kpi_cards(kpis),
        "programs": to_records(programs),
        "claims": to_records(validated),
        "claim_status_counts": {k: int(v) for k, v in claim_counts.items()},
        "utilisation": to_records(program_utilisation(claims, details)),
        "reconciliation": to_records(reconciliation),
        "reconciliation_counts": {k: int(v) for k, v in recon_counts.items()},
        "profitability": profitability_kpis(reconciled) if reconciled is not None else None,
    }


def get_task_board(
    tasks: pd.DataFrame,
    filters: dict | None = None,
    today=None,
) -> dict:
    """Kanban columns after filtering and sorting, newest first by default.

    Returns
    -------
    dict with keys: columns (status -> task records, in board order) and
    counts (status -> number of cards).
    """
    raw = {"sort_by": "created_at", **(filters or {})}
    selected = filter_tasks(tasks, normalize_task_filters(raw), today=today)
    board = group_by_status(to_records(selected))
    return {
        "columns": board,
        "counts": {status: len(board[status]) for status in TASK_COLUMNS},
    }


def get_specification_breakdown(
    orders: pd.DataFrame,
    sales: pd.DataFrame,
    active: dict | None = None,
    view: str = "count",
) -> dict:
    """Attribute distributions over the catalogue, narrowed by `active` filters.

    Returns
    -------
    dict with keys: distributions (attribute -> [{name, value}]) and
    models (records of the matching MTMs).
    """
    items = filter_by_specs(build_spec_items(orders), active or {})
    return {
        "distributions": {
            key: to_records(spec_distribution(items, key, view, sales))
            for key in SPEC_KEYS
            if key != "cpu_model"
        },
        "models": to_records(items),
    }
