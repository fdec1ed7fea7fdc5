"""
Filter state and predicate evaluation for every dashboard table.

Each table has a frozen filter dataclass and a `normalize_*` builder that
turns loosely-typed UI state (plain dicts) into it. The `filter_*`
functions never mutate their input; with default (empty) filters they
return the input frame unchanged.
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Iterable

import pandas as pd

from .config import CUSTOMER_TIERS, LOW_STOCK_WEEKS, STOCK_STATUSES, TASK_COLUMNS

logger = logging.getLogger(__name__)

ORDER_SHOW_OPTIONS = (
    "all",
    "overdue",
    "delayed_production",
    "delayed_transit",
    "at_risk",
    "on_schedule",
)
CUSTOMER_STATUS_OPTIONS = ("all", "new", "at_risk", "active")
DATE_PRESETS = (
    "last30",
    "last90",
    "this_month",
    "last_month",
    "this_quarter",
    "last_quarter",
    "this_year",
    "all",
)
TASK_SORT_FIELDS = ("created_at", "due_date", "priority")

_PRIORITY_RANK = {"High": 3, "Medium": 2, "Low": 1}


@dataclass(frozen=True)
class OrderFilters:
    product_lines: list[str] = field(default_factory=list)
    factory_statuses: list[str] = field(default_factory=list)
    local_statuses: list[str] = field(default_factory=list)
    start_date: pd.Timestamp | None = None
    end_date: pd.Timestamp | None = None
    search: str = ""
    show: str = "all"


@dataclass(frozen=True)
class SalesFilters:
    buyers: list[str] = field(default_factory=list)
    segments: list[str] = field(default_factory=list)
    start_date: pd.Timestamp | None = None
    end_date: pd.Timestamp | None = None
    revenue_min: float | None = None
    revenue_max: float | None = None
    search: str = ""


@dataclass(frozen=True)
class InventoryFilters:
    product_line: str = "all"
    stock_status: str | None = None
    search: str = ""


@dataclass(frozen=True)
class CustomerFilters:
    tiers: list[str] = field(default_factory=list)
    status: str = "all"
    search: str = ""


@dataclass(frozen=True)
class TaskFilters:
    user_email: str = ""
    statuses: list[str] = field(default_factory=list)
    search: str = ""
    quick_filter: str | None = None
    sort_by: str | None = None  # None keeps the input order
    sort_dir: str = "desc"


def is_empty(filters) -> bool:
    """True when every field of `filters` still has its default value.

    A TaskFilters sort direction alone does not count; it only matters
    once a sort field is chosen.
    """
    default = type(filters)()
    for f in fields(filters):
        if f.name == "sort_dir":
            continue
        if getattr(filters, f.name) != getattr(default, f.name):
            return False
    return True


# ---------------------------------------------------------------------------
# Date windows
# ---------------------------------------------------------------------------

def date_range_for_preset(preset: str, today) -> tuple[pd.Timestamp | None, pd.Timestamp | None]:
    """Resolve a date preset to an inclusive (start, end) pair of days.

    "all" gives (None, None). Rolling windows end on `today`; "last_month"
    and "last_quarter" end on the last day of that month/quarter.
    """
    if preset not in DATE_PRESETS:
        raise ValueError(f"Unknown date preset '{preset}'")
    if preset == "all":
        return None, None

    today = pd.Timestamp(today).normalize()
    end = today
    if preset == "last30":
        start = today - pd.Timedelta(days=29)
    elif preset == "last90":
        start = today - pd.Timedelta(days=89)
    elif preset == "this_month":
        start = today.replace(day=1)
    elif preset == "last_month":
        end = today.replace(day=1) - pd.Timedelta(days=1)
        start = end.replace(day=1)
    elif preset == "this_quarter":
        start = pd.Timestamp(year=today.year, month=3 * (today.quarter - 1) + 1, day=1)
    elif preset == "last_quarter":
        this_q_start = pd.Timestamp(year=today.year, month=3 * (today.quarter - 1) + 1, day=1)
        end = this_q_start - pd.Timedelta(days=1)
        start = pd.Timestamp(year=end.year, month=3 * (end.quarter - 1) + 1, day=1)
    else:
        start = pd.Timestamp(year=today.year, month=1, day=1)
    return start, end


def date_range_for_year_quarter(year, quarter="all") -> tuple[pd.Timestamp | None, pd.Timestamp | None]:
    """Inclusive date window for a calendar year, optionally narrowed to "Q1".."Q4"."""
    if year in (None, "", "all"):
        return None, None
    year = int(year)
    if quarter in (None, "", "all"):
        return pd.Timestamp(year=year, month=1, day=1), pd.Timestamp(year=year, month=12, day=31)
    q = int(str(quarter).upper().lstrip("Q"))
    start = pd.Timestamp(year=year, month=3 * (q - 1) + 1, day=1)
    end = start + pd.offsets.QuarterEnd(0)
    return start, end


def _within(dates: pd.Series, start, end) -> pd.Series:
    """Inclusive day-range mask; rows without a date never match."""
    dates = pd.to_datetime(dates, errors="coerce")
    mask = dates.notna()
    if start is not None:
        mask &= dates >= pd.Timestamp(start).normalize()
    if end is not None:
        mask &= dates < pd.Timestamp(end).normalize() + pd.Timedelta(days=1)
    return mask


def _contains_any(df: pd.DataFrame, columns: Iterable[str], term: str) -> pd.Series:
    term = term.lower()
    mask = pd.Series(False, index=df.index)
    for col in columns:
        mask |= df[col].astype(str).str.lower().str.contains(term, regex=False)
    return mask


# ---------------------------------------------------------------------------
# Builders from UI state
# ---------------------------------------------------------------------------

def _str_list(values) -> list[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    return [str(v) for v in values if v is not None and str(v) != ""]


def _opt_float(val) -> float | None:
    if val is None or val == "":
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric filter value: %s", val)
        return None


def _resolve_dates(raw: dict, today) -> tuple[pd.Timestamp | None, pd.Timestamp | None]:
    """Explicit dates win over year/quarter, which win over a preset."""
    if raw.get("start_date") or raw.get("end_date"):
        start = pd.Timestamp(raw["start_date"]) if raw.get("start_date") else None
        end = pd.Timestamp(raw["end_date"]) if raw.get("end_date") else None
        return start, end
    if raw.get("year") not in (None, "", "all"):
        return date_range_for_year_quarter(raw["year"], raw.get("quarter", "all"))
    preset = raw.get("date_preset")
    if preset and preset != "custom":
        if preset not in DATE_PRESETS:
            logger.warning("Ignoring unknown date preset '%s'", preset)
            return None, None
        return date_range_for_preset(preset, today if today is not None else pd.Timestamp.today())
    return None, None


def normalize_order_filters(raw: dict, *, today=None) -> OrderFilters:
    show = raw.get("show") or "all"
    if show not in ORDER_SHOW_OPTIONS:
        logger.warning("Unknown order view '%s', showing all", show)
        show = "all"
    start, end = _resolve_dates(raw, today)
    return OrderFilters(
        product_lines=_str_list(raw.get("product_lines")),
        factory_statuses=_str_list(raw.get("factory_statuses")),
        local_statuses=_str_list(raw.get("local_statuses")),
        start_date=start,
        end_date=end,
        search=(raw.get("search") or "").strip(),
        show=show,
    )


def normalize_sales_filters(raw: dict, *, today=None) -> SalesFilters:
    start, end = _resolve_dates(raw, today)
    return SalesFilters(
        buyers=_str_list(raw.get("buyers")),
        segments=_str_list(raw.get("segments")),
        start_date=start,
        end_date=end,
        revenue_min=_opt_float(raw.get("revenue_min")),
        revenue_max=_opt_float(raw.get("revenue_max")),
        search=(raw.get("search") or "").strip(),
    )


def normalize_inventory_filters(raw: dict) -> InventoryFilters:
    status = raw.get("stock_status") or None
    if status == "all":
        status = None
    if status is not None and status not in STOCK_STATUSES:
        logger.warning("Unknown stock status '%s', ignoring", status)
        status = None
    return InventoryFilters(
        product_line=raw.get("product_line") or "all",
        stock_status=status,
        search=(raw.get("search") or "").strip(),
    )


def normalize_customer_filters(raw: dict) -> CustomerFilters:
    valid_tiers = {name for name, _ in CUSTOMER_TIERS}
    status = raw.get("status") or "all"
    if status not in CUSTOMER_STATUS_OPTIONS:
        status = "all"
    return CustomerFilters(
        tiers=[t for t in _str_list(raw.get("tiers")) if t in valid_tiers],
        status=status,
        search=(raw.get("search") or "").strip(),
    )


def normalize_task_filters(raw: dict) -> TaskFilters:
    sort_by = raw.get("sort_by")
    if sort_by not in TASK_SORT_FIELDS:
        sort_by = None
    sort_dir = "asc" if raw.get("sort_dir") == "asc" else "desc"
    quick = raw.get("quick_filter") or None
    if quick not in (None, "due_this_week"):
        quick = None
    return TaskFilters(
        user_email=(raw.get("user_email") or "").strip(),
        statuses=[s for s in _str_list(raw.get("statuses")) if s in TASK_COLUMNS],
        search=(raw.get("search") or "").strip(),
        quick_filter=quick,
        sort_by=sort_by,
        sort_dir=sort_dir,
    )


# ---------------------------------------------------------------------------
# Predicate evaluation
# ---------------------------------------------------------------------------

def filter_orders(orders: pd.DataFrame, filters: OrderFilters) -> pd.DataFrame:
    """Apply order filters.

    Multi-select lists match when empty or containing the row's value.
    The PI-date window includes the whole end day. `show` narrows to one
    health bucket; "overdue" is delayed in production or in transit.
    """
    if orders.empty or is_empty(filters):
        return orders

    mask = pd.Series(True, index=orders.index)
    if filters.product_lines:
        mask &= orders["product_line"].isin(filters.product_lines)
    if filters.factory_statuses:
        mask &= orders["factory_status"].isin(filters.factory_statuses)
    if filters.local_statuses:
        mask &= orders["local_status"].isin(filters.local_statuses)
    if filters.start_date is not None or filters.end_date is not None:
        mask &= _within(orders["date_issue_pi"], filters.start_date, filters.end_date)
    if filters.search:
        mask &= _contains_any(orders, ["sales_order", "mtm", "model_name"], filters.search)

    prod = orders["is_delayed_production"].astype(bool)
    transit = orders["is_delayed_transit"].astype(bool)
    risk = orders["is_at_risk"].astype(bool)
    if filters.show == "overdue":
        mask &= prod | transit
    elif filters.show == "delayed_production":
        mask &= prod
    elif filters.show == "delayed_transit":
        mask &= transit
    elif filters.show == "at_risk":
        mask &= risk
    elif filters.show == "on_schedule":
        mask &= ~(prod | transit | risk)

    return orders[mask]


def filter_sales(sales: pd.DataFrame, filters: SalesFilters) -> pd.DataFrame:
    """Apply sales filters. Buyers are matched on buyer name."""
    if sales.empty or is_empty(filters):
        return sales

    mask = pd.Series(True, index=sales.index)
    if filters.buyers:
        mask &= sales["buyer_name"].isin(filters.buyers)
    if filters.segments:
        mask &= sales["segment"].isin(filters.segments)
    if filters.start_date is not None or filters.end_date is not None:
        mask &= _within(sales["invoice_date"], filters.start_date, filters.end_date)
    if filters.revenue_min is not None:
        mask &= sales["total_revenue"] >= filters.revenue_min
    if filters.revenue_max is not None:
        mask &= sales["total_revenue"] <= filters.revenue_max
    if filters.search:
        mask &= _contains_any(
            sales, ["invoice_number", "mtm", "buyer_name", "serial_number"], filters.search
        )
    return sales[mask]


def matches_stock_status(on_hand, weeks, otw, status: str) -> bool:
    """Whether one inventory line belongs to a stock-status bucket.

    Buckets overlap: a line with no stock and units on the way is both
    "out_of_stock" and "otw".
    """
    has_weeks = weeks is not None and not pd.isna(weeks)
    if status == "oversold":
        return on_hand < 0
    if status == "otw":
        return otw > 0
    if status == "out_of_stock":
        return on_hand <= 0
    if status == "no_sales":
        return on_hand > 0 and not has_weeks
    if status == "low_stock":
        return on_hand > 0 and has_weeks and LOW_STOCK_WEEKS[0] <= weeks <= LOW_STOCK_WEEKS[1]
    if status == "critical":
        return on_hand > 0 and has_weeks and weeks < LOW_STOCK_WEEKS[0]
    if status == "healthy":
        return has_weeks and weeks > LOW_STOCK_WEEKS[1]
    raise ValueError(f"Unknown stock status '{status}'")


def filter_inventory(inventory: pd.DataFrame, filters: InventoryFilters) -> pd.DataFrame:
    if inventory.empty or is_empty(filters):
        return inventory

    mask = pd.Series(True, index=inventory.index)
    if filters.product_line != "all":
        mask &= inventory["product_line"] == filters.product_line
    if filters.stock_status:
        mask &= pd.Series(
            [
                matches_stock_status(r.on_hand_qty, r.weeks_of_inventory, r.otw_qty, filters.stock_status)
                for r in inventory.itertuples(index=False)
            ],
            index=inventory.index,
            dtype=bool,
        )
    if filters.search:
        mask &= _contains_any(inventory, ["mtm", "model_name"], filters.search)
    return inventory[mask]


def filter_customers(customers: pd.DataFrame, filters: CustomerFilters) -> pd.DataFrame:
    """Apply tier, activity status and name/id search to the customer table."""
    if customers.empty or is_empty(filters):
        return customers

    mask = pd.Series(True, index=customers.index)
    if filters.tiers:
        mask &= customers["tier"].isin(filters.tiers)
    if filters.status == "new":
        mask &= customers["is_new"].astype(bool)
    elif filters.status == "at_risk":
        mask &= customers["is_at_risk"].astype(bool)
    elif filters.status == "active":
        mask &= ~customers["is_at_risk"].astype(bool)
    if filters.search:
        mask &= _contains_any(customers, ["buyer_name", "buyer_id"], filters.search)
    return customers[mask]


def is_due_this_week(due_date, today) -> bool:
    """True when `due_date` falls in the Sunday-to-Saturday week holding `today`."""
    if due_date is None or pd.isna(due_date):
        return False
    today = pd.Timestamp(today).normalize()
    start = today - pd.Timedelta(days=(today.dayofweek + 1) % 7)
    end = start + pd.Timedelta(days=6)
    return start <= pd.Timestamp(due_date).normalize() <= end


def filter_tasks(tasks: pd.DataFrame, filters: TaskFilters, today=None) -> pd.DataFrame:
    """Filter and sort tasks for the board.

    The "due_this_week" quick filter replaces the status and search
    filters. Without a sort field rows keep their input order. Dates sort
    with missing values last in either direction. Priority sorts High
    first when ascending.
    """
    if tasks.empty or is_empty(filters):
        return tasks

    mask = pd.Series(True, index=tasks.index)
    if filters.user_email:
        mask &= tasks["user_email"].str.lower() == filters.user_email.lower()
    if filters.quick_filter == "due_this_week":
        today = pd.Timestamp.today() if today is None else today
        mask &= tasks["due_date"].map(lambda d: is_due_this_week(d, today)).astype(bool)
    else:
        if filters.statuses:
            mask &= tasks["status"].isin(filters.statuses)
        if filters.search:
            mask &= _contains_any(tasks, ["title", "description"], filters.search)
    out = tasks[mask]
    if filters.sort_by is None:
        return out

    ascending = filters.sort_dir == "asc"
    if filters.sort_by == "priority":
        rank = out["priority"].map(_PRIORITY_RANK).fillna(0)
        order = rank.sort_values(ascending=not ascending, kind="mergesort").index
        return out.loc[order]
    return out.sort_values(
        filters.sort_by, ascending=ascending, na_position="last", kind="mergesort"
    )
