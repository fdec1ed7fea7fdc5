"""
Distributor Dashboard: end-to-end analytics pipeline.

Runs the full data pipeline from source exports to dashboard-ready outputs
and prints smoke-test summaries. When the export files are not present
under DATA_DIR, simulated exports are used instead.

Usage:
    python main.py
"""

import logging
import sys
from pathlib import Path

import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from distributor_dashboard.config import (
    ORDERS_FILE,
    REBATE_CLAIMS_FILE,
    REBATE_DETAILS_FILE,
    REBATE_PROGRAMS_FILE,
    SALES_FILE,
    SERIALS_FILE,
    TASKS_FILE,
)
from distributor_dashboard.loaders import (
    parse_orders,
    parse_rebate_claims,
    parse_rebate_details,
    parse_rebate_programs,
    parse_sales,
    parse_serials,
    parse_tasks,
    read_table,
)
from distributor_dashboard.rebates import profit_by_mtm, reconcile_sales
from distributor_dashboard.simulator import generate_all
from distributor_dashboard.transforms import build_inventory
from distributor_dashboard.dashboard import (
    get_customer_overview,
    get_inventory_overview,
    get_order_overview,
    get_rebate_overview,
    get_sales_overview,
    get_specification_breakdown,
    get_task_board,
)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

_SOURCES = {
    "orders": ORDERS_FILE,
    "serials": SERIALS_FILE,
    "sales": SALES_FILE,
    "rebate_programs": REBATE_PROGRAMS_FILE,
    "rebate_details": REBATE_DETAILS_FILE,
    "rebate_claims": REBATE_CLAIMS_FILE,
    "tasks": TASKS_FILE,
}


def load_raw_sources(today: pd.Timestamp) -> dict[str, pd.DataFrame]:
    """Raw exports from DATA_DIR, or simulated ones if any file is missing."""
    missing = [str(p) for p in _SOURCES.values() if not Path(p).exists()]
    if missing:
        logger.warning("Source exports not found (%s), using simulated data", ", ".join(missing))
        return generate_all(today)
    return {name: read_table(path) for name, path in _SOURCES.items()}


def _print_cards(cards: list[dict]) -> None:
    for card in cards:
        print(f"  {card['label']:24s} {card['display']}")


def main() -> None:
    """Run the full analytics pipeline and print smoke-test outputs."""

    today = pd.Timestamp.today().normalize()

    print("=" * 70)
    print("  DISTRIBUTOR DASHBOARD")
    print("  Analytics Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Load source data
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING SOURCE DATA")
    print("-" * 40)

    raw = load_raw_sources(today)
    orders = parse_orders(raw["orders"], today=today)
    serials = parse_serials(raw["serials"])
    sales = parse_sales(raw["sales"])
    programs = parse_rebate_programs(raw["rebate_programs"])
    details = parse_rebate_details(raw["rebate_details"])
    claims = parse_rebate_claims(raw["rebate_claims"])
    tasks = parse_tasks(raw["tasks"], now=today)

    for name, table in (
        ("Orders", orders),
        ("Serials", serials),
        ("Sales", sales),
        ("Rebate programs", programs),
        ("Rebate details", details),
        ("Rebate claims", claims),
        ("Tasks", tasks),
    ):
        print(f"{name}: {len(table)} rows loaded")

    # ------------------------------------------------------------------
    # 2. Profit reconciliation
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] PROFIT RECONCILIATION")
    print("-" * 40)

    reconciled = reconcile_sales(sales, orders, serials, details, claims)
    profits = profit_by_mtm(reconciled)
    if not reconciled.empty:
        print(reconciled["status"].value_counts().to_string())

    # ------------------------------------------------------------------
    # 3. Dashboard outputs
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] DASHBOARD OUTPUTS")
    print("-" * 40)

    order_view = get_order_overview(orders, {"date_preset": "all"}, today=today)
    print("\nOrders:")
    _print_cards(order_view["cards"])

    sales_view = get_sales_overview(
        sales, {}, granularity="monthly", reconciled=reconciled, profit_by_mtm=profits, today=today
    )
    print("\nSales:")
    _print_cards(sales_view["cards"])
    print("\nMonthly breakdown:")
    for row in sales_view["period_breakdown"]:
        growth = "n/a" if row["growth"] is None else f"{row['growth']:+.1f}%"
        print(f"  {row['label']:10s} {row['revenue']:>14,.2f}  {growth}")
    print("\nTop buyers:")
    for row in sales_view["top_buyers"][:5]:
        print(f"  {row['buyer_name']:28s} {row['revenue']:>14,.2f}")

    stock = build_inventory(orders, sales, serials, today, profits)
    customer_view = get_customer_overview(sales, {}, inventory=stock, today=today)
    print(f"\nCustomer tiers: {customer_view['tier_counts']}")
    print(f"  Customers with surplus-stock opportunities: {len(customer_view['opportunities'])}")

    inventory_view = get_inventory_overview(orders, sales, serials, {}, profit_by_mtm=profits, today=today)
    print("\nInventory:")
    _print_cards(inventory_view["cards"])
    print(f"  Stock status counts: {inventory_view['status_counts']}")
    print(f"  Backorder candidates: {len(inventory_view['backorders'])}")
    print(f"  Promotion candidates: {len(inventory_view['promotions'])}")

    rebate_view = get_rebate_overview(programs, details, claims, sales, reconciled)
    print("\nRebates:")
    _print_cards(rebate_view["cards"])
    print(f"  Claim statuses: {rebate_view['claim_status_counts']}")
    print(f"  Reconciliation: {rebate_view['reconciliation_counts']}")

    board = get_task_board(tasks, {"sort_by": "priority", "sort_dir": "asc"}, today=today)
    print("\nTask board:")
    for status, count in board["counts"].items():
        print(f"  {status:12s} {count}")

    spec_view = get_specification_breakdown(orders, sales, view="revenue")
    print("\nRevenue by CPU family:")
    for row in spec_view["distributions"]["cpu_family"]:
        print(f"  {row['name']:16s} {row['value']:>14,.2f}")

    # ------------------------------------------------------------------
    # 4. Consistency checks
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] CONSISTENCY CHECKS")
    print("-" * 40)

    check1 = len(sales_view["top_buyers"]) <= 15
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] Top buyers capped at 15 ({len(sales_view['top_buyers'])})")

    total = sum(r["revenue"] for r in sales_view["top_buyers"])
    check2 = total <= sales_view["kpis"]["total_revenue"] + 1e-6
    print(f"  [{'PASS' if check2 else 'FAIL'}] Top-buyer revenue within total revenue")

    check3 = sum(board["counts"].values()) == len(tasks)
    print(f"  [{'PASS' if check3 else 'FAIL'}] Every task is on the board ({len(tasks)})")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)


if __name__ == "__main__":
    main()
