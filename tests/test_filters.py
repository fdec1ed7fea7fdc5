"""Tests for filter state and predicate evaluation."""

import pandas as pd
import pytest

from distributor_dashboard.filters import (
    CustomerFilters,
    InventoryFilters,
    OrderFilters,
    SalesFilters,
    TaskFilters,
    date_range_for_preset,
    date_range_for_year_quarter,
    filter_customers,
    filter_inventory,
    filter_orders,
    filter_sales,
    filter_tasks,
    is_due_this_week,
    is_empty,
    matches_stock_status,
    normalize_customer_filters,
    normalize_inventory_filters,
    normalize_order_filters,
    normalize_sales_filters,
    normalize_task_filters,
)


@pytest.fixture
def inventory():
    return pd.DataFrame({
        "mtm": ["AAA1", "BBB2", "CCC3", "DDD4"],
        "model_name": ["ThinkPad E14", "ThinkBook 16", "IdeaPad Slim 3", "Legion 5"],
        "product_line": ["ThinkPad", "ThinkBook", "IdeaPad", "Legion"],
        "on_hand_qty": [10, 3, 0, -1],
        "weeks_of_inventory": pd.Series([20, 2, None, None], dtype=object),
        "otw_qty": [0, 0, 5, 0],
    })


@pytest.fixture
def customers():
    return pd.DataFrame({
        "buyer_id": ["B01", "B02", "B03"],
        "buyer_name": ["Alpha Traders", "Beta Corp", "Gamma Shop"],
        "tier": ["Platinum", "Silver", "Bronze"],
        "is_new": [True, False, False],
        "is_at_risk": [False, False, True],
    })


class TestEmptyFilters:
    """Default filters hand back the input untouched."""

    def test_task_sort_counts_as_a_filter(self):
        assert not is_empty(TaskFilters(sort_by="priority", sort_dir="asc"))
        assert is_empty(TaskFilters(sort_dir="asc"))
        assert not is_empty(TaskFilters(search="x"))

    def test_orders_identity(self, orders):
        assert filter_orders(orders, OrderFilters()) is orders

    def test_sales_identity(self, sales):
        assert filter_sales(sales, SalesFilters()) is sales

    def test_inventory_identity(self, inventory):
        assert filter_inventory(inventory, InventoryFilters()) is inventory

    def test_customers_identity(self, customers):
        assert filter_customers(customers, CustomerFilters()) is customers

    def test_tasks_identity(self, tasks):
        assert filter_tasks(tasks, TaskFilters()) is tasks
        assert filter_tasks(tasks, normalize_task_filters({})) is tasks

    def test_normalized_blank_state_is_empty(self, today):
        assert is_empty(normalize_order_filters({}, today=today))
        assert is_empty(normalize_sales_filters({"date_preset": "all"}, today=today))
        assert is_empty(normalize_inventory_filters({"stock_status": "all"}))


class TestDateWindows:
    """Preset and calendar windows."""

    @pytest.mark.parametrize(
        "preset,start,end",
        [
            ("last30", "2025-05-20", "2025-06-18"),
            ("last90", "2025-03-21", "2025-06-18"),
            ("this_month", "2025-06-01", "2025-06-18"),
            ("last_month", "2025-05-01", "2025-05-31"),
            ("this_quarter", "2025-04-01", "2025-06-18"),
            ("last_quarter", "2025-01-01", "2025-03-31"),
            ("this_year", "2025-01-01", "2025-06-18"),
        ],
    )
    def test_presets(self, today, preset, start, end):
        assert date_range_for_preset(preset, today) == (pd.Timestamp(start), pd.Timestamp(end))

    def test_all_is_open(self, today):
        assert date_range_for_preset("all", today) == (None, None)

    def test_unknown_preset(self, today):
        with pytest.raises(ValueError):
            date_range_for_preset("last_decade", today)

    def test_last_quarter_crosses_year(self):
        assert date_range_for_preset("last_quarter", "2025-02-10") == (
            pd.Timestamp("2024-10-01"),
            pd.Timestamp("2024-12-31"),
        )

    def test_year_quarter(self):
        assert date_range_for_year_quarter(2024, "Q4") == (pd.Timestamp("2024-10-01"), pd.Timestamp("2024-12-31"))
        assert date_range_for_year_quarter("2025") == (pd.Timestamp("2025-01-01"), pd.Timestamp("2025-12-31"))
        assert date_range_for_year_quarter("all") == (None, None)


class TestFilterOrders:
    """Order predicates."""

    def test_product_lines(self, orders):
        out = filter_orders(orders, OrderFilters(product_lines=["IdeaPad"]))
        assert set(out["sales_order"]) == {"SO1003", "SO1004"}

    def test_date_window_includes_end_day(self, orders, today):
        f = normalize_order_filters({"start_date": "2025-04-25", "end_date": "2025-05-10"}, today=today)
        out = filter_orders(orders, f)
        assert set(out["sales_order"]) == {"SO1002", "SO1003"}

    def test_year_quarter_state(self, orders, today):
        f = normalize_order_filters({"year": 2025, "quarter": "Q1"}, today=today)
        assert set(filter_orders(orders, f)["sales_order"]) == {"SO1001"}

    def test_search_is_case_insensitive(self, orders):
        out = filter_orders(orders, OrderFilters(search="e14"))
        assert set(out["sales_order"]) == {"SO1001", "SO1002"}

    @pytest.mark.parametrize(
        "show,expected",
        [
            ("overdue", {"SO1002", "SO1003"}),
            ("delayed_production", {"SO1003"}),
            ("delayed_transit", {"SO1002"}),
            ("at_risk", {"SO1004"}),
            ("on_schedule", {"SO1001", "SO1005"}),
        ],
    )
    def test_show(self, orders, show, expected):
        assert set(filter_orders(orders, OrderFilters(show=show))["sales_order"]) == expected

    def test_unknown_show_falls_back_to_all(self, today):
        assert normalize_order_filters({"show": "late"}, today=today).show == "all"

    def test_input_not_mutated(self, orders):
        before = orders.copy()
        filter_orders(orders, OrderFilters(product_lines=["ThinkPad"], show="overdue"))
        pd.testing.assert_frame_equal(orders, before)


class TestFilterSales:
    """Sales predicates."""

    def test_buyers_by_name(self, sales):
        out = filter_sales(sales, SalesFilters(buyers=["Alpha Traders"]))
        assert len(out) == 2

    def test_revenue_range(self, sales):
        out = filter_sales(sales, normalize_sales_filters({"revenue_min": "200"}))
        assert out["total_revenue"].tolist() == [300.0]

    def test_non_numeric_revenue_ignored(self):
        assert normalize_sales_filters({"revenue_max": "lots"}).revenue_max is None

    def test_preset(self, sales, today):
        out = filter_sales(sales, normalize_sales_filters({"date_preset": "last30"}, today=today))
        assert out["invoice_number"].tolist() == ["INV-1", "INV-1"]

    def test_search_serial(self, sales):
        out = filter_sales(sales, SalesFilters(search="s9"))
        assert out["serial_number"].tolist() == ["1SAAA1S9"]


class TestStockStatus:
    """Overlapping stock buckets."""

    @pytest.mark.parametrize(
        "on_hand,weeks,otw,status,expected",
        [
            (-2, None, 0, "oversold", True),
            (0, None, 5, "otw", True),
            (0, None, 5, "out_of_stock", True),
            (3, None, 0, "no_sales", True),
            (3, 4, 0, "low_stock", True),
            (3, 12, 0, "low_stock", True),
            (3, 3, 0, "low_stock", False),
            (3, 3, 0, "critical", True),
            (3, 13, 0, "healthy", True),
            (3, 12, 0, "healthy", False),
        ],
    )
    def test_buckets(self, on_hand, weeks, otw, status, expected):
        assert matches_stock_status(on_hand, weeks, otw, status) is expected

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            matches_stock_status(1, 1, 0, "plenty")

    def test_filter_inventory(self, inventory):
        out = filter_inventory(inventory, InventoryFilters(stock_status="critical"))
        assert out["mtm"].tolist() == ["BBB2"]

    def test_stock_status_with_search(self, inventory):
        out = filter_inventory(inventory, InventoryFilters(stock_status="out_of_stock", search="legion"))
        assert out["mtm"].tolist() == ["DDD4"]

    def test_unknown_status_state_is_ignored(self):
        assert normalize_inventory_filters({"stock_status": "plenty"}).stock_status is None


class TestFilterCustomers:
    def test_status_and_tier(self, customers):
        assert filter_customers(customers, CustomerFilters(status="new"))["buyer_id"].tolist() == ["B01"]
        assert filter_customers(customers, CustomerFilters(status="active"))["buyer_id"].tolist() == ["B01", "B02"]
        f = normalize_customer_filters({"tiers": ["Bronze", "Tin"]})
        assert f.tiers == ["Bronze"]
        assert filter_customers(customers, f)["buyer_id"].tolist() == ["B03"]


class TestFilterTasks:
    """Task filtering and sorting."""

    def test_user_email_case_insensitive(self, tasks):
        out = filter_tasks(tasks, TaskFilters(user_email="A@x.com"))
        assert set(out["id"]) == {"t1", "t2", "t4"}

    def test_status_and_search(self, tasks):
        assert filter_tasks(tasks, TaskFilters(statuses=["Done"]))["id"].tolist() == ["t3"]
        assert filter_tasks(tasks, TaskFilters(search="WAREHOUSE"))["id"].tolist() == ["t4"]

    def test_due_this_week_overrides_status(self, tasks, today):
        f = TaskFilters(statuses=["Done"], quick_filter="due_this_week")
        assert set(filter_tasks(tasks, f, today=today)["id"]) == {"t1", "t4"}

    def test_week_runs_sunday_to_saturday(self, today):
        assert is_due_this_week("2025-06-15", today)
        assert is_due_this_week("2025-06-21", today)
        assert not is_due_this_week("2025-06-14", today)
        assert not is_due_this_week(None, today)

    def test_created_at_sort_newest_first(self, tasks):
        out = filter_tasks(tasks, TaskFilters(sort_by="created_at"))
        assert out["id"].tolist() == ["t4", "t2", "t1", "t3"]

    def test_due_date_missing_last(self, tasks):
        asc = filter_tasks(tasks, TaskFilters(sort_by="due_date", sort_dir="asc"))
        desc = filter_tasks(tasks, TaskFilters(sort_by="due_date", sort_dir="desc"))
        assert asc["id"].tolist() == ["t4", "t1", "t2", "t3"]
        assert desc["id"].tolist() == ["t2", "t1", "t4", "t3"]

    def test_priority_ascending_puts_high_first(self, tasks):
        asc = filter_tasks(tasks, TaskFilters(sort_by="priority", sort_dir="asc"))
        desc = filter_tasks(tasks, TaskFilters(sort_by="priority", sort_dir="desc"))
        assert asc["id"].tolist() == ["t1", "t3", "t4", "t2"]
        assert desc["id"].tolist() == ["t2", "t3", "t4", "t1"]

    def test_normalize_rejects_unknown_values(self):
        f = normalize_task_filters({"sort_by": "title", "quick_filter": "overdue", "statuses": ["Done", "Todo"]})
        assert f.sort_by is None
        assert f.quick_filter is None
        assert f.statuses == ["Done"]
