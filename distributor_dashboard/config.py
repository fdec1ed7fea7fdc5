"""
Configuration: source paths, sheet header maps, vocabularies, KPI registry.

HEADER maps translate the raw column labels of each spreadsheet export to
the canonical snake_case columns used throughout the package.
"""

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# File paths: override the directory with DASHBOARD_DATA_DIR
# ---------------------------------------------------------------------------
DATA_DIR = Path(os.environ.get("DASHBOARD_DATA_DIR", Path(__file__).resolve().parent.parent / "data"))

ORDERS_FILE = DATA_DIR / "orders.csv"
SALES_FILE = DATA_DIR / "sales.csv"
SERIALS_FILE = DATA_DIR / "serialization.csv"
REBATE_PROGRAMS_FILE = DATA_DIR / "rebate_programs.csv"
REBATE_DETAILS_FILE = DATA_DIR / "rebate_details.csv"
REBATE_CLAIMS_FILE = DATA_DIR / "rebate_sales.csv"
TASKS_FILE = DATA_DIR / "tasks.csv"

# ---------------------------------------------------------------------------
# Missing-value handling
# ---------------------------------------------------------------------------
MISSING = "N/A"

# ---------------------------------------------------------------------------
# Raw sheet headers -> canonical columns
# ---------------------------------------------------------------------------
ORDER_HEADERS: dict[str, str] = {
    "Product Line": "product_line",
    "Sales Order Number": "sales_order",
    "Product ID": "mtm",
    "Model Name": "model_name",
    "Specification": "specification",
    "Shipping Quantity": "qty",
    "Unit Price": "fob_unit_price",
    "Add on Unit Price": "landing_cost_unit_price",
    "Status to SGP": "factory_status",
    "Status to KH": "local_status",
    "Schedule ship date": "ship_date",
    "Order Receipt Date": "date_issue_pi",
    "ETA": "eta",
    "Actual Arrival": "actual_arrival",
    "Delivery Number": "delivery_number",
}

SALE_HEADERS: dict[str, str] = {
    "Invoice Date": "invoice_date",
    "Quantity": "quantity",
    "Buyer ID": "buyer_id",
    "Buyer Name": "buyer_name",
    "Invoice Number": "invoice_number",
    "Serial Number / Barcode": "serial_number",
    "Model Name": "model_name",
    "Lenovo Product Number": "mtm",
    "Segment": "segment",
    "Unit BP Reported Price": "unit_price",
    "Total BP Reported Rev": "total_revenue",
    "Local Currency": "local_currency",
}

SERIAL_HEADERS: dict[str, str] = {
    "SO": "sales_order",
    "MTM": "mtm",
    "SN": "serial_number",
    "Serialization": "full_serial",
}

REBATE_PROGRAM_HEADERS: dict[str, str] = {
    "Program": "program",
    "Lenovo Quarter": "lenovo_quarter",
    "Program Start Date": "start_date",
    "Program End Date": "end_date",
    "Rebate Earned": "rebate_earned",
    "Status": "status",
    "Update": "update",
    "Credit No.": "credit_no",
    "Remark": "remark",
    "Program Duration": "duration",
    "Per Unit": "per_unit",
}

REBATE_DETAIL_HEADERS: dict[str, str] = {
    "Program Code": "program_code",
    "MTM": "mtm",
    "Start Date": "start_date",
    "End Date": "end_date",
    "Program Max": "program_max",
    "Program Reported (LPH)": "program_reported",
    "Per Unit": "per_unit",
}

REBATE_CLAIM_HEADERS: dict[str, str] = {
    "rebateMTM": "mtm",
    "rebateInvoiceDate": "invoice_date",
    "rebateQuantity": "quantity",
    "rebateBuyer ID": "buyer_id",
    "rebateInvoice Number": "invoice_number",
    "rebateSerial Number": "serial_number",
    "rebateUnit BP Reported Price": "unit_price",
}

# Task headers are matched loosely (case, spaces, underscores and '#' ignored)
TASK_HEADERS: dict[str, str] = {
    "unique_id": "id",
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "createdAt": "created_at",
    "timestamp": "updated_at",
    "completedAt": "completed_at",
    "user_email": "user_email",
    "Start Date": "start_date",
    "Due Date": "due_date",
    "Dependencies": "dependencies",
    "Icon": "icon",
    "# Progress": "progress",
}

# ---------------------------------------------------------------------------
# Order health
# ---------------------------------------------------------------------------
NON_ACTIONABLE_FACTORY_STATUSES = {"Cancelled", "Customer Action"}
LEFT_FACTORY_STATUSES = {"Shipped", "Delivered"}

# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------
TASK_COLUMNS = ["Planning", "In Progress", "Paused", "Done", "Canceled", "Backlog"]
TASK_PRIORITIES = ["Low", "Medium", "High"]
DEFAULT_TASK_STATUS = "Planning"
DEFAULT_TASK_PRIORITY = "Medium"
DEFAULT_TASK_ICON = "📄"

# ---------------------------------------------------------------------------
# Periods and ranking
# ---------------------------------------------------------------------------
GRANULARITIES = ("weekly", "monthly", "quarterly")

# How many of the most recent periods the breakdown shows
PERIOD_LIMITS: dict[str, int] = {
    "quarterly": 4,
    "monthly": 6,
    "weekly": 8,
}

DEFAULT_TOP_N = 15

BACKLOG_AGE_BUCKETS = [
    ("0-30 days", 30),
    ("31-60 days", 60),
    ("61-90 days", 90),
    ("91-120 days", 120),
    ("120+ days", None),
]

# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------
RUN_RATE_WINDOW_DAYS = 90
LOW_STOCK_WEEKS = (4, 12)  # [critical below, healthy above]

STOCK_STATUSES = (
    "oversold",
    "otw",
    "out_of_stock",
    "no_sales",
    "low_stock",
    "critical",
    "healthy",
)

# Product lines that are accessories, not stocked models
ACCESSORY_PRODUCT_LINES = {"Backpack", "Mouse"}

# Promotion candidates
PRE_LAUNCH_MAX_ON_HAND = 5
PRE_LAUNCH_MIN_OTW_QTY = 20
PRE_LAUNCH_MIN_OTW_VALUE = 10_000
PROMOTION_PRIORITIES = ("Urgent", "Pre-Launch", "Recommended", "Optional")  # display order

# Customer sales opportunities: models with more than this on hand
SURPLUS_STOCK_QTY = 25

# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------
# Cumulative share of customers (ranked by revenue) per tier
CUSTOMER_TIERS = [
    ("Platinum", 0.05),
    ("Gold", 0.20),
    ("Silver", 0.50),
    ("Bronze", 1.00),
]
NEW_CUSTOMER_DAYS = 90
AT_RISK_CUSTOMER_DAYS = 180
TIER_SCORES = {"Platinum": 4, "Gold": 3, "Silver": 2, "Bronze": 1}

# ---------------------------------------------------------------------------
# KPI Registry
# ---------------------------------------------------------------------------
# label: card title
# fmt: "currency", "number", "percent" or "days"
KPI_REGISTRY: dict[str, dict] = {
    "total_fob_value": {"label": "Total FOB Value", "fmt": "currency"},
    "total_landing_cost_value": {"label": "Total Landed Cost", "fmt": "currency"},
    "backlog_value": {"label": "Total Backlog Value", "fmt": "currency"},
    "open_units": {"label": "Open Units", "fmt": "number"},
    "delayed_orders_count": {"label": "Delayed Orders", "fmt": "number"},
    "at_risk_orders_count": {"label": "At-Risk Orders", "fmt": "number"},
    "average_lead_time": {"label": "Avg. Lead Time", "fmt": "days"},
    "on_time_arrival_rate": {"label": "On-Time Arrival", "fmt": "percent"},
    "avg_order_value": {"label": "Avg. Order Value", "fmt": "currency"},
    "total_revenue": {"label": "Total Revenue", "fmt": "currency"},
    "total_units": {"label": "Units Sold", "fmt": "number"},
    "invoice_count": {"label": "Invoices", "fmt": "number"},
    "average_sale_price_per_unit": {"label": "Avg. Sale Price", "fmt": "currency"},
    "unique_buyers_count": {"label": "Unique Buyers", "fmt": "number"},
    "total_profit": {"label": "Total Profit", "fmt": "currency"},
    "average_gross_margin": {"label": "Gross Margin", "fmt": "percent"},
    "total_onhand_value": {"label": "On-Hand Value", "fmt": "currency"},
    "total_otw_value": {"label": "On-the-Way Value", "fmt": "currency"},
    "total_earned": {"label": "Total Rebates Earned", "fmt": "currency"},
    "total_pending_value": {"label": "Pending Value", "fmt": "currency"},
}
