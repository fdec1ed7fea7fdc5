"""Shared fixtures: small raw exports parsed through the loaders."""

import pandas as pd
import pytest

from distributor_dashboard.loaders import (
    parse_orders,
    parse_rebate_claims,
    parse_rebate_details,
    parse_rebate_programs,
    parse_sales,
    parse_serials,
    parse_tasks,
)

# Wednesday; its Sunday-to-Saturday week runs 2025-06-15 .. 2025-06-21
TODAY = pd.Timestamp("2025-06-18")

SPEC_I5 = 'Core i5-1335U, 16GB DDR4, 512GB SSD, 14" FHD IPS, Win11 Pro'
SPEC_I7 = 'Core i7-1355U, 32GB DDR5, 1TB SSD, 16" WUXGA OLED, RTX 4060 8GB, Win11 Home'
SPEC_CELERON = 'Celeron N4500, 8GB LPDDR4x, 256GB SSD, 15.6" FHD, Integrated Graphics, NoOS'

_ORDER_ROWS = [
    # line, SO, MTM, model, spec, qty, FOB, landing, factory, local, ship, PI, ETA, arrival
    ("ThinkPad", "SO1001", "AAA1", "ThinkPad E14", SPEC_I5, "10", "$100.00", "$110.00",
     "Delivered", "Received", "03/01/2025", "2025-02-01", "2025-03-20", "2025-03-22"),
    ("ThinkBook", "SO1001", "BBB2", "ThinkBook 16", SPEC_I7, "5", "$200.00", "",
     "Delivered", "Received", "03/01/2025", "2025-02-01", "2025-03-20", "2025-03-18"),
    ("ThinkPad", "SO1002", "AAA1", "ThinkPad E14", SPEC_I5, "4", "$100.00", "$110.00",
     "Shipped", "In Transit", "05/20/2025", "2025-04-25", "2025-06-10", ""),
    ("IdeaPad", "so1003", "CCC3", "IdeaPad Slim 3", SPEC_CELERON, "6", "50", "55",
     "In Production", "Pending", "06/10/2025", "2025-05-10", "2025-07-01", ""),
    ("IdeaPad", "SO1004", "CCC3", "IdeaPad Slim 3", SPEC_CELERON, "3", "50", "55",
     "In Production", "Pending", "06/18/2025", "2025-06-01", "2025-07-10", ""),
    ("Mouse", "SO1005", "MSE1", "Bluetooth Mouse", "", "20", "5", "6",
     "Cancelled", "Cancelled", "05/01/2025", "2025-04-01", "", ""),
    ("ThinkPad", "", "AAA1", "ThinkPad E14", SPEC_I5, "1", "100", "110",
     "Shipped", "", "", "", "", ""),
]

_ORDER_HEADERS = [
    "Product Line", "Sales Order Number", "Product ID", "Model Name", "Specification",
    "Shipping Quantity", "Unit Price", "Add on Unit Price", "Status to SGP", "Status to KH",
    "Schedule ship date", "Order Receipt Date", "ETA", "Actual Arrival",
]

_SALE_HEADERS = [
    "Invoice Date", "Quantity", "Buyer ID", "Buyer Name", "Invoice Number",
    "Serial Number / Barcode", "Model Name", "Lenovo Product Number", "Segment",
    "Unit BP Reported Price", "Total BP Reported Rev", "Local Currency",
]

_SALE_ROWS = [
    ("2025-06-01", "1", "B01", "Alpha Traders", "inv-1", "1saaa1s1", "ThinkPad E14", "aaa1",
     "Retail", "150", "150", "USD"),
    ("2025-06-01", "1", "B01", "Alpha Traders", "INV-1", "1SAAA1S2", "ThinkPad E14", "AAA1",
     "Retail", "150", "150", "USD"),
    ("2025-05-10", "1", "B02", "Beta Corp", "INV-2", "1SBBB2B1", "ThinkBook 16", "BBB2",
     "Corporate", "300", "300", "USD"),
    ("2025-01-15", "1", "B03", "Gamma Shop", "INV-3", "1SAAA1S9", "ThinkPad E14", "AAA1",
     "SMB", "140", "140", "USD"),
    ("2025-06-02", "1", "B03", "Gamma Shop", "", "1SAAA1S3", "ThinkPad E14", "AAA1",
     "SMB", "140", "140", "USD"),
]


def raw_frame(headers, rows) -> pd.DataFrame:
    return pd.DataFrame([dict(zip(headers, r)) for r in rows])


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def raw_orders():
    return raw_frame(_ORDER_HEADERS, _ORDER_ROWS)


@pytest.fixture
def orders(raw_orders):
    return parse_orders(raw_orders, today=TODAY)


@pytest.fixture
def raw_sales():
    return raw_frame(_SALE_HEADERS, _SALE_ROWS)


@pytest.fixture
def sales(raw_sales):
    return parse_sales(raw_sales)


@pytest.fixture
def serials():
    rows = [("SO1001", "AAA1", f"S{i}", f"1SAAA1S{i}") for i in range(1, 5)]
    rows += [("SO1001", "BBB2", f"B{i}", f"1SBBB2B{i}") for i in range(1, 3)]
    rows += [("SO1002", "AAA1", "T1", "1SAAA1T1")]
    return parse_serials(raw_frame(["SO", "MTM", "SN", "Serialization"], rows))


@pytest.fixture
def programs():
    headers = [
        "Program", "Lenovo Quarter", "Program Start Date", "Program End Date", "Rebate Earned",
        "Status", "Update", "Credit No.", "Remark", "Program Duration", "Per Unit",
    ]
    rows = [
        ("Q1 Sell-out", "Q1", "2025-01-01", "2025-03-31", "$1,200.00", "Closed", "Paid", "CN-1", "", "90", ""),
        ("Q2 Sell-out", "Q2", "2025-04-01", "2025-06-30", "", "Open", "Pending payment", "", "", "91", ""),
        ("Q4 Sell-out", "Q4", "2024-10-01", "2024-12-31", "800", "Closed", "PENDING credit", "", "late", "92", "12"),
    ]
    return parse_rebate_programs(raw_frame(headers, rows))


@pytest.fixture
def details():
    headers = [
        "Program Code", "MTM", "Start Date", "End Date", "Program Max",
        "Program Reported (LPH)", "Per Unit",
    ]
    rows = [
        ("P-Q2-1", "AAA1", "2025-04-01", "2025-06-30", "50", "1", "20"),
        ("P-Q2-2", "BBB2", "2025-06-01", "2025-06-30", "", "", "30"),
        ("P-Q1-1", "AAA1", "2025-01-01", "2025-03-31", "40", "0", "10"),
    ]
    return parse_rebate_details(raw_frame(headers, rows))


@pytest.fixture
def claims():
    headers = [
        "rebateMTM", "rebateInvoiceDate", "rebateQuantity", "rebateBuyer ID",
        "rebateInvoice Number", "rebateSerial Number", "rebateUnit BP Reported Price",
    ]
    rows = [
        ("AAA1", "2025-06-01", "1", "B01", "INV-1", "1SAAA1S1", "150"),
        ("BBB2", "2025-05-10", "1", "B02", "INV-2", "1SBBB2B1", "300"),
        ("CCC3", "2025-06-02", "1", "B09", "EXT-1", "1SCCC3X1", "50"),
        ("AAA1", "2025-01-16", "1", "B03", "INV-3", "1SAAA1S9", "140"),
    ]
    return parse_rebate_claims(raw_frame(headers, rows))


@pytest.fixture
def raw_tasks():
    headers = [
        "Unique ID", "Title", "description", "Status", "Priority", "createdAt", "timestamp",
        "completedAt", "user_email", "Start Date", "Due Date", "Dependencies", "Icon", "#Progress",
    ]
    rows = [
        ("t1", "Order stock", "Reorder IdeaPad", "Todo", "High", "2025-06-01", "2025-06-02",
         "", "a@x.com", "2025-06-01", "2025-06-20", "", "", "10"),
        ("t2", "Call buyer", "Follow up on quote", "In Progress", "Low", "2025-06-05", "",
         "", "a@x.com", "", "2025-06-25", "t1, t3", "📞", "50"),
        ("t3", "Rebate file", "Upload claim serials", "Done", "Urgent", "2025-05-01", "2025-06-10",
         "2025-06-10", "b@x.com", "", "", "", "", "100"),
        ("t4", "Stock count", "Warehouse check", "Paused", "Medium", "2025-06-10", "",
         "", "A@X.com", "", "2025-06-15", "", "", ""),
        ("", "Orphan", "", "Planning", "Low", "", "", "", "a@x.com", "", "", "", "", ""),
    ]
    return raw_frame(headers, rows)


@pytest.fixture
def tasks(raw_tasks):
    return parse_tasks(raw_tasks, now=TODAY)


@pytest.fixture
def task_list(tasks):
    return tasks.to_dict("records")
