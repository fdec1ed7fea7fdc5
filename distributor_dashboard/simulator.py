"""
Simulated data generator for the distributor dashboard.

Produces raw exports (with the sheets' own headers and text cells) for
orders, serialization, sales, rebate programs, rebate details, rebate
claims and tasks, so the full pipeline can run without source files.
All values are synthetic. The same seed and `today` always give the same
exports.
"""

import numpy as np
import pandas as pd

from .loaders.utils import reference_date

_SEED = 42

# ---------------------------------------------------------------------------
# Catalogue: (product line, MTM, model name, specification, FOB, landing cost)
# ---------------------------------------------------------------------------
_MODELS = [
    ("ThinkPad", "21KCS0A100", "ThinkPad E14 Gen 5",
     'Core i5-1335U, 16GB DDR4, 512GB SSD, 14" WUXGA IPS, Intel UHD Graphics, Win11 Pro', 640.0, 672.0),
    ("ThinkPad", "21KCS0A200", "ThinkPad E14 Gen 5",
     'Core i7-1355U, 16GB DDR4, 1TB SSD, 14" WUXGA IPS, Intel UHD Graphics, Win11 Pro', 815.0, 850.0),
    ("ThinkPad", "21MLS0B300", "ThinkPad T14 Gen 5",
     'Core Ultra 7 155U, 32GB LPDDR5x, 1TB SSD, 14" WUXGA IPS, Integrated Graphics, Win11 Pro', 1190.0, 1238.0),
    ("ThinkBook", "21JBA0C400", "ThinkBook 15 G4",
     'Core i3-1215U, 8GB DDR4, 256GB SSD, 15.6" FHD IPS, Intel UHD Graphics, NoOS', 385.0, 401.0),
    ("ThinkBook", "21KJA0D500", "ThinkBook 16 G6",
     'Core i5-1335U, 16GB DDR5, 512GB SSD, 16" WUXGA IPS, Intel UHD Graphics, Win11 Home', 560.0, 0.0),
    ("IdeaPad", "82XB00E600", "IdeaPad Slim 3",
     'Celeron N4500, 8GB LPDDR4x, 256GB SSD, 15.6" FHD, Integrated Graphics, Win11 Home', 245.0, 256.0),
    ("Legion", "83DG00F700", "Legion 5 Gen 9",
     'Core i7-14650HX, 32GB DDR5, 1TB SSD Gen4, 16" WQXGA OLED, RTX 4060 8GB, Win11 Home', 1320.0, 1377.0),
    ("Mouse", "4Y51D20848", "ThinkPad Bluetooth Mouse", "", 14.0, 15.0),
]

_BUYERS = [
    ("B1001", "Phnom Penh Computer Mart", "Retail"),
    ("B1002", "Angkor Systems Co.", "Corporate"),
    ("B1003", "Mekong IT Solutions", "SMB"),
    ("B1004", "Siem Reap Digital", "Retail"),
    ("B1005", "Royal Education Supply", "Education"),
    ("B1006", "Battambang Tech Hub", "SMB"),
]

_TASKS = [
    ("Confirm Q3 rebate claim file", "Upload sell-out serials to the vendor portal", "In Progress", "High"),
    ("Chase delayed Legion shipment", "Forwarder has not confirmed vessel", "Planning", "High"),
    ("Price list refresh", "Apply new FOB prices to the dealer list", "Todo", "Medium"),
    ("Stock count ThinkBook", "Reconcile serials on hand with warehouse", "Paused", "Medium"),
    ("Education tender pack", "", "Backlog", "Low"),
    ("Close out Q1 credit note", "Credit note received, post to ledger", "Done", "Low"),
    ("Update buyer segments", "Merge duplicate buyer IDs", "Canceled", "Low"),
    ("Reorder IdeaPad Slim 3", "Out of stock since last week", "Planning", "Urgent"),
]


def _fmt(ts: pd.Timestamp | None, style: str = "iso") -> str:
    if ts is None or pd.isna(ts):
        return ""
    if style == "us":
        return ts.strftime("%m/%d/%Y")
    return ts.strftime("%Y-%m-%d")


def _quarter_start(ts: pd.Timestamp) -> pd.Timestamp:
    return pd.Timestamp(year=ts.year, month=3 * (ts.quarter - 1) + 1, day=1)


def generate_orders(today=None, n_orders: int = 18, seed: int = _SEED) -> pd.DataFrame:
    """Simulated order tracking export, one row per SO x MTM line.

    Older orders have arrived, recent ones are in transit or still in
    production; a few are cancelled.
    """
    rng = np.random.default_rng(seed)
    today = reference_date(today)
    rows = []

    for i in range(n_orders):
        so = f"40{7100000 + i * 37}"
        pi = today - pd.Timedelta(days=int(rng.integers(10, 330)))
        n_lines = int(rng.integers(1, 4))
        picks = rng.choice(len(_MODELS), size=n_lines, replace=False)

        for idx in picks:
            line, mtm, name, spec, fob, landing = _MODELS[idx]
            ship = pi + pd.Timedelta(days=int(rng.integers(21, 46)))
            eta = ship + pd.Timedelta(days=int(rng.integers(14, 29)))
            arrival = None

            if rng.random() < 0.06:
                factory, local = "Cancelled", "Cancelled"
            elif eta < today - pd.Timedelta(days=5) and rng.random() < 0.9:
                arrival = min(eta + pd.Timedelta(days=int(rng.integers(-3, 10))), today)
                factory, local = "Delivered", "Received"
            elif ship < today:
                factory, local = "Shipped", "In Transit"
            else:
                factory, local = "In Production", "Pending"

            rows.append({
                "Product Line": line,
                "Sales Order Number": so,
                "Product ID": mtm,
                "Model Name": name,
                "Specification": spec,
                "Shipping Quantity": str(int(rng.integers(5, 41))),
                "Unit Price": f"${fob:,.2f}",
                "Add on Unit Price": f"${landing:,.2f}",
                "Status to SGP": factory,
                "Status to KH": local,
                "Schedule ship date": _fmt(ship, "us"),
                "Order Receipt Date": _fmt(pi),
                "ETA": _fmt(eta),
                "Actual Arrival": _fmt(arrival),
                "Delivery Number": f"80{int(rng.integers(1000000, 9999999))}" if factory != "Cancelled" else "",
            })

    return pd.DataFrame(rows)


def generate_serials(orders_raw: pd.DataFrame) -> pd.DataFrame:
    """Serialization export: one serial per unit on every shipped line."""
    rows = []
    counter = 0
    shipped = orders_raw[orders_raw["Status to SGP"].isin(["Shipped", "Delivered"])]
    for _, o in shipped.iterrows():
        so, mtm = o["Sales Order Number"], o["Product ID"]
        for _ in range(int(o["Shipping Quantity"])):
            counter += 1
            sn = f"PF{counter:06X}"
            rows.append({"SO": so, "MTM": mtm, "SN": sn, "Serialization": f"1S{mtm}{sn}"})
    return pd.DataFrame(rows, columns=["SO", "MTM", "SN", "Serialization"])


def generate_sales(
    orders_raw: pd.DataFrame,
    serials_raw: pd.DataFrame,
    today=None,
    sell_through: float = 0.7,
    seed: int = _SEED,
) -> pd.DataFrame:
    """Sell-out export drawn from serials of arrived order lines.

    Units are invoiced between their arrival and `today`, one row per
    serial, grouped into invoices per buyer and day.
    """
    rng = np.random.default_rng(seed + 1)
    today = reference_date(today)

    arrived = orders_raw[orders_raw["Actual Arrival"] != ""]
    lines = {
        (r["Sales Order Number"], r["Product ID"]): r for _, r in arrived.iterrows()
    }

    rows = []
    for s in serials_raw.itertuples(index=False):
        line = lines.get((s.SO, s.MTM))
        if line is None or rng.random() > sell_through:
            continue
        arrival = pd.Timestamp(line["Actual Arrival"])
        span = max((today - arrival).days, 1)
        invoice_date = arrival + pd.Timedelta(days=int(rng.integers(1, span + 1)))
        invoice_date = min(invoice_date, today)

        buyer_id, buyer_name, segment = _BUYERS[int(rng.integers(0, len(_BUYERS)))]
        fob = float(line["Unit Price"].replace("$", "").replace(",", ""))
        price = round(fob * float(rng.uniform(1.08, 1.32)), 2)

        rows.append({
            "Invoice Date": _fmt(invoice_date),
            "Quantity": "1",
            "Buyer ID": buyer_id,
            "Buyer Name": buyer_name,
            "Invoice Number": f"INV-{invoice_date:%y%m%d}-{buyer_id[-2:]}",
            "Serial Number / Barcode": s.Serialization,
            "Model Name": line["Model Name"],
            "Lenovo Product Number": s.MTM,
            "Segment": segment,
            "Unit BP Reported Price": f"{price:.2f}",
            "Total BP Reported Rev": f"{price:.2f}",
            "Local Currency": "USD",
        })

    return pd.DataFrame(rows)


def generate_rebate_programs(today=None, n_quarters: int = 4) -> pd.DataFrame:
    """Quarterly sell-out rebate programs; the current quarter is still open."""
    today = reference_date(today)
    current = _quarter_start(today)
    rows = []
    for back in range(n_quarters - 1, -1, -1):
        start = current - pd.DateOffset(months=3 * back)
        end = start + pd.offsets.QuarterEnd(0)
        is_open = back == 0
        rows.append({
            "Program": f"Sell-out Q{start.quarter} {start.year}",
            "Lenovo Quarter": f"Q{start.quarter}",
            "Program Start Date": _fmt(start),
            "Program End Date": _fmt(end),
            "Rebate Earned": "" if is_open else f"${4200 + 850 * back:,.2f}",
            "Status": "Open" if is_open else "Closed",
            "Update": "Tracking" if is_open else ("Pending payment" if back == 1 else "Paid"),
            "Credit No.": "" if back < 2 else f"CN-{start.year}{start.quarter}",
            "Remark": "",
            "Program Duration": str((end - start).days + 1),
            "Per Unit": "",
        })
    return pd.DataFrame(rows)


def generate_rebate_details(programs_raw: pd.DataFrame, seed: int = _SEED) -> pd.DataFrame:
    """Program x MTM eligibility windows for the rebate programs."""
    rng = np.random.default_rng(seed + 2)
    laptops = [m for m in _MODELS if m[0] != "Mouse"]
    rows = []
    for _, p in programs_raw.iterrows():
        picks = rng.choice(len(laptops), size=3, replace=False)
        for k, idx in enumerate(picks):
            mtm = laptops[idx][1]
            rows.append({
                "Program Code": f"{p['Program'].split()[-1]}{p['Lenovo Quarter']}-{k + 1}",
                "MTM": mtm,
                "Start Date": p["Program Start Date"],
                "End Date": p["Program End Date"],
                "Program Max": str(int(rng.integers(40, 160))),
                "Program Reported (LPH)": str(int(rng.integers(0, 40))),
                "Per Unit": f"{float(rng.choice([15, 20, 25, 35, 40])):.2f}",
            })
    return pd.DataFrame(rows)


def generate_rebate_claims(sales_raw: pd.DataFrame, claim_rate: float = 0.8, seed: int = _SEED) -> pd.DataFrame:
    """Vendor-side claims: most of our sales, a few with shifted dates, plus
    claims for serials we never sold."""
    rng = np.random.default_rng(seed + 3)
    rows = []
    for _, s in sales_raw.iterrows():
        if rng.random() > claim_rate:
            continue
        date = pd.Timestamp(s["Invoice Date"])
        if rng.random() < 0.05:
            date += pd.Timedelta(days=1)
        rows.append({
            "rebateMTM": s["Lenovo Product Number"],
            "rebateInvoiceDate": _fmt(date),
            "rebateQuantity": "1",
            "rebateBuyer ID": s["Buyer ID"],
            "rebateInvoice Number": s["Invoice Number"],
            "rebateSerial Number": s["Serial Number / Barcode"],
            "rebateUnit BP Reported Price": s["Unit BP Reported Price"],
        })

    for n in range(2):
        mtm = _MODELS[n][1]
        rows.append({
            "rebateMTM": mtm,
            "rebateInvoiceDate": rows[-1]["rebateInvoiceDate"] if rows else "",
            "rebateQuantity": "1",
            "rebateBuyer ID": "B9999",
            "rebateInvoice Number": f"EXT-{n + 1:04d}",
            "rebateSerial Number": f"1S{mtm}ZZ{n:04d}",
            "rebateUnit BP Reported Price": "0",
        })
    return pd.DataFrame(rows)


def generate_tasks(today=None, user_email: str = "ops@distributor.example") -> pd.DataFrame:
    """Task board sheet with cards in every column."""
    today = reference_date(today)
    rows = []
    for i, (title, desc, status, priority) in enumerate(_TASKS):
        created = today - pd.Timedelta(days=30 - 3 * i)
        rows.append({
            "unique_id": f"task-{i + 1:03d}",
            "title": title,
            "description": desc,
            "status": status,
            "priority": priority,
            "createdAt": _fmt(created),
            "timestamp": _fmt(created + pd.Timedelta(days=1)),
            "completedAt": _fmt(today - pd.Timedelta(days=2)) if status == "Done" else "",
            "user_email": user_email,
            "Start Date": _fmt(created),
            "Due Date": _fmt(today + pd.Timedelta(days=i - 2)) if i % 3 else "",
            "Dependencies": "task-001" if i == 3 else "",
            "Icon": "",
            "# Progress": str(100 if status == "Done" else 10 * i),
        })
    return pd.DataFrame(rows)


def generate_all(today=None, seed: int = _SEED) -> dict[str, pd.DataFrame]:
    """Every raw export, keyed by source name."""
    today = reference_date(today)
    orders = generate_orders(today, seed=seed)
    serials = generate_serials(orders)
    sales = generate_sales(orders, serials, today, seed=seed)
    programs = generate_rebate_programs(today)
    return {
        "orders": orders,
        "serials": serials,
        "sales": sales,
        "rebate_programs": programs,
        "rebate_details": generate_rebate_details(programs, seed=seed),
        "rebate_claims": generate_rebate_claims(sales, seed=seed),
        "tasks": generate_tasks(today),
    }
