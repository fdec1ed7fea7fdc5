"""
Rebate analytics: claim eligibility, program utilisation, serial-level
reconciliation of our sales against vendor claims, and per-unit profit
after rebates.
"""

import logging

import pandas as pd

from .config import MISSING

logger = logging.getLogger(__name__)

CLAIM_STATUSES = ("Eligible", "Out of Window", "No Program")
RECONCILIATION_STATUSES = ("Matched", "Unclaimed Sale", "Unverified Claim")
PROFIT_STATUSES = ("Matched", "No Rebate", "Cost Missing", "No Order Match")


def _in_window(date, start, end) -> bool:
    """Open-ended windows are allowed on one side, not on both."""
    if date is None or pd.isna(date):
        return False
    has_start = start is not None and not pd.isna(start)
    has_end = end is not None and not pd.isna(end)
    if not has_start and not has_end:
        return False
    if has_start and date < start:
        return False
    if has_end and date > end:
        return False
    return True


def validate_claims(claims: pd.DataFrame, details: pd.DataFrame) -> pd.DataFrame:
    """Match each vendor claim to the program window covering its invoice date.

    The first detail row (in source order) with the claim's MTM and a
    window holding the invoice date wins.

    Returns
    -------
    The claims with extra columns program_code, per_unit, rebate_value
    and status ("Eligible", "Out of Window" when the MTM is in some
    program but no window matches, "No Program" otherwise).
    """
    extra = ["program_code", "per_unit", "rebate_value", "status"]
    if claims.empty:
        return pd.DataFrame(columns=list(claims.columns) + extra)

    windows: dict[str, list[tuple]] = {}
    for d in details.itertuples(index=False):
        windows.setdefault(d.mtm, []).append((d.program_code, d.start_date, d.end_date, d.per_unit))

    rows = []
    for claim in claims.itertuples(index=False):
        candidates = windows.get(claim.mtm, [])
        match = next(
            (w for w in candidates if _in_window(claim.invoice_date, w[1], w[2])),
            None,
        )
        if match is not None:
            per_unit = 0.0 if match[3] is None or pd.isna(match[3]) else float(match[3])
            rows.append((match[0], per_unit, claim.quantity * per_unit, "Eligible"))
        elif candidates:
            rows.append((None, None, 0.0, "Out of Window"))
        else:
            rows.append((None, None, 0.0, "No Program"))

    out = claims.reset_index(drop=True).copy()
    extras = pd.DataFrame(rows, columns=extra, dtype=object)
    for col in extra:
        out[col] = extras[col]
    out["rebate_value"] = out["rebate_value"].astype(float)
    logger.info("Validated %d rebate claims", len(out))
    return out


def program_utilisation(claims: pd.DataFrame, details: pd.DataFrame) -> pd.DataFrame:
    """Claimed units and value against each program x MTM line.

    Returns
    -------
    DataFrame with columns program_code, mtm, start_date, end_date,
    per_unit, program_max, program_reported, tracked_qty, variance
    (tracked minus vendor-reported), potential_rebate and remaining
    (program max minus tracked, None without a max).
    """
    columns = [
        "program_code", "mtm", "start_date", "end_date", "per_unit", "program_max",
        "program_reported", "tracked_qty", "variance", "potential_rebate", "remaining",
    ]
    if details.empty:
        return pd.DataFrame(columns=columns)

    rows = []
    for d in details.itertuples(index=False):
        if claims.empty:
            tracked = 0
        else:
            in_window = [
                m == d.mtm and _in_window(date, d.start_date, d.end_date)
                for m, date in zip(claims["mtm"], claims["invoice_date"])
            ]
            tracked = int(claims.loc[in_window, "quantity"].sum())
        per_unit = 0.0 if pd.isna(d.per_unit) else float(d.per_unit)
        reported = 0.0 if pd.isna(d.program_reported) else float(d.program_reported)
        has_max = not pd.isna(d.program_max)
        rows.append({
            "program_code": d.program_code,
            "mtm": d.mtm,
            "start_date": d.start_date,
            "end_date": d.end_date,
            "per_unit": per_unit,
            "program_max": float(d.program_max) if has_max else None,
            "program_reported": reported,
            "tracked_qty": tracked,
            "variance": tracked - reported,
            "potential_rebate": tracked * per_unit,
            "remaining": float(d.program_max) - tracked if has_max else None,
        })
    return pd.DataFrame(rows, columns=columns)


def reconcile_claims(sales: pd.DataFrame, claims: pd.DataFrame) -> pd.DataFrame:
    """Compare our sold serials with the vendor's claimed serials.

    Returns
    -------
    DataFrame with columns serial_number, mtm, status, our_sale_date,
    vendor_claim_date, date_mismatch. Status is "Matched" when both
    sides carry the serial, "Unclaimed Sale" when only our sales do and
    "Unverified Claim" when only the vendor's claims do.
    """
    columns = ["serial_number", "mtm", "status", "our_sale_date", "vendor_claim_date", "date_mismatch"]
    ours = {} if sales.empty else {
        r.serial_number: r for r in sales.itertuples(index=False)
    }
    theirs = {} if claims.empty else {
        r.serial_number: r for r in claims.itertuples(index=False)
    }
    if not ours and not theirs:
        return pd.DataFrame(columns=columns)

    rows = []
    for serial in list(ours) + [s for s in theirs if s not in ours]:
        sale, claim = ours.get(serial), theirs.get(serial)
        sale_date = sale.invoice_date if sale is not None else None
        claim_date = claim.invoice_date if claim is not None else None
        if sale is not None and claim is not None:
            status = "Matched"
            mismatch = not (pd.isna(sale_date) and pd.isna(claim_date)) and sale_date != claim_date
        elif sale is not None:
            status, mismatch = "Unclaimed Sale", False
        else:
            status, mismatch = "Unverified Claim", False
        rows.append({
            "serial_number": serial,
            "mtm": sale.mtm if sale is not None else claim.mtm,
            "status": status,
            "our_sale_date": sale_date,
            "vendor_claim_date": claim_date,
            "date_mismatch": bool(mismatch),
        })
    return pd.DataFrame(rows, columns=columns)


def reconcile_sales(
    sales: pd.DataFrame,
    orders: pd.DataFrame,
    serials: pd.DataFrame,
    details: pd.DataFrame,
    claims: pd.DataFrame | None = None,
) -> pd.DataFrame:
    """Per-unit profit for every sale after applicable rebates.

    A sale is traced to its order line through the serialization export
    (serial -> SO) and the SO x MTM key. Landed cost is the order's
    landing-cost unit price, falling back to FOB when that is zero. Every
    program window covering the sale date (the vendor's claim date when
    one exists) reduces the cost by its per-unit amount.

    Returns
    -------
    DataFrame with columns invoice_date, invoice_number, buyer_name,
    serial_number, mtm, model_name, unit_sale_price, sales_order,
    fob_cost, landing_cost, rebate_programs, rebate_applied, net_cost,
    unit_profit, profit_margin, status.
    """
    columns = [
        "invoice_date", "invoice_number", "buyer_name", "serial_number", "mtm", "model_name",
        "unit_sale_price", "sales_order", "fob_cost", "landing_cost", "rebate_programs",
        "rebate_applied", "net_cost", "unit_profit", "profit_margin", "status",
    ]
    if sales.empty:
        return pd.DataFrame(columns=columns)

    serial_to_so: dict[str, str] = {}
    for s in serials.itertuples(index=False):
        if s.serial_number != MISSING:
            serial_to_so[s.serial_number] = s.sales_order
        serial_to_so[s.full_serial] = s.sales_order

    order_by_key = {(o.sales_order, o.mtm): o for o in orders.itertuples(index=False)}
    claim_dates = {}
    if claims is not None and not claims.empty:
        claim_dates = {c.serial_number: c.invoice_date for c in claims.itertuples(index=False)}

    windows: dict[str, list[tuple]] = {}
    for d in details.itertuples(index=False):
        windows.setdefault(d.mtm, []).append((d.program_code, d.start_date, d.end_date, d.per_unit))

    rows = []
    for sale in sales.itertuples(index=False):
        so = serial_to_so.get(sale.serial_number)
        order = order_by_key.get((so, sale.mtm)) if so else None

        fob = landing = None
        if order is not None and order.fob_unit_price:
            fob = float(order.fob_unit_price)
            landing = float(order.landing_cost_unit_price) or fob

        claim_date = claim_dates.get(sale.serial_number)
        check_date = claim_date if claim_date is not None and pd.notna(claim_date) else sale.invoice_date
        applied = [
            (code, 0.0 if per_unit is None or pd.isna(per_unit) else float(per_unit))
            for code, start, end, per_unit in windows.get(sale.mtm, [])
            if _in_window(check_date, start, end)
        ]
        rebate = sum(p for _, p in applied)

        net = landing - rebate if landing is not None else None
        profit = sale.unit_price - net if net is not None else None
        margin = profit / sale.unit_price * 100 if profit is not None and sale.unit_price > 0 else None

        if order is None:
            status = "No Order Match"
        elif fob is None:
            status = "Cost Missing"
        elif applied:
            status = "Matched"
        else:
            status = "No Rebate"

        rows.append({
            "invoice_date": check_date,
            "invoice_number": sale.invoice_number,
            "buyer_name": sale.buyer_name,
            "serial_number": sale.serial_number,
            "mtm": sale.mtm,
            "model_name": sale.model_name,
            "unit_sale_price": sale.unit_price,
            "sales_order": so or MISSING,
            "fob_cost": fob,
            "landing_cost": landing,
            "rebate_programs": [code for code, _ in applied] or None,
            "rebate_applied": rebate if rebate > 0 else None,
            "net_cost": net,
            "unit_profit": profit,
            "profit_margin": margin,
            "status": status,
        })

    out = pd.DataFrame(rows, columns=columns)
    logger.info("Reconciled %d sales against costs and rebates", len(out))
    return out


def profit_by_mtm(reconciled: pd.DataFrame) -> dict[str, dict]:
    """MTM -> {"profit", "revenue"} over sales with a known unit profit."""
    if reconciled.empty:
        return {}
    costed = reconciled[reconciled["unit_profit"].notna()]
    grouped = costed.groupby("mtm").agg(
        profit=("unit_profit", "sum"),
        revenue=("unit_sale_price", "sum"),
    )
    return {
        mtm: {"profit": float(r["profit"]), "revenue": float(r["revenue"])}
        for mtm, r in grouped.iterrows()
    }


def profitability_kpis(reconciled: pd.DataFrame) -> dict:
    """Profit, margin and rebate coverage over reconciled sales."""
    if reconciled.empty:
        return {
            "total_profit": 0.0,
            "average_margin": 0.0,
            "total_rebates_applied": 0.0,
            "sales_with_rebates": 0,
            "sales_missing_cost": 0,
        }
    costed = reconciled[reconciled["unit_profit"].notna()]
    profit = float(costed["unit_profit"].sum())
    revenue = float(costed["unit_sale_price"].sum())
    rebates = pd.to_numeric(reconciled["rebate_applied"], errors="coerce")
    return {
        "total_profit": profit,
        "average_margin": profit / revenue * 100 if revenue > 0 else 0.0,
        "total_rebates_applied": float(rebates[rebates > 0].sum()),
        "sales_with_rebates": int((rebates > 0).sum()),
        "sales_missing_cost": int(reconciled["status"].isin(["No Order Match", "Cost Missing"]).sum()),
    }
