"""
Loaders for the rebate sources.

Programs: one row per vendor rebate program (quarterly, with earned value
    and payment status).
Details: one row per program x MTM with the eligibility window and per-unit
    amount.
Claims: the units the vendor has recorded against rebate programs.
"""

import logging

import pandas as pd

from ..config import (
    MISSING,
    REBATE_CLAIM_HEADERS,
    REBATE_CLAIMS_FILE,
    REBATE_DETAIL_HEADERS,
    REBATE_DETAILS_FILE,
    REBATE_PROGRAM_HEADERS,
    REBATE_PROGRAMS_FILE,
)
from .utils import (
    clean_text,
    parse_amount,
    parse_int,
    parse_sheet_date,
    read_table,
    rename_columns,
)

logger = logging.getLogger(__name__)

REBATE_PROGRAM_COLUMNS = list(REBATE_PROGRAM_HEADERS.values())
REBATE_DETAIL_COLUMNS = list(REBATE_DETAIL_HEADERS.values())
REBATE_CLAIM_COLUMNS = list(REBATE_CLAIM_HEADERS.values())


def load_rebate_programs(src=REBATE_PROGRAMS_FILE) -> pd.DataFrame:
    return parse_rebate_programs(read_table(src))


def parse_rebate_programs(raw: pd.DataFrame) -> pd.DataFrame:
    """Normalise rebate program rows.

    `rebate_earned`, `per_unit` and `duration` are left missing when the
    cell is blank so that "not yet earned" is distinguishable from zero.
    Blank `credit_no` and `remark` cells are None. Rows without a program
    name are dropped.
    """
    if raw.empty:
        logger.warning("Rebate program export is empty")
        return pd.DataFrame(columns=REBATE_PROGRAM_COLUMNS)

    df = rename_columns(raw, REBATE_PROGRAM_HEADERS, required=["Program"])
    df["start_date"] = pd.to_datetime(df["start_date"].map(parse_sheet_date))
    df["end_date"] = pd.to_datetime(df["end_date"].map(parse_sheet_date))
    df["rebate_earned"] = df["rebate_earned"].map(lambda v: parse_amount(v, default=None))
    df["per_unit"] = df["per_unit"].map(lambda v: parse_amount(v, default=None))
    df["duration"] = df["duration"].map(lambda v: parse_int(v, default=None))
    for col in ("program", "lenovo_quarter", "status", "update"):
        df[col] = df[col].map(clean_text)
    for col in ("credit_no", "remark"):
        # object dtype keeps None for blanks
        df[col] = pd.Series(
            [clean_text(v, default="") or None for v in df[col]], index=df.index, dtype=object
        )

    df = df[df["program"] != MISSING].reset_index(drop=True)
    logger.info("Built rebate programs with %d rows", len(df))
    return df[REBATE_PROGRAM_COLUMNS]


def load_rebate_details(src=REBATE_DETAILS_FILE) -> pd.DataFrame:
    return parse_rebate_details(read_table(src))


def parse_rebate_details(raw: pd.DataFrame) -> pd.DataFrame:
    """Normalise program x MTM eligibility rows.

    Rows without a program code or MTM are dropped.
    """
    if raw.empty:
        logger.warning("Rebate detail export is empty")
        return pd.DataFrame(columns=REBATE_DETAIL_COLUMNS)

    df = rename_columns(raw, REBATE_DETAIL_HEADERS, required=["Program Code", "MTM"])
    df["program_code"] = df["program_code"].map(clean_text)
    df["mtm"] = df["mtm"].map(lambda v: clean_text(v, upper=True))
    df["start_date"] = pd.to_datetime(df["start_date"].map(parse_sheet_date))
    df["end_date"] = pd.to_datetime(df["end_date"].map(parse_sheet_date))
    for col in ("program_max", "program_reported", "per_unit"):
        df[col] = df[col].map(lambda v: parse_amount(v, default=None))

    keep = (df["program_code"] != MISSING) & (df["mtm"] != MISSING)
    df = df[keep].reset_index(drop=True)
    logger.info("Built rebate details with %d rows", len(df))
    return df[REBATE_DETAIL_COLUMNS]


def load_rebate_claims(src=REBATE_CLAIMS_FILE) -> pd.DataFrame:
    return parse_rebate_claims(read_table(src))


def parse_rebate_claims(raw: pd.DataFrame) -> pd.DataFrame:
    """Normalise vendor-recorded rebate claims.

    Rows missing the MTM, invoice number or serial number are dropped.
    """
    if raw.empty:
        logger.warning("Rebate claim export is empty")
        return pd.DataFrame(columns=REBATE_CLAIM_COLUMNS)

    df = rename_columns(raw, REBATE_CLAIM_HEADERS, required=["rebateMTM", "rebateSerial Number"])
    df["invoice_date"] = pd.to_datetime(df["invoice_date"].map(parse_sheet_date))
    df["quantity"] = df["quantity"].map(parse_int)
    df["unit_price"] = df["unit_price"].map(parse_amount)
    df["buyer_id"] = df["buyer_id"].map(clean_text)
    for col in ("mtm", "invoice_number", "serial_number"):
        df[col] = df[col].map(lambda v: clean_text(v, upper=True))

    keep = (
        (df["mtm"] != MISSING)
        & (df["invoice_number"] != MISSING)
        & (df["serial_number"] != MISSING)
    )
    if (~keep).any():
        logger.warning("Dropped %d rebate claim rows missing MTM, invoice or serial", (~keep).sum())
    df = df[keep].reset_index(drop=True)
    logger.info("Built rebate claims with %d rows", len(df))
    return df[REBATE_CLAIM_COLUMNS]
