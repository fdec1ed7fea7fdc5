"""Data ingestion loaders for the distributor's spreadsheet exports."""

from .orders import filter_options_for_orders, load_orders, parse_orders
from .rebates import load_rebate_claims, load_rebate_details, load_rebate_programs
from .rebates import parse_rebate_claims, parse_rebate_details, parse_rebate_programs
from .sales import filter_options_for_sales, load_sales, load_serials, parse_sales, parse_serials
from .tasks import load_tasks, parse_tasks
from .utils import SourceError, clean_text, parse_amount, parse_int, parse_sheet_date, read_table

__all__ = [
    "SourceError",
    "read_table",
    "parse_sheet_date",
    "parse_amount",
    "parse_int",
    "clean_text",
    "load_orders",
    "parse_orders",
    "load_sales",
    "parse_sales",
    "load_serials",
    "parse_serials",
    "load_rebate_programs",
    "parse_rebate_programs",
    "load_rebate_details",
    "parse_rebate_details",
    "load_rebate_claims",
    "parse_rebate_claims",
    "load_tasks",
    "parse_tasks",
    "filter_options_for_orders",
    "filter_options_for_sales",
]
