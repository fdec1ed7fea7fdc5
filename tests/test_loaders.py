"""Tests for sheet parsing and the source loaders."""

import io

import openpyxl
import pandas as pd
import pytest

from distributor_dashboard.loaders import (
    SourceError,
    clean_text,
    parse_amount,
    parse_int,
    parse_orders,
    parse_sales,
    parse_sheet_date,
    parse_tasks,
    read_table,
)
from distributor_dashboard.loaders.orders import filter_options_for_orders
from distributor_dashboard.loaders.sales import filter_options_for_sales
from distributor_dashboard.loaders.utils import sheet_format


class TestParseSheetDate:
    """Date cells arrive in several spellings."""

    @pytest.mark.parametrize(
        "value",
        ["2025-03-07", "2025-03-07T10:30:00Z", "03/07/2025", "07-Mar-2025", "07-mar-2025", 45723, "45723"],
    )
    def test_accepted_formats(self, value):
        assert parse_sheet_date(value) == pd.Timestamp("2025-03-07")

    def test_datetime_is_normalised_to_midnight(self):
        assert parse_sheet_date(pd.Timestamp("2025-03-07 17:45")) == pd.Timestamp("2025-03-07")

    @pytest.mark.parametrize("value", ["2025-02-30", "13/01/2025", "next tuesday", "", "N/A", None, 12])
    def test_rejected_values(self, value):
        assert parse_sheet_date(value) is None


class TestCellCoercion:
    """Amounts, integers and text cells."""

    def test_amount_strips_currency_and_separators(self):
        assert parse_amount("$1,234.50") == 1234.5
        assert parse_amount("-12") == -12.0

    def test_amount_default_when_nothing_numeric(self):
        assert parse_amount("n/a") == 0.0
        assert parse_amount("", default=None) is None

    def test_int_takes_leading_integer(self):
        assert parse_int("12 pcs") == 12
        assert parse_int("abc") == 0
        assert parse_int(7.0) == 7

    def test_clean_text(self):
        assert clean_text("  abc ") == "abc"
        assert clean_text("   ") == "N/A"
        assert clean_text(None, default="") == ""
        assert clean_text("so1", upper=True) == "SO1"


class TestReadTable:
    """CSV reading."""

    def test_bom_header_and_blank_rows(self, tmp_path):
        path = tmp_path / "sales.csv"
        path.write_bytes("\ufeffInvoice Number, Quantity \nINV-1, 2\n,\nINV-2,3\n".encode("utf-8"))
        df = read_table(path)
        assert list(df.columns) == ["Invoice Number", "Quantity"]
        assert df["Invoice Number"].tolist() == ["INV-1", "INV-2"]
        assert df["Quantity"].tolist() == ["2", "3"]

    def test_latin1_fallback(self, tmp_path):
        path = tmp_path / "buyers.csv"
        path.write_bytes("Buyer Name\nCaf\xe9 Tech\n".encode("latin-1"))
        assert read_table(path)["Buyer Name"].tolist() == ["Café Tech"]

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_table(tmp_path / "absent.csv")

    def test_xlsx_file_object_is_sniffed(self):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Invoice Number", "Quantity"])
        ws.append(["INV-1", 2])
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)
        assert sheet_format(buf) == "xlsx"
        assert buf.tell() == 0
        df = read_table(buf)
        assert df["Invoice Number"].tolist() == ["INV-1"]
        assert df["Quantity"].tolist() == ["2"]

    def test_csv_file_object_and_explicit_format(self):
        buf = io.BytesIO(b"Invoice Number,Quantity\nINV-1,2\n")
        assert sheet_format(buf) == "csv"
        assert read_table(buf, fmt="csv")["Quantity"].tolist() == ["2"]
        with pytest.raises(ValueError):
            sheet_format(buf, fmt="ods")


class TestParseOrders:
    """Order lines and their health flags."""

    def test_rows_without_sales_order_are_dropped(self, orders):
        assert len(orders) == 6
        assert "N/A" not in set(orders["sales_order"])

    def test_keys_are_upper_cased(self, orders):
        assert "SO1003" in set(orders["sales_order"])

    def test_order_value_and_amounts(self, orders):
        first = orders.iloc[0]
        assert first["fob_unit_price"] == 100.0
        assert first["order_value"] == 1000.0
        assert orders.iloc[1]["landing_cost_unit_price"] == 0.0

    def test_dates_are_parsed(self, orders):
        assert orders.iloc[0]["ship_date"] == pd.Timestamp("2025-03-01")
        assert pd.isna(orders.iloc[2]["actual_arrival"])

    def test_health_flags(self, orders):
        flags = orders.set_index("sales_order")[
            ["is_delayed_production", "is_delayed_transit", "is_at_risk"]
        ]
        assert flags.loc["SO1002"].tolist() == [False, True, False]
        assert flags.loc["SO1003"].tolist() == [True, False, False]
        assert flags.loc["SO1004"].tolist() == [False, False, True]
        # cancelled and arrived lines carry no flag
        assert not flags.loc["SO1005"].any()
        assert not flags.loc["SO1001"].any().any()

    def test_missing_identifying_column_raises(self):
        with pytest.raises(SourceError):
            parse_orders(pd.DataFrame({"Something": ["x"]}))

    def test_empty_export(self):
        assert parse_orders(pd.DataFrame()).empty

    def test_filter_options(self, orders):
        opts = filter_options_for_orders(orders)
        assert opts["product_lines"] == ["IdeaPad", "Mouse", "ThinkBook", "ThinkPad"]
        assert opts["years"] == [2025]
        assert opts["quarters"] == ["Q1", "Q2"]


class TestParseSales:
    """Sell-out rows."""

    def test_identifiers_upper_cased(self, sales):
        first = sales.iloc[0]
        assert first["invoice_number"] == "INV-1"
        assert first["serial_number"] == "1SAAA1S1"
        assert first["mtm"] == "AAA1"

    def test_rows_without_invoice_are_dropped(self, sales):
        assert len(sales) == 4

    def test_numeric_columns(self, sales):
        assert sales["total_revenue"].sum() == 740.0
        assert sales["quantity"].sum() == 4

    def test_filter_options(self, sales):
        opts = filter_options_for_sales(sales)
        assert opts["buyers"][0] == {"id": "B01", "name": "Alpha Traders"}
        assert opts["segments"] == ["Corporate", "Retail", "SMB"]

    def test_empty_export(self):
        assert parse_sales(pd.DataFrame()).empty


class TestParseSerials:
    def test_upper_cased_and_complete(self, serials):
        assert len(serials) == 7
        assert serials.iloc[0].tolist() == ["SO1001", "AAA1", "S1", "1SAAA1S1"]


class TestParseRebates:
    """Rebate programs, details and claims."""

    def test_blank_earned_stays_missing(self, programs):
        assert programs.iloc[0]["rebate_earned"] == 1200.0
        assert pd.isna(programs.iloc[1]["rebate_earned"])
        assert pd.isna(programs.iloc[1]["credit_no"])
        assert programs["credit_no"].dtype == object

    def test_details_optional_amounts(self, details):
        row = details.set_index("program_code").loc["P-Q2-2"]
        assert row["program_max"] is None or pd.isna(row["program_max"])
        assert row["per_unit"] == 30.0

    def test_claims(self, claims):
        assert len(claims) == 4
        assert claims.iloc[0]["invoice_date"] == pd.Timestamp("2025-06-01")


class TestParseTasks:
    """Task sheet normalisation."""

    def test_header_spellings_and_id_filter(self, tasks):
        assert tasks["id"].tolist() == ["t1", "t2", "t3", "t4"]

    def test_status_and_priority_vocabulary(self, tasks):
        by_id = tasks.set_index("id")
        assert by_id.loc["t1", "status"] == "Planning"
        assert by_id.loc["t3", "priority"] == "Medium"

    def test_dependencies_icon_progress(self, tasks):
        by_id = tasks.set_index("id")
        assert by_id.loc["t2", "dependencies"] == ["t1", "t3"]
        assert by_id.loc["t1", "dependencies"] is None
        assert by_id.loc["t2", "icon"] == "📞"
        assert by_id.loc["t1", "icon"] == "📄"
        assert by_id.loc["t4", "progress"] == 0

    def test_missing_timestamps_default_to_now(self, tasks, today):
        assert tasks.set_index("id").loc["t2", "updated_at"] == today

    def test_sheet_without_id_column(self):
        with pytest.raises(SourceError):
            parse_tasks(pd.DataFrame({"title": ["x"]}))
