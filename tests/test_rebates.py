"""Tests for rebate claim validation, utilisation and reconciliation."""

import pandas as pd
import pytest

from distributor_dashboard.rebates import (
    profit_by_mtm,
    profitability_kpis,
    program_utilisation,
    reconcile_claims,
    reconcile_sales,
    validate_claims,
)


class TestValidateClaims:
    """Each claim is matched to a program window for its MTM."""

    def test_statuses(self, claims, details):
        out = validate_claims(claims, details).set_index("serial_number")
        assert out.loc["1SAAA1S1", "status"] == "Eligible"
        assert out.loc["1SAAA1S1", "program_code"] == "P-Q2-1"
        assert out.loc["1SAAA1S1", "rebate_value"] == 20.0
        assert out.loc["1SAAA1S9", "program_code"] == "P-Q1-1"
        assert out.loc["1SBBB2B1", "status"] == "Out of Window"
        assert out.loc["1SCCC3X1", "status"] == "No Program"
        assert out.loc["1SCCC3X1", "rebate_value"] == 0.0

    def test_keeps_claim_columns(self, claims, details):
        out = validate_claims(claims, details)
        assert list(out.columns)[: len(claims.columns)] == list(claims.columns)
        assert len(out) == len(claims)

    def test_empty_claims(self, claims, details):
        assert validate_claims(claims.iloc[0:0], details).empty


class TestProgramUtilisation:
    def test_tracked_against_program(self, claims, details):
        out = program_utilisation(claims, details).set_index("program_code")
        q2 = out.loc["P-Q2-1"]
        assert q2["tracked_qty"] == 1
        assert q2["variance"] == 0.0
        assert q2["potential_rebate"] == 20.0
        assert q2["remaining"] == 49.0
        assert out.loc["P-Q2-2", "tracked_qty"] == 0
        assert pd.isna(out.loc["P-Q2-2", "remaining"])
        assert out.loc["P-Q1-1", "potential_rebate"] == 10.0


class TestReconcileClaims:
    """Our sold serials against the vendor's claimed serials."""

    def test_statuses(self, sales, claims):
        out = reconcile_claims(sales, claims)
        counts = out["status"].value_counts().to_dict()
        assert counts == {"Matched": 3, "Unclaimed Sale": 1, "Unverified Claim": 1}

    def test_date_mismatch(self, sales, claims):
        out = reconcile_claims(sales, claims).set_index("serial_number")
        assert out.loc["1SAAA1S9", "date_mismatch"]
        assert not out.loc["1SAAA1S1", "date_mismatch"]
        assert out.loc["1SCCC3X1", "mtm"] == "CCC3"

    def test_both_empty(self):
        assert reconcile_claims(pd.DataFrame(), pd.DataFrame()).empty


class TestReconcileSales:
    """Per-unit profit after rebates."""

    @pytest.fixture
    def reconciled(self, sales, orders, serials, details, claims):
        return reconcile_sales(sales, orders, serials, details, claims).set_index("serial_number")

    def test_matched_with_rebate(self, reconciled):
        row = reconciled.loc["1SAAA1S1"]
        assert row["sales_order"] == "SO1001"
        assert row["landing_cost"] == 110.0
        assert row["rebate_programs"] == ["P-Q2-1"]
        assert row["net_cost"] == 90.0
        assert row["unit_profit"] == 60.0
        assert row["profit_margin"] == pytest.approx(40.0)
        assert row["status"] == "Matched"

    def test_landing_cost_falls_back_to_fob(self, reconciled):
        row = reconciled.loc["1SBBB2B1"]
        assert row["landing_cost"] == 200.0
        assert row["unit_profit"] == 100.0
        assert row["status"] == "No Rebate"

    def test_no_order_match(self, reconciled):
        row = reconciled.loc["1SAAA1S9"]
        assert row["status"] == "No Order Match"
        assert row["sales_order"] == "N/A"
        assert pd.isna(row["unit_profit"])

    def test_vendor_claim_date_drives_window(self, sales, orders, serials, details):
        claims = pd.DataFrame({
            "mtm": ["BBB2"],
            "invoice_date": [pd.Timestamp("2025-06-03")],
            "quantity": [1],
            "buyer_id": ["B02"],
            "invoice_number": ["INV-2"],
            "serial_number": ["1SBBB2B1"],
            "unit_price": [300.0],
        })
        out = reconcile_sales(sales, orders, serials, details, claims).set_index("serial_number")
        assert out.loc["1SBBB2B1", "rebate_applied"] == 30.0
        assert out.loc["1SBBB2B1", "invoice_date"] == pd.Timestamp("2025-06-03")

    def test_profit_rollups(self, sales, orders, serials, details, claims):
        reconciled = reconcile_sales(sales, orders, serials, details, claims)
        assert profit_by_mtm(reconciled) == {
            "AAA1": {"profit": 120.0, "revenue": 300.0},
            "BBB2": {"profit": 100.0, "revenue": 300.0},
        }
        k = profitability_kpis(reconciled)
        assert k["total_profit"] == 220.0
        assert k["average_margin"] == pytest.approx(220 / 600 * 100)
        # the uncosted January sale still carries its Q1 rebate
        assert k["total_rebates_applied"] == 50.0
        assert k["sales_with_rebates"] == 3
        assert k["sales_missing_cost"] == 1

    def test_empty_sales(self, orders, serials, details):
        assert reconcile_sales(pd.DataFrame(), orders, serials, details).empty
        assert profitability_kpis(pd.DataFrame())["total_profit"] == 0.0
