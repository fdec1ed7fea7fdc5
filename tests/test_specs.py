"""Tests for specification parsing and attribute breakdowns."""

import pandas as pd
import pytest

from distributor_dashboard.specs import (
    build_spec_items,
    filter_by_specs,
    parse_specification,
    spec_distribution,
)

from conftest import SPEC_CELERON, SPEC_I5, SPEC_I7


class TestParseSpecification:
    """Free-text specification strings."""

    def test_core_i5(self):
        assert parse_specification(SPEC_I5) == {
            "cpu_model": "i5-1335U",
            "cpu_family": "Core I5",
            "ram_size": "16GB",
            "storage_size": "512GB",
            "screen_size": "14",
            "screen_type": "IPS",
            "os": "Windows",
        }

    def test_discrete_gpu_and_oled(self):
        out = parse_specification(SPEC_I7)
        assert out["cpu_family"] == "Core I7"
        assert out["gpu"] == "NVIDIA RTX"
        assert out["ram_size"] == "32GB"
        assert out["storage_size"] == "1TB"
        assert out["screen_type"] == "OLED"

    def test_celeron_without_os(self):
        out = parse_specification(SPEC_CELERON)
        assert out["cpu_family"] == "Celeron"
        assert out["gpu"] == "Intel Integrated"
        assert out["ram_size"] == "8GB"
        assert out["screen_size"] == "15.6"
        assert out["os"] == "No OS"
        assert "screen_type" not in out

    def test_core_ultra(self):
        out = parse_specification("Core Ultra 7 155H, 16GB LPDDR5x, 1TB SSD")
        assert out["cpu_family"] == "Core Ultra 7"

    @pytest.mark.parametrize("text", [None, "", "N/A"])
    def test_missing(self, text):
        assert parse_specification(text) == {}


class TestSpecItems:
    """Per-MTM attributes and their distributions."""

    @pytest.fixture
    def items(self, orders):
        return build_spec_items(orders)

    def test_one_row_per_parsed_mtm(self, items):
        assert sorted(items["mtm"]) == ["AAA1", "BBB2", "CCC3"]
        aaa = items.set_index("mtm").loc["AAA1"]
        assert aaa["model_name"] == "ThinkPad E14"
        assert pd.isna(aaa["gpu"])
        assert items["gpu"].dtype == object

    def test_filter_by_specs(self, items):
        assert filter_by_specs(items, {"ram_size": "16GB"})["mtm"].tolist() == ["AAA1"]
        assert filter_by_specs(items, {}) is items
        with pytest.raises(ValueError):
            filter_by_specs(items, {"colour": "black"})

    def test_count_view(self, items):
        out = spec_distribution(items, "cpu_family")
        assert out["name"].tolist() == ["Celeron", "Core I5", "Core I7"]
        assert out["value"].tolist() == [1, 1, 1]

    def test_revenue_and_units_views(self, items, sales):
        revenue = spec_distribution(items, "cpu_family", "revenue", sales)
        assert dict(zip(revenue["name"], revenue["value"])) == {"Core I5": 440.0, "Core I7": 300.0}
        assert revenue["name"].iloc[0] == "Core I5"
        units = spec_distribution(items, "cpu_family", "units", sales)
        assert dict(zip(units["name"], units["value"])) == {"Core I5": 3, "Core I7": 1}

    def test_missing_attribute_rows_skipped(self, items):
        out = spec_distribution(items, "gpu")
        assert sorted(out["name"]) == ["Intel Integrated", "NVIDIA RTX"]

    def test_bad_arguments(self, items):
        with pytest.raises(ValueError):
            spec_distribution(items, "colour")
        with pytest.raises(ValueError):
            spec_distribution(items, "os", "share")
