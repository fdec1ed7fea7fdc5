"""
Product specification parsing and breakdowns.

Order lines carry a free-text specification, e.g.
"Core i5-1335U, 16GB DDR4, 512GB SSD, 15.6\" FHD IPS, Win11 Home".
It is parsed into a handful of comparable attributes so the catalogue can
be sliced by CPU family, RAM, storage, GPU, screen and OS.
"""

import logging
import re

import pandas as pd

from .loaders.utils import is_missing

logger = logging.getLogger(__name__)

SPEC_KEYS = [
    "cpu_model",
    "cpu_family",
    "gpu",
    "ram_size",
    "storage_size",
    "screen_size",
    "screen_type",
    "os",
]

_CPU_RE = re.compile(
    r"(Core\s?Ultra\s?(?:5|7|9)[\w\s-]*|Core\s?i[3579][\w\s-]*|i[3579][\w\s-]*|Celeron[\w\s-]*)",
    re.IGNORECASE,
)
_ULTRA_RE = re.compile(r"ultra\s(5|7|9)")
_GPU_RE = re.compile(r"RTX\s?\d{4}\s?\d{1,2}GB|Intel\sUHD\sGraphics|Integrated\sGraphics", re.IGNORECASE)
_RAM_RE = re.compile(r"(\d{1,2}GB)\s?(?:LPDDR|DDR)", re.IGNORECASE)
_STORAGE_RE = re.compile(r"(\d{3,4}GB|\dTB)\s(?:SSD|Gen4)", re.IGNORECASE)
_SCREEN_SIZE_RE = re.compile(r'(\d{2}\.?\d?)"')
_SCREEN_TYPE_RE = re.compile(r"IPS|OLED", re.IGNORECASE)
_OS_RE = re.compile(r"Win\s?\d{2}|Windows®?\s\d{2}|NoOS", re.IGNORECASE)


def _group(regex: re.Pattern, text: str) -> str | None:
    m = regex.search(text)
    if not m or not m.group(1):
        return None
    return m.group(1).strip()


def parse_specification(text) -> dict[str, str]:
    """Extract comparable attributes from a specification string.

    Only attributes that are found appear in the result; an empty or
    missing specification gives {}.
    """
    if is_missing(text):
        return {}
    spec = str(text)
    out: dict[str, str] = {}

    cpu = _CPU_RE.search(spec)
    if cpu:
        model = re.sub(r"Core™?\s?", "", cpu.group(0), count=1).strip()
        out["cpu_model"] = model
        lower = model.lower()
        if "ultra" in lower:
            ultra = _ULTRA_RE.search(lower)
            if ultra:
                out["cpu_family"] = f"Core Ultra {ultra.group(1)}"
        elif lower.startswith("i"):
            family = re.search(r"i[3579]", lower)
            if family:
                out["cpu_family"] = f"Core {family.group(0).upper()}"
        elif lower.startswith("celeron"):
            out["cpu_family"] = "Celeron"

    gpu = _GPU_RE.search(spec)
    if gpu:
        out["gpu"] = "NVIDIA RTX" if "rtx" in gpu.group(0).lower() else "Intel Integrated"

    for key, regex in (("ram_size", _RAM_RE), ("storage_size", _STORAGE_RE), ("screen_size", _SCREEN_SIZE_RE)):
        value = _group(regex, spec)
        if value:
            out[key] = value

    screen = _SCREEN_TYPE_RE.search(spec)
    if screen:
        out["screen_type"] = screen.group(0).upper()

    os_match = _OS_RE.search(spec)
    if os_match:
        os_str = os_match.group(0).lower()
        out["os"] = "Windows" if "win" in os_str else "No OS"

    return out


def build_spec_items(orders: pd.DataFrame) -> pd.DataFrame:
    """One row per MTM with its parsed specification attributes.

    The first order line with a parseable specification wins for each MTM.

    Returns
    -------
    DataFrame with columns mtm, model_name and SPEC_KEYS (None when the
    attribute is not present).
    """
    columns = ["mtm", "model_name"] + SPEC_KEYS
    if orders.empty:
        return pd.DataFrame(columns=columns)

    rows = {}
    for o in orders.itertuples(index=False):
        if o.mtm in rows:
            continue
        parsed = parse_specification(o.specification)
        if not parsed:
            continue
        rows[o.mtm] = {"mtm": o.mtm, "model_name": o.model_name, **{k: parsed.get(k) for k in SPEC_KEYS}}

    logger.info("Built spec items with %d rows", len(rows))
    return pd.DataFrame(list(rows.values()), columns=columns, dtype=object)


def filter_by_specs(items: pd.DataFrame, active: dict[str, str]) -> pd.DataFrame:
    """Keep items matching every active attribute filter."""
    if items.empty or not active:
        return items
    mask = pd.Series(True, index=items.index)
    for key, value in active.items():
        if key not in SPEC_KEYS:
            raise ValueError(f"Unknown specification attribute '{key}'")
        mask &= items[key] == value
    return items[mask]


def spec_distribution(
    items: pd.DataFrame,
    key: str,
    view: str = "count",
    sales: pd.DataFrame | None = None,
) -> pd.DataFrame:
    """Distribution of one attribute across items.

    Parameters
    ----------
    items : Output of build_spec_items(), possibly filtered.
    key : One of SPEC_KEYS.
    view : "count" (number of MTMs), "units" or "revenue" (from `sales`
        restricted to the items' MTMs).

    Returns
    -------
    DataFrame with columns name, value sorted by value descending.
    """
    if key not in SPEC_KEYS:
        raise ValueError(f"Unknown specification attribute '{key}'")
    if view not in ("count", "units", "revenue"):
        raise ValueError(f"Unknown distribution view '{view}'")

    empty = pd.DataFrame(columns=["name", "value"])
    if items.empty:
        return empty
    valued = items[items[key].notna()]
    if valued.empty:
        return empty

    if view == "count":
        counts = valued.groupby(key, sort=True).size()
    else:
        if sales is None or sales.empty:
            return empty
        spec_by_mtm = dict(zip(valued["mtm"], valued[key]))
        relevant = sales[sales["mtm"].isin(spec_by_mtm)]
        if relevant.empty:
            return empty
        metric = "quantity" if view == "units" else "total_revenue"
        counts = relevant.groupby(relevant["mtm"].map(spec_by_mtm), sort=True)[metric].sum()

    out = pd.DataFrame({"name": counts.index.astype(str), "value": counts.to_numpy()})
    return out.sort_values("value", ascending=False, kind="mergesort").reset_index(drop=True)
