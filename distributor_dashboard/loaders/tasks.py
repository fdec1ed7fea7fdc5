"""
Loader for the task board sheet.

Task sheets are maintained by hand, so header labels drift ("unique_id",
"Unique ID", "uniqueId"). Headers are matched after lower-casing and
dropping spaces, underscores and '#'.
"""

import logging

import pandas as pd

from ..config import (
    DEFAULT_TASK_ICON,
    DEFAULT_TASK_PRIORITY,
    DEFAULT_TASK_STATUS,
    TASK_COLUMNS,
    TASK_HEADERS,
    TASK_PRIORITIES,
    TASKS_FILE,
)
from .utils import SourceError, clean_text, normalise_header, parse_int, parse_sheet_date, read_table

logger = logging.getLogger(__name__)

TASK_FIELDS = list(TASK_HEADERS.values())

_STATUS_ALIASES = {"Todo": "Planning"}


def load_tasks(src=TASKS_FILE, now: pd.Timestamp | None = None) -> pd.DataFrame:
    return parse_tasks(read_table(src), now=now)


def parse_tasks(raw: pd.DataFrame, now: pd.Timestamp | None = None) -> pd.DataFrame:
    """Normalise task rows.

    Parameters
    ----------
    raw : DataFrame with the sheet's headers, in any of their spellings.
    now : Fallback for missing created/updated timestamps. Defaults to
        the current time.

    Returns
    -------
    DataFrame with columns:
        id, title, description, status, priority, created_at, updated_at,
        completed_at, user_email, start_date, due_date, dependencies,
        icon, progress
    """
    if raw.empty:
        logger.warning("Task sheet is empty")
        return pd.DataFrame(columns=TASK_FIELDS)

    now = pd.Timestamp.now() if now is None else pd.Timestamp(now)
    lookup = {normalise_header(c): c for c in raw.columns}
    if normalise_header("unique_id") not in lookup:
        raise SourceError(f"Task sheet has no id column; got {list(raw.columns)}")

    def column(header: str) -> pd.Series:
        src = lookup.get(normalise_header(header))
        if src is None:
            return pd.Series([""] * len(raw), index=raw.index, dtype=object)
        return raw[src]

    df = pd.DataFrame(index=raw.index)
    df["id"] = column("unique_id").map(lambda v: clean_text(v, default=""))
    df["title"] = column("title").map(lambda v: clean_text(v, default="Untitled Task"))
    df["description"] = column("description").map(lambda v: clean_text(v, default=""))
    df["status"] = column("status").map(valid_status)
    df["priority"] = column("priority").map(valid_priority)
    df["created_at"] = pd.to_datetime(column("createdAt").map(parse_sheet_date)).fillna(now)
    df["updated_at"] = pd.to_datetime(column("timestamp").map(parse_sheet_date)).fillna(now)
    df["completed_at"] = pd.to_datetime(column("completedAt").map(parse_sheet_date))
    df["user_email"] = column("user_email").map(lambda v: clean_text(v, default=""))
    df["start_date"] = pd.to_datetime(column("Start Date").map(parse_sheet_date))
    df["due_date"] = pd.to_datetime(column("Due Date").map(parse_sheet_date))
    df["dependencies"] = column("Dependencies").map(split_dependencies)
    df["icon"] = column("Icon").map(lambda v: clean_text(v, default=DEFAULT_TASK_ICON))
    df["progress"] = column("# Progress").map(parse_int)

    df = df[df["id"] != ""].reset_index(drop=True)
    logger.info("Built tasks with %d rows", len(df))
    return df[TASK_FIELDS]


def valid_status(val) -> str:
    """Map a sheet status onto the board's columns; unknown -> Planning."""
    s = clean_text(val, default="")
    s = _STATUS_ALIASES.get(s, s)
    return s if s in TASK_COLUMNS else DEFAULT_TASK_STATUS


def valid_priority(val) -> str:
    s = clean_text(val, default="")
    return s if s in TASK_PRIORITIES else DEFAULT_TASK_PRIORITY


def split_dependencies(val) -> list[str] | None:
    s = clean_text(val, default="")
    if not s:
        return None
    return [d.strip() for d in s.split(",") if d.strip()]
