"""
Kanban board operations over task records.

Tasks are plain dicts (one per card, as produced by
`parse_tasks(...).to_dict("records")`). The board order is the list order:
a column shows, top to bottom, the tasks of that status in the order they
appear in the list. Every operation returns a new list and leaves the
input list and its dicts untouched.
"""

import logging
import uuid

import pandas as pd

from .config import (
    DEFAULT_TASK_ICON,
    DEFAULT_TASK_PRIORITY,
    DEFAULT_TASK_STATUS,
    TASK_COLUMNS,
    TASK_PRIORITIES,
)

logger = logging.getLogger(__name__)

# Fields a caller may not overwrite through update_task
_PROTECTED_FIELDS = {"id", "created_at", "updated_at", "completed_at"}


def _now(now) -> pd.Timestamp:
    return pd.Timestamp.now() if now is None else pd.Timestamp(now)


def _check_status(status: str) -> None:
    if status not in TASK_COLUMNS:
        raise ValueError(f"Unknown task status '{status}'; expected one of {TASK_COLUMNS}")


def group_by_status(tasks: list[dict]) -> dict[str, list[dict]]:
    """Board columns in display order, each holding its tasks in list order.

    Every column is present, empty or not.
    """
    board: dict[str, list[dict]] = {status: [] for status in TASK_COLUMNS}
    for task in tasks:
        status = task.get("status")
        if status not in board:
            logger.warning("Task %s has unknown status '%s', skipping", task.get("id"), status)
            continue
        board[status].append(task)
    return board


def _apply_status_change(task: dict, old_status: str, new_status: str, now: pd.Timestamp) -> None:
    task["status"] = new_status
    task["updated_at"] = now
    if new_status == "Done":
        task["completed_at"] = now
    elif old_status == "Done":
        task["completed_at"] = None


def move_task(
    tasks: list[dict],
    task_id: str,
    new_status: str,
    index: int | None = None,
    now=None,
) -> list[dict]:
    """Move a card to `new_status`, at position `index` within that column.

    Parameters
    ----------
    tasks : Current board as a flat list.
    task_id : Card to move. An unknown id returns an unchanged copy.
    new_status : Target column. Raises ValueError if not a board column.
    index : Position in the target column once the card is removed from
        its old place. Clamped to the column; None appends at the end.
    now : Timestamp stamped on status changes.

    Returns
    -------
    New list. When the status changes, `updated_at` is set to `now`;
    entering Done sets `completed_at`, leaving Done clears it.
    """
    _check_status(new_status)
    copies = [dict(t) for t in tasks]

    pos = next((i for i, t in enumerate(copies) if t.get("id") == task_id), None)
    if pos is None:
        logger.warning("Task %s not found, board unchanged", task_id)
        return copies

    task = copies.pop(pos)
    old_status = task.get("status")
    if old_status != new_status:
        _apply_status_change(task, old_status, new_status, _now(now))

    column = [i for i, t in enumerate(copies) if t.get("status") == new_status]
    if index is None or index >= len(column):
        insert_at = column[-1] + 1 if column else len(copies)
    else:
        insert_at = column[max(index, 0)]
    copies.insert(insert_at, task)
    return copies


def update_task(tasks: list[dict], task_id: str, updates: dict, now=None) -> list[dict]:
    """Apply field `updates` to one task.

    `id`, `created_at`, `updated_at` and `completed_at` cannot be set
    directly. `updated_at` becomes `now`; status changes follow the same
    Done rules as move_task. Invalid status or priority raises ValueError.
    """
    blocked = _PROTECTED_FIELDS & set(updates)
    if blocked:
        raise ValueError(f"Cannot update protected task fields: {sorted(blocked)}")
    if "status" in updates:
        _check_status(updates["status"])
    if "priority" in updates and updates["priority"] not in TASK_PRIORITIES:
        raise ValueError(f"Unknown task priority '{updates['priority']}'")

    stamp = _now(now)
    out = []
    for t in tasks:
        if t.get("id") != task_id:
            out.append(dict(t))
            continue
        task = dict(t)
        old_status = task.get("status")
        task.update({k: v for k, v in updates.items() if k != "status"})
        task["updated_at"] = stamp
        new_status = updates.get("status", old_status)
        if new_status != old_status:
            _apply_status_change(task, old_status, new_status, stamp)
        out.append(task)
    return out


def add_task(
    tasks: list[dict],
    title: str,
    user_email: str,
    status: str = DEFAULT_TASK_STATUS,
    priority: str = DEFAULT_TASK_PRIORITY,
    now=None,
    **fields,
) -> tuple[list[dict], dict]:
    """Append a new card and return (new_list, new_task).

    Optional `fields`: description, start_date, due_date, dependencies,
    icon, progress, id.
    """
    if not title or not title.strip():
        raise ValueError("Task title must not be blank")
    _check_status(status)
    if priority not in TASK_PRIORITIES:
        raise ValueError(f"Unknown task priority '{priority}'")

    stamp = _now(now)
    task = {
        "id": fields.get("id") or str(uuid.uuid4()),
        "title": title.strip(),
        "description": fields.get("description", ""),
        "status": status,
        "priority": priority,
        "created_at": stamp,
        "updated_at": stamp,
        "completed_at": stamp if status == "Done" else None,
        "user_email": user_email,
        "start_date": fields.get("start_date"),
        "due_date": fields.get("due_date"),
        "dependencies": fields.get("dependencies"),
        "icon": fields.get("icon", DEFAULT_TASK_ICON),
        "progress": int(fields.get("progress", 0)),
    }
    return [dict(t) for t in tasks] + [task], task


def delete_task(tasks: list[dict], task_id: str) -> list[dict]:
    return [dict(t) for t in tasks if t.get("id") != task_id]


def clear_done(tasks: list[dict]) -> list[dict]:
    """Remove every task in the Done column."""
    return [dict(t) for t in tasks if t.get("status") != "Done"]


def drop_index(card_midpoints: list[float], pointer_y: float) -> int:
    """Where a dragged card would land in a column.

    Returns the index of the first card whose vertical midpoint lies
    below the pointer, or the column length when the pointer is past
    every card.
    """
    for i, mid in enumerate(card_midpoints):
        if pointer_y < mid:
            return i
    return len(card_midpoints)
