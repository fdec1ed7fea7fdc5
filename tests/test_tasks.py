"""Tests for Kanban board operations."""

import pandas as pd
import pytest

from distributor_dashboard.tasks import (
    add_task,
    clear_done,
    delete_task,
    drop_index,
    group_by_status,
    move_task,
    update_task,
)

NOW = pd.Timestamp("2025-06-18 09:30")


def ids(column):
    return [t["id"] for t in column]


class TestGroupByStatus:
    def test_every_column_in_board_order(self, task_list):
        board = group_by_status(task_list)
        assert list(board) == ["Planning", "In Progress", "Paused", "Done", "Canceled", "Backlog"]
        assert ids(board["Planning"]) == ["t1"]
        assert board["Backlog"] == []

    def test_unknown_status_skipped(self):
        board = group_by_status([{"id": "x", "status": "Archived"}])
        assert all(not column for column in board.values())


class TestMoveTask:
    """Moving cards between and within columns."""

    def test_move_to_other_column_at_index(self, task_list):
        out = move_task(task_list, "t4", "Planning", index=0, now=NOW)
        board = group_by_status(out)
        assert ids(board["Planning"]) == ["t4", "t1"]
        assert board["Paused"] == []
        moved = next(t for t in out if t["id"] == "t4")
        assert moved["updated_at"] == NOW

    def test_index_is_clamped(self, task_list):
        out = move_task(task_list, "t4", "Planning", index=99, now=NOW)
        assert ids(group_by_status(out)["Planning"]) == ["t1", "t4"]

    def test_reorder_within_column_keeps_timestamp(self, task_list):
        staged = move_task(task_list, "t2", "Planning", now=NOW)
        out = move_task(staged, "t2", "Planning", index=0, now=pd.Timestamp("2025-07-01"))
        assert ids(group_by_status(out)["Planning"]) == ["t2", "t1"]
        assert next(t for t in out if t["id"] == "t2")["updated_at"] == NOW

    def test_done_stamps_and_clears_completion(self, task_list):
        done = move_task(task_list, "t1", "Done", now=NOW)
        assert next(t for t in done if t["id"] == "t1")["completed_at"] == NOW
        reopened = move_task(done, "t1", "In Progress", now=NOW)
        assert next(t for t in reopened if t["id"] == "t1")["completed_at"] is None

    def test_unknown_id_returns_copy(self, task_list):
        out = move_task(task_list, "nope", "Done", now=NOW)
        assert out == task_list
        assert out is not task_list

    def test_unknown_status_raises(self, task_list):
        with pytest.raises(ValueError):
            move_task(task_list, "t1", "Archived")

    def test_input_untouched(self, task_list):
        before = [(t["id"], t["status"], t["updated_at"]) for t in task_list]
        move_task(task_list, "t1", "Done", index=0, now=NOW)
        assert [(t["id"], t["status"], t["updated_at"]) for t in task_list] == before
        assert pd.isna(task_list[0]["completed_at"])


class TestEditing:
    """Updating, adding and removing cards."""

    def test_update_fields(self, task_list):
        out = update_task(task_list, "t2", {"title": "Call Beta Corp", "priority": "High"}, now=NOW)
        t2 = next(t for t in out if t["id"] == "t2")
        assert t2["title"] == "Call Beta Corp"
        assert t2["priority"] == "High"
        assert t2["updated_at"] == NOW

    def test_update_status_to_done(self, task_list):
        out = update_task(task_list, "t2", {"status": "Done"}, now=NOW)
        assert next(t for t in out if t["id"] == "t2")["completed_at"] == NOW

    @pytest.mark.parametrize("updates", [{"id": "t9"}, {"status": "Archived"}, {"priority": "Urgent"}])
    def test_update_rejects(self, task_list, updates):
        with pytest.raises(ValueError):
            update_task(task_list, "t2", updates)

    def test_add_task(self, task_list):
        out, task = add_task(task_list, "  New card ", "a@x.com", status="Backlog", now=NOW, id="t5")
        assert task["title"] == "New card"
        assert task["priority"] == "Medium"
        assert task["created_at"] == NOW
        assert task["completed_at"] is None
        assert out[-1] is task
        assert len(task_list) == 4

    def test_add_generates_id(self, task_list):
        _, task = add_task(task_list, "Card", "a@x.com")
        assert task["id"]

    def test_add_blank_title(self, task_list):
        with pytest.raises(ValueError):
            add_task(task_list, "  ", "a@x.com")

    def test_delete_and_clear_done(self, task_list):
        assert ids(delete_task(task_list, "t2")) == ["t1", "t3", "t4"]
        assert ids(clear_done(task_list)) == ["t1", "t2", "t4"]


class TestDropIndex:
    @pytest.mark.parametrize("pointer,expected", [(5, 0), (25, 1), (55, 2), (90, 3)])
    def test_first_card_below_pointer(self, pointer, expected):
        assert drop_index([10.0, 40.0, 70.0], pointer) == expected

    def test_empty_column(self):
        assert drop_index([], 12.0) == 0
