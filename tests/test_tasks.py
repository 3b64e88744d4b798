"""Tests for the priority board."""

import pytest

from focusflow.achievements import Achievement
from focusflow.errors import ValidationFailure
from focusflow.models import Quadrant, SessionConfig, Task
from focusflow.storage import TASKS
from focusflow.tasks import TaskBoard


@pytest.fixture
def board(storage, user_id, achievements, settings_store):
    return TaskBoard(storage, user_id, achievements, settings_store)


def test_empty_board_has_every_quadrant(board):
    assert board.board() == {q: [] for q in Quadrant}


def test_add_task(board):
    task = board.add_task("  Write report ", Quadrant.Q2, intention=" finish draft ")

    tasks = board.board()[Quadrant.Q2]
    assert tasks == [task]
    assert task.text == "Write report"
    assert task.intention == "finish draft"


@pytest.mark.parametrize("text", ["", "   "])
def test_blank_task_is_rejected(board, text):
    with pytest.raises(ValidationFailure):
        board.add_task(text)


def test_board_tolerates_partial_document(board, storage, user_id):
    storage.set_document(user_id, TASKS, {"q1": [{"id": "a", "text": "x"}, None], "q3": None})

    result = board.board()
    assert [t.id for t in result[Quadrant.Q1]] == ["a"]
    assert result[Quadrant.Q3] == []


def test_toggle_first_task_unlocks_once(board, achievements):
    task = board.add_task("Call the bank")

    unlocked = board.toggle_task(task.id)
    assert Achievement.FIRST_TASK in unlocked
    assert Achievement.Q1_CLEARED in unlocked

    board.toggle_task(task.id)
    assert board.toggle_task(task.id) == frozenset()
    assert Achievement.FIRST_TASK in achievements.unlocked()


def test_uncompleting_grants_nothing(board):
    task = board.add_task("x")
    board.toggle_task(task.id)

    assert board.toggle_task(task.id) == frozenset()
    assert board.board()[Quadrant.Q1][0].completed is False


def test_delegator_for_third_quadrant(board):
    task = board.add_task("Reply to email", Quadrant.Q3)
    assert Achievement.DELEGATOR in board.toggle_task(task.id)


def test_full_board_on_fourth_quadrant(board, achievements):
    for quadrant in (Quadrant.Q1, Quadrant.Q2, Quadrant.Q3):
        board.add_task("t", quadrant)
    assert Achievement.FULL_BOARD not in achievements.unlocked()

    board.add_task("t", Quadrant.Q4)
    assert Achievement.FULL_BOARD in achievements.unlocked()


def test_completed_tasks_logged_only_when_enabled(board, settings_store):
    first = board.add_task("a")
    board.toggle_task(first.id)
    assert board.completed_log() == []

    settings_store.save(SessionConfig(log_completed_tasks=True))
    second = board.add_task("b")
    board.toggle_task(second.id)

    log = board.completed_log()
    assert [e["text"] for e in log] == ["b"]


def test_edit_task_moves_between_quadrants(board):
    task = board.add_task("Plan week", Quadrant.Q1)
    moved = Task(text="Plan week", quadrant=Quadrant.Q2, id=task.id)

    assert board.edit_task(moved)
    result = board.board()
    assert result[Quadrant.Q1] == []
    assert result[Quadrant.Q2] == [moved]


def test_edit_task_in_place(board):
    task = board.add_task("Plan week")
    task.text = "Plan month"

    assert board.edit_task(task)
    assert board.urgent_tasks()[0].text == "Plan month"


def test_edit_unknown_task(board):
    assert board.edit_task(Task(text="ghost")) is False


def test_delete_task(board):
    keep = board.add_task("keep")
    drop = board.add_task("drop")

    assert board.delete_task(drop.id)
    assert board.delete_task(drop.id) is False
    assert board.urgent_tasks() == [keep]


def test_toggle_unknown_task(board):
    assert board.toggle_task("missing") == frozenset()
