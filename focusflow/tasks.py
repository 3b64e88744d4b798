"""
Priority board (four urgency/importance quadrants).
Stored as one `eisenhower-tasks` document: {"q1": [...], ..., "q4": [...]}.
"""

import logging
import time
from typing import Any, Dict, FrozenSet, List, Optional

from .achievements import Achievement, AchievementService, BoardFacts, TaskFacts
from .errors import ValidationFailure
from .models import Quadrant, Task
from .settings import SettingsStore
from .storage import Storage, TASKS, COMPLETED_TASKS

logger = logging.getLogger(__name__)

Board = Dict[Quadrant, List[Task]]


def empty_board() -> Board:
    return {q: [] for q in Quadrant}


class TaskBoard:
    """Per-user task board with achievement hooks."""

    def __init__(
        self,
        storage: Storage,
        user_id: str,
        achievements: AchievementService,
        settings: SettingsStore
    ):
        self.storage = storage
        self.user_id = user_id
        self.achievements = achievements
        self.settings = settings

    # ==================== Reads ====================

    def board(self) -> Board:
        """All tasks by quadrant. Missing quadrants are empty."""
        doc = self.storage.get_document(self.user_id, TASKS) or {}
        board = empty_board()
        for quadrant in Quadrant:
            for item in doc.get(quadrant.value) or []:
                if item:
                    board[quadrant].append(Task.from_dict(item, quadrant))
        return board

    def urgent_tasks(self) -> List[Task]:
        """The urgent & important list shown next to the timer."""
        return self.board()[Quadrant.Q1]

    def completed_log(self) -> List[Dict[str, Any]]:
        return self.storage.list_entries(self.user_id, COMPLETED_TASKS)

    def _find(self, board: Board, task_id: str) -> Optional[Task]:
        for tasks in board.values():
            for task in tasks:
                if task.id == task_id:
                    return task
        return None

    def _save(self, board: Board):
        self.storage.set_document(
            self.user_id,
            TASKS,
            {q.value: [t.to_dict() for t in board[q]] for q in Quadrant},
            merge=False,
        )

    # ==================== Writes ====================

    def add_task(self, text: str, quadrant: Quadrant = Quadrant.Q1, intention: Optional[str] = None) -> Task:
        """
        Add a task to a quadrant.

        Raises:
            ValidationFailure: if the text is blank.
        """
        if not text or not text.strip():
            raise ValidationFailure("text", text, "Task text is required.")

        task = Task(text=text.strip(), quadrant=quadrant, intention=(intention or "").strip() or None)
        board = self.board()
        board[quadrant].append(task)
        self._save(board)
        self.achievements.record(BoardFacts(board))
        return task

    def edit_task(self, updated: Task) -> bool:
        """Replace a task in place, or move it if its quadrant changed."""
        if not updated.text or not updated.text.strip():
            raise ValidationFailure("text", updated.text, "Task text is required.")

        board = self.board()
        original = self._find(board, updated.id)
        if original is None:
            return False

        source = board[original.quadrant]
        index = source.index(original)
        if original.quadrant is updated.quadrant:
            source[index] = updated
        else:
            del source[index]
            board[updated.quadrant].append(updated)

        self._save(board)
        self.achievements.record(BoardFacts(board))
        return True

    def delete_task(self, task_id: str) -> bool:
        board = self.board()
        task = self._find(board, task_id)
        if task is None:
            return False
        board[task.quadrant].remove(task)
        self._save(board)
        return True

    def toggle_task(self, task_id: str) -> FrozenSet[Achievement]:
        """
        Flip a task's completed flag. Completing a task may log it and
        unlock task badges.

        Returns:
            Newly unlocked achievements.
        """
        board = self.board()
        task = self._find(board, task_id)
        if task is None:
            return frozenset()

        task.completed = not task.completed
        self._save(board)
        if not task.completed:
            return frozenset()

        if self.settings.load().log_completed_tasks:
            now = int(time.time())
            self.storage.append(
                self.user_id, COMPLETED_TASKS,
                {**task.to_dict(), "completed_at": now, "created_at": now}
            )
        logger.info("Task completed in %s", task.quadrant.value)
        return self.achievements.record(TaskFacts(board))
