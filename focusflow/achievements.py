"""
Achievement rules for the FocusFlow application.

`evaluate()` is a pure function from accumulated facts to newly unlocked
badges. `AchievementService` keeps the per-user unlocked set in storage
and only ever grows it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    AbstractSet, Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union
)
import logging

from .models import Quadrant, SessionMode, Task
from .storage import Storage, ACHIEVEMENTS

logger = logging.getLogger(__name__)


class Achievement(str, Enum):
    """Badge identifiers. Values are what gets persisted."""
    FIRST = "first"
    TENTH = "tenth"
    FIFTIETH = "fiftieth"
    HUNDREDTH = "hundredth"
    MARATHON = "marathon"
    UNSTOPPABLE = "unstoppable"
    EARLY_BIRD = "early-bird"
    NIGHT_OWL = "night-owl"
    WEEKEND_WARRIOR = "weekend-warrior"
    BREAK_CHAMPION = "break-champion"
    FIRST_TASK = "first-task"
    TENTH_TASK = "tenth-task"
    DELEGATOR = "delegator"
    Q1_CLEARED = "q1-cleared"
    Q2_CLEARED = "q2-cleared"
    BANE_OF_PROCRASTINATION = "bane-of-procrastination"
    JUGGLER = "juggler"
    FULL_BOARD = "full-board"
    PERSONALIZER = "personalizer"


@dataclass(frozen=True)
class AchievementDescriptor:
    """Display information for a badge."""
    achievement: Achievement
    title: str
    description: str


ACHIEVEMENT_CATALOG: Dict[Achievement, AchievementDescriptor] = {
    d.achievement: d for d in (
        AchievementDescriptor(Achievement.FIRST, "First Step", "Complete your first work session."),
        AchievementDescriptor(Achievement.TENTH, "Focused Mind", "Complete 10 work sessions."),
        AchievementDescriptor(Achievement.FIFTIETH, "Focus Pro", "Complete 50 work sessions."),
        AchievementDescriptor(Achievement.HUNDREDTH, "Focus Grandmaster", "Complete 100 work sessions."),
        AchievementDescriptor(Achievement.MARATHON, "Marathon Runner", "Complete 4 work sessions in a single cycle."),
        AchievementDescriptor(Achievement.UNSTOPPABLE, "Unstoppable", "Complete 8 work sessions in a single cycle."),
        AchievementDescriptor(Achievement.EARLY_BIRD, "Early Bird", "Complete a work session before 8 AM."),
        AchievementDescriptor(Achievement.NIGHT_OWL, "Night Owl", "Complete a work session after 10 PM."),
        AchievementDescriptor(Achievement.WEEKEND_WARRIOR, "Weekend Warrior", "Complete a work session on a weekend."),
        AchievementDescriptor(Achievement.BREAK_CHAMPION, "Break Champion", "Take both a short and a long break."),
        AchievementDescriptor(Achievement.FIRST_TASK, "Task Initiator", "Complete your first task."),
        AchievementDescriptor(Achievement.TENTH_TASK, "Task Master", "Complete 10 tasks."),
        AchievementDescriptor(Achievement.DELEGATOR, "Delegator", "Complete a task from the 'Delegate' quadrant."),
        AchievementDescriptor(Achievement.Q1_CLEARED, "Crisis Averted", "Clear all Urgent & Important tasks."),
        AchievementDescriptor(Achievement.Q2_CLEARED, "Planner", "Clear all Not Urgent & Important tasks."),
        AchievementDescriptor(Achievement.BANE_OF_PROCRASTINATION, "Procrastinator's Bane",
                              "Clear all tasks from the 'Delete' quadrant."),
        AchievementDescriptor(Achievement.JUGGLER, "Task Juggler", "Complete at least one task from every quadrant."),
        AchievementDescriptor(Achievement.FULL_BOARD, "Full Board", "Have at least one task in every quadrant."),
        AchievementDescriptor(Achievement.PERSONALIZER, "Personalizer", "Customize your timer settings."),
    )
}


# ==================== Facts ====================

@dataclass(frozen=True)
class WorkSessionFacts:
    """
    Facts after a work session completes.
    `day_of_week` counts Sunday as 0 and Saturday as 6.
    """
    total_completed: int
    cycle_count: int
    hour: int
    day_of_week: int

    @classmethod
    def at(cls, total_completed: int, cycle_count: int, when: datetime) -> "WorkSessionFacts":
        return cls(
            total_completed=total_completed,
            cycle_count=cycle_count,
            hour=when.hour,
            day_of_week=(when.weekday() + 1) % 7,
        )


@dataclass(frozen=True)
class BreakFacts:
    """Whether each break kind has ever been logged, the current one included."""
    has_short_break: bool = False
    has_long_break: bool = False


TaskLike = Union[Task, Mapping[str, Any]]
TaskCollections = Mapping[Any, Optional[Iterable[TaskLike]]]


@dataclass(frozen=True)
class TaskFacts:
    """Per-quadrant task collections, evaluated after a task is completed."""
    tasks: TaskCollections = field(default_factory=dict)


@dataclass(frozen=True)
class BoardFacts:
    """Per-quadrant task collections, evaluated after the board changes shape."""
    tasks: TaskCollections = field(default_factory=dict)


@dataclass(frozen=True)
class SettingsSavedFacts:
    """Settings were saved."""
    pass


Facts = Union[WorkSessionFacts, BreakFacts, TaskFacts, BoardFacts, SettingsSavedFacts]


# ==================== Rules ====================

def _is_completed(task: TaskLike) -> bool:
    if isinstance(task, Task):
        return task.completed
    return bool(task and task.get("completed"))


def _quadrant(tasks: TaskCollections, quadrant: Quadrant) -> List[TaskLike]:
    """Tasks of one quadrant; an absent quadrant is empty."""
    items = tasks.get(quadrant)
    if items is None:
        items = tasks.get(quadrant.value)
    return [t for t in (items or []) if t]


def _work_rules(facts: WorkSessionFacts) -> List[Tuple[Achievement, bool]]:
    total = facts.total_completed
    return [
        (Achievement.FIRST, total >= 1),
        (Achievement.TENTH, total >= 10),
        (Achievement.FIFTIETH, total >= 50),
        (Achievement.HUNDREDTH, total >= 100),
        (Achievement.MARATHON, facts.cycle_count == 4),
        (Achievement.UNSTOPPABLE, facts.cycle_count == 8),
        (Achievement.EARLY_BIRD, facts.hour < 8),
        (Achievement.NIGHT_OWL, facts.hour >= 22),
        (Achievement.WEEKEND_WARRIOR, facts.day_of_week in (0, 6)),
    ]


def _break_rules(facts: BreakFacts) -> List[Tuple[Achievement, bool]]:
    return [(Achievement.BREAK_CHAMPION, facts.has_short_break and facts.has_long_break)]


def _task_rules(facts: TaskFacts) -> List[Tuple[Achievement, bool]]:
    by_quadrant = {q: _quadrant(facts.tasks, q) for q in Quadrant}
    completed = {q: [t for t in items if _is_completed(t)] for q, items in by_quadrant.items()}
    total_completed = sum(len(items) for items in completed.values())

    def cleared(q: Quadrant) -> bool:
        return bool(by_quadrant[q]) and len(completed[q]) == len(by_quadrant[q])

    return [
        (Achievement.FIRST_TASK, total_completed >= 1),
        (Achievement.TENTH_TASK, total_completed >= 10),
        (Achievement.DELEGATOR, bool(completed[Quadrant.Q3])),
        (Achievement.Q1_CLEARED, cleared(Quadrant.Q1)),
        (Achievement.Q2_CLEARED, cleared(Quadrant.Q2)),
        (Achievement.BANE_OF_PROCRASTINATION, cleared(Quadrant.Q4)),
        (Achievement.JUGGLER, all(completed[q] for q in Quadrant)),
    ]


def _board_rules(facts: BoardFacts) -> List[Tuple[Achievement, bool]]:
    return [(Achievement.FULL_BOARD, all(_quadrant(facts.tasks, q) for q in Quadrant))]


def _settings_rules(facts: SettingsSavedFacts) -> List[Tuple[Achievement, bool]]:
    return [(Achievement.PERSONALIZER, True)]


_RULES = {
    WorkSessionFacts: _work_rules,
    BreakFacts: _break_rules,
    TaskFacts: _task_rules,
    BoardFacts: _board_rules,
    SettingsSavedFacts: _settings_rules,
}


def _normalize(unlocked: Iterable[Any]) -> FrozenSet[Achievement]:
    """Known identifiers from a stored list; unknown ones are dropped."""
    result = set()
    for value in unlocked or ():
        try:
            result.add(Achievement(value))
        except ValueError:
            continue
    return frozenset(result)


def evaluate(facts: Facts, already_unlocked: AbstractSet[Any] = frozenset()) -> FrozenSet[Achievement]:
    """
    Return the achievements these facts unlock that are not unlocked yet.

    Never removes anything: the caller unions the result into its set, so
    evaluating the same facts again yields an empty delta.
    """
    rules = _RULES.get(type(facts))
    if rules is None:
        raise TypeError(f"Unsupported facts: {type(facts).__name__}")

    unlocked = _normalize(already_unlocked)
    if isinstance(facts, BreakFacts) and Achievement.BREAK_CHAMPION in unlocked:
        return frozenset()

    return frozenset(a for a, passed in rules(facts) if passed and a not in unlocked)


class AchievementService:
    """Per-user achievement set backed by the `achievements` document."""

    def __init__(self, storage: Storage, user_id: str):
        self.storage = storage
        self.user_id = user_id

    def unlocked(self) -> FrozenSet[Achievement]:
        doc = self.storage.get_document(self.user_id, ACHIEVEMENTS) or {}
        return _normalize(doc.get("unlocked", []))

    def record(self, facts: Facts) -> FrozenSet[Achievement]:
        """
        Evaluate facts against the stored set and union in the result.
        Runs inside a transactional update, so concurrent grants are not lost.

        Returns:
            The achievements unlocked by this call.
        """
        delta: FrozenSet[Achievement] = frozenset()

        if not evaluate(facts, self.unlocked()):
            return delta

        def merge(doc: Dict[str, Any]) -> Dict[str, Any]:
            nonlocal delta
            stored = list(doc.get("unlocked", []))
            delta = evaluate(facts, set(stored))
            doc["unlocked"] = stored + sorted(a.value for a in delta)
            return doc

        self.storage.update_document(self.user_id, ACHIEVEMENTS, merge)
        if delta:
            logger.info("Unlocked achievements: %s", ", ".join(sorted(a.value for a in delta)))
        return delta

    def progress(self) -> List[Tuple[AchievementDescriptor, bool]]:
        """Every badge with whether it is unlocked, in catalog order."""
        unlocked = self.unlocked()
        return [(d, d.achievement in unlocked) for d in ACHIEVEMENT_CATALOG.values()]
