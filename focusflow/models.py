"""
Data models for the FocusFlow application.
Uses dataclasses for clean, type-annotated data structures.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Any, Dict
import time
import uuid


class SessionMode(Enum):
    """Which interval of the work/break cycle is active."""
    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]

    @property
    def is_break(self) -> bool:
        return self is not SessionMode.WORK


_MODE_LABELS = {
    SessionMode.WORK: "Work",
    SessionMode.SHORT_BREAK: "Short Break",
    SessionMode.LONG_BREAK: "Long Break",
}


class MessageSource(Enum):
    """Where end-of-session messages come from."""
    EXTERNAL_QUOTE = "external-quote"
    CUSTOM_LIST = "custom-list"


class MessageOrder(Enum):
    """How custom messages are picked."""
    RANDOM = "random"
    SEQUENTIAL = "sequential"


class Quadrant(Enum):
    """Urgency/importance quadrants of the task board."""
    Q1 = "q1"
    Q2 = "q2"
    Q3 = "q3"
    Q4 = "q4"

    @property
    def title(self) -> str:
        return _QUADRANT_TITLES[self]


_QUADRANT_TITLES = {
    Quadrant.Q1: "Urgent & Important",
    Quadrant.Q2: "Not Urgent & Important",
    Quadrant.Q3: "Urgent & Not Important",
    Quadrant.Q4: "Not Urgent & Not Important",
}


def coerce_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class SessionConfig:
    """
    Immutable snapshot of the user's timer settings.
    A fresh snapshot is handed to every decision (timer, prayer gate,
    message rotation) instead of sharing one mutable settings object.
    """
    work_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    salah_aware: bool = True
    salah_buffer_minutes: int = 10
    city: str = ""
    country: str = ""
    prayer_method: str = "2"
    show_end_session_message: bool = True
    message_source: MessageSource = MessageSource.EXTERNAL_QUOTE
    custom_messages: Tuple[str, ...] = ()
    message_order: MessageOrder = MessageOrder.RANDOM
    message_cursor: int = 0
    log_completed_tasks: bool = False

    def duration_minutes(self, mode: SessionMode) -> int:
        """Return configured minutes for a mode."""
        if mode is SessionMode.WORK:
            return self.work_minutes
        if mode is SessionMode.SHORT_BREAK:
            return self.short_break_minutes
        return self.long_break_minutes

    def duration_seconds(self, mode: SessionMode) -> int:
        return self.duration_minutes(mode) * 60

    @property
    def has_location(self) -> bool:
        return bool(self.city.strip()) and bool(self.country.strip())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the settings document."""
        data = asdict(self)
        data["message_source"] = self.message_source.value
        data["message_order"] = self.message_order.value
        data["custom_messages"] = list(self.custom_messages)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SessionConfig":
        """Build a snapshot from a stored document, ignoring unknown keys."""
        if not data:
            return cls()
        defaults = cls()
        values = {}
        for name in cls.__dataclass_fields__:
            if name in data and data[name] is not None:
                values[name] = data[name]
        values["message_source"] = coerce_enum(
            MessageSource, values.get("message_source"), defaults.message_source
        )
        values["message_order"] = coerce_enum(
            MessageOrder, values.get("message_order"), defaults.message_order
        )
        values["custom_messages"] = tuple(
            str(m) for m in values.get("custom_messages", ()) or ()
        )
        for name in ("work_minutes", "short_break_minutes", "long_break_minutes",
                     "salah_buffer_minutes", "message_cursor"):
            try:
                values[name] = int(values.get(name, getattr(defaults, name)))
            except (TypeError, ValueError):
                values[name] = getattr(defaults, name)
        values["prayer_method"] = str(values.get("prayer_method", defaults.prayer_method))
        return cls(**values)


@dataclass(frozen=True)
class SessionRuntimeState:
    """
    Current timer state.
    Replaced (never mutated) on every tick and command.
    """
    mode: SessionMode = SessionMode.WORK
    remaining_seconds: int = 25 * 60
    total_seconds: int = 25 * 60
    is_running: bool = False
    completed_work_count: int = 0
    # Set by pause, cleared by every other command
    is_paused: bool = False

    @property
    def elapsed_seconds(self) -> int:
        return self.total_seconds - self.remaining_seconds

    @property
    def progress_percentage(self) -> float:
        """Return progress as percentage (0-100)."""
        if self.total_seconds == 0:
            return 0.0
        return (self.elapsed_seconds / self.total_seconds) * 100.0

    def format_remaining(self) -> str:
        """Format remaining time as MM:SS."""
        return format_mmss(self.remaining_seconds)


def format_mmss(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass(frozen=True)
class LogEntry:
    """A completed session. Appended once, never changed."""
    kind: SessionMode
    duration_minutes: int
    completed_at: int = field(default_factory=lambda: int(time.time()))
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "duration_minutes": self.duration_minutes,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], entry_id: Optional[int] = None) -> "LogEntry":
        return cls(
            kind=SessionMode(data["kind"]),
            duration_minutes=int(data.get("duration_minutes", 0)),
            completed_at=int(data.get("completed_at", 0)),
            id=entry_id,
        )

    @property
    def completed_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.completed_at)


@dataclass
class Task:
    """A task on the priority board."""
    text: str
    quadrant: Quadrant = Quadrant.Q1
    completed: bool = False
    intention: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "quadrant": self.quadrant.value,
            "completed": self.completed,
            "intention": self.intention,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], quadrant: Optional[Quadrant] = None) -> "Task":
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            text=str(data.get("text", "")),
            quadrant=coerce_enum(Quadrant, data.get("quadrant"), quadrant or Quadrant.Q1),
            completed=bool(data.get("completed", False)),
            intention=data.get("intention") or None,
        )


@dataclass(frozen=True)
class PrayerTime:
    """One of today's five canonical prayers."""
    name: str
    time: datetime


@dataclass(frozen=True)
class EndSessionMessage:
    """
    Result of the end-of-session message rotation.
    `available` is False when no message could be produced.
    """
    text: Optional[str] = None
    reference: Optional[str] = None
    next_cursor: Optional[int] = None

    @property
    def available(self) -> bool:
        return self.text is not None

    @classmethod
    def unavailable(cls) -> "EndSessionMessage":
        return cls()


@dataclass(frozen=True)
class DailyReview:
    """A journal entry written at the end of the day."""
    review_text: str
    date: int = field(default_factory=lambda: int(time.time()))
    id: Optional[int] = None
