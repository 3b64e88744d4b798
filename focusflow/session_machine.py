"""
Work/break state machine.

Every command is a pure function of (state, config) returning a
Transition: the next state plus the ordered side effects the caller has
to execute. Nothing here touches storage, the network or the clock.

States:
    work / shortBreak / longBreak, each idle or running.

Cycle:
    Every 4th completed work session is followed by a long break, the
    others by a short break. Completing a long break starts a new cycle.
"""

from dataclasses import dataclass, replace, field
from typing import Optional, Tuple, List
import time

from .models import SessionConfig, SessionMode, SessionRuntimeState, LogEntry

SESSIONS_PER_CYCLE = 4


# ==================== Effects ====================

@dataclass(frozen=True)
class PlayCue:
    """Play the end-of-session sound."""
    pass


@dataclass(frozen=True)
class AppendLog:
    entry: LogEntry


@dataclass(frozen=True)
class EvaluateAchievements:
    """Check badges for the session that just ended."""
    mode: SessionMode
    cycle_count: int


@dataclass(frozen=True)
class ShowEndMessage:
    pass


@dataclass(frozen=True)
class SwitchMode:
    previous: SessionMode
    next: SessionMode


@dataclass(frozen=True)
class Transition:
    state: SessionRuntimeState
    effects: Tuple[object, ...] = field(default_factory=tuple)

    @property
    def expired(self) -> bool:
        return any(isinstance(e, SwitchMode) for e in self.effects)


# ==================== Transitions ====================

def initial_state(config: SessionConfig, mode: SessionMode = SessionMode.WORK) -> SessionRuntimeState:
    seconds = config.duration_seconds(mode)
    return SessionRuntimeState(mode=mode, remaining_seconds=seconds, total_seconds=seconds)


def start(
    state: SessionRuntimeState,
    config: SessionConfig,
    seconds: Optional[int] = None
) -> Transition:
    """
    Begin the current mode from its full duration, or from `seconds` when a
    shortened session was approved. Ignored while running.
    """
    if state.is_running:
        return Transition(state)
    total = seconds if seconds is not None else config.duration_seconds(state.mode)
    total = max(1, int(total))
    return Transition(replace(
        state, remaining_seconds=total, total_seconds=total, is_running=True, is_paused=False
    ))


def resume(state: SessionRuntimeState, config: SessionConfig) -> Transition:
    """Continue a paused session from where it stopped."""
    if state.is_running or state.remaining_seconds <= 0:
        return Transition(state)
    return Transition(replace(state, is_running=True, is_paused=False))


def pause(state: SessionRuntimeState, config: SessionConfig) -> Transition:
    if not state.is_running:
        return Transition(state)
    return Transition(replace(state, is_running=False, is_paused=True))


def reset(state: SessionRuntimeState, config: SessionConfig) -> Transition:
    seconds = config.duration_seconds(state.mode)
    return Transition(replace(
        state, is_running=False, is_paused=False, remaining_seconds=seconds, total_seconds=seconds
    ))


def switch_mode(state: SessionRuntimeState, config: SessionConfig, mode: SessionMode) -> Transition:
    """User-selected mode change. Stops the timer and leaves the cycle count alone."""
    seconds = config.duration_seconds(mode)
    return Transition(replace(
        state, mode=mode, is_running=False, is_paused=False,
        remaining_seconds=seconds, total_seconds=seconds,
    ))


def reconfigure(state: SessionRuntimeState, config: SessionConfig) -> Transition:
    """Pick up new durations, unless a session is running or paused."""
    if state.is_running or state.is_paused:
        return Transition(state)
    return reset(state, config)


def tick(state: SessionRuntimeState, config: SessionConfig, now: Optional[float] = None) -> Transition:
    """
    Advance one second. When the countdown reaches zero the session
    completes within the same transition.
    """
    if not state.is_running:
        return Transition(state)

    remaining = state.remaining_seconds - 1
    if remaining > 0:
        return Transition(replace(state, remaining_seconds=remaining))
    return _complete(replace(state, remaining_seconds=0, is_running=False), config, now)


def next_mode_after(mode: SessionMode, completed_work_count: int) -> Tuple[SessionMode, int]:
    """Return (next mode, updated cycle count) after `mode` completes."""
    if mode is SessionMode.WORK:
        count = completed_work_count + 1
        if count % SESSIONS_PER_CYCLE == 0:
            return SessionMode.LONG_BREAK, count
        return SessionMode.SHORT_BREAK, count
    if mode is SessionMode.LONG_BREAK:
        return SessionMode.WORK, 0
    return SessionMode.WORK, completed_work_count


def _complete(state: SessionRuntimeState, config: SessionConfig, now: Optional[float]) -> Transition:
    completed = state.mode
    nxt, count = next_mode_after(completed, state.completed_work_count)

    effects: List[object] = [
        PlayCue(),
        AppendLog(LogEntry(
            kind=completed,
            duration_minutes=config.duration_minutes(completed),
            completed_at=int(now if now is not None else time.time()),
        )),
        EvaluateAchievements(completed, count),
    ]
    if config.show_end_session_message:
        effects.append(ShowEndMessage())
    effects.append(SwitchMode(completed, nxt))

    seconds = config.duration_seconds(nxt)
    next_state = SessionRuntimeState(
        mode=nxt,
        remaining_seconds=seconds,
        total_seconds=seconds,
        is_running=False,
        completed_work_count=count,
    )
    return Transition(next_state, tuple(effects))


class SessionMachine:
    """Holds the current state and applies transitions to it."""

    def __init__(self, config: SessionConfig, state: Optional[SessionRuntimeState] = None):
        self.state = state or initial_state(config)

    def _apply(self, transition: Transition) -> Transition:
        self.state = transition.state
        return transition

    def start(self, config: SessionConfig, seconds: Optional[int] = None) -> Transition:
        return self._apply(start(self.state, config, seconds))

    def resume(self, config: SessionConfig) -> Transition:
        return self._apply(resume(self.state, config))

    def pause(self, config: SessionConfig) -> Transition:
        return self._apply(pause(self.state, config))

    def reset(self, config: SessionConfig) -> Transition:
        return self._apply(reset(self.state, config))

    def switch_mode(self, config: SessionConfig, mode: SessionMode) -> Transition:
        return self._apply(switch_mode(self.state, config, mode))

    def reconfigure(self, config: SessionConfig) -> Transition:
        return self._apply(reconfigure(self.state, config))

    def tick(self, config: SessionConfig, now: Optional[float] = None) -> Transition:
        return self._apply(tick(self.state, config, now))
