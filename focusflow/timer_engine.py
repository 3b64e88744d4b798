"""
Timer engine for the FocusFlow application.
Drives the session state machine from the clock, routes work-session
starts through the prayer gate and executes completion effects
(log, achievements, end message) in order.
"""

import logging
from dataclasses import replace
from typing import Optional

from PySide6.QtCore import QObject, Signal

from .achievements import AchievementService, BreakFacts, WorkSessionFacts
from .clock import Clock
from .errors import PersistenceFailure
from .messages import MessageRotationPolicy
from .models import (
    EndSessionMessage, LogEntry, SessionConfig, SessionMode, SessionRuntimeState, coerce_enum
)
from .notifications import AudioCue, get_audio_cue
from .prayer_gate import GateDecision, GateOutcome, PrayerWindowGate
from .session_machine import (
    AppendLog, EvaluateAchievements, PlayCue, SessionMachine, ShowEndMessage,
    SwitchMode, Transition, initial_state
)
from .settings import SettingsStore
from .storage import Storage, LOG, SESSION_STATE

logger = logging.getLogger(__name__)


class TimerEngine(QObject):
    """
    Core timer engine.

    Signals:
        tick: Emitted after every state change with the current SessionRuntimeState
        mode_changed: Emitted when the mode changes (provides old_mode, new_mode)
        session_completed: Emitted when a session is logged (provides LogEntry)
        achievements_unlocked: Emitted with a list of newly unlocked achievements
        message_ready: Emitted with the end-of-session message (may be unavailable)
        prayer_blocked: Emitted when a start is denied because a prayer is too close
        confirmation_required: Emitted when only a shortened session fits
        status_message: Emitted with a user-visible error description
    """

    tick = Signal(SessionRuntimeState)
    mode_changed = Signal(SessionMode, SessionMode)
    session_completed = Signal(LogEntry)
    achievements_unlocked = Signal(list)
    message_ready = Signal(EndSessionMessage)
    prayer_blocked = Signal(GateDecision)
    confirmation_required = Signal(GateDecision)
    status_message = Signal(str)

    def __init__(
        self,
        storage: Storage,
        user_id: str,
        config: SessionConfig,
        gate: PrayerWindowGate,
        message_policy: MessageRotationPolicy,
        achievements: AchievementService,
        settings: Optional[SettingsStore] = None,
        clock: Optional[Clock] = None,
        cue: Optional[AudioCue] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self.storage = storage
        self.user_id = user_id
        self._config = config
        self._gate = gate
        self._message_policy = message_policy
        self._achievements = achievements
        self._settings = settings
        self._cue = cue or get_audio_cue()

        self._machine = SessionMachine(config, self._load_position(config))
        self._pending: Optional[GateDecision] = None

        self._clock = clock or Clock(parent=self)
        self._clock.ticked.connect(self._on_tick)

    @property
    def state(self) -> SessionRuntimeState:
        """Get current timer state."""
        return self._machine.state

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._machine.state.is_running

    @property
    def pending_decision(self) -> Optional[GateDecision]:
        """A shortened session waiting for confirmation, if any."""
        return self._pending

    # ==================== Commands ====================

    def toggle(self):
        """Start/pause button: pause if running, resume if paused, else start."""
        if self.is_running:
            self.pause()
        elif self.state.is_paused:
            self.resume()
        else:
            self.request_start()

    def request_start(self):
        """
        Start the current mode. Work sessions go through the prayer gate
        first and may be denied or offered a shorter duration.
        """
        if self.is_running:
            return
        self._pending = None

        if self.state.mode is not SessionMode.WORK:
            self._start()
            return

        decision = self._gate.evaluate(self._config, self.state.mode, now=self._clock.now())
        if decision.outcome is GateOutcome.APPROVE_FULL:
            self._start()
        elif decision.outcome is GateOutcome.APPROVE_PARTIAL:
            self._pending = decision
            self.confirmation_required.emit(decision)
        else:
            self.prayer_blocked.emit(decision)

    def confirm_shortened_session(self):
        """Accept the shortened session offered by the gate."""
        decision, self._pending = self._pending, None
        if decision is None or self.is_running:
            return
        self._start(decision.minutes * 60)

    def decline_shortened_session(self):
        self._pending = None

    def resume(self):
        self._apply(self._machine.resume(self._config))
        if self.is_running:
            self._clock.start()
            logger.info("Resumed %s at %s", self.state.mode.value, self.state.format_remaining())

    def pause(self):
        if not self.is_running:
            return
        self._clock.stop()
        self._apply(self._machine.pause(self._config))
        logger.info("Paused %s at %s", self.state.mode.value, self.state.format_remaining())

    def reset(self):
        self._clock.stop()
        self._pending = None
        self._apply(self._machine.reset(self._config))
        logger.info("Reset %s", self.state.mode.value)

    def switch_mode(self, mode: SessionMode):
        """User-selected mode change; stops the timer."""
        self._clock.stop()
        self._pending = None
        old_mode = self.state.mode
        self._apply(self._machine.switch_mode(self._config, mode))
        try:
            self._save_position()
        except PersistenceFailure as e:
            logger.exception("Could not save session position")
            self.status_message.emit(f"Could not save session data: {e}")
        if old_mode is not mode:
            logger.info("Switched mode %s -> %s", old_mode.value, mode.value)
            self.mode_changed.emit(old_mode, mode)

    def apply_config(self, config: SessionConfig):
        """Take a new settings snapshot. An idle, unstarted timer picks up new durations."""
        self._config = config
        self._apply(self._machine.reconfigure(config))

    def cleanup(self):
        """Cleanup resources. Call before application exit."""
        self._clock.stop()

    # ==================== Internals ====================

    def _start(self, seconds: Optional[int] = None):
        self._apply(self._machine.start(self._config, seconds))
        self._clock.start()
        logger.info(
            "Started %s for %s", self.state.mode.value, self.state.format_remaining()
        )

    def _load_position(self, config: SessionConfig) -> SessionRuntimeState:
        """Mode and cycle count where the previous run left off."""
        try:
            doc = self.storage.get_document(self.user_id, SESSION_STATE) or {}
        except PersistenceFailure:
            logger.warning("Could not read session position, starting a new cycle", exc_info=True)
            doc = {}

        mode = coerce_enum(SessionMode, doc.get("mode"), SessionMode.WORK)
        try:
            count = max(0, int(doc.get("completed_work_count", 0)))
        except (TypeError, ValueError):
            count = 0
        return replace(initial_state(config, mode), completed_work_count=count)

    def _save_position(self):
        state = self.state
        self.storage.set_document(
            self.user_id,
            SESSION_STATE,
            {"mode": state.mode.value, "completed_work_count": state.completed_work_count},
            merge=False,
        )

    def _apply(self, transition: Transition):
        self.tick.emit(transition.state)
        self._run_effects(transition)

    def _on_tick(self):
        """Handle clock tick."""
        if not self.is_running:
            return

        transition = self._machine.tick(self._config, now=self._clock.now().timestamp())
        if transition.expired:
            # No further ticks until the completion effects are done
            self._clock.stop()
        self._apply(transition)

    def _run_effects(self, transition: Transition):
        config = self._config
        for effect in transition.effects:
            try:
                if isinstance(effect, PlayCue):
                    self._cue.play()
                elif isinstance(effect, AppendLog):
                    self._append_log(effect.entry)
                elif isinstance(effect, EvaluateAchievements):
                    self._evaluate_achievements(effect)
                elif isinstance(effect, ShowEndMessage):
                    self._show_end_message(config)
                elif isinstance(effect, SwitchMode):
                    logger.info("Session %s complete, next: %s", effect.previous.value, effect.next.value)
                    self.mode_changed.emit(effect.previous, effect.next)
                    self._save_position()
            except PersistenceFailure as e:
                logger.exception("Could not save session data")
                self.status_message.emit(f"Could not save session data: {e}")

    def _append_log(self, entry: LogEntry):
        entry_id = self.storage.append(
            self.user_id, LOG, {**entry.to_dict(), "created_at": entry.completed_at}
        )
        self.session_completed.emit(replace(entry, id=entry_id))

    def _evaluate_achievements(self, effect: EvaluateAchievements):
        if effect.mode is SessionMode.WORK:
            total = self.storage.count_entries(self.user_id, LOG, kind=SessionMode.WORK.value)
            facts = WorkSessionFacts.at(total, effect.cycle_count, self._clock.now())
        else:
            facts = BreakFacts(
                has_short_break=(
                    effect.mode is SessionMode.SHORT_BREAK
                    or self.storage.count_entries(self.user_id, LOG, kind=SessionMode.SHORT_BREAK.value) > 0
                ),
                has_long_break=(
                    effect.mode is SessionMode.LONG_BREAK
                    or self.storage.count_entries(self.user_id, LOG, kind=SessionMode.LONG_BREAK.value) > 0
                ),
            )
        unlocked = self._achievements.record(facts)
        if unlocked:
            self.achievements_unlocked.emit(sorted(unlocked, key=lambda a: a.value))

    def _show_end_message(self, config: SessionConfig):
        message = self._message_policy.select(config)
        if message.next_cursor is not None:
            self._config = replace(self._config, message_cursor=message.next_cursor)
            if self._settings is not None:
                self._settings.save_message_cursor(message.next_cursor)
        self.message_ready.emit(message)
