"""
Two-minute rule timer: a one-shot 120 second countdown for small tasks.
Independent of the session engine; start and cancel only.
"""

import logging
from typing import Optional

from PySide6.QtCore import QObject, Signal

from .clock import Clock
from .notifications import AudioCue, get_audio_cue

logger = logging.getLogger(__name__)


class TwoMinuteTimer(QObject):
    """
    Signals:
        tick: remaining seconds after every second
        finished: emitted once when the countdown reaches zero
    """

    tick = Signal(int)
    finished = Signal()

    DURATION_SECONDS = 120

    def __init__(
        self,
        clock: Optional[Clock] = None,
        cue: Optional[AudioCue] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self._clock = clock or Clock(parent=self)
        self._cue = cue or get_audio_cue()
        self._remaining = self.DURATION_SECONDS
        self._active = False
        self._clock.ticked.connect(self._on_tick)

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self):
        """Start (or restart) the countdown from two minutes."""
        self._remaining = self.DURATION_SECONDS
        self._active = True
        self._clock.start()
        self.tick.emit(self._remaining)

    def cancel(self):
        self._clock.stop()
        self._active = False
        self._remaining = self.DURATION_SECONDS
        self.tick.emit(self._remaining)

    def _on_tick(self):
        if not self._active:
            return
        self._remaining = max(0, self._remaining - 1)
        self.tick.emit(self._remaining)
        if self._remaining == 0:
            self._clock.stop()
            self._active = False
            self._remaining = self.DURATION_SECONDS
            logger.info("Two-minute timer finished")
            self._cue.play()
            self.finished.emit()
