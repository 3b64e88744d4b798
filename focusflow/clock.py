"""
Clock source shared by the timers: a one-second QTimer plus an
injectable wall clock.
"""

from datetime import datetime
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Signal


class Clock(QObject):
    """Emits `ticked` once per second while started."""

    ticked = Signal()

    TICK_INTERVAL_MS = 1000

    def __init__(
        self,
        now: Callable[[], datetime] = datetime.now,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self._now = now
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(self.TICK_INTERVAL_MS)
        self._qt_timer.timeout.connect(self.ticked.emit)

    def now(self) -> datetime:
        return self._now()

    def start(self):
        if not self._qt_timer.isActive():
            self._qt_timer.start()

    def stop(self):
        self._qt_timer.stop()

    @property
    def is_active(self) -> bool:
        return self._qt_timer.isActive()
