"""
Application wiring: identity, storage and every service for one user.
"""

import logging
from pathlib import Path
from typing import Optional

import requests
from PySide6.QtCore import QObject

from .achievements import AchievementService
from .clients import PrayerTimesClient, QuoteClient
from .clock import Clock
from .identity import AnonymousIdentityProvider
from .journal import DailyJournal
from .messages import MessageRotationPolicy
from .micro_timer import TwoMinuteTimer
from .notifications import AudioCue, get_audio_cue
from .prayer_gate import PrayerWindowGate
from .settings import SettingsStore
from .storage import Storage, get_app_data_dir
from .tasks import TaskBoard
from .timer_engine import TimerEngine

logger = logging.getLogger(__name__)


class FocusFlowApp(QObject):
    """
    Builds the object graph. Raises AuthenticationFailure if no identity
    can be issued, which callers treat as a blocking configuration error.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        http: Optional[requests.Session] = None,
        clock: Optional[Clock] = None,
        cue: Optional[AudioCue] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        self.data_dir = Path(data_dir) if data_dir else get_app_data_dir()
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.identity = AnonymousIdentityProvider(self.data_dir / "identity.json")
        self.user_id = self.identity.sign_in()

        self.storage = Storage(str(self.data_dir / "focusflow.db"))
        self._http = http or requests.Session()
        self.cue = cue or get_audio_cue()
        self.clock = clock or Clock(parent=self)

        self.achievements = AchievementService(self.storage, self.user_id)
        self.settings = SettingsStore(self.storage, self.user_id, self.achievements)
        self.tasks = TaskBoard(self.storage, self.user_id, self.achievements, self.settings)
        self.journal = DailyJournal(self.storage, self.user_id)

        self.gate = PrayerWindowGate(PrayerTimesClient(self._http), now=self.clock.now)
        self.messages = MessageRotationPolicy(QuoteClient(self._http))

        self.engine = TimerEngine(
            self.storage,
            self.user_id,
            self.settings.load(),
            self.gate,
            self.messages,
            self.achievements,
            settings=self.settings,
            clock=self.clock,
            cue=self.cue,
            parent=self,
        )
        self.micro_timer = TwoMinuteTimer(Clock(now=self.clock.now, parent=self), cue=self.cue, parent=self)

        self._unsubscribe = self.settings.subscribe(self.engine.apply_config)
        logger.info("FocusFlow ready (data: %s)", self.data_dir)

    def close(self):
        self._unsubscribe()
        self.engine.cleanup()
        self.micro_timer.cancel()
        self.cue.cleanup()
        self._http.close()
