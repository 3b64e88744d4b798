"""
Pytest configuration and shared fixtures for FocusFlow tests.

This file contains:
- A session-wide QCoreApplication for QObject/QTimer based classes
- A temporary Storage per test
- Fakes for the HTTP session, the audio cue and the wall clock
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest
import requests
from PySide6.QtCore import QCoreApplication

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from focusflow.achievements import AchievementService  # noqa: E402
from focusflow.clock import Clock  # noqa: E402
from focusflow.settings import SettingsStore  # noqa: E402
from focusflow.storage import Storage  # noqa: E402

USER = "user-1"


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def storage(tmp_path):
    return Storage(str(tmp_path / "test.db"))


@pytest.fixture
def user_id():
    return USER


@pytest.fixture
def achievements(storage, user_id):
    return AchievementService(storage, user_id)


@pytest.fixture
def settings_store(storage, user_id, achievements):
    return SettingsStore(storage, user_id, achievements)


class FakeResponse:
    def __init__(self, payload=None, status_code=200, invalid_json=False):
        self._payload = payload
        self.status_code = status_code
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeHttpSession:
    """Stands in for requests.Session; records calls and replays canned responses."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        pass


@pytest.fixture
def fake_http():
    return FakeHttpSession()


@pytest.fixture
def connection_error():
    return requests.ConnectionError("network down")


class FakeCue:
    def __init__(self):
        self.plays = 0
        self.cleaned = False

    def play(self):
        self.plays += 1

    def cleanup(self):
        self.cleaned = True


@pytest.fixture
def cue():
    return FakeCue()


class FixedTime:
    """Mutable 'now' for injecting into Clock and the prayer gate."""

    def __init__(self, when):
        self.when = when

    def __call__(self):
        return self.when


@pytest.fixture
def fixed_now():
    # A Wednesday, mid-morning
    return FixedTime(datetime(2024, 5, 15, 10, 0, 0))


@pytest.fixture
def clock(fixed_now):
    return Clock(now=fixed_now)


def timings_payload(**overrides):
    timings = {
        "Fajr": "04:30",
        "Sunrise": "06:00",
        "Dhuhr": "12:30",
        "Asr": "16:00",
        "Sunset": "19:55",
        "Maghrib": "20:00",
        "Isha": "21:30",
        "Imsak": "04:20",
        "Midnight": "00:15",
    }
    timings.update(overrides)
    return {"code": 200, "status": "OK", "data": {"timings": timings}}


def verse_payload(text="Verily, with hardship comes ease.", name="Ash-Sharh", surah=94, ayah=6):
    return {
        "code": 200,
        "status": "OK",
        "data": {
            "number": 6096,
            "text": text,
            "surah": {"number": surah, "englishName": name},
            "numberInSurah": ayah,
        },
    }
