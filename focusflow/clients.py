"""
HTTP clients for the external services: prayer times by city and
verse lookup. Any transport, status or payload problem is raised as
ExternalServiceFailure; callers decide the fallback.
"""

import re
import logging
from dataclasses import dataclass
from datetime import date, datetime, time as dtime
from typing import Dict, List, Optional

import requests

from .errors import ExternalServiceFailure
from .models import PrayerTime

logger = logging.getLogger(__name__)

PRAYER_TIMES_URL = "https://api.aladhan.com/v1"
QURAN_URL = "https://api.alquran.cloud/v1"

CANONICAL_PRAYERS = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")
VERSE_COUNT = 6236

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})")


def _get_json(session: requests.Session, service: str, url: str, timeout: float, **kwargs) -> dict:
    try:
        response = session.get(url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        raise ExternalServiceFailure(service, f"request failed: {e}") from e

    if response.status_code != 200:
        raise ExternalServiceFailure(service, f"HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError as e:
        raise ExternalServiceFailure(service, "response is not JSON") from e

    if not isinstance(payload, dict) or payload.get("code") != 200:
        code = payload.get("code") if isinstance(payload, dict) else None
        raise ExternalServiceFailure(service, f"unexpected payload (code={code})")
    return payload


class PrayerTimesClient:
    """Today's prayer timings for a city/country/calculation method."""

    SERVICE = "prayer-times"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = PRAYER_TIMES_URL,
        timeout: float = 10.0
    ):
        self._session = session or requests.Session()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def fetch_timings(self, city: str, country: str, method: str) -> Dict[str, str]:
        """
        Fetch today's timings.

        Returns:
            Mapping of prayer name to local "HH:MM".
        """
        payload = _get_json(
            self._session,
            self.SERVICE,
            f"{self._base_url}/timingsByCity",
            self._timeout,
            params={"city": city, "country": country, "method": method},
        )
        try:
            timings = payload["data"]["timings"]
        except (KeyError, TypeError) as e:
            raise ExternalServiceFailure(self.SERVICE, "missing timings") from e
        if not isinstance(timings, dict):
            raise ExternalServiceFailure(self.SERVICE, "timings is not a mapping")
        return {str(k): str(v) for k, v in timings.items()}


def parse_prayer_windows(timings: Dict[str, str], today: date) -> List[PrayerTime]:
    """
    Anchor the five canonical prayers to `today`, in canonical order.
    Extra entries (Sunrise, Midnight, ...) are ignored.
    """
    windows = []
    for name in CANONICAL_PRAYERS:
        raw = timings.get(name)
        match = _TIME_RE.match(raw or "")
        if match is None:
            raise ExternalServiceFailure(PrayerTimesClient.SERVICE, f"bad time for {name}: {raw!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ExternalServiceFailure(PrayerTimesClient.SERVICE, f"bad time for {name}: {raw!r}")
        windows.append(PrayerTime(name, datetime.combine(today, dtime(hour, minute))))
    return windows


@dataclass(frozen=True)
class Verse:
    """A single verse with its structured reference."""
    text: str
    surah_name: str
    surah_number: int
    number_in_surah: int

    @property
    def reference(self) -> str:
        return f"Surah {self.surah_name}, {self.surah_number}:{self.number_in_surah}"


class QuoteClient:
    """Verse lookup by global verse index."""

    SERVICE = "quote"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = QURAN_URL,
        edition: str = "en.asad",
        timeout: float = 10.0
    ):
        self._session = session or requests.Session()
        self._base_url = base_url.rstrip("/")
        self._edition = edition
        self._timeout = timeout

    def fetch_verse(self, number: int) -> Verse:
        if not 1 <= number <= VERSE_COUNT:
            raise ValueError(f"Verse number must be in 1..{VERSE_COUNT}, got {number}")

        payload = _get_json(
            self._session,
            self.SERVICE,
            f"{self._base_url}/ayah/{number}/{self._edition}",
            self._timeout,
        )
        try:
            data = payload["data"]
            return Verse(
                text=str(data["text"]),
                surah_name=str(data["surah"]["englishName"]),
                surah_number=int(data["surah"]["number"]),
                number_in_surah=int(data["numberInSurah"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceFailure(self.SERVICE, "malformed verse payload") from e
