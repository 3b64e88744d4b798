"""
Settings for the FocusFlow application: parsing form input into a new
SessionConfig snapshot and persisting it per user.
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional

from .achievements import Achievement, AchievementService, SettingsSavedFacts
from .errors import ValidationFailure
from .models import MessageOrder, MessageSource, SessionConfig, coerce_enum
from .storage import Storage, SETTINGS

logger = logging.getLogger(__name__)

PRAYER_METHODS: Dict[str, str] = {
    '1': 'University of Islamic Sciences, Karachi',
    '2': 'Islamic Society of North America (ISNA)',
    '3': 'Muslim World League',
    '4': 'Umm Al-Qura University, Makkah',
    '5': 'Egyptian General Authority of Survey',
    '7': 'Institute of Geophysics, University of Tehran',
    '8': 'Gulf Region',
    '9': 'Kuwait',
    '10': 'Qatar',
    '11': 'Majlis Ugama Islam Singapura, Singapore',
    '12': 'Union Organization Islamic de France',
    '13': 'Diyanet İşleri Başkanlığı, Turkey',
    '14': 'Spiritual Administration of Muslims of Russia',
}

# field -> (min, max)
DURATION_LIMITS = {
    'work_minutes': (1, 120),
    'short_break_minutes': (1, 120),
    'long_break_minutes': (1, 120),
    'salah_buffer_minutes': (1, 60),
}

_BOOL_FIELDS = ('salah_aware', 'show_end_session_message', 'log_completed_tasks')

# Fields a user may set; the message cursor is internal
SETTINGS_FIELDS = tuple(DURATION_LIMITS) + _BOOL_FIELDS + (
    'city', 'country', 'prayer_method', 'message_source', 'message_order', 'custom_messages',
)
MESSAGE_SEPARATOR = '|'


def parse_minutes(field: str, value: Any) -> int:
    """
    Parse a numeric duration field and clamp it to its range.

    Raises:
        ValidationFailure: if the value is not a whole number.
    """
    if isinstance(value, bool):
        raise ValidationFailure(field, value)
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationFailure(field, value)
    low, high = DURATION_LIMITS[field]
    return max(low, min(high, number))


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def parse_assignments(pairs: Iterable[str]) -> Dict[str, Any]:
    """
    Turn `key=value` strings into raw settings input.
    Custom messages are given as one value separated by `|`.

    Raises:
        ValidationFailure: on a malformed pair or an unknown key.
    """
    raw: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        key = key.strip()
        if not sep or key not in SETTINGS_FIELDS:
            raise ValidationFailure(
                key or pair, value,
                f"Expected key=value with key one of: {', '.join(SETTINGS_FIELDS)} (got {pair!r})"
            )
        raw[key] = value.split(MESSAGE_SEPARATOR) if key == 'custom_messages' else value
    return raw


def apply_settings_input(current: SessionConfig, raw: Mapping[str, Any]) -> SessionConfig:
    """
    Build a new snapshot from form input. Fields that fail validation keep
    their current value.
    """
    changes: Dict[str, Any] = {}

    for field in DURATION_LIMITS:
        if field not in raw:
            continue
        try:
            changes[field] = parse_minutes(field, raw[field])
        except ValidationFailure as e:
            logger.warning("Ignoring %s, keeping %s", e, getattr(current, field))

    for field in _BOOL_FIELDS:
        if field in raw:
            changes[field] = _parse_bool(raw[field])

    for field in ('city', 'country'):
        if field in raw:
            changes[field] = str(raw[field] or '').strip()

    if 'prayer_method' in raw:
        method = str(raw['prayer_method']).strip()
        if method in PRAYER_METHODS:
            changes['prayer_method'] = method
        else:
            logger.warning("Unknown prayer method %r, keeping %s", method, current.prayer_method)

    if 'message_source' in raw:
        changes['message_source'] = coerce_enum(MessageSource, raw['message_source'], current.message_source)
    if 'message_order' in raw:
        changes['message_order'] = coerce_enum(MessageOrder, raw['message_order'], current.message_order)

    if 'custom_messages' in raw:
        messages = tuple(str(m).strip() for m in raw['custom_messages'] or ())
        changes['custom_messages'] = tuple(m for m in messages if m)

    return replace(current, **changes)


class SettingsStore:
    """Per-user `settings` document."""

    def __init__(self, storage: Storage, user_id: str, achievements: AchievementService):
        self.storage = storage
        self.user_id = user_id
        self.achievements = achievements

    def load(self) -> SessionConfig:
        return SessionConfig.from_dict(self.storage.get_document(self.user_id, SETTINGS))

    def save(self, config: SessionConfig) -> FrozenSet[Achievement]:
        """
        Save the snapshot (merged into the stored document, so the journal
        password survives) and grant the settings badge.

        Returns:
            Newly unlocked achievements.
        """
        self.storage.set_document(self.user_id, SETTINGS, config.to_dict(), merge=True)
        logger.info("Settings saved")
        return self.achievements.record(SettingsSavedFacts())

    def save_message_cursor(self, index: int):
        self.storage.set_document(self.user_id, SETTINGS, {'message_cursor': int(index)}, merge=True)

    def subscribe(self, callback: Callable[[SessionConfig], None]) -> Callable[[], None]:
        """Deliver a fresh snapshot after every settings write."""
        return self.storage.subscribe(
            self.user_id, SETTINGS, lambda body: callback(SessionConfig.from_dict(body))
        )

    def raw(self) -> Optional[Dict[str, Any]]:
        return self.storage.get_document(self.user_id, SETTINGS)
