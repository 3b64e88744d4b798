"""Tests for settings parsing and the per-user settings document."""

import pytest

from focusflow.achievements import Achievement
from focusflow.errors import ValidationFailure
from focusflow.models import MessageOrder, MessageSource, SessionConfig
from focusflow.settings import apply_settings_input, parse_minutes
from focusflow.storage import SETTINGS


@pytest.mark.parametrize("value,expected", [("30", 30), (45, 45), (" 10 ", 10), ("0", 1), ("500", 120)])
def test_parse_minutes_clamps(value, expected):
    assert parse_minutes("work_minutes", value) == expected


@pytest.mark.parametrize("value", ["", "abc", None, "2.5", True])
def test_parse_minutes_rejects_non_numbers(value):
    with pytest.raises(ValidationFailure) as excinfo:
        parse_minutes("work_minutes", value)
    assert excinfo.value.field == "work_minutes"


def test_invalid_duration_keeps_previous_value():
    current = SessionConfig(work_minutes=40)
    updated = apply_settings_input(current, {"work_minutes": "abc", "short_break_minutes": "7"})

    assert updated.work_minutes == 40
    assert updated.short_break_minutes == 7


def test_apply_settings_input_fields():
    updated = apply_settings_input(SessionConfig(), {
        "salah_aware": "false",
        "city": "  Istanbul ",
        "country": "Turkey",
        "prayer_method": "13",
        "message_source": "custom-list",
        "message_order": "sequential",
        "custom_messages": ["  Keep going ", "", "   ", "Rest well"],
        "log_completed_tasks": True,
    })

    assert updated.salah_aware is False
    assert updated.city == "Istanbul"
    assert updated.prayer_method == "13"
    assert updated.message_source is MessageSource.CUSTOM_LIST
    assert updated.message_order is MessageOrder.SEQUENTIAL
    assert updated.custom_messages == ("Keep going", "Rest well")
    assert updated.log_completed_tasks is True


def test_unknown_values_keep_current():
    current = SessionConfig(prayer_method="3")
    updated = apply_settings_input(current, {"prayer_method": "6", "message_source": "tweets"})

    assert updated.prayer_method == "3"
    assert updated.message_source is MessageSource.EXTERNAL_QUOTE


def test_apply_returns_new_snapshot():
    current = SessionConfig()
    updated = apply_settings_input(current, {"work_minutes": "50"})

    assert current.work_minutes == 25
    assert updated.work_minutes == 50


def test_load_defaults_when_missing(settings_store):
    assert settings_store.load() == SessionConfig()


def test_save_and_load_round_trip_grants_personalizer(settings_store):
    config = SessionConfig(work_minutes=50, city="Paris", country="France",
                           custom_messages=("a", "b"), message_source=MessageSource.CUSTOM_LIST)
    unlocked = settings_store.save(config)

    assert unlocked == {Achievement.PERSONALIZER}
    assert settings_store.load() == config
    assert settings_store.save(config) == frozenset()


def test_save_keeps_other_fields(settings_store, storage, user_id):
    storage.set_document(user_id, SETTINGS, {"review_password_hash": "x"})
    settings_store.save(SessionConfig())

    assert settings_store.raw()["review_password_hash"] == "x"


def test_save_message_cursor(settings_store):
    settings_store.save(SessionConfig(work_minutes=30))
    settings_store.save_message_cursor(2)

    config = settings_store.load()
    assert config.message_cursor == 2
    assert config.work_minutes == 30


def test_subscribe_delivers_snapshots(settings_store):
    seen = []
    unsubscribe = settings_store.subscribe(seen.append)
    settings_store.save(SessionConfig(work_minutes=45))
    unsubscribe()
    settings_store.save_message_cursor(1)

    assert len(seen) == 1
    assert isinstance(seen[0], SessionConfig)
    assert seen[0].work_minutes == 45


def test_from_dict_tolerates_bad_values():
    config = SessionConfig.from_dict({
        "work_minutes": "oops",
        "message_order": "shuffled",
        "custom_messages": None,
        "unknown": 1,
    })
    assert config == SessionConfig()
