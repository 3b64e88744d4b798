"""Tests for the prayer-aware start gate."""

from datetime import datetime

import pytest

from conftest import FakeHttpSession, FakeResponse, timings_payload
from focusflow.clients import PrayerTimesClient
from focusflow.models import PrayerTime, SessionConfig, SessionMode
from focusflow.errors import ExternalServiceFailure, ValidationFailure
from focusflow.prayer_gate import GateOutcome, PrayerWindowGate, decide, next_prayer

NOW = datetime(2024, 5, 15, 10, 0, 0)
LOCATED = SessionConfig(city="London", country="UK", salah_buffer_minutes=10, work_minutes=25)


def make_gate(http, now=NOW):
    return PrayerWindowGate(PrayerTimesClient(http), now=lambda: now)


def gate_with(now=NOW, **timings):
    return make_gate(FakeHttpSession(FakeResponse(timings_payload(**timings))), now)


def test_denies_when_prayer_is_inside_buffer():
    decision = gate_with(Dhuhr="10:03").evaluate(LOCATED)

    assert decision.outcome is GateOutcome.DENY
    assert decision.minutes == 3
    assert decision.prayer.name == "Dhuhr"
    assert "Dhuhr" in decision.message


def test_denies_exactly_at_buffer():
    decision = gate_with(Dhuhr="10:10").evaluate(LOCATED)
    assert decision.outcome is GateOutcome.DENY


def test_offers_shorter_session_before_prayer():
    decision = gate_with(Dhuhr="10:20").evaluate(LOCATED)

    assert decision.outcome is GateOutcome.APPROVE_PARTIAL
    assert decision.minutes == 20
    assert decision.needs_confirmation


def test_approves_full_session_when_prayer_is_far():
    decision = gate_with(Dhuhr="10:40").evaluate(LOCATED)

    assert decision.outcome is GateOutcome.APPROVE_FULL
    assert decision.minutes == 25
    assert not decision.needs_confirmation


def test_minutes_are_floored():
    decision = gate_with(now=datetime(2024, 5, 15, 10, 0, 30), Dhuhr="10:20").evaluate(LOCATED)
    assert decision.minutes == 19


def test_all_prayers_passed_approves_full():
    decision = gate_with(now=datetime(2024, 5, 15, 22, 0)).evaluate(LOCATED)

    assert decision.outcome is GateOutcome.APPROVE_FULL
    assert decision.minutes == 25


def test_service_failure_fails_open(connection_error):
    gate = make_gate(FakeHttpSession(error=connection_error))
    decision = gate.evaluate(LOCATED)

    assert decision.outcome is GateOutcome.APPROVE_FULL
    assert decision.minutes == 25


def test_bad_status_fails_open():
    gate = make_gate(FakeHttpSession(FakeResponse(status_code=503)))
    assert gate.evaluate(LOCATED).outcome is GateOutcome.APPROVE_FULL


def test_malformed_timings_fail_open():
    gate = gate_with(Asr="soon")
    assert gate.evaluate(LOCATED).outcome is GateOutcome.APPROVE_FULL


@pytest.mark.parametrize("config", [
    SessionConfig(city="London", country="UK", salah_aware=False),
    SessionConfig(city="", country="UK"),
    SessionConfig(city="London", country="  "),
])
def test_skips_lookup_when_not_applicable(config):
    http = FakeHttpSession(FakeResponse(timings_payload(Dhuhr="10:03")))
    decision = make_gate(http).evaluate(config)

    assert decision.outcome is GateOutcome.APPROVE_FULL
    assert http.calls == []


def test_breaks_are_never_gated():
    http = FakeHttpSession(FakeResponse(timings_payload(Dhuhr="10:03")))
    decision = make_gate(http).evaluate(LOCATED, mode=SessionMode.SHORT_BREAK)

    assert decision.outcome is GateOutcome.APPROVE_FULL
    assert decision.minutes == 5
    assert http.calls == []


def test_sends_location_and_method():
    http = FakeHttpSession(FakeResponse(timings_payload()))
    config = SessionConfig(city="Cairo", country="Egypt", prayer_method="5")
    make_gate(http).evaluate(config)

    url, kwargs = http.calls[0]
    assert url.endswith("/timingsByCity")
    assert kwargs["params"] == {"city": "Cairo", "country": "Egypt", "method": "5"}


def prayer(name, hour, minute):
    return PrayerTime(name, datetime(2024, 5, 15, hour, minute))


def test_decide_uses_nearest_upcoming_prayer():
    windows = [prayer("Isha", 21, 30), prayer("Fajr", 4, 30), prayer("Asr", 10, 30), prayer("Dhuhr", 10, 50)]
    decision = decide(windows, NOW, 25, 10)

    assert decision.prayer.name == "Asr"
    assert decision.outcome is GateOutcome.APPROVE_FULL
    assert decision.minutes == 25


def test_decide_zero_buffer_uses_default():
    windows = [prayer("Dhuhr", 10, 4)]
    assert decide(windows, NOW, 25, 0).outcome is GateOutcome.DENY

    windows = [prayer("Dhuhr", 10, 6)]
    assert decide(windows, NOW, 25, 0).outcome is GateOutcome.APPROVE_PARTIAL


def test_today_prayers_lists_the_five_daily_prayers():
    prayers = gate_with().today_prayers(LOCATED)

    assert [p.name for p in prayers] == ["Fajr", "Dhuhr", "Asr", "Maghrib", "Isha"]
    assert prayers[1].time == datetime(2024, 5, 15, 12, 30)


def test_today_prayers_needs_a_location():
    http = FakeHttpSession(FakeResponse(timings_payload()))

    with pytest.raises(ValidationFailure, match="city and country"):
        make_gate(http).today_prayers(SessionConfig(city="London"))
    assert http.calls == []


def test_today_prayers_reports_service_failure(connection_error):
    with pytest.raises(ExternalServiceFailure):
        make_gate(FakeHttpSession(error=connection_error)).today_prayers(LOCATED)
    with pytest.raises(ExternalServiceFailure):
        make_gate(FakeHttpSession(FakeResponse(status_code=404))).today_prayers(LOCATED)


def test_next_prayer_is_earliest_still_ahead():
    prayers = gate_with().today_prayers(LOCATED)

    assert next_prayer(prayers, NOW).name == "Dhuhr"
    assert next_prayer(prayers, datetime(2024, 5, 15, 12, 30)).name == "Asr"
    assert next_prayer(prayers, datetime(2024, 5, 15, 23, 0)) is None
