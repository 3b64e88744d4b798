"""Tests for the pure work/break state machine."""

import pytest

from focusflow.models import SessionConfig, SessionMode
from focusflow.session_machine import (
    AppendLog, EvaluateAchievements, PlayCue, SessionMachine, ShowEndMessage,
    SwitchMode, initial_state, next_mode_after, start, pause, tick,
)


def run_to_expiry(machine, config):
    transitions = []
    while True:
        transition = machine.tick(config, now=1_700_000_000)
        transitions.append(transition)
        if transition.expired:
            return transitions


@pytest.mark.parametrize("minutes", [1, 2, 25])
def test_work_session_counts_down_to_zero_and_logs_once(minutes):
    config = SessionConfig(work_minutes=minutes)
    machine = SessionMachine(config)
    machine.start(config)

    transitions = run_to_expiry(machine, config)

    assert len(transitions) == minutes * 60
    assert transitions[-2].state.remaining_seconds == 1
    logs = [e for t in transitions for e in t.effects if isinstance(e, AppendLog)]
    assert len(logs) == 1
    assert logs[0].entry.kind is SessionMode.WORK
    assert logs[0].entry.duration_minutes == minutes


def test_completion_effects_run_in_order():
    config = SessionConfig(work_minutes=1, show_end_session_message=True)
    machine = SessionMachine(config)
    machine.start(config)

    final = run_to_expiry(machine, config)[-1]

    assert [type(e) for e in final.effects] == [
        PlayCue, AppendLog, EvaluateAchievements, ShowEndMessage, SwitchMode
    ]


def test_message_effect_skipped_when_disabled():
    config = SessionConfig(work_minutes=1, show_end_session_message=False)
    machine = SessionMachine(config)
    machine.start(config)

    final = run_to_expiry(machine, config)[-1]

    assert not any(isinstance(e, ShowEndMessage) for e in final.effects)


def test_completion_never_auto_starts_next_mode():
    config = SessionConfig(work_minutes=1, short_break_minutes=5)
    machine = SessionMachine(config)
    machine.start(config)
    run_to_expiry(machine, config)

    assert machine.state.mode is SessionMode.SHORT_BREAK
    assert machine.state.is_running is False
    assert machine.state.remaining_seconds == 5 * 60


@pytest.mark.parametrize("count", range(1, 13))
def test_long_break_after_every_fourth_work_session(count):
    nxt, updated = next_mode_after(SessionMode.WORK, count - 1)
    assert updated == count
    expected = SessionMode.LONG_BREAK if count % 4 == 0 else SessionMode.SHORT_BREAK
    assert nxt is expected


def test_long_break_resets_cycle_and_short_break_keeps_it():
    assert next_mode_after(SessionMode.LONG_BREAK, 4) == (SessionMode.WORK, 0)
    assert next_mode_after(SessionMode.SHORT_BREAK, 3) == (SessionMode.WORK, 3)


def test_full_cycle_through_machine():
    config = SessionConfig(work_minutes=1, short_break_minutes=1, long_break_minutes=1)
    machine = SessionMachine(config)
    modes = []
    for _ in range(8):
        machine.start(config)
        run_to_expiry(machine, config)
        modes.append(machine.state.mode)

    assert modes == [
        SessionMode.SHORT_BREAK, SessionMode.WORK,
        SessionMode.SHORT_BREAK, SessionMode.WORK,
        SessionMode.SHORT_BREAK, SessionMode.WORK,
        SessionMode.LONG_BREAK, SessionMode.WORK,
    ]
    assert machine.state.completed_work_count == 0


def test_evaluate_effect_carries_updated_cycle_count():
    config = SessionConfig(work_minutes=1)
    machine = SessionMachine(config)
    machine.start(config)
    final = run_to_expiry(machine, config)[-1]

    evaluate = next(e for e in final.effects if isinstance(e, EvaluateAchievements))
    assert evaluate.mode is SessionMode.WORK
    assert evaluate.cycle_count == 1


def test_pause_keeps_remaining_and_stops_ticks():
    config = SessionConfig()
    state = start(initial_state(config), config).state
    state = tick(state, config).state
    paused = pause(state, config).state

    assert paused.is_running is False
    assert paused.remaining_seconds == 25 * 60 - 1
    assert paused.is_paused
    assert tick(paused, config).state == paused


def test_resume_continues_from_pause():
    config = SessionConfig()
    machine = SessionMachine(config)
    machine.start(config)
    for _ in range(10):
        machine.tick(config)
    machine.pause(config)
    machine.resume(config)

    assert machine.state.is_running
    assert machine.state.remaining_seconds == 25 * 60 - 10


def test_reset_restores_full_duration():
    config = SessionConfig(work_minutes=30)
    machine = SessionMachine(config)
    machine.start(config)
    machine.tick(config)
    machine.reset(config)

    assert machine.state.is_running is False
    assert machine.state.remaining_seconds == 30 * 60


def test_start_is_ignored_while_running():
    config = SessionConfig()
    machine = SessionMachine(config)
    machine.start(config)
    machine.tick(config)
    transition = machine.start(config, seconds=60)

    assert transition.state.remaining_seconds == 25 * 60 - 1


def test_start_with_shortened_duration():
    config = SessionConfig(work_minutes=25)
    machine = SessionMachine(config)
    machine.start(config, seconds=20 * 60)

    assert machine.state.remaining_seconds == 20 * 60
    assert machine.state.total_seconds == 20 * 60


def test_shortened_session_logs_configured_duration():
    config = SessionConfig(work_minutes=25)
    machine = SessionMachine(config)
    machine.start(config, seconds=2)
    final = run_to_expiry(machine, config)[-1]

    log = next(e for e in final.effects if isinstance(e, AppendLog))
    assert log.entry.duration_minutes == 25


def test_manual_switch_keeps_cycle_count():
    config = SessionConfig(work_minutes=1, long_break_minutes=15)
    machine = SessionMachine(config)
    machine.start(config)
    run_to_expiry(machine, config)
    machine.switch_mode(config, SessionMode.LONG_BREAK)

    assert machine.state.mode is SessionMode.LONG_BREAK
    assert machine.state.remaining_seconds == 15 * 60
    assert machine.state.completed_work_count == 1


def test_reconfigure_only_touches_unstarted_timer():
    config = SessionConfig(work_minutes=25)
    machine = SessionMachine(config)
    machine.reconfigure(SessionConfig(work_minutes=50))
    assert machine.state.remaining_seconds == 50 * 60

    machine.start(config)
    machine.tick(config)
    machine.pause(config)
    machine.reconfigure(SessionConfig(work_minutes=10))
    assert machine.state.remaining_seconds == 25 * 60 - 1


def test_pause_before_first_tick_is_still_paused():
    config = SessionConfig(work_minutes=25)
    machine = SessionMachine(config)
    machine.start(config, seconds=20 * 60)
    machine.pause(config)

    assert machine.state.is_paused
    assert machine.state.remaining_seconds == machine.state.total_seconds

    machine.reconfigure(SessionConfig(work_minutes=50))
    assert machine.state.is_paused
    assert machine.state.remaining_seconds == 20 * 60

    machine.resume(config)
    assert machine.state.is_running
    assert not machine.state.is_paused
    assert machine.state.remaining_seconds == 20 * 60


def test_reset_and_switch_clear_pause():
    config = SessionConfig()
    machine = SessionMachine(config)
    machine.start(config)
    machine.pause(config)
    machine.reset(config)
    assert not machine.state.is_paused

    machine.start(config)
    machine.pause(config)
    machine.switch_mode(config, SessionMode.SHORT_BREAK)
    assert not machine.state.is_paused


def test_machine_starts_from_saved_position():
    config = SessionConfig(long_break_minutes=15)
    machine = SessionMachine(config, initial_state(config, SessionMode.LONG_BREAK))

    assert machine.state.mode is SessionMode.LONG_BREAK
    assert machine.state.remaining_seconds == 15 * 60
