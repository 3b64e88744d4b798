#!/usr/bin/env python3
"""
FocusFlow - a focus session timer with prayer-aware scheduling.

Headless runner for the FocusFlow engine:
- Work/break cycles with automatic long breaks every fourth session
- Salah-aware start checks against today's prayer times
- End-of-session messages and achievements
- A priority task board, a daily journal and a two-minute timer

Usage:
    pip install -e .
    python main.py run [--mode work|shortBreak|longBreak]
    python main.py settings [key=value ...]
    python main.py tasks add "Write report" --quadrant q2
    python main.py journal add "Good day"
    python main.py prayer-times
    python main.py log [--tasks]
    python main.py two-minute
    python main.py achievements
    python main.py export-log sessions.csv
"""

import sys
import signal
import getpass
import logging
import argparse
from dataclasses import replace
from datetime import datetime

from PySide6.QtCore import QCoreApplication

from focusflow.errors import AuthenticationFailure, ExternalServiceFailure, ValidationFailure
from focusflow.logging_setup import setup_logging, get_log_file
from focusflow.models import LogEntry, Quadrant, SessionMode, format_mmss
from focusflow.prayer_gate import next_prayer
from focusflow.settings import (
    PRAYER_METHODS, SETTINGS_FIELDS, apply_settings_input, parse_assignments
)
from focusflow.storage import LOG, get_app_data_dir

logger = logging.getLogger("focusflow.main")


def setup_exception_handling():
    """Log unhandled exceptions before the default hook prints them."""
    def exception_hook(exctype, value, traceback):
        logger.critical("Unhandled exception", exc_info=(exctype, value, traceback))
        sys.__excepthook__(exctype, value, traceback)

    sys.excepthook = exception_hook


def setup_signal_handlers(app: QCoreApplication):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        print("\nReceived interrupt signal, shutting down...")
        app.quit()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def _ask(question: str) -> bool:
    try:
        return input(f"{question} [y/N] ").strip().lower() in ("y", "yes")
    except EOFError:
        return False


def _print_unlocked(items):
    if items:
        print("Unlocked: " + ", ".join(sorted(a.value for a in items)))


# ==================== Timers ====================

def run_session(app: QCoreApplication, focus, args) -> int:
    engine = focus.engine
    if args.mode:
        mode = SessionMode(args.mode)
        if engine.state.mode is not mode:
            engine.switch_mode(mode)

    def on_tick(state):
        print(f"\r{state.mode.label:<12} {state.format_remaining()}", end="", flush=True)

    def on_completed(entry):
        print(f"\n{entry.kind.label} complete ({entry.duration_minutes} min).")

    def on_message(message):
        if message.available:
            print(f'"{message.text}"\n  - {message.reference}')
        else:
            print("No message available.")

    def on_mode_changed(old, new):
        if not engine.is_running:
            print(f"Next up: {new.label}.")
            app.quit()

    def on_blocked(decision):
        print(decision.message)
        app.quit()

    def on_confirm(decision):
        if _ask(decision.message):
            engine.confirm_shortened_session()
        else:
            engine.decline_shortened_session()
            app.quit()

    engine.tick.connect(on_tick)
    engine.session_completed.connect(on_completed)
    engine.message_ready.connect(on_message)
    engine.mode_changed.connect(on_mode_changed)
    engine.prayer_blocked.connect(on_blocked)
    engine.confirmation_required.connect(on_confirm)
    engine.achievements_unlocked.connect(_print_unlocked)
    engine.status_message.connect(lambda text: print(f"\n{text}"))

    engine.request_start()
    if not engine.is_running:
        return 0
    return app.exec()


def run_two_minute(app: QCoreApplication, focus, args) -> int:
    timer = focus.micro_timer
    timer.tick.connect(lambda s: print(f"\r2-Minute Rule {format_mmss(s)}", end="", flush=True))
    timer.finished.connect(lambda: (print("\nTime's up."), app.quit()))
    timer.start()
    return app.exec()


# ==================== Settings and views ====================

def _print_settings(config):
    for key in SETTINGS_FIELDS:
        value = getattr(config, key)
        if key == "custom_messages":
            value = " | ".join(value) or "-"
        elif key == "prayer_method":
            value = f"{value} ({PRAYER_METHODS.get(value, 'unknown')})"
        elif hasattr(value, "value"):
            value = value.value
        print(f"{key:<26} {value}")


def run_settings(app, focus, args) -> int:
    current = focus.settings.load()
    if args.assignments:
        raw = parse_assignments(args.assignments)
        current = apply_settings_input(current, raw)
        _print_unlocked(focus.settings.save(current))
        print("Settings saved.")
    _print_settings(current)
    return 0


def list_achievements(app, focus, args) -> int:
    for descriptor, unlocked in focus.achievements.progress():
        mark = "x" if unlocked else " "
        print(f"[{mark}] {descriptor.title:<24} {descriptor.description}")
    return 0


def show_prayer_times(app, focus, args) -> int:
    config = focus.settings.load()
    print("Loading prayer times...")
    try:
        windows = focus.gate.today_prayers(config)
    except ExternalServiceFailure as e:
        logger.warning("Prayer times unavailable: %s", e)
        print("Could not fetch prayer times. Please check the location in settings.")
        return 1

    upcoming = next_prayer(windows, focus.clock.now())
    print(f"Today's prayer times in {config.city}, {config.country}")
    for prayer in windows:
        marker = ">" if prayer is upcoming else " "
        print(f"{marker} {prayer.name:<8} {prayer.time:%H:%M}")
    return 0


def show_log(app, focus, args) -> int:
    if args.tasks:
        entries = focus.tasks.completed_log()[:args.limit]
        for entry in entries:
            when = datetime.fromtimestamp(entry.get("completed_at", 0))
            print(f"{when:%Y-%m-%d %H:%M}  [{entry.get('quadrant', '?')}] {entry.get('text', '')}")
    else:
        entries = focus.storage.list_entries(focus.user_id, LOG, limit=args.limit)
        for raw in entries:
            entry = LogEntry.from_dict(raw, raw["id"])
            print(f"{entry.completed_datetime:%Y-%m-%d %H:%M}  {entry.kind.label:<12} {entry.duration_minutes} min")
    if not entries:
        print("Nothing logged yet.")
    return 0


def export_log(app, focus, args) -> int:
    count = focus.storage.export_log_to_csv(focus.user_id, args.path)
    print(f"Exported {count} sessions to {args.path}")
    return 0


# ==================== Tasks ====================

def _find_task(focus, prefix: str):
    matches = [
        task for tasks in focus.tasks.board().values() for task in tasks
        if task.id.startswith(prefix)
    ]
    if len(matches) != 1:
        raise ValidationFailure(
            "task", prefix,
            f"No task matches {prefix!r}" if not matches else f"{prefix!r} matches several tasks"
        )
    return matches[0]


def run_tasks(app, focus, args) -> int:
    board = focus.tasks
    if args.action == "list":
        for quadrant, tasks in board.board().items():
            print(f"{quadrant.value.upper()}  {quadrant.title}")
            for task in tasks:
                mark = "x" if task.completed else " "
                line = f"  [{mark}] {task.id[:8]}  {task.text}"
                if task.intention:
                    line += f"  ({task.intention})"
                print(line)
            if not tasks:
                print("  -")
    elif args.action == "add":
        task = board.add_task(args.text, Quadrant(args.quadrant), args.intention)
        print(f"Added {task.id[:8]} to {task.quadrant.title}.")
    elif args.action == "toggle":
        task = _find_task(focus, args.id)
        unlocked = board.toggle_task(task.id)
        print(f"{'Reopened' if task.completed else 'Completed'} {task.text!r}.")
        _print_unlocked(unlocked)
    elif args.action == "edit":
        task = _find_task(focus, args.id)
        changes = {}
        if args.text is not None:
            changes["text"] = args.text
        if args.quadrant is not None:
            changes["quadrant"] = Quadrant(args.quadrant)
        if args.intention is not None:
            changes["intention"] = args.intention.strip() or None
        board.edit_task(replace(task, **changes))
        print(f"Updated {task.id[:8]}.")
    elif args.action == "delete":
        task = _find_task(focus, args.id)
        board.delete_task(task.id)
        print(f"Deleted {task.text!r}.")
    return 0


# ==================== Journal ====================

def run_journal(app, focus, args) -> int:
    journal = focus.journal
    if args.action == "add":
        review = journal.add_review(args.text)
        print("Review saved." if review else "Nothing to save.")
    elif args.action == "list":
        if journal.is_protected() and not journal.unlock(getpass.getpass("Journal password: ")):
            print("Incorrect password.")
            return 1
        reviews = journal.reviews()
        for review in reviews:
            print(f"{datetime.fromtimestamp(review.date):%Y-%m-%d}  {review.review_text}")
        if not reviews:
            print("No reviews yet.")
    elif args.action == "set-password":
        if journal.is_protected() and not journal.unlock(getpass.getpass("Current password: ")):
            print("Incorrect password.")
            return 1
        new = getpass.getpass("New password (empty to remove): ")
        confirm = getpass.getpass("Confirm password: ")
        journal.set_password(new, confirm)
        print("Password set." if new else "Password removed.")
    return 0


# ==================== Entry point ====================

COMMANDS = {
    "run": run_session,
    "two-minute": run_two_minute,
    "settings": run_settings,
    "tasks": run_tasks,
    "journal": run_journal,
    "prayer-times": show_prayer_times,
    "log": show_log,
    "achievements": list_achievements,
    "export-log": export_log,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="focusflow", description="FocusFlow focus timer")
    parser.add_argument("-v", "--verbose", action="store_true", help="log to the console too")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="run one session")
    run.add_argument(
        "--mode",
        choices=[m.value for m in SessionMode],
        default=None,
        help="session to run (default: the next one in the cycle)",
    )
    sub.add_parser("two-minute", help="run the two-minute timer")

    settings = sub.add_parser("settings", help="show or change settings")
    settings.add_argument(
        "assignments", nargs="*", metavar="key=value",
        help="custom_messages takes several messages separated by '|'",
    )

    quadrants = [q.value for q in Quadrant]
    tasks = sub.add_parser("tasks", help="manage the task board")
    task_actions = tasks.add_subparsers(dest="action", required=True)
    task_actions.add_parser("list", help="show the board")
    add = task_actions.add_parser("add", help="add a task")
    add.add_argument("text")
    add.add_argument("--quadrant", choices=quadrants, default=Quadrant.Q1.value)
    add.add_argument("--intention")
    toggle = task_actions.add_parser("toggle", help="complete or reopen a task")
    toggle.add_argument("id", help="task id or a unique prefix")
    edit = task_actions.add_parser("edit", help="change a task")
    edit.add_argument("id", help="task id or a unique prefix")
    edit.add_argument("--text")
    edit.add_argument("--quadrant", choices=quadrants)
    edit.add_argument("--intention")
    delete = task_actions.add_parser("delete", help="remove a task")
    delete.add_argument("id", help="task id or a unique prefix")

    journal = sub.add_parser("journal", help="daily reviews")
    journal_actions = journal.add_subparsers(dest="action", required=True)
    review = journal_actions.add_parser("add", help="write today's review")
    review.add_argument("text")
    journal_actions.add_parser("list", help="read past reviews")
    journal_actions.add_parser("set-password", help="set or remove the journal password")

    sub.add_parser("prayer-times", help="show today's prayer times")

    log = sub.add_parser("log", help="show completed sessions")
    log.add_argument("--tasks", action="store_true", help="show completed tasks instead")
    log.add_argument("--limit", type=int, default=20)

    sub.add_parser("achievements", help="list achievements")
    export = sub.add_parser("export-log", help="export the session log to CSV")
    export.add_argument("path")
    return parser


def dispatch(app, focus, args) -> int:
    """Run one subcommand. Invalid input is reported, not raised."""
    command = args.command or "run"
    if command == "run" and not hasattr(args, "mode"):
        args.mode = None
    try:
        return COMMANDS[command](app, focus, args)
    except ValidationFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def main(argv=None):
    """Main entry point for FocusFlow."""
    args = build_parser().parse_args(argv)
    setup_exception_handling()

    data_dir = get_app_data_dir()
    setup_logging(data_dir / "logs", level=logging.INFO, console=args.verbose)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    app.setApplicationName("FocusFlow")
    app.setOrganizationName("FocusFlow")
    setup_signal_handlers(app)

    from focusflow.app import FocusFlowApp
    try:
        focus = FocusFlowApp(data_dir)
    except AuthenticationFailure as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print(f"See {get_log_file()} for details.", file=sys.stderr)
        return 2

    try:
        return dispatch(app, focus, args)
    finally:
        focus.close()


if __name__ == "__main__":
    sys.exit(main())
