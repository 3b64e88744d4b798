"""
SQLite storage module for the FocusFlow application.
A small per-user document store: point read, merge upsert, transactional
update, append-only collections and change subscriptions.
"""

import sqlite3
import os
import json
import time
import csv
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from contextlib import contextmanager
from datetime import datetime

from .errors import PersistenceFailure, ConcurrentUpdateError

logger = logging.getLogger(__name__)

# Document categories
SETTINGS = "settings"
ACHIEVEMENTS = "achievements"
TASKS = "eisenhower-tasks"
SESSION_STATE = "session-state"

# Append-only collections
LOG = "log"
DAILY_REVIEWS = "daily-reviews"
COMPLETED_TASKS = "completed-tasks"

DOCUMENT_CATEGORIES = (SETTINGS, ACHIEVEMENTS, TASKS, SESSION_STATE)
COLLECTIONS = (LOG, DAILY_REVIEWS, COMPLETED_TASKS)

Listener = Callable[[Any], None]


def get_app_data_dir() -> Path:
    """
    Get the appropriate application data directory based on OS.
    Creates the directory if it doesn't exist.
    """
    override = os.environ.get('FOCUSFLOW_HOME')
    if override:
        app_dir = Path(override)
        app_dir.mkdir(parents=True, exist_ok=True)
        return app_dir

    if os.name == 'nt':  # Windows
        base = Path(os.environ.get('APPDATA', Path.home()))
    elif os.name == 'posix':
        # macOS uses ~/Library/Application Support, Linux uses ~/.local/share
        if os.uname().sysname == 'Darwin':
            base = Path.home() / 'Library' / 'Application Support'
        else:
            base = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local' / 'share'))
    else:
        base = Path.home()

    app_dir = base / 'FocusFlow'
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


class Storage:
    """
    Database storage manager.
    Documents are JSON bodies keyed by (user, category) with a version
    counter; collections are append-only JSON entries.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize storage with database path.

        Args:
            db_path: Optional custom path for database file.
                    If None, uses default app data directory.
        """
        if db_path is None:
            db_path = str(get_app_data_dir() / 'focusflow.db')

        self.db_path = db_path
        self._listeners: Dict[Tuple[str, str], List[Listener]] = {}
        self._init_database()

    @contextmanager
    def _get_connection(self, operation: str = "query", key: str = ""):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceFailure(operation, key, str(e)) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceFailure(operation, key, str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database schema if tables don't exist."""
        with self._get_connection("init") as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS documents (
                    user_id TEXT NOT NULL,
                    category TEXT NOT NULL,
                    body TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    updated_at INTEGER NOT NULL,
                    PRIMARY KEY (user_id, category)
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    collection TEXT NOT NULL,
                    body TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_entries_collection
                ON entries(user_id, collection, created_at)
            ''')

    # ==================== Documents ====================

    def get_document(self, user_id: str, category: str) -> Optional[Dict[str, Any]]:
        """Get a document body, or None if it was never written."""
        row = self._read_document(user_id, category)
        return row[0] if row else None

    def _read_document(self, user_id: str, category: str) -> Optional[Tuple[Dict[str, Any], int]]:
        with self._get_connection("read", category) as conn:
            cursor = conn.cursor()
            cursor.execute(
                'SELECT body, version FROM documents WHERE user_id = ? AND category = ?',
                (user_id, category)
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return self._decode(row['body'], category), row['version']

    def set_document(
        self,
        user_id: str,
        category: str,
        data: Dict[str, Any],
        merge: bool = True
    ) -> Dict[str, Any]:
        """
        Upsert a document.

        Args:
            merge: Shallow-merge into the existing body instead of replacing it.

        Returns:
            The stored body.
        """
        with self._get_connection("write", category) as conn:
            cursor = conn.cursor()
            cursor.execute(
                'SELECT body FROM documents WHERE user_id = ? AND category = ?',
                (user_id, category)
            )
            row = cursor.fetchone()
            body = dict(data)
            if merge and row is not None:
                body = {**self._decode(row['body'], category), **data}
            cursor.execute('''
                INSERT INTO documents (user_id, category, body, version, updated_at)
                VALUES (?, ?, ?, 1, ?)
                ON CONFLICT(user_id, category) DO UPDATE SET
                    body = excluded.body,
                    version = documents.version + 1,
                    updated_at = excluded.updated_at
            ''', (user_id, category, json.dumps(body), int(time.time())))

        self._notify(user_id, category, body)
        return body

    def update_document(
        self,
        user_id: str,
        category: str,
        mutate: Callable[[Dict[str, Any]], Dict[str, Any]],
        max_retries: int = 5
    ) -> Dict[str, Any]:
        """
        Read-modify-write a document with optimistic concurrency.

        `mutate` receives a copy of the current body ({} when missing) and
        returns the new body. The write only lands if nobody else wrote the
        document in between; otherwise `mutate` is re-run on fresh data.

        Raises:
            ConcurrentUpdateError: if every attempt lost the race.
        """
        for attempt in range(max_retries + 1):
            current = self._read_document(user_id, category)
            body, version = current if current else ({}, 0)
            new_body = mutate(dict(body))

            with self._get_connection("update", category) as conn:
                cursor = conn.cursor()
                if version == 0:
                    cursor.execute('''
                        INSERT OR IGNORE INTO documents
                        (user_id, category, body, version, updated_at)
                        VALUES (?, ?, ?, 1, ?)
                    ''', (user_id, category, json.dumps(new_body), int(time.time())))
                else:
                    cursor.execute('''
                        UPDATE documents
                        SET body = ?, version = version + 1, updated_at = ?
                        WHERE user_id = ? AND category = ? AND version = ?
                    ''', (json.dumps(new_body), int(time.time()), user_id, category, version))
                written = cursor.rowcount > 0

            if written:
                self._notify(user_id, category, new_body)
                return new_body
            logger.debug("Update conflict on %s (attempt %d)", category, attempt + 1)

        raise ConcurrentUpdateError("update", category, f"gave up after {max_retries + 1} attempts")

    # ==================== Collections ====================

    def append(self, user_id: str, collection: str, data: Dict[str, Any]) -> int:
        """
        Append an entry to a collection.

        Returns:
            ID of the created entry.
        """
        created_at = int(data.get('created_at') or time.time())
        with self._get_connection("append", collection) as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT INTO entries (user_id, collection, body, created_at)
                VALUES (?, ?, ?, ?)
            ''', (user_id, collection, json.dumps(data), created_at))
            entry_id = cursor.lastrowid

        self._notify(user_id, collection, {**data, 'id': entry_id})
        return entry_id

    def list_entries(
        self,
        user_id: str,
        collection: str,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Get entries of a collection, newest first. Each dict carries its `id`."""
        query = '''
            SELECT id, body FROM entries
            WHERE user_id = ? AND collection = ?
            ORDER BY created_at DESC, id DESC
        '''
        params: List[Any] = [user_id, collection]
        if limit is not None:
            query += ' LIMIT ?'
            params.append(limit)

        with self._get_connection("list", collection) as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [
                {**self._decode(row['body'], collection), 'id': row['id']}
                for row in cursor.fetchall()
            ]

    def count_entries(self, user_id: str, collection: str, kind: Optional[str] = None) -> int:
        """Count entries, optionally only those whose `kind` matches."""
        query = 'SELECT COUNT(*) AS total FROM entries WHERE user_id = ? AND collection = ?'
        params: List[Any] = [user_id, collection]
        if kind is not None:
            query += " AND json_extract(body, '$.kind') = ?"
            params.append(kind)

        with self._get_connection("count", collection) as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            result = cursor.fetchone()
            return result['total'] if result else 0

    # ==================== Subscriptions ====================

    def subscribe(self, user_id: str, key: str, callback: Listener) -> Callable[[], None]:
        """
        Call `callback` after every committed write to a document category
        or collection. Returns a function that removes the subscription.
        """
        listeners = self._listeners.setdefault((user_id, key), [])
        listeners.append(callback)

        def unsubscribe():
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def _notify(self, user_id: str, key: str, payload: Any):
        for callback in list(self._listeners.get((user_id, key), [])):
            try:
                callback(payload)
            except Exception:
                logger.exception("Change listener for %s failed", key)

    def _decode(self, raw: str, key: str) -> Dict[str, Any]:
        try:
            return json.loads(raw)
        except ValueError as e:
            raise PersistenceFailure("decode", key, str(e)) from e

    # ==================== Export ====================

    def export_log_to_csv(self, user_id: str, filepath: str) -> int:
        """
        Export the session log to a CSV file, oldest first.

        Returns:
            Number of entries exported.
        """
        rows = list(reversed(self.list_entries(user_id, LOG)))

        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(['ID', 'Kind', 'Duration (min)', 'Completed At'])
            for row in rows:
                writer.writerow([
                    row['id'],
                    row.get('kind', ''),
                    row.get('duration_minutes', ''),
                    datetime.fromtimestamp(row.get('completed_at', 0)).strftime('%Y-%m-%d %H:%M:%S'),
                ])

        return len(rows)
