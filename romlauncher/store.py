"""
Append-only event log backed by SQLite.

Two independent tables, ``rom_plays`` and ``security_events``. Writes are
single-row inserts serialized through one lock; the database runs in WAL mode
so a crash never leaves a half-written row behind.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from typing import Any, List, Mapping, Optional, Union

from .models import (
    PlayEvent, PlayStat, SecurityEvent, StoreResult,
    REJECTED_PLAY_EVENT, ROM_PLAY_LOG_ERROR,
)
from .validation import sanitize_text, validate_rom_name

logger = logging.getLogger(__name__)

_SCHEMA = (
    """CREATE TABLE IF NOT EXISTS rom_plays (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        rom_name TEXT NOT NULL,
        played_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS security_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_type TEXT NOT NULL,
        details TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
)

_STATS_QUERY = """
    SELECT rom_name, COUNT(*) AS play_count, MAX(played_at) AS last_played
    FROM rom_plays
    GROUP BY rom_name
    ORDER BY play_count DESC, rom_name ASC
"""


def _encode_details(details: Union[str, Mapping[str, Any], None]) -> Optional[str]:
    if not details:
        return None
    if isinstance(details, Mapping):
        return json.dumps({k: sanitize_text(v) for k, v in details.items()}, default=str)
    return sanitize_text(details)


class EventStore:
    """Owns the SQLite connection for play and security events."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

    # ── Lifecycle ─────────────────────────────────────────────

    def initialize(self) -> None:
        """Open the database and create tables. Errors propagate: startup must fail loudly."""
        with self._lock:
            if self._conn is not None:
                return
            conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
            conn.execute('PRAGMA foreign_keys = ON')
            conn.execute('PRAGMA journal_mode = WAL')
            for statement in _SCHEMA:
                conn.execute(statement)
            self._conn = conn
        logger.info("Connected to SQLite database: %s", self.db_path)

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
                logger.info("Database connection closed.")
            except sqlite3.Error as e:
                logger.error("Error closing database: %s", e)
            finally:
                self._conn = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("event store is not initialized")
        return self._conn

    # ── Writes ────────────────────────────────────────────────

    def append_play_event(self, rom_name: str) -> StoreResult[int]:
        """
        Record one play. Never raises.

        Returns:
            StoreResult whose value is the new row id, or a failure when the
            name is invalid or the insert did not happen.
        """
        check = validate_rom_name(rom_name)
        if not check.ok:
            logger.warning("Refusing to log play for invalid ROM name (%s)", check.reason)
            self.append_security_event(REJECTED_PLAY_EVENT, check.reason)
            return StoreResult.failure(check.reason)

        try:
            with self._lock:
                cursor = self._connection().execute(
                    'INSERT INTO rom_plays (rom_name) VALUES (?)', (rom_name,))
                row_id = cursor.lastrowid
        except sqlite3.Error as e:
            message = f'Failed to log rom play for "{rom_name}": {e}'
            logger.error(message)
            self.append_security_event(ROM_PLAY_LOG_ERROR, message)
            return StoreResult.failure(str(e))

        logger.debug("Logged rom play: %s (ID: %s)", rom_name, row_id)
        return StoreResult.success(row_id)

    def append_security_event(self, event_type: str,
                              details: Union[str, Mapping[str, Any], None] = None) -> None:
        """
        Fire-and-forget audit insert. Failures only reach the operational log.

        A mapping is stored as JSON with each string field sanitized on its own,
        so the stored document always parses; plain text is sanitized whole.
        """
        try:
            with self._lock:
                self._connection().execute(
                    'INSERT INTO security_events (event_type, details) VALUES (?, ?)',
                    (event_type, _encode_details(details)),
                )
        except sqlite3.Error as e:
            logger.error("Failed to log security event %s: %s", event_type, e)

    # ── Reads ─────────────────────────────────────────────────

    def get_play_stats(self) -> StoreResult[List[PlayStat]]:
        try:
            with self._lock:
                rows = self._connection().execute(_STATS_QUERY).fetchall()
        except sqlite3.Error as e:
            logger.error("Failed to read play stats: %s", e)
            return StoreResult.failure(str(e))
        return StoreResult.success([PlayStat(r[0], r[1], r[2]) for r in rows])

    def recent_security_events(self, limit: int = 50) -> StoreResult[List[SecurityEvent]]:
        """Newest-first slice of the security log."""
        try:
            with self._lock:
                rows = self._connection().execute(
                    'SELECT id, event_type, details, created_at FROM security_events '
                    'ORDER BY id DESC LIMIT ?',
                    (max(0, int(limit)),),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error("Failed to read security events: %s", e)
            return StoreResult.failure(str(e))
        return StoreResult.success([SecurityEvent(*row) for row in rows])

    def recent_play_events(self, limit: int = 50) -> StoreResult[List[PlayEvent]]:
        """Newest-first slice of the play log."""
        try:
            with self._lock:
                rows = self._connection().execute(
                    'SELECT id, rom_name, played_at FROM rom_plays ORDER BY id DESC LIMIT ?',
                    (max(0, int(limit)),),
                ).fetchall()
        except sqlite3.Error as e:
            logger.error("Failed to read play events: %s", e)
            return StoreResult.failure(str(e))
        return StoreResult.success([PlayEvent(*row) for row in rows])
