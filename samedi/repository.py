"""Session persistence backed by SQLite."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Protocol

from .session import Session, SessionError, SessionNotFoundError

_COLUMNS = (
    "id, plan_id, chunk_id, start_time, end_time, duration_minutes, "
    "notes, artifacts, cards_created, created_at"
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    plan_id TEXT NOT NULL,
    chunk_id TEXT,
    start_time TEXT NOT NULL,
    end_time TEXT,
    duration_minutes INTEGER NOT NULL DEFAULT 0,
    notes TEXT NOT NULL DEFAULT '',
    artifacts TEXT,
    cards_created INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_sessions_plan ON sessions (plan_id);
CREATE INDEX IF NOT EXISTS idx_sessions_start ON sessions (start_time);
CREATE INDEX IF NOT EXISTS idx_sessions_end ON sessions (end_time);
"""


class Repository(Protocol):
    """Storage operations the session service relies on."""

    def create(self, session: Session) -> None:
        """Insert a new session."""
        ...

    def get(self, session_id: str) -> Session:
        """Return the session with ``session_id``."""
        ...

    def get_active(self) -> Session | None:
        """Return the active session, or None."""
        ...

    def update(self, session: Session) -> None:
        """Store changes to an existing session."""
        ...

    def list(self, plan_id: str, limit: int) -> list[Session]:
        """Sessions for a plan (or all plans), newest first."""
        ...

    def get_by_plan(self, plan_id: str) -> list[Session]:
        """All sessions for a plan, newest first."""
        ...

    def delete(self, session_id: str) -> None:
        """Remove a session."""
        ...


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the sessions table and its indexes if they are missing."""
    with conn:
        conn.executescript(_SCHEMA)


def _time_to_db(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat(sep=" ", timespec="microseconds")


def _time_from_db(value: str | None) -> datetime | None:
    return None if value is None else datetime.fromisoformat(value)


def _row_to_session(row: tuple) -> Session:
    (
        session_id,
        plan_id,
        chunk_id,
        start_time,
        end_time,
        duration,
        notes,
        artifacts_json,
        cards_created,
        created_at,
    ) = row
    artifacts: list[str] = []
    if artifacts_json and artifacts_json != "null":
        try:
            artifacts = json.loads(artifacts_json)
        except json.JSONDecodeError as exc:
            raise SessionError(f"failed to unmarshal artifacts: {exc}") from exc
    return Session(
        id=session_id,
        plan_id=plan_id,
        chunk_id=chunk_id or "",
        start_time=_time_from_db(start_time),
        end_time=_time_from_db(end_time),
        duration=duration or 0,
        notes=notes or "",
        artifacts=artifacts,
        cards_created=cards_created or 0,
        created_at=_time_from_db(created_at),
    )


class SQLiteRepository:
    """Stores sessions in the ``sessions`` table of a SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _execute(self, action: str, query: str, params: Iterable = ()) -> sqlite3.Cursor:
        try:
            with self._conn:
                return self._conn.execute(query, tuple(params))
        except sqlite3.Error as exc:
            raise SessionError(f"failed to {action}: {exc}") from exc

    def _fetch_all(self, action: str, query: str, params: Iterable = ()) -> list[Session]:
        try:
            rows = self._conn.execute(query, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise SessionError(f"failed to {action}: {exc}") from exc
        return [_row_to_session(row) for row in rows]

    def _fetch_one(self, action: str, query: str, params: Iterable = ()) -> Session | None:
        try:
            row = self._conn.execute(query, tuple(params)).fetchone()
        except sqlite3.Error as exc:
            raise SessionError(f"failed to {action}: {exc}") from exc
        return None if row is None else _row_to_session(row)

    def create(self, session: Session) -> None:
        """Insert ``session``."""
        self._execute(
            "create session",
            f"INSERT INTO sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                session.id,
                session.plan_id,
                session.chunk_id or None,
                _time_to_db(session.start_time),
                _time_to_db(session.end_time),
                session.duration,
                session.notes,
                json.dumps(session.artifacts),
                session.cards_created,
                _time_to_db(session.created_at),
            ),
        )

    def get(self, session_id: str) -> Session:
        """Return the session with ``session_id`` or raise SessionNotFoundError."""
        session = self._fetch_one(
            "get session",
            f"SELECT {_COLUMNS} FROM sessions WHERE id = ?",
            (session_id,),
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_active(self) -> Session | None:
        """Return the most recently started session without an end time."""
        return self._fetch_one(
            "get active session",
            f"SELECT {_COLUMNS} FROM sessions WHERE end_time IS NULL "
            "ORDER BY start_time DESC LIMIT 1",
        )

    def update(self, session: Session) -> None:
        """Overwrite the stored fields of ``session``."""
        cursor = self._execute(
            "update session",
            "UPDATE sessions SET plan_id = ?, chunk_id = ?, start_time = ?, "
            "end_time = ?, duration_minutes = ?, notes = ?, artifacts = ?, "
            "cards_created = ? WHERE id = ?",
            (
                session.plan_id,
                session.chunk_id or None,
                _time_to_db(session.start_time),
                _time_to_db(session.end_time),
                session.duration,
                session.notes,
                json.dumps(session.artifacts),
                session.cards_created,
                session.id,
            ),
        )
        if cursor.rowcount == 0:
            raise SessionNotFoundError(session.id)

    def list(self, plan_id: str, limit: int) -> list[Session]:
        """Sessions newest first; an empty ``plan_id`` means every plan.

        A ``limit`` of zero or less returns all matching sessions.
        """
        query = f"SELECT {_COLUMNS} FROM sessions"
        params: list = []
        if plan_id:
            query += " WHERE plan_id = ?"
            params.append(plan_id)
        query += " ORDER BY start_time DESC"
        if limit > 0:
            query += " LIMIT ?"
            params.append(limit)
        return self._fetch_all("list sessions", query, params)

    def get_by_plan(self, plan_id: str) -> list[Session]:
        """All sessions of ``plan_id``, newest first."""
        return self._fetch_all(
            "get sessions by plan",
            f"SELECT {_COLUMNS} FROM sessions WHERE plan_id = ? ORDER BY start_time DESC",
            (plan_id,),
        )

    def delete(self, session_id: str) -> None:
        """Remove the session or raise SessionNotFoundError."""
        cursor = self._execute(
            "delete session", "DELETE FROM sessions WHERE id = ?", (session_id,)
        )
        if cursor.rowcount == 0:
            raise SessionNotFoundError(session_id)