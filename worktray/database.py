from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from .models import DEFAULT_TARGET_HOURS, BreakSession, WorkDay, WorkSession
from .summary import DailySummary

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


class StorageError(RuntimeError):
    """Raised for I/O failures, constraint violations and missing rows."""


# Each entry upgrades the schema by one PRAGMA user_version step.
MIGRATIONS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS work_days (
        id TEXT NOT NULL PRIMARY KEY,
        date TEXT NOT NULL UNIQUE,
        is_registered INTEGER NOT NULL DEFAULT 0,
        target_hours REAL NOT NULL DEFAULT 8.0
    );

    CREATE TABLE IF NOT EXISTS work_sessions (
        id TEXT NOT NULL PRIMARY KEY,
        work_day_id TEXT NOT NULL REFERENCES work_days(id) ON DELETE CASCADE,
        started_at TEXT NOT NULL,
        ended_at TEXT
    );

    CREATE TABLE IF NOT EXISTS break_sessions (
        id TEXT NOT NULL PRIMARY KEY,
        work_day_id TEXT NOT NULL REFERENCES work_days(id) ON DELETE CASCADE,
        started_at TEXT NOT NULL,
        ended_at TEXT
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_work_sessions_work_day_id
    ON work_sessions(work_day_id);

    CREATE INDEX IF NOT EXISTS idx_break_sessions_work_day_id
    ON break_sessions(work_day_id);

    CREATE INDEX IF NOT EXISTS idx_work_days_date
    ON work_days(date);

    CREATE UNIQUE INDEX IF NOT EXISTS idx_work_sessions_one_active
    ON work_sessions(work_day_id) WHERE ended_at IS NULL;

    CREATE UNIQUE INDEX IF NOT EXISTS idx_break_sessions_one_active
    ON break_sessions(work_day_id) WHERE ended_at IS NULL;
    """,
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """,
)

_SESSION_TABLES = {WorkSession: "work_sessions", BreakSession: "break_sessions"}


class WorkTrayDatabase:
    """Work days and their work/break sessions in a single SQLite file.

    Writes are serialized through one lock and run inside ``BEGIN IMMEDIATE``
    transactions. Reads open their own deferred transaction so that a
    multi-query read sees one consistent snapshot.
    """

    def __init__(self, db_file: Path, id_factory: IdFactory | None = None):
        self._db_file = Path(db_file)
        self._lock = threading.Lock()
        self._new_id = id_factory or _random_id
        try:
            self._db_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create database directory: {exc}") from exc
        self._migrate()

    @property
    def path(self) -> Path:
        return self._db_file

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_file, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open database {self._db_file}: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock, self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        with self._connection() as conn:
            conn.execute("BEGIN")
            yield conn
            conn.commit()

    def _migrate(self) -> None:
        with self._lock, self._connection() as conn:
            version = int(conn.execute("PRAGMA user_version").fetchone()[0])
            for index, script in enumerate(MIGRATIONS[version:], start=version + 1):
                logger.info("Applying schema migration %d to %s", index, self._db_file)
                conn.executescript(script)
                conn.execute(f"PRAGMA user_version = {index}")
            conn.commit()

    def schema_version(self) -> int:
        with self._connection() as conn:
            return int(conn.execute("PRAGMA user_version").fetchone()[0])

    # Work days

    def ensure_work_day(
        self,
        day: date | datetime,
        target_hours: float = DEFAULT_TARGET_HOURS,
    ) -> WorkDay:
        normalized = _as_day(day)
        with self._write() as conn:
            row = conn.execute(
                "SELECT id, date, is_registered, target_hours FROM work_days WHERE date = ?",
                (normalized.isoformat(),),
            ).fetchone()
            if row is not None:
                return _row_to_work_day(row)

            work_day = WorkDay(
                id=self._new_id(),
                day=normalized,
                is_registered=False,
                target_hours=float(target_hours),
            )
            conn.execute(
                """
                INSERT INTO work_days(id, date, is_registered, target_hours)
                VALUES (?, ?, ?, ?)
                """,
                (work_day.id, normalized.isoformat(), 0, work_day.target_hours),
            )
        logger.info("Created work day %s for %s", work_day.id, normalized.isoformat())
        return work_day

    def fetch_work_day(self, day: date | datetime) -> WorkDay | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT id, date, is_registered, target_hours FROM work_days WHERE date = ?",
                (_as_day(day).isoformat(),),
            ).fetchone()
        return _row_to_work_day(row) if row is not None else None

    def fetch_work_day_by_id(self, work_day_id: str) -> WorkDay | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT id, date, is_registered, target_hours FROM work_days WHERE id = ?",
                (work_day_id,),
            ).fetchone()
        return _row_to_work_day(row) if row is not None else None

    def fetch_work_days(self, start: date | datetime, end: date | datetime) -> list[WorkDay]:
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT id, date, is_registered, target_hours
                FROM work_days
                WHERE date >= ? AND date <= ?
                ORDER BY date ASC
                """,
                (_as_day(start).isoformat(), _as_day(end).isoformat()),
            ).fetchall()
        return [_row_to_work_day(row) for row in rows]

    def fetch_all_work_days(self) -> list[WorkDay]:
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT id, date, is_registered, target_hours
                FROM work_days
                ORDER BY date DESC
                """
            ).fetchall()
        return [_row_to_work_day(row) for row in rows]

    def fetch_months_with_data(self) -> list[date]:
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT substr(date, 1, 7) AS month
                FROM work_days
                ORDER BY month ASC
                """
            ).fetchall()
        return [date.fromisoformat(f"{row['month']}-01") for row in rows]

    def toggle_registered(self, work_day_id: str) -> WorkDay:
        with self._write() as conn:
            cursor = conn.execute(
                "UPDATE work_days SET is_registered = 1 - is_registered WHERE id = ?",
                (work_day_id,),
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Work day {work_day_id} does not exist.")
            row = conn.execute(
                "SELECT id, date, is_registered, target_hours FROM work_days WHERE id = ?",
                (work_day_id,),
            ).fetchone()
        return _row_to_work_day(row)

    def update_target_hours(self, work_day_id: str, hours: float) -> None:
        hours = float(hours)
        if hours <= 0:
            raise StorageError(f"Target hours must be positive, got {hours}.")
        with self._write() as conn:
            cursor = conn.execute(
                "UPDATE work_days SET target_hours = ? WHERE id = ?",
                (hours, work_day_id),
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Work day {work_day_id} does not exist.")

    def delete_work_day(self, work_day_id: str) -> bool:
        with self._write() as conn:
            cursor = conn.execute("DELETE FROM work_days WHERE id = ?", (work_day_id,))
            return cursor.rowcount > 0

    def daily_summary(self, day: date | datetime) -> DailySummary | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT id, date, is_registered, target_hours FROM work_days WHERE date = ?",
                (_as_day(day).isoformat(),),
            ).fetchone()
            if row is None:
                return None
            work_day = _row_to_work_day(row)
            sessions = _select_sessions(conn, WorkSession, work_day.id)
            breaks = _select_sessions(conn, BreakSession, work_day.id)
        return DailySummary(work_day=work_day, sessions=tuple(sessions), breaks=tuple(breaks))

    # Work sessions

    def start_work_session(self, work_day_id: str, at: datetime) -> WorkSession:
        return self._start_session(WorkSession, work_day_id, at)

    def end_active_work_session(self, work_day_id: str, at: datetime) -> WorkSession | None:
        return self._end_active_session(WorkSession, work_day_id, at)

    def fetch_sessions(self, work_day_id: str) -> list[WorkSession]:
        with self._read() as conn:
            return _select_sessions(conn, WorkSession, work_day_id)

    def has_active_work_session(self, work_day_id: str) -> bool:
        return self._has_active_session(WorkSession, work_day_id)

    # Break sessions

    def start_break_session(self, work_day_id: str, at: datetime) -> BreakSession:
        return self._start_session(BreakSession, work_day_id, at)

    def end_active_break_session(self, work_day_id: str, at: datetime) -> BreakSession | None:
        return self._end_active_session(BreakSession, work_day_id, at)

    def fetch_breaks(self, work_day_id: str) -> list[BreakSession]:
        with self._read() as conn:
            return _select_sessions(conn, BreakSession, work_day_id)

    def has_active_break_session(self, work_day_id: str) -> bool:
        return self._has_active_session(BreakSession, work_day_id)

    def _start_session(self, kind, work_day_id: str, at: datetime):
        table = _SESSION_TABLES[kind]
        at = _aware(at)
        session = kind(id=self._new_id(), work_day_id=work_day_id, started_at=at, ended_at=None)
        with self._write() as conn:
            # A new interval closes whatever interval of the same kind is still open.
            conn.execute(
                f"""
                UPDATE {table} SET ended_at = MAX(started_at, ?)
                WHERE work_day_id = ? AND ended_at IS NULL
                """,
                (_encode_timestamp(at), work_day_id),
            )
            conn.execute(
                f"INSERT INTO {table}(id, work_day_id, started_at, ended_at) VALUES (?, ?, ?, NULL)",
                (session.id, work_day_id, _encode_timestamp(at)),
            )
        return session

    def _end_active_session(self, kind, work_day_id: str, at: datetime):
        table = _SESSION_TABLES[kind]
        with self._write() as conn:
            row = conn.execute(
                f"""
                SELECT id, work_day_id, started_at, ended_at
                FROM {table}
                WHERE work_day_id = ? AND ended_at IS NULL
                """,
                (work_day_id,),
            ).fetchone()
            if row is None:
                return None
            started_at = _decode_timestamp(row["started_at"])
            ended_at = max(_aware(at), started_at)
            conn.execute(
                f"UPDATE {table} SET ended_at = ? WHERE id = ?",
                (_encode_timestamp(ended_at), row["id"]),
            )
        return kind(
            id=str(row["id"]),
            work_day_id=str(row["work_day_id"]),
            started_at=started_at,
            ended_at=ended_at,
        )

    def _has_active_session(self, kind, work_day_id: str) -> bool:
        table = _SESSION_TABLES[kind]
        with self._read() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS total FROM {table} WHERE work_day_id = ? AND ended_at IS NULL",
                (work_day_id,),
            ).fetchone()
        return int(row["total"]) > 0

    # Settings

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT value FROM app_settings WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return default
        return str(row["value"])

    def set_setting(self, key: str, value: str) -> None:
        with self._write() as conn:
            conn.execute(
                """
                INSERT INTO app_settings(key, value)
                VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )


def _random_id() -> str:
    return str(uuid.uuid4())


def _as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.astimezone()


def _encode_timestamp(value: datetime) -> str:
    # Stored in UTC with fixed width so that text ordering matches time ordering.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _decode_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone()


def _select_sessions(conn: sqlite3.Connection, kind, work_day_id: str) -> list:
    rows = conn.execute(
        f"""
        SELECT id, work_day_id, started_at, ended_at
        FROM {_SESSION_TABLES[kind]}
        WHERE work_day_id = ?
        ORDER BY started_at ASC, id ASC
        """,
        (work_day_id,),
    ).fetchall()
    return [
        kind(
            id=str(row["id"]),
            work_day_id=str(row["work_day_id"]),
            started_at=_decode_timestamp(row["started_at"]),
            ended_at=_decode_timestamp(row["ended_at"]) if row["ended_at"] is not None else None,
        )
        for row in rows
    ]


def _row_to_work_day(row: sqlite3.Row) -> WorkDay:
    return WorkDay(
        id=str(row["id"]),
        day=date.fromisoformat(str(row["date"])),
        is_registered=bool(row["is_registered"]),
        target_hours=float(row["target_hours"]),
    )
