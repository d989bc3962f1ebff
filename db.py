"""
db.py
SQLite helpers + initialization (creates DB/tables, settings, daily backups).
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

DB_FILE = Path(os.getenv("REDLINE_DB", Path(__file__).with_name("redline.db")))


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    # amount is TEXT so decimals round-trip exactly
    execute(
        """
        CREATE TABLE IF NOT EXISTS templates (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            amount TEXT NOT NULL,
            currency TEXT NOT NULL,
            recurrence TEXT NOT NULL CHECK(recurrence IN ('monthly','once')),
            due_day INTEGER,
            due_date TEXT
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS month_statuses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            template_id TEXT NOT NULL,
            month_key TEXT NOT NULL,
            is_paid INTEGER NOT NULL,
            paid_at TEXT,
            UNIQUE(template_id, month_key),
            FOREIGN KEY(template_id) REFERENCES templates(id) ON DELETE CASCADE
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db() -> None:
    """
    Initialize the database.
    - Create tables (no-op when they already exist)
    """
    Path(DB_FILE).parent.mkdir(parents=True, exist_ok=True)
    _create_tables()


# ---------- Backups ----------

def backup_path(day: date) -> Path:
    db_path = Path(DB_FILE)
    return db_path.with_name(f"{db_path.stem}.{day.isoformat()}{db_path.suffix}")


def create_daily_backup(today: date | None = None) -> Path | None:
    """Copy the database to <name>.YYYY-MM-DD.db, at most once per day."""
    db_path = Path(DB_FILE)
    if not db_path.exists():
        return None

    target = backup_path(today or date.today())
    if target.exists():
        return None

    # Copy to a temporary name first; only a complete copy becomes today's backup
    partial = target.with_name(target.name + ".tmp")
    try:
        src = sqlite3.connect(db_path)
        dst = sqlite3.connect(partial)
        try:
            src.backup(dst)
        finally:
            dst.close()
            src.close()
        partial.replace(target)
    except (OSError, sqlite3.Error):
        partial.unlink(missing_ok=True)
        raise
    logger.info(f"Daily backup created: {target.name}")
    return target


def cleanup_old_backups(retention_days: int, today: date | None = None) -> list[Path]:
    """Delete dated backups older than retention_days. 0 or less keeps everything."""
    if retention_days <= 0:
        return []

    db_path = Path(DB_FILE)
    cutoff = (today or date.today()) - timedelta(days=retention_days)
    prefix = f"{db_path.stem}."
    removed: list[Path] = []

    for f in db_path.parent.glob(f"{db_path.stem}.*{db_path.suffix}"):
        stamp = f.name[len(prefix):-len(db_path.suffix)] if db_path.suffix else f.name[len(prefix):]
        try:
            backup_day = date.fromisoformat(stamp)
        except ValueError:
            continue
        if backup_day < cutoff:
            f.unlink()
            removed.append(f)
            logger.info(f"Removed old backup: {f.name}")
    return removed


def rotate_backups(retention_days: int, today: date | None = None) -> None:
    try:
        create_daily_backup(today)
        cleanup_old_backups(retention_days, today)
    except (OSError, sqlite3.Error) as e:
        logger.warning(f"Backup rotation failed (non-blocking): {e}")
