"""
store.py
Data access for bill templates, month statuses and settings (SQLite via db.py).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
import logging
import sqlite3

import db
from models import (
    DEFAULT_ALERT_DAYS,
    DEFAULT_BACKUP_RETENTION_DAYS,
    DEFAULT_HIDE_PAID,
    MAX_ALERT_DAYS,
    MAX_BACKUP_RETENTION_DAYS,
    MonthStatus,
    PaymentTemplate,
    Settings,
)

logger = logging.getLogger(__name__)


# ---------- Row mapping ----------

def _template_from_row(row: sqlite3.Row) -> PaymentTemplate:
    return PaymentTemplate(
        id=row["id"],
        title=row["title"],
        amount=Decimal(row["amount"]),
        currency=row["currency"],
        recurrence=row["recurrence"],
        due_day=row["due_day"],
        due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
    )


def _template_params(t: PaymentTemplate) -> tuple:
    return (
        t.title.strip(),
        str(t.amount),
        t.currency.strip(),
        t.recurrence,
        t.due_day,
        t.due_date.isoformat() if t.due_date else None,
    )


def _status_from_row(row: sqlite3.Row) -> MonthStatus:
    return MonthStatus(
        template_id=row["template_id"],
        month_key=row["month_key"],
        is_paid=bool(row["is_paid"]),
        paid_at=datetime.fromisoformat(row["paid_at"]) if row["paid_at"] else None,
    )


# ---------- Templates ----------

def fetch_templates() -> list[PaymentTemplate]:
    rows = db.fetch_all("SELECT * FROM templates ORDER BY rowid ASC")
    return [_template_from_row(r) for r in rows]


def get_template(template_id: str) -> PaymentTemplate | None:
    row = db.fetch_one("SELECT * FROM templates WHERE id = ?", (template_id,))
    return _template_from_row(row) if row else None


def add_template(t: PaymentTemplate) -> str:
    db.execute(
        """
        INSERT INTO templates(title, amount, currency, recurrence, due_day, due_date, id)
        VALUES(?,?,?,?,?,?,?)
        """,
        _template_params(t) + (t.id,),
    )
    return t.id


def update_template(t: PaymentTemplate) -> bool:
    """Returns False when no template with that id exists."""
    with db.get_conn() as conn:
        cur = conn.execute(
            """
            UPDATE templates SET title=?, amount=?, currency=?, recurrence=?, due_day=?, due_date=?
            WHERE id=?
            """,
            _template_params(t) + (t.id,),
        )
        return cur.rowcount > 0


def delete_template(template_id: str) -> None:
    # statuses go too (ON DELETE CASCADE)
    db.execute("DELETE FROM templates WHERE id = ?", (template_id,))


# ---------- Month statuses ----------

def fetch_statuses() -> list[MonthStatus]:
    rows = db.fetch_all("SELECT * FROM month_statuses ORDER BY month_key DESC, id ASC")
    return [_status_from_row(r) for r in rows]


def set_paid(paid: bool, template_id: str, month_key: str, now: datetime | None = None) -> None:
    paid_at = (now or datetime.now()).isoformat(timespec="seconds") if paid else None
    db.execute(
        """
        INSERT INTO month_statuses(template_id, month_key, is_paid, paid_at) VALUES(?,?,?,?)
        ON CONFLICT(template_id, month_key) DO UPDATE SET is_paid=excluded.is_paid, paid_at=excluded.paid_at
        """,
        (template_id, month_key, int(paid), paid_at),
    )


def is_paid(template_id: str, month_key: str) -> bool:
    row = db.fetch_one(
        "SELECT is_paid FROM month_statuses WHERE template_id = ? AND month_key = ?",
        (template_id, month_key),
    )
    return bool(row and row["is_paid"])


# ---------- Settings ----------

def _int_setting(key: str, default: int, upper: int) -> int:
    """Stored integer clamped into [0, upper]; unreadable values fall back to default."""
    raw = db.get_setting(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid stored value for {key!r}: {raw!r}, using {default}")
        return default
    return min(max(value, 0), upper)


def load_settings() -> Settings:
    hide_paid = db.get_setting("hide_paid")
    return Settings(
        hide_paid=DEFAULT_HIDE_PAID if hide_paid is None else hide_paid == "1",
        alert_days=_int_setting("alert_days", DEFAULT_ALERT_DAYS, MAX_ALERT_DAYS),
        backup_retention_days=_int_setting(
            "backup_retention_days", DEFAULT_BACKUP_RETENTION_DAYS, MAX_BACKUP_RETENTION_DAYS
        ),
    )


def save_settings(settings: Settings) -> None:
    db.set_setting("hide_paid", "1" if settings.hide_paid else "0")
    db.set_setting("alert_days", str(int(settings.alert_days)))
    db.set_setting("backup_retention_days", str(int(settings.backup_retention_days)))
    logger.info(f"Saved settings: {settings}")


# ---------- Bulk import ----------

def import_records(templates: list[PaymentTemplate], statuses: list[MonthStatus]) -> tuple[int, int]:
    """
    Upsert templates and statuses (e.g. from a legacy payments.json).
    Returns (templates written, statuses written).
    """
    with db.get_conn() as conn:
        conn.executemany(
            """
            INSERT INTO templates(title, amount, currency, recurrence, due_day, due_date, id)
            VALUES(?,?,?,?,?,?,?)
            ON CONFLICT(id) DO UPDATE SET title=excluded.title, amount=excluded.amount,
                currency=excluded.currency, recurrence=excluded.recurrence,
                due_day=excluded.due_day, due_date=excluded.due_date
            """,
            [_template_params(t) + (t.id,) for t in templates],
        )
        conn.executemany(
            """
            INSERT INTO month_statuses(template_id, month_key, is_paid, paid_at) VALUES(?,?,?,?)
            ON CONFLICT(template_id, month_key) DO UPDATE SET is_paid=excluded.is_paid, paid_at=excluded.paid_at
            """,
            [
                (s.template_id, s.month_key, int(s.is_paid), s.paid_at.isoformat(timespec="seconds") if s.paid_at else None)
                for s in statuses
            ],
        )
    logger.info(f"Imported {len(templates)} templates and {len(statuses)} statuses")
    return len(templates), len(statuses)
