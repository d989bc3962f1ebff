"""
utils.py
Calendar helpers, amount parsing/formatting, validation, exports, legacy import, sample data.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
import json
import logging

import pandas as pd

import store
from models import (
    DEFAULT_CURRENCY,
    MONTHLY,
    ONCE,
    RECURRENCES,
    MonthStatus,
    PaymentTemplate,
)

logger = logging.getLogger(__name__)

# Seconds between the Unix epoch and 2001-01-01 UTC (Foundation's reference date)
REFERENCE_DATE_OFFSET = 978307200

TEMPLATE_COLUMNS = ["id", "title", "amount", "currency", "recurrence", "due_day", "due_date"]
STATUS_COLUMNS = ["template_id", "month_key", "is_paid", "paid_at"]


# ---------- Calendar ----------

def last_day_of_month(year: int, month: int) -> int:
    """Last day number (28..31) of the given month: first day of next month minus one day."""
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def make_clamped_date(year: int, month: int, day: int) -> datetime:
    """
    Build a valid date for (year, month, day), clamping day into the month.
    Time is local noon so the value never lands on a DST-shifted midnight.
    """
    clamped = min(max(day, 1), last_day_of_month(year, month))
    return datetime(year, month, clamped, 12, 0)


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    day = min(start.day, last_day_of_month(y, m))
    return date(y, m, day)


# ---------- Amounts & display ----------

def normalize_amount_text(text: str) -> str:
    return text.strip().replace(" ", "").replace("\u00a0", "").replace(",", ".")


def parse_amount(text: str) -> Decimal | None:
    normalized = normalize_amount_text(text or "")
    if not normalized:
        return None
    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def format_amount(value: Decimal) -> str:
    """Polish-style grouping: 1 234,5 (0 to 2 fraction digits)."""
    s = f"{Decimal(value).quantize(Decimal('0.01')):,.2f}"
    s = s.rstrip("0").rstrip(".")
    return s.replace(",", "\u00a0").replace(".", ",")


def format_short_date(d: date) -> str:
    return f"{d.day} {d.strftime('%b')}"


def currency_short(code: str) -> str:
    if code.upper() == "PLN":
        return "zł"
    return code


# ---------- Validation ----------

def validate_template_inputs(
    title: str,
    amount_text: str,
    currency: str,
    recurrence: str,
    due_day: int | None = None,
    due_date: date | None = None,
) -> list[str]:
    errors: list[str] = []
    if not title.strip():
        errors.append("Title is required.")
    amount = parse_amount(amount_text)
    if amount is None:
        errors.append("Amount must be numeric.")
    elif amount <= 0:
        errors.append("Amount must be > 0.")
    if not currency.strip():
        errors.append("Currency is required.")
    if recurrence not in RECURRENCES:
        errors.append(f"Recurrence must be one of: {', '.join(RECURRENCES)}.")
    elif recurrence == MONTHLY:
        if due_day is None or not 1 <= due_day <= 31:
            errors.append("Due day must be between 1 and 31.")
    elif due_date is None:
        errors.append("One-time bills need a due date.")
    return errors


# ---------- Exports ----------

def templates_to_csv_bytes(templates: list[PaymentTemplate]) -> bytes:
    rows = [asdict(t) for t in templates]
    for r in rows:
        r["amount"] = str(r["amount"])
    df = pd.DataFrame(rows, columns=TEMPLATE_COLUMNS)
    return df.to_csv(index=False).encode("utf-8")


def statuses_to_csv_bytes(statuses: list[MonthStatus]) -> bytes:
    df = pd.DataFrame([asdict(s) for s in statuses], columns=STATUS_COLUMNS)
    return df.to_csv(index=False).encode("utf-8")


def paid_summary_by_month(statuses: list[MonthStatus], templates: list[PaymentTemplate]) -> pd.DataFrame:
    """Paid amount per month and currency, newest month first."""
    by_id = {t.id: t for t in templates}
    sums: dict[tuple[str, str], Decimal] = {}
    for s in statuses:
        t = by_id.get(s.template_id)
        if not s.is_paid or t is None:
            continue
        key = (s.month_key, t.currency)
        sums[key] = sums.get(key, Decimal("0")) + t.amount
    if not sums:
        return pd.DataFrame(columns=["month", "currency", "paid"])
    df = pd.DataFrame([{"month": m, "currency": c, "paid": v} for (m, c), v in sums.items()])
    return df.sort_values(["month", "currency"], ascending=[False, True]).reset_index(drop=True)


# ---------- Legacy payments.json ----------

def _legacy_timestamp(value) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.fromtimestamp(REFERENCE_DATE_OFFSET + float(value))


def _legacy_due_day(value) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"dueDay must be an integer, got {value!r}")
    return value


def _legacy_list(raw: dict, key: str) -> list:
    items = raw.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValueError(f"'{key}' must be a list.")
    return items


def decode_legacy_payload(raw: dict) -> tuple[list[PaymentTemplate], list[MonthStatus]]:
    """
    Decode the menu-bar app's payments.json ({"templates": [...], "statuses": [...]}).
    Dates are seconds since 2001-01-01 UTC. Entries that cannot be decoded are skipped.
    """
    if not isinstance(raw, dict) or "templates" not in raw:
        raise ValueError("Payload has no 'templates' list.")
    raw_templates = _legacy_list(raw, "templates")
    raw_statuses = _legacy_list(raw, "statuses")

    templates: list[PaymentTemplate] = []
    for item in raw_templates:
        try:
            if not isinstance(item, dict):
                raise ValueError("not an object")
            recurrence = item.get("recurrence", MONTHLY)
            if recurrence not in RECURRENCES:
                raise ValueError(f"unknown recurrence {recurrence!r}")
            due_at = _legacy_timestamp(item.get("dueDate"))
            templates.append(
                PaymentTemplate(
                    id=str(item["id"]).lower(),
                    title=str(item["title"]),
                    amount=Decimal(str(item["amount"])),
                    currency=item.get("currency") or DEFAULT_CURRENCY,
                    recurrence=recurrence,
                    due_day=_legacy_due_day(item.get("dueDay")),
                    due_date=due_at.date() if due_at and recurrence == ONCE else None,
                )
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning(f"Skipping legacy template {item!r}: {e}")

    known = {t.id for t in templates}
    statuses: list[MonthStatus] = []
    for item in raw_statuses:
        try:
            if not isinstance(item, dict):
                raise ValueError("not an object")
            template_id = str(item["templateId"]).lower()
            if template_id not in known:
                raise ValueError("unknown template")
            statuses.append(
                MonthStatus(
                    template_id=template_id,
                    month_key=str(item["monthKey"]),
                    is_paid=bool(item["isPaid"]),
                    paid_at=_legacy_timestamp(item.get("paidAt")),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping legacy status {item!r}: {e}")

    logger.info(f"Decoded {len(templates)} templates and {len(statuses)} statuses from legacy payload")
    return templates, statuses


def load_legacy_json(data: bytes | str) -> tuple[list[PaymentTemplate], list[MonthStatus]]:
    """Parse payments.json text and decode it. JSON numbers with a fraction become Decimal."""
    return decode_legacy_payload(json.loads(data, parse_float=Decimal))


# ---------- Sample data ----------

def insert_sample_data(today: date | None = None) -> None:
    """
    Insert a handful of bills (safe to run multiple times: adds new rows each time).
    """
    today = today or date.today()
    soon = today + timedelta(days=2)
    next_month = add_months(today, 1)

    samples = [
        PaymentTemplate(title="Rent", amount=Decimal("2500"), recurrence=MONTHLY, due_day=10),
        PaymentTemplate(title="Phone & internet", amount=Decimal("89.99"), recurrence=MONTHLY, due_day=soon.day),
        PaymentTemplate(title="Electricity", amount=Decimal("214.37"), recurrence=MONTHLY, due_day=31),
        PaymentTemplate(title="Car insurance", amount=Decimal("1320"), recurrence=ONCE, due_date=next_month),
    ]
    for t in samples:
        store.add_template(t)

    # Rent already paid this month
    store.set_paid(True, samples[0].id, month_key(today))
