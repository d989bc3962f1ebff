"""
models.py
Lightweight domain types (bill templates, month statuses, occurrences, settings).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import NamedTuple
import uuid

MONTHLY = "monthly"
ONCE = "once"
RECURRENCES = (MONTHLY, ONCE)

DEFAULT_CURRENCY = "PLN"

# Settings defaults
DEFAULT_HIDE_PAID = False
DEFAULT_ALERT_DAYS = 3
DEFAULT_BACKUP_RETENTION_DAYS = 7
MAX_ALERT_DAYS = 60
MAX_BACKUP_RETENTION_DAYS = 365

# How many days out counts as fully "safe" (green) on the urgency bar
WINDOW_DAYS = 30

PAID_GLYPH = "✓"


class RGB(NamedTuple):
    """sRGB color, channels in 0..1."""
    r: float
    g: float
    b: float

    def to_hex(self) -> str:
        return "#{:02x}{:02x}{:02x}".format(
            *(round(min(max(c, 0.0), 1.0) * 255) for c in self)
        )


GREEN = RGB(0.204, 0.780, 0.349)
YELLOW = RGB(1.0, 0.800, 0.0)
RED = RGB(1.0, 0.231, 0.188)
GRAY = RGB(0.557, 0.557, 0.576)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class PaymentTemplate:
    title: str
    amount: Decimal
    currency: str = DEFAULT_CURRENCY
    recurrence: str = MONTHLY
    due_day: int | None = None    # monthly: day of month (1..31)
    due_date: date | None = None  # once: exact due date
    id: str = field(default_factory=new_id)


@dataclass(frozen=True)
class MonthStatus:
    template_id: str
    month_key: str  # "YYYY-MM"
    is_paid: bool
    paid_at: datetime | None = None


@dataclass(frozen=True)
class Occurrence:
    template: PaymentTemplate
    month_key: str
    due_date: datetime
    is_paid: bool

    @property
    def id(self) -> str:
        return f"{self.template.id}-{self.month_key}"


class Urgency(NamedTuple):
    progress: float  # 1 = far away (safe), 0 = due now or overdue
    color: RGB


class MonthTotals(NamedTuple):
    paid: Decimal
    total: Decimal


@dataclass
class Settings:
    hide_paid: bool = DEFAULT_HIDE_PAID
    alert_days: int = DEFAULT_ALERT_DAYS
    backup_retention_days: int = DEFAULT_BACKUP_RETENTION_DAYS
