"""
engine.py
Occurrence engine: which bills are due in a month, how urgent they are, and
whether anything needs an alert. Pure functions; "now" is always passed in.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Mapping

from models import (
    GRAY,
    GREEN,
    MONTHLY,
    ONCE,
    PAID_GLYPH,
    RED,
    YELLOW,
    MonthStatus,
    MonthTotals,
    Occurrence,
    PaymentTemplate,
    RGB,
    Urgency,
)
from utils import add_months, currency_short, format_amount, format_short_date, make_clamped_date, month_key

StatusIndex = Mapping[tuple[str, str], MonthStatus]


def index_statuses(statuses: Iterable[MonthStatus]) -> dict[tuple[str, str], MonthStatus]:
    """Key statuses by (template_id, month_key); later entries win."""
    return {(s.template_id, s.month_key): s for s in statuses}


def is_paid(statuses: StatusIndex, template_id: str, key: str) -> bool:
    status = statuses.get((template_id, key))
    return bool(status and status.is_paid)


def due_date_in_month(template: PaymentTemplate, year: int, month: int) -> datetime | None:
    """Concrete due date of a template in the given month, or None if it has no occurrence there."""
    if template.recurrence == ONCE:
        exact = template.due_date
        if exact is None or (exact.year, exact.month) != (year, month):
            return None
        return make_clamped_date(exact.year, exact.month, exact.day)
    return make_clamped_date(year, month, template.due_day or 1)


def occurrences_for_month(
    templates: Iterable[PaymentTemplate],
    statuses: StatusIndex,
    month_date: date,
    hide_paid: bool = False,
) -> list[Occurrence]:
    """
    Build the month's occurrences.
    - monthly templates: one per month, due day clamped to the month length
    - once templates: only in the month of their due date
    Unpaid first, then by due date.
    """
    year, month = month_date.year, month_date.month
    key = month_key(month_date)

    result: list[Occurrence] = []
    for tmpl in templates:
        due = due_date_in_month(tmpl, year, month)
        if due is None:
            continue
        paid = is_paid(statuses, tmpl.id, key)
        if hide_paid and paid:
            continue
        result.append(Occurrence(template=tmpl, month_key=key, due_date=due, is_paid=paid))

    result.sort(key=lambda o: (o.is_paid, o.due_date))
    return result


def totals_for_month(occurrences: Iterable[Occurrence]) -> dict[str, MonthTotals]:
    """Paid/total sums per currency."""
    paid: dict[str, Decimal] = {}
    total: dict[str, Decimal] = {}
    for occ in occurrences:
        cur = occ.template.currency
        total[cur] = total.get(cur, Decimal("0")) + occ.template.amount
        paid.setdefault(cur, Decimal("0"))
        if occ.is_paid:
            paid[cur] += occ.template.amount
    return {cur: MonthTotals(paid=paid[cur], total=total[cur]) for cur in total}


# ---------- Urgency ----------

def lerp_color(a: RGB, b: RGB, t: float) -> RGB:
    """Linear per-channel interpolation in sRGB; t is clamped to [0, 1]."""
    t = min(max(t, 0.0), 1.0)
    return RGB(*(ca * (1.0 - t) + cb * t for ca, cb in zip(a, b)))


def urgency(due_date: datetime, is_paid: bool, window_days: float, now: datetime) -> Urgency:
    if is_paid:
        return Urgency(progress=1.0, color=GRAY)

    days_left = (due_date - now) / timedelta(days=1)
    normalized = min(max(days_left / window_days, 0.0), 1.0) if window_days > 0 else 0.0

    # t: 0 = far away, 1 = due now / overdue
    t = 1.0 - normalized
    if t < 0.5:
        color = lerp_color(GREEN, YELLOW, t / 0.5)
    else:
        color = lerp_color(YELLOW, RED, (t - 0.5) / 0.5)
    return Urgency(progress=normalized, color=color)


def days_until(due_date: date, today: date) -> int:
    if isinstance(due_date, datetime):
        due_date = due_date.date()
    if isinstance(today, datetime):
        today = today.date()
    return (due_date - today).days


def urgency_label(due_date: date, is_paid: bool, today: date) -> str:
    if is_paid:
        return PAID_GLYPH
    days = days_until(due_date, today)
    if days == 0:
        return "today"
    return f"{days}d"


def has_urgent_bills(
    templates: Iterable[PaymentTemplate],
    statuses: StatusIndex,
    alert_days: int,
    today: date,
) -> bool:
    """True if an unpaid bill this month or next is due within [today, today + alert_days]."""
    if isinstance(today, datetime):
        today = today.date()
    threshold = today + timedelta(days=alert_days)
    templates = list(templates)

    for month_date in (today, add_months(today.replace(day=1), 1)):
        for occ in occurrences_for_month(templates, statuses, month_date, hide_paid=True):
            if today <= occ.due_date.date() <= threshold:
                return True
    return False


# ---------- Bill list ----------

def next_due_date(template: PaymentTemplate, now: datetime) -> datetime:
    """
    once: its exact due date.
    monthly: this month's due date if not yet passed (today counts), otherwise next month's.
    """
    if template.recurrence == ONCE:
        if template.due_date is None:
            return datetime.max
        d = template.due_date
        return make_clamped_date(d.year, d.month, d.day)

    day = template.due_day or 1
    this_month = make_clamped_date(now.year, now.month, day)
    if this_month.date() >= now.date():
        return this_month
    nxt = add_months(now.date().replace(day=1), 1)
    return make_clamped_date(nxt.year, nxt.month, day)


def sort_templates_newest_first(templates: Iterable[PaymentTemplate], now: datetime) -> list[PaymentTemplate]:
    """Latest next-due date first so old one-off bills sink; ties by title."""
    by_title = sorted(templates, key=lambda t: t.title.casefold())
    return sorted(by_title, key=lambda t: next_due_date(t, now), reverse=True)


def template_subtitle(template: PaymentTemplate) -> str:
    amount = f"{format_amount(template.amount)} {currency_short(template.currency)}"
    if template.recurrence == MONTHLY:
        due = f"monthly, day {template.due_day or 1}"
    elif template.due_date is not None:
        due = f"once, {format_short_date(template.due_date)}"
    else:
        due = "once"
    return f"{amount} • {due}"
