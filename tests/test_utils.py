from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pandas as pd
import pytest

import utils
from models import MONTHLY, ONCE, MonthStatus, PaymentTemplate


@pytest.mark.parametrize(
    "year,month,expected",
    [
        (2024, 1, 31),
        (2024, 2, 29),
        (2023, 2, 28),
        (1900, 2, 28),
        (2000, 2, 29),
        (2024, 4, 30),
        (2024, 12, 31),
    ],
)
def test_last_day_of_month(year, month, expected):
    assert utils.last_day_of_month(year, month) == expected


def test_last_day_of_month_always_in_calendar_range():
    for year in (1999, 2023, 2024, 2100):
        for month in range(1, 13):
            assert utils.last_day_of_month(year, month) in {28, 29, 30, 31}


def test_make_clamped_date_stays_in_month():
    for month in range(1, 13):
        for day in (1, 15, 28, 29, 30, 31, 45):
            d = utils.make_clamped_date(2023, month, day)
            assert (d.year, d.month) == (2023, month)


def test_make_clamped_date_clamps_and_sets_noon():
    assert utils.make_clamped_date(2024, 4, 31) == datetime(2024, 4, 30, 12, 0)
    assert utils.make_clamped_date(2024, 2, 30) == datetime(2024, 2, 29, 12, 0)
    assert utils.make_clamped_date(2024, 5, 0) == datetime(2024, 5, 1, 12, 0)
    assert utils.make_clamped_date(2024, 5, -3) == datetime(2024, 5, 1, 12, 0)


def test_month_key_and_add_months():
    assert utils.month_key(date(2024, 3, 9)) == "2024-03"
    assert utils.add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert utils.add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
    assert utils.add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("12,50", Decimal("12.50")),
        (" 1 234.5 ", Decimal("1234.5")),
        ("1 000", Decimal("1000")),
        ("", None),
        ("abc", None),
        ("nan", None),
    ],
)
def test_parse_amount(text, expected):
    assert utils.parse_amount(text) == expected


def test_format_amount_polish_style():
    assert utils.format_amount(Decimal("150")) == "150"
    assert utils.format_amount(Decimal("89.99")) == "89,99"
    assert utils.format_amount(Decimal("1234.50")) == "1 234,5"
    assert utils.format_amount(Decimal("0")) == "0"


def test_display_helpers():
    assert utils.format_short_date(date(2024, 1, 14)) == "14 Jan"
    assert utils.currency_short("pln") == "zł"
    assert utils.currency_short("EUR") == "EUR"


def test_validate_template_inputs():
    assert utils.validate_template_inputs("Rent", "2500", "PLN", MONTHLY, due_day=10) == []
    assert utils.validate_template_inputs("Fee", "20", "PLN", ONCE, due_date=date(2024, 3, 1)) == []

    errors = utils.validate_template_inputs(" ", "-1", "", ONCE)
    assert "Title is required." in errors
    assert "Amount must be > 0." in errors
    assert "Currency is required." in errors
    assert "One-time bills need a due date." in errors

    assert utils.validate_template_inputs("Rent", "x", "PLN", MONTHLY, due_day=32) == [
        "Amount must be numeric.",
        "Due day must be between 1 and 31.",
    ]


def test_templates_to_csv_bytes():
    t = PaymentTemplate(id="abc", title="Rent", amount=Decimal("2500.00"), due_day=10)
    text = utils.templates_to_csv_bytes([t]).decode("utf-8")
    lines = text.strip().splitlines()
    assert lines[0] == "id,title,amount,currency,recurrence,due_day,due_date"
    assert lines[1].startswith("abc,Rent,2500.00,PLN,monthly,10")


def test_empty_exports_keep_headers():
    assert utils.templates_to_csv_bytes([]).decode().strip() == ",".join(utils.TEMPLATE_COLUMNS)
    assert utils.statuses_to_csv_bytes([]).decode().strip() == ",".join(utils.STATUS_COLUMNS)


def test_paid_summary_by_month():
    rent = PaymentTemplate(id="r", title="Rent", amount=Decimal("100.10"), due_day=1)
    gym = PaymentTemplate(id="g", title="Gym", amount=Decimal("50.05"), due_day=5)
    statuses = [
        MonthStatus("r", "2024-03", True),
        MonthStatus("g", "2024-03", True),
        MonthStatus("r", "2024-04", True),
        MonthStatus("g", "2024-04", False),
        MonthStatus("gone", "2024-04", True),
    ]
    df = utils.paid_summary_by_month(statuses, [rent, gym])
    assert list(df["month"]) == ["2024-04", "2024-03"]
    assert list(df["paid"]) == [Decimal("100.10"), Decimal("150.15")]


def test_paid_summary_empty():
    df = utils.paid_summary_by_month([], [])
    assert isinstance(df, pd.DataFrame)
    assert df.empty


def test_decode_legacy_payload():
    # 2024-03-15 12:00 UTC as seconds since 2001-01-01
    due = 732196800
    raw = {
        "templates": [
            {"id": "AAAA-1", "title": "Rent", "amount": 2500.5, "currency": "PLN", "dueDay": 10, "recurrence": "monthly"},
            {"id": "BBBB-2", "title": "Insurance", "amount": 300, "dueDate": due, "recurrence": "once"},
            {"id": "CCCC-3", "title": "Broken", "amount": "x", "recurrence": "monthly"},
            {"id": "DDDD-4", "title": "Weird", "amount": 1, "recurrence": "weekly"},
        ],
        "statuses": [
            {"id": "S1", "monthKey": "2024-03", "templateId": "AAAA-1", "isPaid": True, "paidAt": due},
            {"id": "S2", "monthKey": "2024-03", "templateId": "ZZZZ-9", "isPaid": True},
        ],
    }
    templates, statuses = utils.decode_legacy_payload(raw)

    assert [t.id for t in templates] == ["aaaa-1", "bbbb-2"]
    assert templates[0].amount == Decimal("2500.5")
    assert templates[1].recurrence == ONCE
    assert templates[1].due_date == date(2024, 3, 15)
    assert templates[1].currency == "PLN"

    assert len(statuses) == 1
    assert statuses[0].template_id == "aaaa-1"
    assert statuses[0].is_paid is True
    assert statuses[0].paid_at is not None


def test_decode_legacy_payload_rejects_missing_templates():
    with pytest.raises(ValueError):
        utils.decode_legacy_payload({"statuses": []})


@pytest.mark.parametrize("due_day", ["10", 10.5, True, [10]])
def test_decode_legacy_payload_skips_non_integer_due_day(due_day):
    raw = {
        "templates": [
            {"id": "AAAA-1", "title": "Rent", "amount": 100, "dueDay": due_day, "recurrence": "monthly"},
            {"id": "BBBB-2", "title": "Water", "amount": 40, "dueDay": 5, "recurrence": "monthly"},
        ]
    }
    templates, _ = utils.decode_legacy_payload(raw)
    assert [t.id for t in templates] == ["bbbb-2"]
    assert templates[0].due_day == 5


def test_decode_legacy_payload_skips_entries_that_are_not_objects():
    raw = {
        "templates": [None, "Rent", 42, {"id": "AAAA-1", "title": "Rent", "amount": 100, "dueDay": 10}],
        "statuses": [None, ["x"], {"monthKey": "2024-03", "templateId": "AAAA-1", "isPaid": True}],
    }
    templates, statuses = utils.decode_legacy_payload(raw)
    assert [t.id for t in templates] == ["aaaa-1"]
    assert [(s.template_id, s.month_key) for s in statuses] == [("aaaa-1", "2024-03")]


@pytest.mark.parametrize(
    "raw",
    [
        {"templates": "Rent"},
        {"templates": {"id": "AAAA-1"}},
        {"templates": [], "statuses": "none"},
    ],
)
def test_decode_legacy_payload_rejects_non_list_sections(raw):
    with pytest.raises(ValueError):
        utils.decode_legacy_payload(raw)


def test_load_legacy_json_keeps_amounts_exact():
    text = (
        '{"templates": [{"id": "AAAA-1", "title": "Savings", "amount": 12345678901234567.89,'
        ' "recurrence": "once", "dueDate": 732196800.0}], "statuses": []}'
    )
    templates, statuses = utils.load_legacy_json(text)
    assert templates[0].amount == Decimal("12345678901234567.89")
    assert templates[0].due_date == date(2024, 3, 15)
    assert statuses == []


def test_load_legacy_json_rejects_malformed_text():
    with pytest.raises(ValueError):
        utils.load_legacy_json("{not json")
