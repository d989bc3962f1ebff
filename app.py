"""
app.py
Streamlit bill tracker (this month / next month, urgency bars, due-soon alert).
Run: streamlit run app.py
"""

from __future__ import annotations

from datetime import date, datetime
import json
import logging

import streamlit as st

import db
import engine
import store
import utils
from models import (
    DEFAULT_CURRENCY,
    MAX_ALERT_DAYS,
    MAX_BACKUP_RETENTION_DAYS,
    MONTHLY,
    ONCE,
    WINDOW_DAYS,
    PaymentTemplate,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Redline", page_icon="📅", layout="centered")


def init_once():
    # Initialize DB + rotate backups once per session
    db.init_db()
    if "backups_rotated" not in st.session_state:
        db.rotate_backups(store.load_settings().backup_retention_days)
        st.session_state.backups_rotated = True


def urgency_bar_html(progress: float, color_hex: str, label: str) -> str:
    width = max(0.0, min(progress, 1.0)) * 100
    return (
        '<div style="display:flex;align-items:center;gap:8px;">'
        '<div style="flex:1;height:10px;border-radius:6px;background:rgba(128,128,128,0.15);">'
        f'<div style="width:{width:.1f}%;height:10px;border-radius:6px;background:{color_hex};opacity:0.9;"></div>'
        "</div>"
        f'<span style="font-size:0.75rem;min-width:3em;text-align:right;">{label}</span>'
        "</div>"
    )


# ---------- Pages ----------

def occurrence_row(occ, now: datetime):
    c1, c2, c3 = st.columns([1, 5, 3])
    with c1:
        toggled = st.checkbox(
            "Paid", value=occ.is_paid, key=f"paid_{occ.id}", label_visibility="collapsed"
        )
        if toggled != occ.is_paid:
            store.set_paid(toggled, occ.template.id, occ.month_key)
            st.rerun()
    with c2:
        st.markdown(f"**{occ.template.title}**")
        st.caption(
            f"{utils.format_amount(occ.template.amount)} {utils.currency_short(occ.template.currency)}"
            f" • due {utils.format_short_date(occ.due_date)}"
        )
    with c3:
        urg = engine.urgency(occ.due_date, occ.is_paid, WINDOW_DAYS, now)
        label = engine.urgency_label(occ.due_date, occ.is_paid, now.date())
        st.markdown(urgency_bar_html(urg.progress, urg.color.to_hex(), label), unsafe_allow_html=True)


def month_section(title: str, month_date: date, templates, statuses, hide_paid: bool, now: datetime):
    all_occ = engine.occurrences_for_month(templates, statuses, month_date)
    visible = [o for o in all_occ if not (hide_paid and o.is_paid)]

    totals = engine.totals_for_month(all_occ)
    parts = [
        f"{utils.format_amount(t.paid)} / {utils.format_amount(t.total)} {utils.currency_short(cur)}"
        for cur, t in totals.items()
        if t.total > 0
    ]
    st.subheader(f"{title} ({', '.join(parts)})" if parts else title)

    if not visible:
        st.caption("No items")
        return
    for occ in visible:
        occurrence_row(occ, now)


def quick_add():
    with st.expander("Quick Add"):
        title = st.text_input("Title", key="qa_title")
        c1, c2 = st.columns(2)
        with c1:
            amount_text = st.text_input("Amount", key="qa_amount")
        with c2:
            due = st.date_input("Due", value=date.today(), key="qa_due")
        repeat = st.toggle("Repeat monthly", value=False, key="qa_repeat")

        recurrence = MONTHLY if repeat else ONCE
        errors = utils.validate_template_inputs(
            title, amount_text, DEFAULT_CURRENCY, recurrence, due_day=due.day, due_date=due
        )
        if st.button("Add", type="primary", disabled=bool(errors), key="qa_add"):
            store.add_template(
                PaymentTemplate(
                    title=title.strip(),
                    amount=utils.parse_amount(amount_text),
                    currency=DEFAULT_CURRENCY,
                    recurrence=recurrence,
                    due_day=due.day if repeat else None,
                    due_date=None if repeat else due,
                )
            )
            for k in ("qa_title", "qa_amount", "qa_due", "qa_repeat"):
                st.session_state.pop(k, None)
            st.success("Bill added.")
            st.rerun()


def overview_page(settings, templates, statuses, now: datetime):
    st.header("📅 Bills")

    quick_add()

    today = now.date()
    month_section("This month", today, templates, statuses, settings.hide_paid, now)
    st.divider()
    month_section("Next month", utils.add_months(today.replace(day=1), 1), templates, statuses, settings.hide_paid, now)

    st.divider()
    hide = st.toggle("Hide paid", value=settings.hide_paid)
    if hide != settings.hide_paid:
        settings.hide_paid = hide
        store.save_settings(settings)
        st.rerun()


def template_form(existing: PaymentTemplate | None = None):
    if existing:
        st.subheader(f"✏️ Edit bill: {existing.title}")
    else:
        st.subheader("➕ Add bill")

    prefix = f"form_{existing.id}" if existing else "add"
    title = st.text_input("Title", value=(existing.title if existing else ""), key=f"{prefix}_title")

    c1, c2 = st.columns(2)
    with c1:
        amount_text = st.text_input(
            "Amount", value=(str(existing.amount) if existing else ""), key=f"{prefix}_amount"
        )
    with c2:
        currency = st.text_input(
            "Currency", value=(existing.currency if existing else DEFAULT_CURRENCY), key=f"{prefix}_currency"
        )

    repeat = st.toggle(
        "Repeat monthly", value=(existing.recurrence == MONTHLY if existing else False), key=f"{prefix}_repeat"
    )
    recurrence = MONTHLY if repeat else ONCE
    due_day = None
    due_date = None
    if repeat:
        due_day = st.number_input(
            "Due day", min_value=1, max_value=31, step=1,
            value=existing.due_day if existing and existing.due_day else date.today().day,
            key=f"{prefix}_due_day",
        )
        due_day = int(due_day)
    else:
        due_date = st.date_input(
            "Due date",
            value=(existing.due_date if existing and existing.due_date else date.today()),
            key=f"{prefix}_due_date",
        )

    errors = utils.validate_template_inputs(title, amount_text, currency, recurrence, due_day, due_date)
    for e in errors:
        st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors), key=f"{prefix}_save"):
        fields = dict(
            title=title.strip(),
            amount=utils.parse_amount(amount_text),
            currency=currency.strip().upper(),
            recurrence=recurrence,
            due_day=due_day,
            due_date=due_date,
        )
        if existing:
            store.update_template(PaymentTemplate(id=existing.id, **fields))
            st.session_state.edit_template_id = None
            st.success("Bill updated.")
        else:
            store.add_template(PaymentTemplate(**fields))
            st.success("Bill added.")
        st.rerun()


def manage_page(templates, now: datetime):
    st.header("🧾 Your bills")

    for tmpl in engine.sort_templates_newest_first(templates, now):
        c1, c2, c3 = st.columns([6, 1, 2])
        with c1:
            st.markdown(f"**{tmpl.title}**")
            st.caption(engine.template_subtitle(tmpl))
        with c2:
            if st.button("✏️", key=f"edit_{tmpl.id}", help="Edit"):
                st.session_state.edit_template_id = tmpl.id
                st.rerun()
        with c3:
            confirm = st.checkbox("Confirm", key=f"del_confirm_{tmpl.id}")
            if st.button("🗑️", key=f"del_{tmpl.id}", help="Delete", disabled=not confirm):
                store.delete_template(tmpl.id)
                st.success("Bill deleted.")
                st.rerun()

    if not templates:
        st.caption("No bills yet.")

    st.divider()

    edit_id = st.session_state.get("edit_template_id")
    existing = store.get_template(edit_id) if edit_id else None
    if existing:
        template_form(existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_template_id = None
            st.rerun()
    else:
        template_form(existing=None)


def reports_page(templates, statuses_list):
    st.header("📤 Reports")

    st.subheader("Export bills to CSV")
    if templates:
        st.download_button(
            "Download bills.csv",
            data=utils.templates_to_csv_bytes(templates),
            file_name="bills.csv",
            mime="text/csv",
        )
    else:
        st.caption("No bills to export.")

    st.divider()

    st.subheader("Export paid statuses to CSV")
    if statuses_list:
        st.download_button(
            "Download statuses.csv",
            data=utils.statuses_to_csv_bytes(statuses_list),
            file_name="statuses.csv",
            mime="text/csv",
        )
    else:
        st.caption("No statuses to export.")

    st.divider()

    st.subheader("Paid by month")
    df = utils.paid_summary_by_month(statuses_list, templates)
    if not df.empty:
        df = df.assign(paid=df["paid"].map(utils.format_amount))
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("Import payments.json")
    st.caption("Data file from the macOS menu-bar version. Existing bills with the same id are overwritten.")
    uploaded = st.file_uploader("payments.json", type=["json"])
    if uploaded is not None and st.button("Import"):
        try:
            tmpls, stats = utils.load_legacy_json(uploaded.getvalue().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
            st.error(f"Could not read file: {e}")
            return
        n_t, n_s = store.import_records(tmpls, stats)
        st.success(f"Imported {n_t} bills and {n_s} statuses.")
        st.rerun()


def settings_page(settings):
    st.header("⚙️ Settings")

    hide_paid = st.toggle("Hide paid bills", value=settings.hide_paid)
    alert_days = st.number_input(
        "Alert when an unpaid bill is due within (days)",
        min_value=0,
        max_value=MAX_ALERT_DAYS,
        value=settings.alert_days,
    )
    retention = st.number_input(
        "Keep daily backups for (days, 0 = forever)",
        min_value=0,
        max_value=MAX_BACKUP_RETENTION_DAYS,
        value=settings.backup_retention_days,
    )
    if st.button("Save settings", type="primary"):
        settings.hide_paid = hide_paid
        settings.alert_days = int(alert_days)
        settings.backup_retention_days = int(retention)
        store.save_settings(settings)
        st.success("Settings saved.")
        st.rerun()

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert a few sample bills for testing (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data()
        st.success("Sample data inserted.")
        st.rerun()


def main_app():
    now = datetime.now()
    settings = store.load_settings()
    templates = store.fetch_templates()
    statuses_list = store.fetch_statuses()
    statuses = engine.index_statuses(statuses_list)

    st.sidebar.title("📅 Redline")
    if engine.has_urgent_bills(templates, statuses, settings.alert_days, now.date()):
        st.sidebar.warning(f"🟠 Unpaid bills due within {settings.alert_days} days")
    else:
        st.sidebar.caption("🕒 Nothing due soon")

    pages = ["Bills", "Manage", "Reports", "Settings"]
    if "page" not in st.session_state:
        st.session_state.page = "Bills"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.session_state.page == "Bills":
        overview_page(settings, templates, statuses, now)
    elif st.session_state.page == "Manage":
        manage_page(templates, now)
    elif st.session_state.page == "Reports":
        reports_page(templates, statuses_list)
    elif st.session_state.page == "Settings":
        settings_page(settings)


# --------- App entry ---------

def run():
    init_once()
    main_app()


if __name__ == "__main__":
    run()
