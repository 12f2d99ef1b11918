"""
Streamlit Frontend for House Meal Ledger

This is the screen the house manager keeps open: members, bills,
deposits and the daily meal sheet, plus the monthly settlement.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. Every figure on screen comes from the settlement engine

The UI never edits data itself. Every button calls the HouseLedger,
which validates, persists and audits the change; the page then
re-renders from the ledger's fresh snapshot.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from meal_ledger.config import get_settings, validate_all_settings
from meal_ledger.models import ActionOutcome, BillCategory, ReportingPeriod
from meal_ledger.orchestrator import HouseLedger, create_app_components
from meal_ledger.reports import format_money, report_filename


# Page configuration
st.set_page_config(
    page_title="House Meal Ledger",
    page_icon="🍛",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> HouseLedger:
    """Get or create the started house ledger (cached)."""
    return run_async(create_app_components())


def money(amount: Decimal) -> str:
    return format_money(amount, get_settings().app.currency_symbol)


def show_outcome(outcome: ActionOutcome) -> None:
    """Report the result of a ledger action."""
    if outcome.ok:
        st.success(outcome.message)
    else:
        st.error(outcome.message)


def selected_period() -> ReportingPeriod:
    if "period" not in st.session_state:
        st.session_state.period = ReportingPeriod.current()
    return st.session_state.period


def render_month_picker() -> ReportingPeriod:
    """Previous / next month navigation shared by the month-scoped pages."""
    period = selected_period()
    col1, col2, col3 = st.columns([1, 3, 1])
    with col1:
        if st.button("◀ Previous"):
            st.session_state.period = period.previous()
            st.rerun()
    with col2:
        st.markdown(f"<h3 style='text-align:center'>{period.label}</h3>", unsafe_allow_html=True)
    with col3:
        if st.button("Next ▶"):
            st.session_state.period = period.next()
            st.rerun()
    return period


def main():
    """Main application entry point."""
    ledger = get_components()
    app_settings = get_settings().app

    # Sidebar navigation
    st.sidebar.title(f"🍛 {app_settings.app_title}")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "📊 Dashboard",
            "👥 Members",
            "🧾 Bills",
            "💵 Payments",
            "🍽️ Daily Meals",
            "📑 Settlement",
            "⚙️ Settings",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        f"""
        **Records:** {len(ledger.records)} / {app_settings.max_records}

        **How it works:**
        1. Add every member of the house
        2. Record bills and deposits as they happen
        3. Enter meal counts each day
        4. Check the settlement at month end
        """
    )

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard_page(ledger)
    elif page == "👥 Members":
        render_members_page(ledger)
    elif page == "🧾 Bills":
        render_bills_page(ledger)
    elif page == "💵 Payments":
        render_payments_page(ledger)
    elif page == "🍽️ Daily Meals":
        render_meals_page(ledger)
    elif page == "📑 Settlement":
        render_settlement_page(ledger)
    elif page == "⚙️ Settings":
        render_settings_page(ledger)


def render_dashboard_page(ledger: HouseLedger):
    """Render the month dashboard."""
    st.title("📊 Dashboard")
    period = render_month_picker()

    only_this_month = st.checkbox(
        "Only bills and payments from this month",
        value=True,
    )
    engine = ledger.settlement(period, month_filter=period if only_this_month else None)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Expense", money(engine.total_expense()))
    col2.metric("Total Deposits", money(engine.total_deposits()))
    col3.metric("Total Due", money(engine.total_due()))
    col4.metric("Total Meals", engine.total_meals())

    st.markdown(f"**Meal rate:** {engine.meal_rate():.2f} per meal")
    st.markdown("---")
    st.subheader("Members")

    query = st.text_input("🔍 Search by name or phone", key="dashboard_search")
    matching = {member.id for member in ledger.search_members(query)}
    rows = [row for row in engine.settlement_report() if row.member_id in matching]
    if not rows:
        st.info("No members found. Add them on the Members page.")
        return

    st.dataframe(
        [
            {
                "Name": row.name,
                "Meals": row.monthly_meals,
                "Paid": money(row.total_paid),
                "Bills": money(row.total_bills),
                "Due": money(row.total_due),
                "Status": row.status.value.capitalize(),
            }
            for row in rows
        ],
        use_container_width=True,
        hide_index=True,
    )


def render_members_page(ledger: HouseLedger):
    """Render the members page."""
    st.title("👥 Members")

    with st.form("add_member", clear_on_submit=True):
        st.markdown("### Add Member")
        col1, col2, col3 = st.columns(3)
        with col1:
            name = st.text_input("Name")
        with col2:
            phone = st.text_input("Phone (optional)")
        with col3:
            join_date = st.date_input("Join date", value=date.today())
        if st.form_submit_button("➕ Add Member", type="primary"):
            show_outcome(run_async(ledger.add_member(name=name, phone=phone, join_date=join_date)))

    st.markdown("---")
    query = st.text_input("🔍 Search by name or phone")
    members = ledger.search_members(query)

    if not members:
        st.info("No members found.")
        return

    for member in members:
        col1, col2, col3, col4 = st.columns([3, 2, 2, 1])
        col1.markdown(f"**{member.name}**")
        col2.markdown(member.phone or "-")
        col3.markdown(f"Joined {member.join_date:%b %d, %Y}" if member.join_date else "-")
        with col4:
            if st.button("🗑️", key=f"delete_member_{member.id}"):
                show_outcome(run_async(ledger.delete_member(member.id)))
                st.rerun()


def render_bills_page(ledger: HouseLedger):
    """Render the bills page."""
    st.title("🧾 Bills")

    with st.form("add_bill", clear_on_submit=True):
        st.markdown("### Add Bill")
        col1, col2 = st.columns(2)
        with col1:
            title = st.text_input("Title")
            bill_type = st.selectbox(
                "Category",
                options=[c.value for c in BillCategory],
                format_func=lambda x: x.capitalize(),
            )
        with col2:
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
            bill_date = st.date_input("Date", value=date.today())
        if st.form_submit_button("➕ Add Bill", type="primary"):
            show_outcome(run_async(ledger.add_bill(
                title=title,
                amount=Decimal(str(amount)),
                bill_date=bill_date,
                bill_type=BillCategory(bill_type),
            )))

    st.markdown("---")
    period = render_month_picker()
    bills = ledger.settlement(period, month_filter=period).house.bills

    if not bills:
        st.info(f"No bills recorded for {period.label}.")
        return

    for bill in sorted(bills, key=lambda b: b.bill_date or date.min, reverse=True):
        col1, col2, col3, col4 = st.columns([3, 2, 2, 1])
        col1.markdown(f"**{bill.title}** ({bill.bill_type.value})")
        col2.markdown(money(bill.amount))
        col3.markdown(f"{bill.bill_date:%b %d, %Y}" if bill.bill_date else "-")
        with col4:
            if st.button("🗑️", key=f"delete_bill_{bill.id}"):
                show_outcome(run_async(ledger.delete_bill(bill.id)))
                st.rerun()


def render_payments_page(ledger: HouseLedger):
    """Render the payments page."""
    st.title("💵 Payments")
    members = list(ledger.snapshot.members)

    if not members:
        st.warning("Add members before recording payments.")
        return

    names = {member.id: member.name for member in members}

    with st.form("add_payment", clear_on_submit=True):
        st.markdown("### Add Payment")
        col1, col2 = st.columns(2)
        with col1:
            member_id = st.selectbox(
                "Member",
                options=list(names),
                format_func=lambda x: names[x],
            )
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
        with col2:
            payment_date = st.date_input("Date", value=date.today())
            payment_method = st.text_input("Method (cash, bank, mobile...)")
        note = st.text_input("Note (optional)")
        if st.form_submit_button("➕ Add Payment", type="primary"):
            show_outcome(run_async(ledger.add_payment(
                member_id=member_id,
                amount=Decimal(str(amount)),
                payment_date=payment_date,
                payment_method=payment_method,
                note=note,
            )))

    st.markdown("---")
    period = render_month_picker()
    payments = ledger.settlement(period, month_filter=period).house.payments

    if not payments:
        st.info(f"No payments recorded for {period.label}.")
        return

    for payment in sorted(payments, key=lambda p: p.payment_date or date.min, reverse=True):
        col1, col2, col3, col4 = st.columns([3, 2, 2, 1])
        col1.markdown(f"**{names.get(payment.member_id, 'Former member')}**")
        col2.markdown(money(payment.amount))
        col3.markdown(f"{payment.payment_date:%b %d, %Y}" if payment.payment_date else "-")
        with col4:
            if st.button("🗑️", key=f"delete_payment_{payment.id}"):
                show_outcome(run_async(ledger.delete_payment(payment.id)))
                st.rerun()


def render_meals_page(ledger: HouseLedger):
    """Render the daily meal sheet."""
    st.title("🍽️ Daily Meals")
    members = list(ledger.snapshot.members)

    if not members:
        st.warning("Add members before entering meals.")
        return

    day = st.date_input("Day", value=date.today())
    engine = ledger.settlement(ReportingPeriod.from_date(day))

    with st.form("daily_meals"):
        counts = {}
        for ledger_row in engine.member_ledgers():
            member = ledger_row.member
            counts[member.id] = st.number_input(
                member.name,
                min_value=0,
                step=1,
                value=ledger_row.meal_count_for_date(day),
                key=f"meals_{member.id}_{day.isoformat()}",
            )
        if st.form_submit_button("💾 Save Meals", type="primary"):
            failures = []
            for member_id, count in counts.items():
                outcome = run_async(ledger.set_meal_count(member_id, day, int(count)))
                if not outcome.ok:
                    failures.append(outcome.message)
            if failures:
                for message in failures:
                    st.error(message)
            else:
                st.success(f"Meals saved for {day:%b %d, %Y}")

    st.markdown("---")
    st.subheader(f"Totals for {engine.period.label}")
    st.dataframe(
        [
            {"Name": ledger_row.member.name, "Meals": ledger_row.monthly_meal_total()}
            for ledger_row in engine.member_ledgers()
        ],
        use_container_width=True,
        hide_index=True,
    )


def render_settlement_page(ledger: HouseLedger):
    """Render the settlement page."""
    st.title("📑 Settlement")
    st.markdown("All bills and payments on record, meals from the selected month.")
    period = render_month_picker()

    summary = ledger.settlement(period).summary()

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Expense", money(summary.total_expense))
    col2.metric("Total Deposits", money(summary.total_deposits))
    col3.metric("Meal Rate", f"{summary.meal_rate:.2f}")

    if not summary.rows:
        st.info("No members yet.")
        return

    st.dataframe(
        [
            {
                "Name": row.name,
                "Meals": row.monthly_meals,
                "Paid": money(row.total_paid),
                "Bills": money(row.total_bills),
                "Due": money(row.total_due),
                "Advance": money(max(row.advance_payment, Decimal("0"))),
                "Status": row.status.value.capitalize(),
            }
            for row in summary.rows
        ],
        use_container_width=True,
        hide_index=True,
    )

    app_settings = get_settings().app
    if st.button("📄 Prepare Report", type="primary"):
        st.session_state.report_text = run_async(ledger.report_text(
            period,
            currency_symbol=app_settings.currency_symbol,
            title=f"{app_settings.app_title} Settlement Report",
        ))
        st.session_state.report_period = period

    if st.session_state.get("report_period") == period:
        st.download_button(
            "⬇️ Download Report",
            data=st.session_state.report_text,
            file_name=report_filename(period),
            mime="text/plain",
        )
        with st.expander("Preview"):
            st.code(st.session_state.report_text)


def render_settings_page(ledger: HouseLedger):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Storage selection", "storage"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in services:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(f"**Active record store:** `{ledger.store.backend_name}`")
    configured = get_settings().storage.backend.value
    if configured != ledger.store.backend_name:
        st.warning(
            f"Configured store `{configured}` could not be reached - "
            f"using `{ledger.store.backend_name}` instead."
        )

    orphans = ledger.orphaned_records()
    if orphans:
        st.markdown("---")
        st.markdown("### Records of Former Members")
        st.markdown(
            f"{len(orphans)} payment or meal records belong to deleted members. "
            "They are kept but no longer count towards any settlement."
        )

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
