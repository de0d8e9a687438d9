"""
app.py
Streamlit admin app for memberships and payments (operator-only).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

import pandas as pd
import streamlit as st

import auth
import utils
from cache import QueryCache
from config import get_settings
from errors import DataError
from models import ALL, GENDERS, PAID, PARTIAL, STATUSES, UNPAID
from payment_status import derive, user_statuses
from queries import Repository, build_client
from reports import export_payments, export_users, filter_by_status, summarize_payments

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("payments-admin")

st.set_page_config(page_title=settings.page_title, layout="wide")

TZ = ZoneInfo(settings.display_timezone)

STATUS_LABELS = {PAID: "🟢 Paid", PARTIAL: "🟠 Partial", UNPAID: "🔴 Unpaid"}
FILTER_OPTIONS = [ALL, *STATUSES]
FILTER_LABELS = {ALL: "All Payments", PAID: "Paid Only", UNPAID: "Unpaid Only", PARTIAL: "Partial Only"}

PAGES = ["Dashboard", "Register User", "Users", "Payments", "Reports"]


@st.cache_resource
def get_client():
    return build_client(settings)


def get_repo() -> Repository:
    # one read cache per browser session; writes invalidate it by collection
    if "query_cache" not in st.session_state:
        cache = QueryCache()
        cache.subscribe(utils.close_edit_forms(st.session_state))
        st.session_state.query_cache = cache
    return Repository(get_client(), st.session_state.query_cache)


def show_error(action: str, e: DataError) -> None:
    logger.warning("%s failed: %s", action, e)
    st.error(str(e) or f"Failed to {action}.")


def go_to(page: str) -> None:
    st.session_state.page = page
    st.rerun()


# ---------- Login ----------

def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    if "query_cache" in st.session_state:
        st.session_state.query_cache.clear()
    utils.push_flash(st.session_state, "Logged out.")


def login_screen():
    st.title("🔐 Admin Login")

    if not auth.is_configured(settings):
        st.error("No admin password configured.")
        st.info(
            "Generate a hash with `python auth.py <password>` and set it as "
            "**PAYADMIN_ADMIN_PASSWORD_HASH** (environment or .env)."
        )
        return

    col1, _ = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value=settings.admin_username)
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(username.strip(), password, settings):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")


# ---------- Tables ----------

def users_frame(users, statuses: dict[str, str]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Name": u.full_name,
                "Phone": u.phone_number,
                "Email": u.email or "-",
                "Gender": (u.gender or "-").title(),
                "Registered": utils.format_date(u.created_at, TZ),
                "Status": STATUS_LABELS[statuses.get(u.id, UNPAID)],
            }
            for u in users
        ]
    )


def payments_frame(payments) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "User": p.user.full_name if p.user else "-",
                "Phone": p.user.phone_number if p.user else "-",
                "Plan": p.plan.name if p.plan else "-",
                "Amount Paid": utils.format_money(p.amount_paid),
                "Remaining": utils.format_money(p.amount_remaining) if p.amount_remaining > 0 else "-",
                "Status": STATUS_LABELS.get(p.status, p.status),
                "Date": utils.format_date(p.payment_date, TZ),
            }
            for p in payments
        ]
    )


# ---------- Pages ----------

def dashboard_page(repo: Repository):
    st.header("📊 Dashboard")

    try:
        users = repo.list_users()
        stats = repo.payment_stats()
    except DataError as e:
        show_error("load dashboard", e)
        return

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Users", len(users), help="Registered users in system")
    c2.metric("Paid", stats[PAID], help="Payments made in full")
    c3.metric("Unpaid", stats[UNPAID], help="Payments with nothing paid yet")
    c4.metric("Partial", stats[PARTIAL], help="Payments with an outstanding balance")

    st.divider()

    left, right = st.columns(2)
    with left:
        st.subheader("Payment Overview")
        st.dataframe(
            pd.DataFrame(
                [
                    {"Status": STATUS_LABELS[PAID], "Count": stats[PAID]},
                    {"Status": STATUS_LABELS[UNPAID], "Count": stats[UNPAID]},
                    {"Status": STATUS_LABELS[PARTIAL], "Count": stats[PARTIAL]},
                    {"Status": "Total", "Count": stats["total"]},
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    with right:
        st.subheader("Quick Actions")
        if st.button("➕ Register New User"):
            go_to("Register User")
        if st.button("💳 Record Payment"):
            go_to("Payments")
        if st.button("🧾 View Reports"):
            go_to("Reports")


def register_user_page(repo: Repository):
    st.header("➕ Register User")

    col1, col2 = st.columns(2)
    with col1:
        full_name = st.text_input("Full Name *", key="reg_full_name")
        email = st.text_input("Email", key="reg_email")
    with col2:
        phone_number = st.text_input("Phone Number *", key="reg_phone")
        gender = st.selectbox("Gender", options=["", *GENDERS], format_func=lambda g: g.title() or "-")
    address = st.text_area("Address", key="reg_address", height=80)

    if st.button("Register User", type="primary"):
        errors = utils.validate_user_inputs(full_name, phone_number, email, gender)
        if errors:
            for e in errors:
                st.error(e)
            return
        try:
            repo.create_user(utils.clean_user_fields(full_name, phone_number, email, gender, address))
        except DataError as e:
            show_error("register user", e)
            return
        utils.push_flash(st.session_state, "User registered successfully.")
        for key in ("reg_full_name", "reg_email", "reg_phone", "reg_address"):
            st.session_state.pop(key, None)
        go_to("Users")


def user_edit_form(repo: Repository, user):
    st.subheader(f"✏️ Edit User ({user.full_name})")

    col1, col2 = st.columns(2)
    with col1:
        full_name = st.text_input("Full Name *", value=user.full_name)
        email = st.text_input("Email", value=user.email or "")
    with col2:
        phone_number = st.text_input("Phone Number *", value=user.phone_number)
        options = ["", *GENDERS]
        gender = st.selectbox(
            "Gender",
            options=options,
            index=options.index(user.gender) if user.gender in options else 0,
            format_func=lambda g: g.title() or "-",
        )
    address = st.text_area("Address", value=user.address or "", height=80)

    errors = utils.validate_user_inputs(full_name, phone_number, email, gender)
    for e in errors:
        st.error(e)

    c1, c2 = st.columns([1, 5])
    with c1:
        if st.button("Update User", type="primary", disabled=bool(errors)):
            try:
                repo.update_user(user.id, utils.clean_user_fields(full_name, phone_number, email, gender, address))
            except DataError as e:
                show_error("update user", e)
                return
            utils.push_flash(st.session_state, "User updated successfully.")
            st.rerun()
    with c2:
        if st.button("Cancel edit"):
            st.session_state.edit_user_id = None
            st.rerun()


def users_page(repo: Repository):
    st.header("👥 Manage Users")

    with st.sidebar:
        st.subheader("Search")
        search = st.text_input("Name, phone or email")

    try:
        users = repo.search_users(search) if search.strip() else repo.list_users()
        statuses = user_statuses(repo.list_payments())
    except DataError as e:
        show_error("load users", e)
        return

    if not users:
        st.caption("No users found matching your search." if search.strip() else "No users registered yet.")
        return

    st.dataframe(users_frame(users, statuses), use_container_width=True, hide_index=True)

    st.divider()

    by_label = {f"{u.full_name} ({u.phone_number})": u for u in users}
    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select user")
        chosen = st.selectbox("User", options=["(none)", *by_label])

    with colB:
        if chosen != "(none)":
            user = by_label[chosen]
            st.subheader("User actions")
            c1, c2, c3 = st.columns(3)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_user_id = user.id
                    st.rerun()
            with c2:
                if st.button("View payments"):
                    st.session_state.payments_user_id = user.id
                    go_to("Payments")
            with c3:
                confirm = st.checkbox("Confirm delete", value=False, key=f"del_confirm_{user.id}")
                if st.button("Delete", type="secondary", disabled=not confirm):
                    try:
                        repo.delete_user(user.id)
                    except DataError as e:
                        show_error("delete user", e)
                        return
                    utils.push_flash(st.session_state, "User deleted successfully.")
                    st.rerun()

    if st.session_state.get("edit_user_id"):
        st.divider()
        try:
            existing = repo.get_user(st.session_state.edit_user_id)
        except DataError as e:
            show_error("load user", e)
            return
        if existing:
            user_edit_form(repo, existing)
        else:
            st.session_state.edit_user_id = None


def payment_form(repo: Repository, users, plans, editing=None, preselected_user_id=None):
    st.subheader("✏️ Edit Payment" if editing else "➕ Record Payment")

    user_ids = [u.id for u in users]
    user_names = {u.id: f"{u.full_name} - {u.phone_number}" for u in users}
    plan_by_id = {p.id: p for p in plans}

    default_user = editing.user_id if editing else preselected_user_id
    default_plan = editing.plan_id if editing else None

    c1, c2, c3 = st.columns(3)
    with c1:
        user_id = st.selectbox(
            "User *",
            options=user_ids,
            index=user_ids.index(default_user) if default_user in user_ids else None,
            format_func=lambda i: user_names[i],
            placeholder="Select a user",
        )
    with c2:
        plan_ids = list(plan_by_id)
        plan_id = st.selectbox(
            "Payment Plan *",
            options=plan_ids,
            index=plan_ids.index(default_plan) if default_plan in plan_ids else None,
            format_func=lambda i: plan_by_id[i].label,
            placeholder="Select a plan",
        )
    plan = plan_by_id.get(plan_id)
    with c3:
        amount_text = st.text_input("Amount Paid *", value=str(editing.amount_paid) if editing else "")
        if plan:
            st.caption(f"Maximum allowed: {utils.format_money(plan.amount)}")

    errors = utils.validate_payment_inputs(user_id, plan, amount_text)
    if not errors:
        preview = derive(plan.amount, utils.parse_amount(amount_text))
        st.info(
            f"Status: **{STATUS_LABELS[preview.status]}** | Remaining: **{utils.format_money(preview.remaining)}**"
        )

    b1, b2 = st.columns([1, 5])
    with b1:
        label = "Update Payment" if editing else "Record Payment"
        if st.button(label, type="primary"):
            if errors:
                for e in errors:
                    st.error(e)
                return
            fields = utils.payment_fields(user_id, plan, utils.parse_amount(amount_text))
            try:
                if editing:
                    repo.update_payment(editing.id, fields)
                else:
                    repo.create_payment(fields)
            except DataError as e:
                show_error("save payment", e)
                return
            utils.push_flash(
                st.session_state, "Payment updated successfully." if editing else "Payment recorded successfully."
            )
            st.rerun()
    with b2:
        if editing and st.button("Cancel edit"):
            st.session_state.edit_payment_id = None
            st.rerun()


def payments_page(repo: Repository):
    preselected = st.session_state.get("payments_user_id")

    try:
        users = repo.list_users()
        plans = repo.list_plans()
        payments = repo.list_user_payments(preselected) if preselected else repo.list_payments()
    except DataError as e:
        show_error("load payments", e)
        return

    owner = next((u for u in users if u.id == preselected), None)
    if preselected and owner:
        st.header(f"💳 Payments for {owner.full_name}")
        st.caption("Viewing payment records for this user")
        if st.button("← Back to All Payments"):
            st.session_state.payments_user_id = None
            st.rerun()
    else:
        st.header("💳 Manage Payments")

    if not users:
        st.info("No users yet. Register a user first.")
        return

    editing = None
    if st.session_state.get("edit_payment_id"):
        editing = next((p for p in payments if p.id == st.session_state.edit_payment_id), None)
    payment_form(repo, users, plans, editing=editing, preselected_user_id=preselected)

    st.divider()

    st.subheader("User Payment Records" if preselected else "Payment Records")
    status = st.selectbox(
        "Filter", options=FILTER_OPTIONS, format_func=lambda s: FILTER_LABELS[s], key="payments_filter"
    )
    shown = filter_by_status(payments, status)
    if not shown:
        st.caption(
            "No payment records found for this user. Use the form above to record a new payment."
            if preselected
            else "No payment records found."
        )
        return

    st.dataframe(payments_frame(shown), use_container_width=True, hide_index=True)

    labels = {
        f"{p.user.full_name if p.user else p.user_id} - {p.plan.name if p.plan else p.plan_id} "
        f"({utils.format_money(p.amount_paid)})": p.id
        for p in shown
    }
    c1, c2 = st.columns([3, 1])
    with c1:
        chosen = st.selectbox("Payment", options=["(none)", *labels])
    with c2:
        st.write("")
        if st.button("Edit", disabled=chosen == "(none)"):
            st.session_state.edit_payment_id = labels[chosen]
            st.rerun()


def download(label: str, export, empty_message: str, key: str):
    if export is None:
        st.button(label, disabled=True, key=key, help=empty_message)
        return
    st.download_button(label, data=export.data, file_name=export.filename, mime=export.mime, key=key)


def reports_page(repo: Repository):
    st.header("🧾 Reports")

    try:
        users = repo.list_users()
        payments = repo.list_payments()
    except DataError as e:
        show_error("load reports", e)
        return

    summary = summarize_payments(payments)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Users", len(users))
    c2.metric("Paid", summary["paid"])
    c3.metric("Unpaid", summary["unpaid"])
    c4.metric("Partial", summary["partial"])

    st.divider()

    left, right = st.columns(2)
    with left:
        st.subheader("Export Options")
        st.caption("Download reports in CSV format")
        download("Export All Users", export_users(users, TZ), "No users available to export", "exp_users")
        download("Export All Payments", export_payments(payments, ALL, TZ), "No data available to export", "exp_all")
        download("Export Paid", export_payments(payments, PAID, TZ), "No data available to export", "exp_paid")
        download("Export Unpaid", export_payments(payments, UNPAID, TZ), "No data available to export", "exp_unpaid")
        download(
            "Export Partial Payments", export_payments(payments, PARTIAL, TZ), "No data available to export", "exp_partial"
        )
    with right:
        st.subheader("Quick Stats")
        st.dataframe(
            pd.DataFrame(
                [
                    {"": "Total Payments", "Value": str(summary["total"])},
                    {"": "Completed", "Value": str(summary["paid"])},
                    {"": "Outstanding", "Value": str(summary["unpaid"])},
                    {"": "Partial", "Value": str(summary["partial"])},
                    {"": "Total Amount", "Value": utils.format_money(summary["total_amount"])},
                    {"": "Completion Rate", "Value": f"{summary['completion_rate']}%"},
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )

    st.divider()

    st.subheader("Payment Report")
    report_type = st.selectbox("Report", options=FILTER_OPTIONS, format_func=lambda s: FILTER_LABELS[s])
    filtered = filter_by_status(payments, report_type)
    download(
        "Export Filtered", export_payments(payments, report_type, TZ), "No data available to export", "exp_filtered"
    )
    if filtered:
        st.dataframe(payments_frame(filtered), use_container_width=True, hide_index=True)
    else:
        st.caption("No records found for the selected filter.")


def main_app():
    st.sidebar.title("💳 Payments Admin")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    repo = get_repo()
    if st.session_state.page == "Dashboard":
        dashboard_page(repo)
    elif st.session_state.page == "Register User":
        register_user_page(repo)
    elif st.session_state.page == "Users":
        users_page(repo)
    elif st.session_state.page == "Payments":
        payments_page(repo)
    elif st.session_state.page == "Reports":
        reports_page(repo)


# --------- App entry ---------

def run():
    require_login()

    message = utils.pop_flash(st.session_state)
    if message:
        st.success(message)

    if not st.session_state.logged_in:
        login_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
