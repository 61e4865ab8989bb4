"""
Streamlit Frontend for Personal Ledger

This is the page users interact with: their balance, a deposit form,
an invest form and the list of investments with edit and close actions.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear messages when an operation is rejected
3. Visual feedback for all operations
4. No hidden actions

Authentication is handled upstream; this page only needs to know which
account the session belongs to (st.session_state.account_id).
"""

import logging

import streamlit as st

from ledger.audit import create_correlation_id
from ledger.config import get_settings
from ledger.engine import InvestmentNotFoundError
from ledger.models.account import InvestmentStatus
from ledger.orchestrator import LedgerFlow, create_app_components
from ledger.runner import LoopRunner
from ledger.services.storage import AccountNotFoundError, DuplicateError, StorageError


# Page configuration
st.set_page_config(
    page_title="Personal Ledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# structlog renders through stdlib logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().app.debug_mode else logging.INFO,
    format="%(message)s",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_runner() -> LoopRunner:
    """One event loop shared by every session (cached)."""
    return LoopRunner()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return get_runner().run(coro)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    ledger_flow, _ = get_components()

    st.sidebar.title("💰 Personal Ledger")
    st.sidebar.markdown("---")

    if "account_id" not in st.session_state:
        st.session_state.account_id = None

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Home", "👤 Account", "⚙️ Settings"],
        index=0 if st.session_state.account_id else 1,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How it works:**
        1. Deposit cash into your balance
        2. Invest part of it at a yearly rate
        3. Close the investment to get it back with interest
        """
    )

    if page == "🏠 Home":
        render_home_page(ledger_flow)
    elif page == "👤 Account":
        render_account_page(ledger_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_account_page(ledger_flow: LedgerFlow):
    """Open an account or switch to an existing one."""
    st.title("👤 Account")

    if st.session_state.account_id:
        st.success("You are signed in.")
        if st.button("Sign out"):
            st.session_state.account_id = None
            st.rerun()
        return

    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Open an account")
        first_name = st.text_input("First name")
        last_name = st.text_input("Last name")
        email = st.text_input("Email", key="signup_email")
        if st.button("Create account", type="primary"):
            if not first_name or not last_name or not email:
                st.error("Please fill in all fields")
            else:
                try:
                    account = run_async(ledger_flow.open_account(
                        first_name=first_name,
                        last_name=last_name,
                        email=email,
                    ))
                    st.session_state.account_id = account.id
                    st.rerun()
                except DuplicateError:
                    st.error("Email already exists")
                except (ValueError, StorageError) as e:
                    st.error(f"Could not create account: {e}")

    with col2:
        st.subheader("Use an existing account")
        existing_email = st.text_input("Email", key="signin_email")
        if st.button("Continue"):
            account = run_async(ledger_flow.find_account(existing_email))
            if account is None:
                st.error("No account found with this email")
            else:
                st.session_state.account_id = account.id
                st.rerun()


def render_home_page(ledger_flow: LedgerFlow):
    """Balance, deposit, invest and the investment list."""
    account_id = st.session_state.account_id
    if not account_id:
        st.info("Open an account or sign in on the Account page first.")
        return

    symbol = get_settings().ledger.currency_symbol

    try:
        summary = run_async(ledger_flow.get_summary(account_id))
    except AccountNotFoundError:
        st.session_state.account_id = None
        st.warning("This account no longer exists. Please sign in again.")
        return

    st.title(f"🏠 Welcome, {summary.display_name}")
    st.markdown(
        f'<div class="big-number">{symbol}{summary.balance}</div>',
        unsafe_allow_html=True,
    )
    st.caption(f"Invested: {symbol}{summary.invested_total} in {summary.open_count} open investment(s)")

    st.markdown("---")
    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Deposit")
        amount = st.text_input("Amount", key="deposit_amount")
        if st.button("Deposit", type="primary"):
            show_result(run_operation(ledger_flow.deposit(
                account_id, amount, correlation_id=create_correlation_id()
            )))

    with col2:
        st.subheader("Invest")
        invest_amount = st.text_input("Amount", key="invest_amount")
        roi_rate = st.text_input("Yearly rate (%)", key="invest_rate")
        if st.button("Invest"):
            show_result(run_operation(ledger_flow.open_investment(
                account_id, invest_amount, roi_rate, correlation_id=create_correlation_id()
            )))

    st.markdown("---")
    st.subheader("📈 Investments")

    if not summary.investments:
        st.info("No investments yet.")
        return

    for view in summary.investments:
        with st.expander(
            f"{symbol}{view.amount} at {view.roi_rate}% · {view.status_label}",
            expanded=view.status == InvestmentStatus.OPEN,
        ):
            st.markdown(f"**Opened:** {view.created_at.strftime('%d %B %Y %H:%M')} UTC")

            if view.status != InvestmentStatus.OPEN:
                if view.settled_gain is not None:
                    st.markdown(f"**Gain credited:** {symbol}{view.settled_gain}")
                continue

            st.markdown(
                f"**Accrued ROI:** {symbol}{view.accrued_gain} over {view.days_held} days"
            )

            key = str(view.id)
            new_amount = st.text_input("Amount", value=view.amount, key=f"amount_{key}")
            new_rate = st.text_input("Yearly rate (%)", value=view.roi_rate, key=f"rate_{key}")

            edit_col, close_col = st.columns(2)
            with edit_col:
                if st.button("Update", key=f"update_{key}"):
                    show_result(run_operation(ledger_flow.update_investment(
                        account_id, view.id, new_amount, new_rate,
                        correlation_id=create_correlation_id(),
                    )))
            with close_col:
                if st.button("Close", key=f"close_{key}"):
                    show_result(run_operation(ledger_flow.close_investment(
                        account_id, view.id, correlation_id=create_correlation_id(),
                    )))


def run_operation(coro):
    """Run a ledger operation and turn lookup/storage errors into messages."""
    try:
        return run_async(coro)
    except AccountNotFoundError:
        st.session_state.account_id = None
        st.error("This account no longer exists. Please sign in again.")
    except InvestmentNotFoundError:
        st.error("Investment not found")
    except StorageError as e:
        st.error(f"Could not save your change, nothing was applied: {e}")
    return None


def show_result(result):
    """Report an operation outcome and refresh the page on success."""
    if result is None:
        return
    if result.accepted:
        st.success(result.message)
        st.rerun()
    else:
        st.error(result.message)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from ledger.config import validate_all_settings

    status = validate_all_settings()
    backend = get_settings().ledger.storage_backend

    st.markdown(f"**Storage backend:** {backend}")

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Ledger", "ledger"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
