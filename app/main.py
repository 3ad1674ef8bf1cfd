"""
Streamlit Frontend for Chat Ledger

A chat page acting as the message channel: typed messages and clicked
options become InboundEvents, replies come back through a RecordingChannel.

DESIGN PRINCIPLES:
1. The page holds no ledger logic, it only forwards events
2. Options are clickable buttons and plain numbers at the same time
3. Balances shown are always recomputed from the log, never cached
"""

from datetime import date
from uuid import uuid4

import streamlit as st

from chatledger.ledger import LedgerEngine
from chatledger.models.messages import InboundEvent
from chatledger.orchestrator import ConversationFlow, create_app_components
from chatledger.queries import LedgerQueryExecutor
from chatledger.services import RecordingChannel


# Page configuration
st.set_page_config(
    page_title="Chat Ledger",
    page_icon="💬",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    channel = RecordingChannel()
    try:
        flow, ledger, sheets_client = create_app_components(channel=channel, use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        flow, ledger, sheets_client = create_app_components(channel=channel, use_storage=False)
    return flow, ledger, sheets_client, channel


def send_event(flow: ConversationFlow, text: str = None, selected_option: int = None):
    """Forward one user action to the conversation flow."""
    event = InboundEvent(
        event_id=str(uuid4()),
        conversation_id=st.session_state.conversation_id,
        text=text,
        selected_option=selected_option,
    )
    label = text if text is not None else st.session_state.last_options[selected_option]
    st.session_state.history.append(("user", label))

    reply = flow.handle(event)
    if reply is not None:
        st.session_state.history.append(("assistant", reply.text))
        st.session_state.last_options = reply.options


def main():
    """Main application entry point."""
    flow, ledger, sheets_client, _ = get_components()

    if "conversation_id" not in st.session_state:
        st.session_state.conversation_id = str(uuid4())
    if "history" not in st.session_state:
        st.session_state.history = []
    if "last_options" not in st.session_state:
        st.session_state.last_options = []

    render_sidebar(ledger, connected=sheets_client is not None)
    render_chat(flow)


def render_chat(flow: ConversationFlow):
    """Render the conversation and the input box."""
    st.title("💬 Chat Ledger")
    st.caption('Try "spent 45.90 on groceries with nubank" or "transferred 200 from checking to savings".')

    for role, text in st.session_state.history:
        with st.chat_message(role):
            st.markdown(text)

    options = st.session_state.last_options
    if options:
        columns = st.columns(min(len(options), 4))
        for idx, option in enumerate(options):
            if columns[idx % len(columns)].button(f"{idx + 1}. {option}", key=f"option-{idx}-{len(st.session_state.history)}"):
                send_event(flow, selected_option=idx)
                st.rerun()

    prompt = st.chat_input("Describe a transaction...")
    if prompt:
        send_event(flow, text=prompt)
        st.rerun()


def render_sidebar(ledger: LedgerEngine, connected: bool):
    """Render balances and connection status."""
    st.sidebar.title("📒 Balances")

    snapshot = ledger.snapshot(date.today())
    executor = LedgerQueryExecutor(snapshot, ledger.transactions())

    balances = executor.execute("account_balances")
    for row in balances.results:
        label = row["account"]
        if row["kind"] in ("credit_card", "consolidated_invoice"):
            st.sidebar.metric(f"{label} (pending)", f"{row['pending_total']:,.2f}")
        else:
            st.sidebar.metric(label, f"{row['balance']:,.2f}")

    net_worth = executor.execute("net_worth")
    if net_worth.success:
        st.sidebar.markdown("---")
        st.sidebar.metric("Net worth", f"{net_worth.aggregation_result['net_worth']:,.2f}")

    today = date.today()
    spending = executor.execute("spending_by_category", year=today.year, month=today.month)
    if spending.data_found:
        st.sidebar.markdown("---")
        st.sidebar.markdown(f"**{spending.query_description}**")
        for row in spending.results:
            st.sidebar.markdown(f"- {row['category']}: {row['total_amount']:,.2f}")

    st.sidebar.markdown("---")
    if connected:
        st.sidebar.success("✅ Google Sheets - Connected")
    else:
        st.sidebar.warning("⚠️ Running in memory - nothing is persisted")

    if st.sidebar.button("🔄 Recompute balances"):
        ledger.full_recompute(today)
        st.rerun()


if __name__ == "__main__":
    main()
