"""
Streamlit Chat Console for Debtbot

Plays several chat parties against the bot core in one browser tab,
so the whole confirmation workflow can be tried without a messaging
platform: pick a party, type a command, then switch to the counterparty
to see the notification and reply "ok CODE".

DESIGN PRINCIPLES:
1. The console is only a transport: it sends `InboundMessage` and
   delivers `BotReply` text and notifications
2. Each party has its own history; notifications land in the target
   party's history
3. No ledger logic lives here
"""

import asyncio

import streamlit as st

from debtbot.config import get_settings, validate_all_settings
from debtbot.models.intent import BotReply, InboundMessage
from debtbot.orchestrator import MessageFlow, create_app_components
from debtbot.services.profile import StaticProfileLookup


# Page configuration
st.set_page_config(
    page_title="Debtbot Console",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One loop for the whole session so the store's connection survives reruns."""
    return asyncio.new_event_loop()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = get_event_loop()
    asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


@st.cache_resource
def get_profiles() -> StaticProfileLookup:
    return StaticProfileLookup()


@st.cache_resource
def get_flow() -> MessageFlow:
    """Get or create the message flow (cached) and connect its store."""
    flow, _ = create_app_components(profiles=get_profiles())
    run_async(flow.start())
    return flow


def _history(party_id: str) -> list[dict]:
    histories = st.session_state.setdefault("histories", {})
    return histories.setdefault(party_id, [])


def deliver(party_id: str, reply: BotReply) -> None:
    """Append the reply to the sender and each notification to its target."""
    _history(party_id).append({"role": "assistant", "content": reply.text})
    for notification in reply.notifications:
        _history(notification.target_party_id).append(
            {"role": "assistant", "content": f"🔔 {notification.text}"}
        )
        unread = st.session_state.setdefault("unread", {})
        unread[notification.target_party_id] = unread.get(notification.target_party_id, 0) + 1


def main():
    """Main application entry point."""
    st.sidebar.title("💸 Debtbot Console")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["💬 Chat", "⚙️ Settings"],
        index=0,
    )

    if page == "💬 Chat":
        render_chat_page()
    else:
        render_settings_page()


def render_chat_page():
    """Render the multi-party chat page."""
    parties: list[str] = st.session_state.setdefault("parties", [])
    unread: dict[str, int] = st.session_state.setdefault("unread", {})

    with st.sidebar.form("add_party", clear_on_submit=True):
        st.markdown("**Add a party**")
        party_id = st.text_input("Party ID", placeholder="e.g., 1001")
        given_name = st.text_input(
            "Profile name (optional)",
            help="Used to pick a display name on the party's first message",
        )
        if st.form_submit_button("➕ Add") and party_id.strip():
            party_id = party_id.strip()
            if party_id not in parties:
                parties.append(party_id)
            if given_name.strip():
                get_profiles().register(party_id, given_name.strip())

    if not parties:
        st.title("💬 Chat")
        st.info("Add at least two parties in the sidebar to try linking and confirmations.")
        return

    current = st.sidebar.radio(
        "Chatting as:",
        parties,
        format_func=lambda p: f"{p} 🔔{unread[p]}" if unread.get(p) else p,
    )
    unread[current] = 0

    st.title(f"💬 Chat as {current}")
    with st.expander("📝 Example commands"):
        st.markdown("""
        - `alias @Tuan` - set your display name
        - `sharecode` then, as the other party, `link CODE @Tuan`
        - `no 50k @Tuan tiền cơm` - record a debt
        - `ok CODE` / `huy CODE` - confirm or reject
        - `check`, `check conno`, `thang nay`, `help`
        """)

    for message in _history(current):
        with st.chat_message(message["role"]):
            st.text(message["content"])

    text = st.chat_input("Type a command...")
    if text:
        _history(current).append({"role": "user", "content": text})
        with st.spinner("Processing..."):
            reply = run_async(get_flow().handle(InboundMessage(party_id=current, text=text)))
        deliver(current, reply)
        st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    if status.get("app", False):
        backend = get_settings().app.storage_backend
        st.success(f"✅ App settings - storage backend: {backend}")
    else:
        st.error(f"❌ App settings - {status.get('app_error', 'Not configured')}")

    if status.get("google_sheets", False):
        st.success("✅ Google Sheets (Storage) - Configured")
    else:
        error = status.get("google_sheets_error", "Not configured")
        st.error(f"❌ Google Sheets (Storage) - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "Create a `.env` file to configure the bot. Set `STORAGE_BACKEND=memory` "
        "to try it without a spreadsheet, or provide `GOOGLE_SHEETS_CREDENTIALS_PATH` "
        "and `GOOGLE_SHEETS_SPREADSHEET_ID`. See `.env.example`."
    )


if __name__ == "__main__":
    main()
