"""IntelliBuddy - Streamlit Chat Interface.

Thin client over the widget's ChatCoordinator. All conversation logic lives
in the `widget` package. This file handles:
  - One coordinator and event loop per browser session (st.session_state)
  - Rendering messages, quick replies and reactions
  - Language selection, the rate-limit banner and the offline warning
"""

import asyncio

import streamlit as st

from widget.config import MAX_MESSAGE_LENGTH, SUPPORTED_LANGUAGES, WidgetConfig
from widget.coordinator import build_coordinator
from widget.responses import REACTION_EMOJIS

# Page setup
st.set_page_config(
    page_title="IntelliBuddy",
    layout="centered",
)


def run(coro):
    """Run a coordinator coroutine on this browser session's event loop."""
    return st.session_state.loop.run_until_complete(coro)


def init_session():
    """Initialize session state on first load."""
    if "coordinator" not in st.session_state:
        st.session_state.loop = asyncio.new_event_loop()
        st.session_state.coordinator = build_coordinator(WidgetConfig.from_env())
        run(st.session_state.coordinator.refresh_connectivity())
        run(st.session_state.coordinator.start())


def render_message(message, is_last: bool):
    """Render one chat message with its reaction bar and quick replies."""
    coordinator = st.session_state.coordinator
    role = "user" if message.sender == "user" else "assistant"

    with st.chat_message(role):
        st.markdown(message.text)

        if message.sender != "bot" or message.is_reaction_response:
            return

        columns = st.columns(len(REACTION_EMOJIS))
        for column, (kind, emoji) in zip(columns, REACTION_EMOJIS.items()):
            label = f"{emoji} {message.reactions[kind].count}" if kind in message.reactions else emoji
            if column.button(label, key=f"react-{message.id}-{kind}"):
                run(coordinator.toggle_reaction(message.id, kind))
                st.rerun()

        if is_last and message.quick_replies:
            for reply in message.quick_replies:
                if st.button(reply.label, key=f"quick-{message.id}-{reply.trigger_text}"):
                    with st.spinner("IntelliBuddy is typing..."):
                        run(coordinator.select_quick_reply(reply.trigger_text))
                    st.rerun()


def render_sidebar():
    coordinator = st.session_state.coordinator
    with st.sidebar:
        st.markdown("### Language")
        codes = list(SUPPORTED_LANGUAGES)
        selected = st.selectbox(
            "Conversation language",
            codes,
            index=codes.index(coordinator.language),
            format_func=lambda code: SUPPORTED_LANGUAGES[code],
        )
        if selected != coordinator.language:
            with st.spinner("Translating conversation..."):
                run(coordinator.switch_language(selected))
            st.rerun()

        st.divider()
        if st.button("Check Connection", use_container_width=True):
            run(coordinator.refresh_connectivity())
            st.rerun()

        if st.button("Clear Chat", use_container_width=True):
            run(coordinator.clear_chat())
            st.rerun()


def main():
    """Run the Streamlit chat application."""
    init_session()
    coordinator = st.session_state.coordinator

    st.title("IntelliBuddy")
    st.caption("Your AI chat assistant")

    if not coordinator.online:
        st.warning("You're currently offline. Messages will not be sent until the connection is restored.")

    banner = coordinator.banner()
    if banner.is_limited:
        st.error(banner.message)

    render_sidebar()

    messages = coordinator.messages
    bot_messages = [m for m in messages if m.sender == "bot" and not m.is_reaction_response]
    last_bot_id = bot_messages[-1].id if bot_messages else None
    for message in messages:
        render_message(message, is_last=message.id == last_bot_id)

    input_blocked = not coordinator.online or (banner.is_limited and banner.source == "api")
    if user_input := st.chat_input(
        "Type your message...", max_chars=MAX_MESSAGE_LENGTH, disabled=input_blocked,
    ):
        with st.spinner("IntelliBuddy is typing..."):
            run(coordinator.send_message(user_input))
        st.rerun()


if __name__ == "__main__":
    main()
