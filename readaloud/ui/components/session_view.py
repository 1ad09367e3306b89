"""
Shared live-session widgets: caption overlay, visualizer and mic toggle.
"""

import html

import streamlit as st

from readaloud.ui.components.live_session import LiveSessionRunner, LiveSnapshot
from readaloud.ui.components.visualizer import render_visualizer

_REFRESH_S = 0.5


def render_caption(caption: str | None) -> None:
    if caption:
        st.markdown(
            '<div style="text-align:center"><span style="background:rgba(0,0,0,0.7);'
            f'color:white;padding:1rem;border-radius:0.25rem">{html.escape(caption)}</span></div>',
            unsafe_allow_html=True,
        )
    else:
        st.markdown("&nbsp;")


def render_toggle(runner: LiveSessionRunner, snapshot: LiveSnapshot, key: str) -> None:
    label = "⏹️ Stop" if snapshot.recording else "\U0001f3a4 Start"
    if st.button(label, key=key, type="primary", use_container_width=True):
        runner.toggle()
        st.rerun()


def render_status(snapshot: LiveSnapshot) -> None:
    st.caption(
        f"Session: {snapshot.session_state} | Microphone: {snapshot.microphone_state} "
        f"| Connection: {snapshot.connection_state}"
    )


@st.fragment(run_every=_REFRESH_S)
def render_live_panel(runner: LiveSessionRunner, show_transcript: bool = True) -> None:
    """Refresh caption, bars and transcript while the page stays open."""
    snapshot = runner.snapshot()
    render_visualizer(snapshot.latest_chunk, active=snapshot.recording)
    render_caption(snapshot.caption)
    render_status(snapshot)
    if show_transcript and snapshot.full_transcript:
        st.subheader("Transcript")
        st.code(snapshot.full_transcript, language=None)
