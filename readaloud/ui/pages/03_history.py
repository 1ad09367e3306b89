"""
History page - list submitted recordings and play one back.
"""

# Ensure project root is on sys.path (Streamlit page files need this).
import sys as _sys; from pathlib import Path as _Path; _r = str(_Path(__file__).resolve().parents[3]); _r in _sys.path or _sys.path.insert(0, _r)  # noqa: E501,E702,I001

from datetime import datetime  # noqa: E402

import streamlit as st  # noqa: E402

from readaloud.core.utils import truncate_text  # noqa: E402
from readaloud.ui.api_client import APIError, get_api_client  # noqa: E402
from readaloud.ui.components.live_session import release_live_runners  # noqa: E402


def _format_date(value: str | None) -> str:
    if not value:
        return "N/A"
    return datetime.fromisoformat(value).strftime("%b %d, %Y %I:%M %p")


def _render_detail(client, recording_id: int) -> None:
    if st.button("← Back to History"):
        st.session_state.history_selected_id = None
        st.rerun()
    try:
        recording = client.get_recording(recording_id)
    except APIError as exc:
        st.error(exc.message)
        return

    st.header(f"Recording {recording['id']}")
    st.caption(_format_date(recording.get("submission_date")))
    if recording.get("s3_filepath"):
        # Signed URLs expire; ask for a fresh one on every view
        try:
            st.audio(client.get_signed_url(recording["s3_filepath"]))
        except APIError as exc:
            st.error(f"Audio unavailable: {exc.message}")
    else:
        st.warning("Audio for this recording is not available.")

    left, right = st.columns(2)
    with left:
        st.subheader("Script")
        st.write(recording.get("script_text") or "")
    with right:
        st.subheader("Transcription")
        st.write(recording.get("transcription") or "")
    if recording.get("accuracy_score") is not None:
        st.metric("Accuracy", f"{recording['accuracy_score']:.0%}")


def _render_list(client) -> None:
    st.header("Recording History")
    st.caption("View your previous recordings")
    try:
        recordings = client.list_recordings()
    except APIError as exc:
        st.error(exc.message)
        if st.button("Try Again"):
            st.rerun()
        return

    if not recordings:
        st.info("No recordings yet. Go to the Scripts page to get started.")
        return

    header = st.columns([2, 3, 3, 1])
    for column, title in zip(header, ["Date", "Script", "Transcription", ""], strict=True):
        column.markdown(f"**{title}**")
    for recording in recordings:
        date_col, script_col, text_col, action_col = st.columns([2, 3, 3, 1])
        date_col.write(_format_date(recording.get("submission_date")))
        script_col.write(truncate_text(recording.get("script_text"), 50))
        text_col.write(truncate_text(recording.get("transcription"), 50))
        if action_col.button("View", key=f"view_{recording['id']}"):
            st.session_state.history_selected_id = recording["id"]
            st.rerun()


# Playback only: no microphone or live connection on this page
release_live_runners()

client = get_api_client(st.session_state.api_base_url)
selected = st.session_state.get("history_selected_id")
if selected is None:
    _render_list(client)
else:
    _render_detail(client, selected)
