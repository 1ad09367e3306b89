"""
Practice page - free-form live session with captions and downloads.
"""

# Ensure project root is on sys.path (Streamlit page files need this).
import sys as _sys; from pathlib import Path as _Path; _r = str(_Path(__file__).resolve().parents[3]); _r in _sys.path or _sys.path.insert(0, _r)  # noqa: E501,E702,I001

import streamlit as st  # noqa: E402

from readaloud.ui.components.live_session import (  # noqa: E402
    PRACTICE_RUNNER_KEY,
    get_live_runner,
)
from readaloud.ui.components.session_view import render_live_panel, render_toggle  # noqa: E402

st.header("Practice")
st.caption("Speak freely and watch the live captions.")

runner = get_live_runner(PRACTICE_RUNNER_KEY)
snapshot = runner.snapshot()

render_toggle(runner, snapshot, key="practice_toggle")
render_live_panel(runner)

col1, col2, col3 = st.columns(3)
with col1:
    wav = runner.wav_bytes()
    st.download_button(
        "Download audio",
        data=wav or b"",
        file_name="recording.wav",
        mime="audio/wav",
        disabled=wav is None or snapshot.recording,
        use_container_width=True,
    )
with col2:
    st.download_button(
        "Download transcript",
        data=snapshot.transcript,
        file_name="transcript.txt",
        mime="text/plain",
        disabled=not snapshot.transcript.strip(),
        use_container_width=True,
    )
with col3:
    if st.button("New take", disabled=snapshot.recording, use_container_width=True):
        runner.clear()
        st.rerun()
