"""
Scripts page - read a prepared script aloud and submit the take.

UX flow: choose script -> record -> submit
"""

# Ensure project root is on sys.path (Streamlit page files need this).
import sys as _sys; from pathlib import Path as _Path; _r = str(_Path(__file__).resolve().parents[3]); _r in _sys.path or _sys.path.insert(0, _r)  # noqa: E501,E702,I001

import logging  # noqa: E402

import streamlit as st  # noqa: E402

from readaloud.core.exceptions import UploadValidationError  # noqa: E402
from readaloud.ui.api_client import APIError, get_api_client  # noqa: E402
from readaloud.ui.components.live_session import (  # noqa: E402
    SCRIPT_RUNNER_KEY,
    get_live_runner,
    release_live_runners,
)
from readaloud.ui.components.session_view import render_live_panel, render_toggle  # noqa: E402

logger = logging.getLogger(__name__)

SCRIPT_CAPTION = "Script Mode - Start speaking"

SCRIPTS = [
    {
        "id": "1",
        "title": "Introduction Speech",
        "content": (
            "Hello everyone, my name is [Your Name]. I'm excited to be here today to talk "
            "about [Topic]. In the next few minutes, I'll share some insights about "
            "[Main Point 1], [Main Point 2], and [Main Point 3]. Let's get started!"
        ),
    },
    {
        "id": "2",
        "title": "Product Presentation",
        "content": (
            "Today I'm thrilled to introduce our newest product, [Product Name]. This "
            "innovative solution addresses [Problem] by providing [Solution]. Our customers "
            "have already seen [Benefit 1] and [Benefit 2]. Let me walk you through the key "
            "features..."
        ),
    },
    {
        "id": "3",
        "title": "Technical Explanation",
        "content": (
            "The system architecture consists of three main components: the frontend "
            "interface, the middleware processing layer, and the database backend. When a "
            "user initiates a request, it first passes through the authentication module "
            "before being routed to the appropriate service handler..."
        ),
    },
]

_SCRIPTS_BY_ID = {script["id"]: script for script in SCRIPTS}


def _render_script_picker() -> None:
    st.header("Script Recording")
    st.caption("Select a script to practice and record")
    columns = st.columns(len(SCRIPTS))
    for column, script in zip(columns, SCRIPTS, strict=True):
        with column:
            st.subheader(script["title"])
            st.write(script["content"][:100] + "...")
            if st.button("Choose", key=f"choose_{script['id']}", use_container_width=True):
                st.session_state.selected_script_id = script["id"]
                # A new script starts from an empty take
                runner = st.session_state.get(SCRIPT_RUNNER_KEY)
                if runner is not None:
                    runner.clear(SCRIPT_CAPTION)
                st.rerun()


def _submit(runner, script: dict) -> None:
    client = get_api_client(st.session_state.api_base_url)
    snapshot = runner.snapshot()
    try:
        client.upload_recording(
            runner.wav_bytes(),
            script_id=script["id"],
            script_text=script["content"],
            transcription=snapshot.full_transcript,
        )
    except (UploadValidationError, APIError) as exc:
        logger.error("Upload failed for script %s: %s", script["id"], exc)
        st.error(f"Failed to save recording. Please try again. ({exc})")
        return
    st.success("Recording submitted successfully!")
    runner.clear(SCRIPT_CAPTION)


def _render_script(script: dict) -> None:
    header, back = st.columns([4, 1])
    with header:
        st.header(script["title"])
        st.caption("Read the script and record your voice")
    with back:
        if st.button("← Back to Scripts", use_container_width=True):
            st.session_state.selected_script_id = None
            st.rerun()

    runner = get_live_runner(SCRIPT_RUNNER_KEY, initial_caption=SCRIPT_CAPTION)
    snapshot = runner.snapshot()

    left, right = st.columns(2)
    with left:
        st.subheader("Script")
        st.info(script["content"])
    with right:
        render_toggle(runner, snapshot, key="script_toggle")
        render_live_panel(runner, show_transcript=False)
        if st.button(
            "Submit recording",
            disabled=snapshot.recording,
            use_container_width=True,
        ):
            with st.spinner("Uploading..."):
                _submit(runner, script)


release_live_runners(keep=SCRIPT_RUNNER_KEY)

script = _SCRIPTS_BY_ID.get(st.session_state.get("selected_script_id"))
if script is None:
    _render_script_picker()
else:
    _render_script(script)
