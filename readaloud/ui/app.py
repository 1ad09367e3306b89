"""
ReadAloud Streamlit UI - main entry point.

Run with: ``streamlit run readaloud/ui/app.py``
"""

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path so ``from readaloud.xxx`` imports work.
# Streamlit replaces sys.path[0] with the script directory (readaloud/ui/),
# which removes the project root needed for absolute ``readaloud.*`` imports.
# ---------------------------------------------------------------------------
import sys  # noqa: E402
from pathlib import Path  # noqa: E402

_project_root = str(Path(__file__).resolve().parent.parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import streamlit as st  # noqa: E402

from readaloud.core.config import get_settings  # noqa: E402
from readaloud.core.logging import configure_logging  # noqa: E402
from readaloud.ui.api_client import get_api_client  # noqa: E402

_settings = get_settings()
configure_logging(_settings.log_level)

# ---------------------------------------------------------------------------
# Page config (must be first Streamlit call)
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="ReadAloud",
    page_icon="\U0001f399️",
    layout="wide",
)

# ---------------------------------------------------------------------------
# Session state defaults
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "api_base_url": _settings.api_base_url,
    "selected_script_id": None,
    "history_selected_id": None,
}

for key, value in _DEFAULTS.items():
    if key not in st.session_state:
        st.session_state[key] = value

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
with st.sidebar:
    st.title("\U0001f399️ ReadAloud")
    st.caption("Practice reading scripts aloud with live captions")
    st.divider()
    st.session_state.api_base_url = st.text_input(
        "Backend API URL",
        value=st.session_state.api_base_url,
        help="URL of the ReadAloud FastAPI backend server (default: http://localhost:8000)",
    )

    # Connection status indicator
    _client = get_api_client(st.session_state.api_base_url)
    _conn_ok, _conn_msg = _client.check_connection()
    if _conn_ok:
        st.success(f"Backend: {_conn_msg}")
    else:
        st.error(f"Backend: {_conn_msg}")

    if not _settings.deepgram_api_key:
        st.warning("DEEPGRAM_API_KEY is not set; live captions are unavailable.")

# ---------------------------------------------------------------------------
# Navigation (multipage)
# ---------------------------------------------------------------------------
practice_page = st.Page(
    "pages/01_practice.py",
    title="Practice",
    icon="\U0001f3a4",
    default=True,
)
scripts_page = st.Page(
    "pages/02_scripts.py",
    title="Scripts",
    icon="\U0001f4c4",
)
history_page = st.Page(
    "pages/03_history.py",
    title="History",
    icon="\U0001f4cb",
)

nav = st.navigation([practice_page, scripts_page, history_page])
nav.run()
