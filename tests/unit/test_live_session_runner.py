"""Tests for LiveSessionRunner, the thread bridge used by the Streamlit pages.

The runner owns its own event loop thread, so these tests are synchronous
and drive the fakes through ``_run`` on that loop.
"""

import gc
import threading
from unittest.mock import MagicMock, patch

import pytest

from readaloud.core.config import Settings
from readaloud.core.exceptions import InvalidStateError, MicrophonePermissionError
from readaloud.core.models import ConnectionState, MicrophoneState, SessionState
from readaloud.ui.components import live_session
from readaloud.ui.components.live_session import (
    PRACTICE_RUNNER_KEY,
    SCRIPT_RUNNER_KEY,
    LiveSessionRunner,
    LiveSnapshot,
    get_live_runner,
    release_live_runners,
)
from tests.fakes import FakeChannel, FakeMicrophone


async def _call(fn, *args):
    return fn(*args)


@pytest.fixture
def fakes():
    return {"microphone": FakeMicrophone(), "channel": FakeChannel()}


@pytest.fixture
def runner(fakes):
    runner = LiveSessionRunner(
        settings=Settings(caption_timeout_s=60.0, keep_alive_interval_s=60.0),
        initial_caption="Ready",
        microphone_factory=lambda: fakes["microphone"],
        channel_factory=lambda: fakes["channel"],
    )
    yield runner
    runner.shutdown()


def test_snapshot_before_start():
    runner = LiveSessionRunner(settings=Settings(), initial_caption="Hello")
    snap = runner.snapshot()
    assert snap == LiveSnapshot(caption="Hello")
    assert not snap.recording
    assert runner.wav_bytes() is None


def test_start_reaches_ready(runner):
    runner.start()
    snap = runner.snapshot()
    assert runner.running
    assert snap.session_state == SessionState.ready
    assert snap.microphone_state == MicrophoneState.ready
    assert snap.connection_state == ConnectionState.open
    assert snap.caption == "Ready"


def test_start_twice_keeps_one_thread(runner, fakes):
    runner.start()
    runner.start()
    assert fakes["channel"].connect_calls == 1


def test_toggle_streams_audio_and_captions(runner, fakes):
    runner.start()
    runner.toggle()
    assert runner.snapshot().recording

    runner._run(_call(fakes["microphone"].push, b"\x01\x00\x02\x00"))
    runner._run(_call(fakes["channel"].transcript, "hello there", True, True))

    snap = runner.snapshot()
    assert snap.latest_chunk == b"\x01\x00\x02\x00"
    assert snap.caption == "hello there"
    assert snap.transcript == "hello there"
    assert fakes["channel"].sent == [b"\x01\x00\x02\x00"]

    runner.toggle()
    assert runner.snapshot().microphone_state == MicrophoneState.paused
    assert runner.wav_bytes().startswith(b"RIFF")


def test_clear_resets_take(runner, fakes):
    runner.start()
    runner.toggle()
    runner._run(_call(fakes["microphone"].push, b"\x01\x00"))
    runner._run(_call(fakes["channel"].transcript, "take one", True, True))

    runner.clear("Start speaking")
    # Drain the loop so the scheduled clear has run
    runner._run(_call(lambda: None))

    snap = runner.snapshot()
    assert snap.caption == "Start speaking"
    assert snap.transcript == ""
    assert runner.wav_bytes() is None


def test_shutdown_releases_resources(runner, fakes):
    runner.start()
    runner.shutdown()
    assert not runner.running
    assert fakes["microphone"].released
    assert fakes["channel"].state == ConnectionState.closed
    # A second shutdown is a no-op
    runner.shutdown()


def test_permission_denied_stays_idle():
    channel = FakeChannel()
    runner = LiveSessionRunner(
        settings=Settings(),
        microphone_factory=lambda: FakeMicrophone(setup_error=MicrophonePermissionError()),
        channel_factory=lambda: channel,
    )
    try:
        runner.start()
        snap = runner.snapshot()
        assert snap.session_state == SessionState.idle
        assert snap.microphone_state == MicrophoneState.error
        assert channel.connect_calls == 0
    finally:
        runner.shutdown()


def test_shutdown_from_loop_thread(runner, fakes):
    runner.start()
    thread = runner._thread
    runner._run(_call(runner.shutdown))

    thread.join(timeout=5.0)
    assert not thread.is_alive()
    assert fakes["microphone"].released
    assert fakes["channel"].state == ConnectionState.closed


def test_commands_after_shutdown_raise(runner):
    runner.start()
    runner.shutdown()
    with pytest.raises(InvalidStateError):
        runner.toggle()


# ---------------------------------------------------------------------------
# Per-page runners in st.session_state
# ---------------------------------------------------------------------------


@pytest.fixture
def session_state():
    """Plain dict standing in for ``st.session_state``; runners are mocks."""
    state = {}

    def _make_runner(**kwargs):
        runner = MagicMock(name="LiveSessionRunner", running=False)
        runner.initial_caption = kwargs.get("initial_caption")
        return runner

    with (
        patch.object(live_session.st, "session_state", state),
        patch.object(live_session, "LiveSessionRunner", side_effect=_make_runner),
    ):
        yield state


class TestGetLiveRunner:
    def test_pages_get_separate_runners(self, session_state):
        practice = get_live_runner(PRACTICE_RUNNER_KEY)
        script = get_live_runner(SCRIPT_RUNNER_KEY, initial_caption="Script Mode - Start speaking")

        assert practice is not script
        assert script.initial_caption == "Script Mode - Start speaking"
        script.start.assert_called_once()

    def test_entering_a_page_releases_the_other(self, session_state):
        practice = get_live_runner(PRACTICE_RUNNER_KEY)
        get_live_runner(SCRIPT_RUNNER_KEY)

        practice.shutdown.assert_called_once()
        assert PRACTICE_RUNNER_KEY not in session_state
        assert f"{PRACTICE_RUNNER_KEY}_lease" not in session_state

    def test_same_page_reuses_runner(self, session_state):
        first = get_live_runner(SCRIPT_RUNNER_KEY)
        first.running = True
        assert get_live_runner(SCRIPT_RUNNER_KEY) is first
        first.start.assert_called_once()
        first.shutdown.assert_not_called()

    def test_release_all(self, session_state):
        practice = get_live_runner(PRACTICE_RUNNER_KEY)
        release_live_runners()
        practice.shutdown.assert_called_once()
        assert session_state == {}

    def test_dropped_session_state_shuts_runner_down(self, session_state):
        runner = get_live_runner(PRACTICE_RUNNER_KEY)
        session_state.clear()
        gc.collect()
        runner.shutdown.assert_called_once()


def test_no_threads_leak_after_release():
    before = {t.name for t in threading.enumerate()}
    runner = LiveSessionRunner(
        settings=Settings(),
        microphone_factory=FakeMicrophone,
        channel_factory=FakeChannel,
    )
    runner.start()
    runner.shutdown()
    after = {t.name for t in threading.enumerate()}
    assert "readaloud-live-session" not in after - before
