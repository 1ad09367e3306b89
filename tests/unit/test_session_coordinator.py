"""Tests for the SessionCoordinator state machine.

Runs the coordinator against ``FakeMicrophone`` and ``FakeChannel`` so every
microphone and connection transition is driven by the test.
"""

import asyncio

import pytest

from readaloud.core.exceptions import InvalidStateError
from readaloud.core.models import ConnectionState, MicrophoneState, SessionState
from readaloud.services.audio.base import MicrophoneEvent
from readaloud.services.session import SessionBuffer, SessionCoordinator
from readaloud.services.transcription.base import ChannelEvent
from tests.fakes import FakeChannel


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
async def session(microphone, channel):
    coordinator = SessionCoordinator(
        microphone,
        channel,
        caption_timeout=0.05,
        keep_alive_interval=10.0,
        initial_caption="Powered by Deepgram",
    )
    yield coordinator
    await coordinator.close()


async def _streaming(session: SessionCoordinator) -> None:
    await session.start()
    await session.toggle_microphone()
    assert session.state == SessionState.streaming


# ---------------------------------------------------------------------------
# SessionBuffer
# ---------------------------------------------------------------------------


class TestSessionBuffer:
    def test_append_final_joins_fragments(self):
        buffer = SessionBuffer()
        buffer.append_final("one")
        buffer.append_final("two")
        assert buffer.transcript_chunks == "one two"
        assert buffer.full_transcript == "one\ntwo"

    def test_audio_bytes_empty(self):
        assert SessionBuffer().audio_bytes() is None


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestStart:
    async def test_start_reaches_ready_and_connects(self, session, microphone, channel):
        await session.start()
        assert session.state == SessionState.ready
        assert microphone.state == MicrophoneState.ready
        assert channel.state == ConnectionState.open
        assert channel.connect_calls == 1

    async def test_permission_denied_returns_to_idle(self, denied_microphone, channel):
        transitions = []
        session = SessionCoordinator(
            denied_microphone,
            channel,
            on_state_change=lambda old, new: transitions.append((old, new)),
        )
        await session.start()
        assert session.state == SessionState.idle
        assert denied_microphone.state == MicrophoneState.error
        assert channel.connect_calls == 0
        assert transitions == [
            (SessionState.idle, SessionState.setting_up),
            (SessionState.setting_up, SessionState.idle),
        ]
        await session.close()

    async def test_start_after_close_raises(self, session):
        await session.close()
        with pytest.raises(InvalidStateError):
            await session.start()

    async def test_connect_failure_keeps_session_ready(self, microphone):
        channel = FakeChannel(fail_connect=True)
        async with SessionCoordinator(microphone, channel) as session:
            await session.start()
            assert session.state == SessionState.ready
            assert channel.state == ConnectionState.error
            assert not session.connect_pending


class TestMicrophoneToggle:
    async def test_toggle_streams_then_pauses(self, session, microphone):
        await _streaming(session)
        assert microphone.is_open

        await session.toggle_microphone()
        assert session.state == SessionState.paused
        assert microphone.state == MicrophoneState.paused

        await session.toggle_microphone()
        assert session.state == SessionState.streaming

    async def test_toggle_from_idle_runs_setup(self, session, microphone, channel):
        await session.toggle_microphone()
        assert session.state == SessionState.streaming
        assert channel.connect_calls == 1

    async def test_microphone_not_started_when_connect_fails(self, microphone):
        channel = FakeChannel(fail_connect=True)
        async with SessionCoordinator(microphone, channel) as session:
            await session.start()
            await session.toggle_microphone()
            assert channel.connect_calls == 2
            assert not microphone.is_open
            assert session.state == SessionState.ready

            # Manual retry succeeds once the provider is reachable again
            channel.fail_connect = False
            await session.toggle_microphone()
            assert channel.connect_calls == 3
            assert session.state == SessionState.streaming

    async def test_channel_drop_pauses_streaming(self, session, channel):
        await _streaming(session)
        channel.drop()
        assert session.state == SessionState.paused
        assert channel.listener_count(ChannelEvent.transcript) == 0

    async def test_toggle_reconnects_after_drop(self, session, channel, microphone):
        await _streaming(session)
        await session.stop_microphone()
        channel.drop()
        await session.toggle_microphone()
        assert channel.connect_calls == 2
        assert session.state == SessionState.streaming


class TestConnectGuard:
    async def test_single_connect_in_flight(self, session, channel):
        channel.gate = asyncio.Event()
        start = asyncio.create_task(session.start())
        await _settle()
        assert session.connect_pending

        second = asyncio.create_task(session.connect())
        third = asyncio.create_task(session.start_microphone())
        await _settle()
        assert channel.connect_calls == 1

        channel.gate.set()
        await asyncio.gather(start, second, third)
        assert channel.connect_calls == 1
        assert not session.connect_pending
        assert session.state == SessionState.streaming

    async def test_no_connect_when_already_open(self, session, channel):
        await session.start()
        await session.connect()
        await session.connect()
        assert channel.connect_calls == 1


# ---------------------------------------------------------------------------
# Audio forwarding
# ---------------------------------------------------------------------------


class TestAudioForwarding:
    async def test_zero_length_chunk_never_forwarded(self, session, microphone, channel):
        await _streaming(session)
        microphone.push(b"")
        microphone.push(b"\x01\x02")
        microphone.push(b"")
        microphone.push(b"\x03\x04")
        assert channel.sent == [b"\x01\x02", b"\x03\x04"]
        assert session.audio_bytes() == b"\x01\x02\x03\x04"

    async def test_chunks_ignored_while_paused(self, session, microphone, channel):
        await _streaming(session)
        await session.stop_microphone()
        microphone.push(b"\x01\x02")
        assert channel.sent == []
        assert session.audio_bytes() is None

    async def test_audio_bytes_none_without_chunks(self, session):
        await session.start()
        assert session.audio_bytes() is None
        assert session.wav_bytes() is None


# ---------------------------------------------------------------------------
# Captions and transcript
# ---------------------------------------------------------------------------


class TestTranscript:
    async def test_initial_caption(self, session):
        assert session.caption == "Powered by Deepgram"

    async def test_finalized_buffer_is_append_only(self, session, channel):
        await _streaming(session)
        snapshots = []

        events = [
            ("hel", False, False),
            ("hello", True, False),
            ("hello world", True, True),
            ("   ", True, True),
            ("ignored interim", False, True),
            ("second line", True, True),
        ]
        for text, is_final, speech_final in events:
            channel.transcript(text, is_final=is_final, speech_final=speech_final)
            snapshots.append(session.full_transcript)

        assert session.full_transcript == "hello world\nsecond line"
        assert session.transcript_text() == "hello world second line"
        for earlier, later in zip(snapshots, snapshots[1:], strict=False):
            assert later.startswith(earlier)

    async def test_interim_updates_caption(self, session, channel):
        await _streaming(session)
        channel.transcript("  partial words ")
        assert session.caption == "partial words"
        assert session.full_transcript == ""

    async def test_empty_text_keeps_caption(self, session, channel):
        await _streaming(session)
        channel.transcript("visible")
        channel.transcript("")
        assert session.caption == "visible"

    async def test_on_transcript_callback(self, microphone, channel):
        received = []
        async with SessionCoordinator(
            microphone, channel, on_transcript=received.append
        ) as session:
            await _streaming(session)
            channel.transcript("first", is_final=True, speech_final=True)
            channel.transcript("second", is_final=True, speech_final=True)
        assert received == ["first", "first\nsecond"]

    async def test_events_after_stop_are_not_appended(self, session, channel):
        await _streaming(session)
        await session.stop_microphone()
        channel.transcript("late", is_final=True, speech_final=True)
        assert session.full_transcript == ""


class TestCaptionExpiry:
    async def test_caption_clears_after_timeout(self, session, channel):
        await _streaming(session)
        channel.transcript("done", is_final=True, speech_final=True)
        assert session.caption == "done"
        await asyncio.sleep(0.1)
        assert session.caption is None

    async def test_new_event_resets_timer(self, microphone, channel):
        async with SessionCoordinator(microphone, channel, caption_timeout=0.2) as session:
            await _streaming(session)
            channel.transcript("first", is_final=True, speech_final=True)
            await asyncio.sleep(0.15)
            channel.transcript("still talking")
            # Past the original expiry mark
            await asyncio.sleep(0.1)
            assert session.caption == "still talking"

    async def test_interim_does_not_arm_timer(self, session, channel):
        await _streaming(session)
        channel.transcript("thinking")
        await asyncio.sleep(0.1)
        assert session.caption == "thinking"

    async def test_stop_cancels_pending_expiry(self, session, channel):
        await _streaming(session)
        channel.transcript("done", is_final=True, speech_final=True)
        await session.stop_microphone()
        await asyncio.sleep(0.1)
        assert session.caption == "done"


# ---------------------------------------------------------------------------
# Keep-alive
# ---------------------------------------------------------------------------


class TestKeepAlive:
    async def test_active_iff_channel_open_and_microphone_closed(self, session, channel):
        assert not session.keep_alive_active

        await session.start()
        assert session.keep_alive_active
        assert channel.keep_alive_calls == 1

        await session.toggle_microphone()
        assert not session.keep_alive_active

        await session.toggle_microphone()
        assert session.keep_alive_active
        assert channel.keep_alive_calls == 2

        channel.drop()
        assert not session.keep_alive_active

    async def test_keep_alive_repeats_every_interval(self, microphone, channel):
        async with SessionCoordinator(microphone, channel, keep_alive_interval=0.02) as session:
            await session.start()
            await asyncio.sleep(0.09)
            assert channel.keep_alive_calls >= 3

    async def test_no_keep_alive_while_streaming(self, microphone, channel):
        async with SessionCoordinator(microphone, channel, keep_alive_interval=0.01) as session:
            await _streaming(session)
            calls = channel.keep_alive_calls
            await asyncio.sleep(0.05)
            assert channel.keep_alive_calls == calls


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------


class TestClose:
    async def test_close_releases_everything(self, session, microphone, channel):
        await _streaming(session)
        channel.transcript("bye", is_final=True, speech_final=True)

        await session.close()

        assert session.state == SessionState.ended
        assert microphone.state == MicrophoneState.not_setup
        assert microphone.released
        assert channel.state == ConnectionState.closed
        assert not session.keep_alive_active
        assert microphone.listener_count(MicrophoneEvent.data_available) == 0
        assert microphone.listener_count(MicrophoneEvent.state_change) == 0
        assert channel.listener_count(ChannelEvent.transcript) == 0
        assert channel.listener_count(ChannelEvent.state_change) == 0

        # Pending caption expiry was cancelled along with the listeners
        await asyncio.sleep(0.1)
        assert session.caption == "bye"

    async def test_close_is_idempotent(self, session, channel):
        await session.start()
        await session.close()
        await session.close()
        assert channel.disconnect_calls == 1

    async def test_close_cancels_pending_connect(self, session, channel):
        channel.gate = asyncio.Event()
        start = asyncio.create_task(session.start())
        await _settle()
        assert session.connect_pending

        await session.close()
        await start
        assert session.state == SessionState.ended
        assert not session.connect_pending

    async def test_start_microphone_after_close_raises(self, session):
        await session.close()
        with pytest.raises(InvalidStateError):
            await session.start_microphone()


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class TestOutputs:
    async def test_save_recording_and_transcript(self, session, microphone, channel, tmp_path):
        await _streaming(session)
        microphone.push(b"\x00\x01" * 160)
        channel.transcript("saved words", is_final=True, speech_final=True)

        wav_path = session.save_recording(tmp_path / "take.wav")
        text_path = session.save_transcript(tmp_path / "take.txt")

        assert wav_path is not None
        assert (tmp_path / "take.wav").read_bytes()[:4] == b"RIFF"
        assert text_path is not None
        assert (tmp_path / "take.txt").read_text(encoding="utf-8") == "saved words"

    async def test_blank_transcript_not_saved(self, session, tmp_path):
        await session.start()
        assert session.save_transcript(tmp_path / "empty.txt") is None
        assert not (tmp_path / "empty.txt").exists()
        assert session.save_recording(tmp_path / "empty.wav") is None

    async def test_clear_buffer(self, session, microphone, channel):
        await _streaming(session)
        microphone.push(b"\x01\x02")
        channel.transcript("gone", is_final=True, speech_final=True)

        session.clear_buffer(caption="Start speaking")

        assert session.audio_bytes() is None
        assert session.full_transcript == ""
        assert session.caption == "Start speaking"
