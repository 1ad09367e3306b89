#!/usr/bin/env python3
"""
ReadAloud terminal caption runner

Opens the default microphone, streams it to the live transcription
service and prints captions as they arrive. On exit the take can be
saved locally and/or submitted to the backend.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from readaloud.core.config import get_settings  # noqa: E402
from readaloud.core.exceptions import ReadAloudError  # noqa: E402
from readaloud.core.logging import configure_logging  # noqa: E402
from readaloud.core.models import SessionState  # noqa: E402
from readaloud.services.audio import create_microphone  # noqa: E402
from readaloud.services.session import SessionCoordinator  # noqa: E402
from readaloud.services.transcription import create_channel  # noqa: E402

logger = logging.getLogger("live_captions")


def print_caption(caption: str | None) -> None:
    if caption:
        print(f"\r\033[K{caption}", end="", flush=True)
    else:
        print("\r\033[K", end="", flush=True)


def print_final(full_transcript: str) -> None:
    print(f"\r\033[K> {full_transcript.splitlines()[-1]}", flush=True)


async def run(args: argparse.Namespace) -> SessionCoordinator:
    """Capture until the duration elapses or the user interrupts."""
    settings = get_settings()
    microphone = create_microphone(
        sample_rate=settings.sample_rate,
        chunk_interval_ms=settings.chunk_interval_ms,
        device=args.device,
    )
    channel = create_channel(settings.transcription_provider)
    session = SessionCoordinator(
        microphone,
        channel,
        options=settings.live_options(),
        caption_timeout=settings.caption_timeout_s,
        keep_alive_interval=settings.keep_alive_interval_s,
        initial_caption=None,
        on_caption=print_caption,
        on_transcript=print_final,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, stop.set)

    async with session:
        await session.start_microphone()
        if session.state != SessionState.streaming:
            print("Could not start streaming; see the log for details.", file=sys.stderr)
            return session
        print("Listening... press Ctrl+C to stop.\n")
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(stop.wait(), timeout=args.duration)
        await session.stop_microphone()
    print()
    return session


def save_outputs(session: SessionCoordinator, args: argparse.Namespace) -> None:
    if args.output:
        path = session.save_recording(args.output)
        print(f"Audio saved: {path}" if path else "No audio captured.")
    if args.transcript:
        path = session.save_transcript(args.transcript)
        print(f"Transcript saved: {path}" if path else "Transcript is empty; nothing saved.")
    if args.upload:
        from readaloud.ui.api_client import APIClient, APIError

        client = APIClient(args.api_url or get_settings().api_base_url)
        try:
            client.upload_recording(
                session.wav_bytes(),
                script_id=args.script_id,
                script_text=args.script_text or "",
                transcription=session.full_transcript,
            )
            print("Recording submitted.")
        except (APIError, ReadAloudError) as exc:
            logger.error("Upload failed: %s", exc)
            sys.exit(1)
        finally:
            client.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Print live captions from the microphone",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: until Ctrl+C)",
    )

    parser.add_argument(
        "--device",
        type=str,
        default=None,
        help="Input device index or name (default: system default)",
    )

    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Save the captured audio as WAV",
    )

    parser.add_argument(
        "--transcript",
        type=Path,
        default=None,
        help="Save the finalized transcript as text",
    )

    parser.add_argument(
        "--upload",
        action="store_true",
        help="Submit the take to the backend (requires --script-id)",
    )

    parser.add_argument("--script-id", type=str, default=None)
    parser.add_argument("--script-text", type=str, default=None)
    parser.add_argument("--api-url", type=str, default=None)

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )

    args = parser.parse_args()
    if args.upload and not args.script_id:
        parser.error("--upload requires --script-id")
    if args.device is not None and args.device.isdigit():
        args.device = int(args.device)

    configure_logging(args.log_level or get_settings().log_level)

    session = asyncio.run(run(args))
    save_outputs(session, args)


if __name__ == "__main__":
    main()
