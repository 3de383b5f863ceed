"""
Main voicecue application.
Runs the web server that hosts the tracking pipeline for browser clients.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
from datetime import datetime
from pathlib import Path

from . import debug_log
from .config import (
    Config,
    get_config_path,
    get_server_settings,
    load_config,
    save_config,
    session_options_from_config,
    update_config_section,
)
from .server import WebServer
from .session import SessionOptions

logger = logging.getLogger(__name__)


# Transcript files location (in the working directory)
TRANSCRIPT_DIR = Path.cwd() / "transcripts"


class VoicecueApp:
    """
    Main voicecue application that owns the server and its lifetime.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        options: SessionOptions | None = None,
        save_transcript: bool = False
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.options: SessionOptions = options or SessionOptions()
        self.save_transcript: bool = save_transcript

        self.server: WebServer | None = None
        self.transcript_file: Path | None = None
        self.running: bool = False
        self._shutdown: asyncio.Event | None = None

    def write_transcript(self, text: str, is_final: bool) -> None:
        """Write recognized text to the transcript file."""
        if not self.save_transcript or not self.transcript_file:
            return
        # Only final results, interims would duplicate them
        if is_final and text.strip():
            with open(self.transcript_file, 'a', encoding='utf-8') as f:
                f.write(f"{text}\n")

    def _open_transcript(self) -> None:
        TRANSCRIPT_DIR.mkdir(exist_ok=True)
        timestamp: str = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.transcript_file = TRANSCRIPT_DIR / f"transcript_{timestamp}.txt"
        with open(self.transcript_file, 'w', encoding='utf-8') as f:
            f.write(
                f"=== Transcript started at {datetime.now().isoformat()} ===\n\n")
        print(f"Transcript recording started: {self.transcript_file}")

    async def start(self) -> None:
        """Start the server and run until shutdown is requested."""
        print("Starting Voicecue...")
        self._shutdown = asyncio.Event()

        if self.save_transcript:
            self._open_transcript()

        self.server = WebServer(host=self.host, port=self.port, options=self.options)
        self.server.transcript_listener = self.write_transcript
        await self.server.start()
        self.running = True

        print("\n✓ Voicecue ready!")
        print(f"  Connect a client to ws://{self.host}:{self.port}/ws")
        print("  Press Ctrl+C to stop\n")

        await self._shutdown.wait()

    def request_shutdown(self) -> None:
        self.running = False
        if self._shutdown is not None:
            self._shutdown.set()

    async def stop(self) -> None:
        """Stop the voicecue application."""
        print("\nStopping Voicecue...")
        self.running = False

        if self.server:
            await self.server.stop()

        if self.transcript_file:
            with open(self.transcript_file, 'a', encoding='utf-8') as f:
                f.write(
                    f"\n=== Transcript ended at {datetime.now().isoformat()} ===\n")
            print(f"Transcript saved: {self.transcript_file}")

        print("Voicecue stopped.")


def main() -> None:
    """Main entry point."""
    # Configure logging - minimal console output
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    # Load config first to use as defaults
    config: Config = load_config()
    server_settings = get_server_settings(config)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Voicecue - speech-following teleprompter scroll engine"
    )

    parser.add_argument(
        "--host",
        default=server_settings.get("host", "127.0.0.1"),
        help="Web server host (default: from config or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=server_settings.get("port", 8000),
        help="Web server port (default: from config or 8000)"
    )

    parser.add_argument(
        "--caret",
        type=float,
        default=None,
        help="Reading point as %% of screen height from the top (10-90)"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--save-transcript",
        action="store_true",
        help="Save a transcript of all final recognized speech to ./transcripts/"
    )

    parser.add_argument(
        "--debug-log",
        action="store_true",
        help="Enable debug logging to ./logs/"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show info-level log output"
    )

    args: argparse.Namespace = parser.parse_args()

    if args.verbose:
        logging.getLogger("voicecue").setLevel(logging.INFO)

    config = update_config_section(config, "server", {"host": args.host, "port": args.port})
    if args.caret is not None:
        config = update_config_section(config, "motion", {"caret_percent": args.caret})

    if args.save_config:
        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    # Enable debug logging if requested
    if args.debug_log:
        debug_log.enable()
        debug_log.clear_logs()
        print("Debug logging enabled (logs will be saved to ./logs/)")

    app: VoicecueApp = VoicecueApp(
        host=args.host,
        port=args.port,
        options=session_options_from_config(config),
        save_transcript=args.save_transcript
    )

    # Handle shutdown gracefully
    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        loop.call_soon_threadsafe(app.request_shutdown)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        app.running = False
    finally:
        # Ensure clean shutdown
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
        # Cancel any remaining tasks
        pending: set[asyncio.Task[object]] = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        # Allow cancelled tasks to complete
        if pending:
            loop.run_until_complete(asyncio.gather(
                *pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
