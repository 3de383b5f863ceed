# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Web server for the voicecue pipeline.
Handles WebSocket connections from the browser client, which supplies both
the transcripts (from its speech recognizer) and the rendering; the server
runs matching, tracking and scroll motion and sends back offsets and
highlight spans.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from . import debug_log
from .motion import MAX_CARET_PERCENT, MIN_CARET_PERCENT, ScrollState
from .session import HighlightSpan, PromptSession, SessionOptions, TranscriptOutcome
from .viewport import RemoteViewport

logger = logging.getLogger(__name__)

MessageHandler = Callable[[web.WebSocketResponse, dict[str, Any]], Awaitable[None]]


def _number(value: object, default: float) -> float:
    """Read a numeric message field, falling back to default when malformed."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


class WebServer:
    """
    Serves the voicecue WebSocket and runs one prompting session.

    All connected clients share the session: any of them may send
    transcripts or controls, and every update is broadcast to all.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        options: SessionOptions | None = None
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.options: SessionOptions = options or SessionOptions()
        self.app: web.Application = web.Application()
        self.websockets: set[web.WebSocketResponse] = set()
        self.runner: web.AppRunner | None = None

        # Current state
        self.script_text: str = ""
        self.caret_percent: float = self.options.motion.caret_percent
        self.viewport: RemoteViewport = RemoteViewport(self._on_scroll)
        self.session: PromptSession | None = None
        self._pending: set[asyncio.Task] = set()
        # Called with every transcript received, e.g. to save it
        self.transcript_listener: Callable[[str, bool], None] | None = None

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self.app.router.add_get('/ws', self._handle_websocket)
        self.app.router.add_post('/script', self._handle_script_upload)

    # --- Session management ---

    def load_script(self, text: str) -> PromptSession:
        """Replace the current session with one for a new script."""
        if self.session is not None:
            self.session.stop()
        self.script_text = text
        session = PromptSession(text, viewport=self.viewport, options=self.options)
        session.set_caret_percent(self.caret_percent)
        if session.motion is not None:
            # New script starts at its first word
            self.viewport.scroll_top = session.motion.position_to_offset(0)
        session.on_highlight(self._on_highlight)
        session.on_state_change(self._on_state_change)
        self.session = session
        debug_log.clear_logs()
        logger.info("Loaded script (%d words)", session.total_words)
        return session

    def _schedule(self, message: dict[str, Any]) -> None:
        """Broadcast from synchronous callbacks (frame loop, session listeners)."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, dropping %s message", message.get("type"))
            return
        task = loop.create_task(self.broadcast(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _on_scroll(self, offset: float) -> None:
        self._schedule({"type": "scroll", "scrollTop": offset})

    def _on_highlight(self, span: HighlightSpan) -> None:
        self._schedule({
            "type": "highlight",
            "position": span.position,
            "startPosition": span.start_position,
            "startOffset": span.start_offset,
            "endOffset": span.end_offset
        })

    def _on_state_change(self, state: ScrollState) -> None:
        self._schedule({"type": "tracking_state", "state": state.value})

    def _position_message(self, outcome: TranscriptOutcome | None = None) -> dict[str, Any]:
        session: PromptSession | None = self.session
        message: dict[str, Any] = {
            "type": "position",
            "confirmedPosition": session.confirmed_position if session else 0,
            "totalWords": session.total_words if session else 0,
            "progress": session.progress if session else 0.0,
        }
        if outcome is not None:
            message["action"] = outcome.track.action.value
            message["confidence"] = outcome.confidence_level
            message["isFinal"] = outcome.is_final
            if outcome.track.candidate_position is not None:
                message["candidatePosition"] = outcome.track.candidate_position
                message["consecutiveCount"] = outcome.track.consecutive_count
                message["requiredCount"] = outcome.track.required_count
        return message

    # --- HTTP / WebSocket ---

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connections for real-time updates."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.websockets.add(ws)
        logger.info("WebSocket connected. Total: %d", len(self.websockets))

        try:
            # Send current state
            await ws.send_json({
                "type": "init",
                "script": self.script_text,
                "totalWords": self.session.total_words if self.session else 0,
                "confirmedPosition": self.session.confirmed_position if self.session else 0,
                "caretPercent": self.caret_percent,
                "state": self.session.state.value if self.session else ScrollState.STOPPED.value
            })

            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError as e:
                        logger.warning("Ignoring malformed WebSocket message: %s", e)
                        continue
                    if isinstance(data, dict):
                        await self._handle_ws_message(ws, data)
                elif msg.type == web.WSMsgType.ERROR:
                    logger.error("WebSocket error: %s", ws.exception())
        finally:
            self.websockets.discard(ws)
            logger.info("WebSocket disconnected. Total: %d", len(self.websockets))

        return ws

    async def _handle_ws_message(self, ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle incoming WebSocket messages using dispatch pattern."""
        msg_type: object | None = data.get("type")
        if not msg_type:
            return

        # Message type to handler dispatch
        handlers: dict[str, MessageHandler] = {
            "script": self._on_script_message,
            "viewport": self._on_viewport_message,
            "transcript": self._on_transcript_message,
            "start": self._on_start_message,
            "stop": self._on_stop_message,
            "reset": self._on_reset_message,
            "caret": self._on_caret_message,
            "snapshot": self._on_snapshot_message,
        }

        handler: MessageHandler | None = handlers.get(str(msg_type))
        if handler:
            await handler(ws, data)
        else:
            logger.warning("Unhandled WebSocket message: %s", msg_type)

    async def _on_script_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle script update message."""
        self.load_script(str(data.get("text", "")))
        await self._broadcast_script()

    async def _on_viewport_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle viewport dimensions reported by the client."""
        scroll_top: object | None = data.get("scrollTop")
        self.viewport.update_dimensions(
            _number(data.get("scrollHeight"), self.viewport.scroll_height),
            _number(data.get("clientHeight"), self.viewport.client_height),
            None if scroll_top is None else _number(scroll_top, self.viewport.scroll_top)
        )

    async def _on_transcript_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle a transcript from the client's speech recognizer."""
        if self.session is None:
            logger.debug("Transcript received before any script was loaded")
            return
        text: str = str(data.get("text", ""))
        is_final: bool = data.get("isFinal") is True
        if self.transcript_listener is not None:
            self.transcript_listener(text, is_final)
        outcome: TranscriptOutcome | None = self.session.handle_transcript(text, is_final)
        if outcome is None:
            return
        await self.broadcast(self._position_message(outcome))

    async def _on_start_message(self, _ws: web.WebSocketResponse, _data: dict[str, Any]) -> None:
        """Handle start prompting message."""
        if self.session is not None:
            self.session.start()
            logger.info("Prompting started")

    async def _on_stop_message(self, _ws: web.WebSocketResponse, _data: dict[str, Any]) -> None:
        """Handle stop prompting message."""
        if self.session is not None:
            self.session.stop()
            logger.info("Prompting stopped")

    async def _on_reset_message(self, _ws: web.WebSocketResponse, _data: dict[str, Any]) -> None:
        """Handle reset message."""
        if self.session is not None:
            self.session.reset()
        await self.broadcast(self._position_message())

    async def _on_caret_message(self, _ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle caret position change."""
        percent: float = _number(data.get("percent"), self.caret_percent)
        self.caret_percent = max(MIN_CARET_PERCENT, min(MAX_CARET_PERCENT, percent))
        if self.session is not None:
            self.session.set_caret_percent(self.caret_percent)

    async def _on_snapshot_message(self, ws: web.WebSocketResponse, _data: dict[str, Any]) -> None:
        """Send a debug snapshot to the requesting client."""
        snapshot: dict[str, Any] | None = self.session.snapshot() if self.session else None
        await ws.send_json({"type": "snapshot", "snapshot": snapshot})

    async def _broadcast_script(self) -> None:
        session: PromptSession | None = self.session
        await self.broadcast({
            "type": "script_loaded",
            "script": self.script_text,
            "totalWords": session.total_words if session else 0,
            "words": list(session.index.words) if session else []
        })

    async def _handle_script_upload(self, request: web.Request) -> web.Response:
        """Handle script upload via POST."""
        try:
            data: object = await request.json()
        except json.JSONDecodeError as e:
            return web.json_response({"status": "error", "message": str(e)}, status=400)
        if not isinstance(data, dict):
            return web.json_response({"status": "error", "message": "expected an object"}, status=400)

        session: PromptSession = self.load_script(str(data.get("text", "")))
        await self._broadcast_script()
        return web.json_response({"status": "ok", "totalWords": session.total_words})

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to all connected WebSocket clients."""
        if not self.websockets:
            return

        dead: set[web.WebSocketResponse] = set()
        for ws in list(self.websockets):
            try:
                await ws.send_json(message)
            except (ConnectionResetError, RuntimeError) as e:
                logger.debug("Dropping client: %s", e)
                dead.add(ws)
        self.websockets -= dead

    async def start(self) -> None:
        """Start the web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site: web.TCPSite = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        print(f"Web server running at http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the web server."""
        if self.session is not None:
            self.session.stop()

        for task in list(self._pending):
            task.cancel()

        # Close all WebSocket connections
        for ws in list(self.websockets):
            with contextlib.suppress(Exception):
                await ws.close()
        self.websockets.clear()

        if self.runner:
            await self.runner.cleanup()
