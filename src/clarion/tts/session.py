"""Deepgram streaming TTS session over WebSocket."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlencode

import websockets
from pydantic import BaseModel, ValidationError
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from ..core.errors import ProviderError, TransportError
from ..core.events import AudioFrame, ControlFrame, SessionClosed, SessionEvent, SessionState
from .schemas import ControlMessage, ControlType, ServerMessage, SpeakMessage

logger = logging.getLogger("DeepgramSession")

DEEPGRAM_SPEAK_WS_URL = "wss://api.deepgram.com/v1/speak"

# Deepgram accepts up to 2000 characters per message; flush well before that
FLUSH_THRESHOLD = 900


class StreamingSession:
    """
    One streaming synthesis connection, scoped to a single utterance.

    Text goes out as Speak/Flush/Clear/Close JSON frames; audio and control
    frames come back through `events` in arrival order. A provider close or
    any transport error tears the session down and puts exactly one
    SessionClosed on `events`. Nothing is retried.
    """

    def __init__(
        self,
        *,
        url: str = DEEPGRAM_SPEAK_WS_URL,
        flush_threshold: int = FLUSH_THRESHOLD,
        sample_rate: int = 48000,
        open_timeout: float = 10.0,
        close_timeout: float = 2.0,
    ):
        self._url = url
        self._flush_threshold = flush_threshold
        self._sample_rate = sample_rate
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout
        self._ws: Optional[websockets.ClientConnection] = None
        self._state = SessionState.IDLE
        self._unflushed = 0
        self._flushes_sent = 0
        self._closed_reported = False
        self._receive_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None
        self.events: "asyncio.Queue[SessionEvent]" = asyncio.Queue()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is SessionState.OPEN

    @property
    def unflushed_chars(self) -> int:
        return self._unflushed

    @property
    def flushes_sent(self) -> int:
        """Flush frames sent so far, including automatic ones; each is answered by a Flushed frame."""
        return self._flushes_sent

    def _build_url(self, voice: str) -> str:
        query = urlencode({
            "encoding": "linear16",
            "sample_rate": self._sample_rate,
            "channels": 1,
            "model": voice,
        })
        return f"{self._url}?{query}"

    async def connect(self, api_key: str, voice: str) -> None:
        """
        Open the connection and start receiving. The session counts as open as
        soon as the WebSocket handshake completes; no provider message is awaited.
        """
        if self._state is not SessionState.IDLE:
            logger.warning("connect() called in state %s, ignoring", self._state.value)
            return
        self._state = SessionState.CONNECTING
        try:
            self._ws = await websockets.connect(
                self._build_url(voice),
                additional_headers={"Authorization": f"Token {api_key}"},
                open_timeout=self._open_timeout,
                close_timeout=self._close_timeout,
            )
        except InvalidStatus as e:
            self._state = SessionState.CLOSED
            status = e.response.status_code
            raise ProviderError(
                f"Handshake rejected with HTTP {status}", status_code=status, stage="connect"
            ) from e
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._state = SessionState.CLOSED
            raise TransportError(f"Connection failed: {e}", stage="connect") from e
        except asyncio.CancelledError:
            self._state = SessionState.CLOSED
            raise

        self._state = SessionState.OPEN
        logger.info("Connected to %s (voice=%s)", self._url, voice)
        self._receive_task = asyncio.create_task(self._receive_loop(), name="deepgram-receive")

    async def send(self, text: str) -> None:
        """Queue text for synthesis; flushes first if the buffer would pass the threshold."""
        if self._state is not SessionState.OPEN:
            return
        # An oversized segment flushes whatever is buffered, then goes out on its own
        if self._unflushed and self._unflushed + len(text) > self._flush_threshold:
            await self.flush()
            if self._state is not SessionState.OPEN:
                return
        if await self._send(SpeakMessage(text=text)):
            self._unflushed += len(text)

    async def flush(self) -> None:
        if self._state is not SessionState.OPEN:
            return
        if await self._send(ControlMessage(type=ControlType.FLUSH)):
            self._flushes_sent += 1
        self._unflushed = 0

    async def clear(self) -> None:
        """Discard buffered text on the provider. Best-effort: failures are only logged."""
        if self._state is not SessionState.OPEN:
            return
        await self._send(ControlMessage(type=ControlType.CLEAR), teardown=False)
        self._unflushed = 0

    async def close(self) -> None:
        """Send Close and drop the transport without waiting for the provider."""
        if self._state is not SessionState.OPEN:
            return
        self._state = SessionState.CLOSING
        self._unflushed = 0
        await self._send(ControlMessage(type=ControlType.CLOSE), teardown=False)
        # Locally initiated: the orchestrator already knows, so no SessionClosed event
        self._closed_reported = True
        self._state = SessionState.CLOSED
        self._stop_receiving()
        self._close_transport()
        logger.info("Session closed")

    async def wait_closed(self) -> None:
        """Wait for the background transport shutdown, if any."""
        task = self._close_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _send(self, message: BaseModel, *, teardown: bool = True) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(message.model_dump_json())
            return True
        except (ConnectionClosed, OSError) as e:
            kind = getattr(message, "type", "message")
            logger.error("Send %s failed: %s", getattr(kind, "value", kind), e)
            if teardown:
                self._teardown(TransportError(f"Send failed: {e}", stage="send"))
            return False

    async def _receive_loop(self) -> None:
        assert self._ws is not None
        error: Optional[Exception] = None
        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    self.events.put_nowait(AudioFrame(data=message))
                else:
                    self._handle_control(message)
            logger.info("Provider closed the connection")
        except ConnectionClosed as e:
            error = TransportError(f"Connection lost: {e}", stage="receive")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Receive loop failed")
            error = TransportError(f"Receive failed: {e}", stage="receive")
        self._teardown(error)

    def _handle_control(self, raw: str) -> None:
        try:
            message = ServerMessage.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring unparseable control frame: %r", raw[:200])
            return
        if message.type == "Warning":
            logger.warning("Provider warning: %s", message.warn_msg or "unknown")
        else:
            logger.debug("Control frame: %s", message.type)
        self.events.put_nowait(ControlFrame(type=message.type, payload=message.model_dump(exclude_none=True)))

    def _teardown(self, error: Optional[Exception]) -> None:
        if self._closed_reported:
            return
        self._closed_reported = True
        self._state = SessionState.CLOSED
        self._unflushed = 0
        if error is not None:
            logger.error("Session closed with error: %s", error)
        self._stop_receiving()
        self._close_transport()
        self.events.put_nowait(SessionClosed(error=error))

    def _stop_receiving(self) -> None:
        task = self._receive_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _close_transport(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return

        async def shutdown() -> None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug("Transport close failed: %s", e)

        self._close_task = asyncio.create_task(shutdown(), name="deepgram-close")
