"""Speech orchestrator: one utterance at a time, over REST or a streaming session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set

from ..audio.output.player import AudioStreamPlayer
from ..audio.output.wav import decode_wav
from ..config.settings import ClarionConfig
from ..text.chunker import chunk
from ..text.language import resolve_voice
from ..tts.rest import DeepgramRestClient
from ..tts.session import StreamingSession
from .errors import (
    CancellationError,
    ConfigurationError,
    DecodeError,
    PlaybackError,
    ProviderError,
    TransportError,
)
from .events import (
    AudioFrame,
    ControlFrame,
    SessionClosed,
    SpeechPath,
    SpeechState,
    SpeechStatus,
    Utterance,
)

logger = logging.getLogger("Speech")

SessionFactory = Callable[[], StreamingSession]
PlayerFactory = Callable[..., AudioStreamPlayer]
StatusListener = Callable[[SpeechStatus], None]
VoiceResolver = Callable[[str, str], str]


@dataclass(eq=False)
class ActiveUtterance:
    """Everything one utterance owns; released as a unit on stop or completion."""

    utterance: Utterance
    session: Optional[StreamingSession] = None
    player: Optional[AudioStreamPlayer] = None
    task: Optional[asyncio.Task] = None  # REST request, or stream setup + feed
    pump: Optional[asyncio.Task] = None  # session events -> player
    feed_done: bool = False
    flushes_acked: int = 0
    cancelled: bool = False


class SpeechOrchestrator:
    """
    Turns text into speech, one utterance at a time.

    Short text goes through a single REST request and plays as one buffer;
    long text is chunked and streamed over a WebSocket session while audio
    plays as it arrives. A new speak() or stop() tears down the previous
    utterance before returning.

    All public coroutines must run on the same event loop (the controller);
    transitions are serialized with an asyncio.Lock. Network I/O runs as
    tasks on that loop, REST requests in a worker thread, and audio on the
    sounddevice callback thread.
    """

    def __init__(
        self,
        config: ClarionConfig,
        *,
        rest_client: Optional[DeepgramRestClient] = None,
        session_factory: Optional[SessionFactory] = None,
        player_factory: Optional[PlayerFactory] = None,
        voice_resolver: VoiceResolver = resolve_voice,
    ):
        self._config = config
        self._credential = config.deepgram_api_key
        self._voice = config.voice_model
        self._rest = rest_client or DeepgramRestClient()
        self._session_factory: SessionFactory = session_factory or (
            lambda: StreamingSession(flush_threshold=config.flush_threshold)
        )
        self._player_factory: PlayerFactory = player_factory or AudioStreamPlayer
        self._voice_resolver = voice_resolver

        self._active: Optional[ActiveUtterance] = None
        self._status = SpeechStatus()
        self._listeners: List[StatusListener] = []
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._background: Set[asyncio.Task] = set()

    # ---- Status ----

    @property
    def status(self) -> SpeechStatus:
        return self._status

    @property
    def state(self) -> SpeechState:
        return self._status.state

    @property
    def is_speaking(self) -> bool:
        return self._status.is_speaking

    @property
    def is_session_open(self) -> bool:
        return self._status.is_session_open

    @property
    def current_utterance(self) -> Optional[Utterance]:
        return self._active.utterance if self._active is not None else None

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def wait_until_idle(self) -> None:
        await self._idle.wait()

    def _publish(self, state: Optional[SpeechState] = None, *, session_open: Optional[bool] = None) -> None:
        status = SpeechStatus(
            state=state if state is not None else self._status.state,
            is_session_open=session_open if session_open is not None else self._status.is_session_open,
        )
        if status == self._status:
            return
        self._status = status
        if status.is_speaking:
            self._idle.clear()
        else:
            self._idle.set()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed")

    # ---- Settings ----

    @property
    def credential(self) -> Optional[str]:
        return self._credential

    def set_credential(self, api_key: Optional[str]) -> None:
        self._credential = api_key or None

    @property
    def voice(self) -> str:
        return self._voice

    def set_voice(self, voice_id: str) -> None:
        self._voice = voice_id
        logger.info("Voice set to %s", voice_id)

    def _resolve_voice(self, text: str) -> str:
        if not self._config.language_detection:
            return self._voice
        return self._voice_resolver(text, self._voice)

    # ---- Speak / stop ----

    async def speak(self, text: str) -> Optional[Utterance]:
        """
        Start speaking text, replacing whatever is currently playing.

        Returns the accepted Utterance, or None when there is no credential or
        nothing to say (both are logged no-ops).
        """
        api_key = self._credential
        if not api_key:
            logger.warning("Not speaking: %s", ConfigurationError("No API key configured"))
            return None
        trimmed = text.strip()
        if not trimmed:
            logger.debug("Not speaking: empty text")
            return None

        async with self._lock:
            await self._stop_active()

            voice = self._resolve_voice(trimmed)
            path = SpeechPath.REST if len(trimmed) < self._config.rest_max_chars else SpeechPath.STREAM
            utterance = Utterance(text=trimmed, voice=voice, path=path)
            active = ActiveUtterance(utterance=utterance)
            self._active = active
            logger.info("Speaking %d chars via %s (voice=%s)", len(trimmed), path.value, voice)

            if path is SpeechPath.REST:
                self._publish(SpeechState.SPEAKING_REST)
                active.task = asyncio.create_task(
                    self._guarded(active, lambda: self._run_rest(active, api_key), "REST utterance"), name="speech-rest"
                )
            else:
                self._publish(SpeechState.SPEAKING_STREAM)
                active.task = asyncio.create_task(
                    self._guarded(active, lambda: self._run_stream(active, api_key), "Streaming utterance"), name="speech-stream"
                )
            return utterance

    async def stop(self) -> None:
        """Cancel the REST request or streaming session, stop playback, go idle. Idempotent."""
        async with self._lock:
            await self._stop_active()

    async def shutdown(self) -> None:
        """Stop and wait for background transport shutdowns (for process exit)."""
        await self.stop()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _stop_active(self) -> None:
        active = self._active
        if active is None:
            self._publish(SpeechState.IDLE, session_open=False)
            return
        logger.info("Stopping %s utterance", active.utterance.path.value)
        await self._release(active, interrupted=True)

    async def _release(self, active: ActiveUtterance, *, interrupted: bool) -> None:
        self._active = None
        active.cancelled = True

        current = asyncio.current_task()
        tasks = [t for t in (active.task, active.pump) if t is not None and t is not current and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        session = active.session
        if session is not None:
            if interrupted:
                await session.clear()
            await session.close()
            self._track(asyncio.create_task(session.wait_closed()))
        if active.player is not None:
            if interrupted:
                active.player.stop()
            else:
                # Drained means the last block reached the device, not the speaker
                await asyncio.to_thread(active.player.stop, drain=True)

        self._publish(SpeechState.IDLE, session_open=False)

    def _track(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _schedule_completion(self, active: ActiveUtterance) -> None:
        self._track(asyncio.create_task(self._complete(active)))

    async def _complete(self, active: ActiveUtterance) -> None:
        async with self._lock:
            if self._active is not active:
                return
            logger.info("Utterance finished (%s)", active.utterance.path.value)
            await self._release(active, interrupted=False)

    async def _guarded(self, active: ActiveUtterance, flow: Callable[[], Awaitable[None]], what: str) -> None:
        """Task boundary: anything unexpected still ends the utterance."""
        try:
            await flow()
        except Exception:
            logger.exception("%s failed unexpectedly", what)
            self._schedule_completion(active)

    def _on_drained(self, active: ActiveUtterance) -> None:
        # Runs on the controller loop via call_soon_threadsafe
        if self._active is active:
            self._schedule_completion(active)

    def _make_player(self, active: ActiveUtterance, **kwargs) -> AudioStreamPlayer:
        loop = asyncio.get_running_loop()
        return self._player_factory(
            on_drained=lambda: self._on_drained(active),
            dispatch=loop.call_soon_threadsafe,
            **kwargs,
        )

    # ---- REST path ----

    async def _run_rest(self, active: ActiveUtterance, api_key: str) -> None:
        utterance = active.utterance
        try:
            payload = await asyncio.to_thread(
                self._rest.synthesize,
                utterance.text,
                api_key=api_key,
                voice=utterance.voice,
                timeout=self._config.rest_timeout_s,
            )
            audio = decode_wav(payload)
        except asyncio.CancelledError:
            logger.debug("%s", CancellationError("REST request cancelled"))
            raise
        except (ProviderError, TransportError, DecodeError) as e:
            logger.error("REST synthesis failed: %s", e)
            self._schedule_completion(active)
            return

        if active.cancelled:
            return

        player = self._make_player(active, sample_rate=audio.sample_rate, channels=audio.channels)
        active.player = player
        try:
            await asyncio.to_thread(player.start)
        except PlaybackError as e:
            logger.error("REST playback failed: %s", e)
            self._schedule_completion(active)
            return

        player.enqueue(audio.pcm)
        player.finish()

    # ---- Streaming path ----

    async def _run_stream(self, active: ActiveUtterance, api_key: str) -> None:
        utterance = active.utterance
        chunks = chunk(utterance.text)
        if not chunks:
            logger.info("Nothing speakable after chunking")
            self._schedule_completion(active)
            return

        session = self._session_factory()
        player = self._make_player(active)
        active.session = session
        active.player = player

        try:
            results = await asyncio.gather(
                session.connect(api_key, utterance.voice),
                asyncio.to_thread(player.start),
                return_exceptions=True,
            )
        except asyncio.CancelledError:
            logger.debug("%s", CancellationError("Streaming setup cancelled"))
            raise
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            for error in errors:
                if isinstance(error, (ProviderError, TransportError, PlaybackError)):
                    logger.error("Streaming setup failed: %s", error)
                else:
                    logger.error("Streaming setup failed unexpectedly", exc_info=error)
            self._schedule_completion(active)
            return

        self._publish(session_open=True)
        active.pump = asyncio.create_task(
            self._guarded(active, lambda: self._pump_events(active), "Session event pump"), name="speech-events"
        )
        logger.info("Streaming %d segments", len(chunks))
        try:
            await self._feed(active, chunks)
        except asyncio.CancelledError:
            logger.debug("%s", CancellationError("Feed cancelled"))
            raise

    async def _feed(self, active: ActiveUtterance, chunks: List[str]) -> None:
        session = active.session
        assert session is not None
        interval = self._config.send_interval_ms / 1000
        last = len(chunks) - 1
        for index, segment in enumerate(chunks):
            if active.cancelled or not session.is_open:
                logger.info("Feed stopped after %d/%d segments", index, len(chunks))
                return
            await session.send(segment)
            if (index + 1) % self._config.flush_every == 0 or index == last:
                await session.flush()
            await asyncio.sleep(interval)
        active.feed_done = True
        self._check_input_complete(active)

    async def _pump_events(self, active: ActiveUtterance) -> None:
        session, player = active.session, active.player
        assert session is not None and player is not None
        while True:
            event = await session.events.get()
            if self._active is not active:
                return
            if isinstance(event, AudioFrame):
                player.enqueue(event.data)
            elif isinstance(event, ControlFrame):
                if event.type == "Flushed":
                    active.flushes_acked += 1
                    self._check_input_complete(active)
            elif isinstance(event, SessionClosed):
                if event.error is not None:
                    logger.error("Streaming session failed: %s", event.error)
                self._publish(session_open=False)
                # Whatever audio already arrived keeps playing
                player.finish()
                return

    def _check_input_complete(self, active: ActiveUtterance) -> None:
        """All text sent and every Flush answered: no more audio is coming."""
        session, player = active.session, active.player
        if session is None or player is None or not active.feed_done:
            return
        if active.flushes_acked >= session.flushes_sent:
            player.finish()

    # ---- Credential / voice checks ----

    async def test_connection(self, credential: str) -> bool:
        return await asyncio.to_thread(self._rest.test_connection, credential)

    async def fetch_sample(self, credential: Optional[str] = None, voice: Optional[str] = None) -> Optional[bytes]:
        """WAV bytes of a sample quote, using the configured key/voice when not given."""
        api_key = credential or self._credential or ""
        return await asyncio.to_thread(self._rest.fetch_sample, api_key, voice or self._voice)
