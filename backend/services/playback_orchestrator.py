"""
Playback Orchestrator

Owns the single active playback slot:

    IDLE --play--> PLAYING(session)
    PLAYING(old) --play--> PLAYING(new)     (preemption: old is torn down first)
    PLAYING --stop--> IDLE
    PLAYING --decoder/sink finished--> IDLE

play(), stop() and completion handling all run under one asyncio.Lock, so a
preempt-then-start sequence can never interleave with another request and
at most one decode process is ever attached to the sink.

Completion signals arrive from two places, the decoder's handle and the
sink's idle callback. Both are matched against the active session's handle by
identity; signals from a superseded handle are ignored.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Set
import asyncio
import logging
import time

from exceptions import DecodeRuntimeError, FileMissingError, SinkUnavailableError
from services.clip_registry import Clip, ClipRegistry
from services.decode_supervisor import DecodeHandle, DecodeOutcome, DecodeSupervisor
from services.interfaces import AudioSink

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    IDLE = 'IDLE'
    PLAYING = 'PLAYING'


class SessionState(str, Enum):
    PLAYING = 'PLAYING'
    FINISHED = 'FINISHED'
    STOPPED = 'STOPPED'
    FAILED = 'FAILED'


@dataclass(eq=False)
class PlaybackSession:
    clip: Clip
    handle: DecodeHandle
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    client_timestamp: Optional[int] = None
    state: SessionState = SessionState.PLAYING
    decode_finished: bool = False
    ended_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'sound': self.clip.name,
            'filename': self.clip.filename,
            'handle_id': self.handle.id,
            'state': self.state.value,
            'started_at': self.started_at.isoformat(),
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'decode_finished': self.decode_finished,
            'error': self.error,
        }


class PlaybackOrchestrator:
    """
    Accepts play/stop requests and supervises the active playback.

    Args:
        registry: Clip registry consulted before each play
        supervisor: Spawns/stops decode processes
        sink: Audio sink the decoded stream is attached to
    """

    def __init__(self, registry: ClipRegistry, supervisor: DecodeSupervisor, sink: AudioSink):
        self.registry = registry
        self.supervisor = supervisor
        self.sink = sink
        self._lock = asyncio.Lock()
        self._session: Optional[PlaybackSession] = None
        self._last_session: Optional[PlaybackSession] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def state(self) -> PlaybackState:
        return PlaybackState.PLAYING if self._session else PlaybackState.IDLE

    @property
    def current_session(self) -> Optional[PlaybackSession]:
        return self._session

    def status(self) -> dict:
        """Diagnostics snapshot of the active slot"""
        return {
            'state': self.state.value,
            'session': self._session.to_dict() if self._session else None,
            'last_session': self._last_session.to_dict() if self._last_session else None,
            'sink_connected': self.sink.is_connected,
        }

    async def play(self, name: str, client_timestamp: Optional[int] = None) -> PlaybackSession:
        """
        Start playing a clip, preempting whatever is playing.

        Returns as soon as the decoder is spawned and attached to the sink.

        Raises:
            ClipNotFoundError: Unknown clip name
            FileMissingError: The clip's stored file is gone
            SinkUnavailableError: No sink to play into
            DecodeSpawnError: The decoder could not be started
        """
        received_ms = int(time.time() * 1000)

        async with self._lock:
            clip = self.registry.get(name)
            path = self.registry.resolve_path(clip)
            if not path.is_file():
                logger.warning(f"Clip '{name}' points at missing file {clip.filename}")
                raise FileMissingError(clip.filename, name=name)
            if not self.sink.is_connected:
                raise SinkUnavailableError()

            logger.info(f"[PLAY REQUEST] Sound key: {name} → file: {clip.filename}")
            if client_timestamp is not None:
                logger.info(f" - Network + processing delay: {received_ms - client_timestamp} ms")

            if self._session is not None:
                logger.info(f"⏭️ Preempting '{self._session.clip.name}'")
                await self._teardown(SessionState.STOPPED)

            handle = await self.supervisor.start(path)

            try:
                await self.sink.play(handle.stdout, lambda error: self._schedule(self._on_sink_idle(handle, error)))
            except Exception as e:
                logger.error(f"Sink refused stream for '{name}': {e}")
                await self.supervisor.stop(handle)
                if isinstance(e, SinkUnavailableError):
                    raise
                raise SinkUnavailableError(f"Audio sink failed to start: {e}")

            session = PlaybackSession(clip=clip, handle=handle, client_timestamp=client_timestamp)
            self._session = session
            handle.add_done_callback(lambda h, outcome: self._schedule(self._on_decode_complete(h, outcome)))

            started_ms = int(time.time() * 1000)
            logger.info(f" - Playback started at: {started_ms} ms")
            if client_timestamp is not None:
                logger.info(f" - Total latency (playback start - client press): {started_ms - client_timestamp} ms")
            return session

    async def stop(self):
        """Stop the active playback. No-op when idle."""
        async with self._lock:
            if self._session is None:
                logger.debug("Stop requested while idle")
                return
            await self._teardown(SessionState.STOPPED)

    async def shutdown(self):
        """Stop playback and wait for in-flight completion handlers"""
        await self.stop()
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        await self.sink.close()

    def _schedule(self, coro):
        # Callbacks fire outside the lock; handle them as tasks that take it
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _on_decode_complete(self, handle: DecodeHandle, outcome: DecodeOutcome):
        async with self._lock:
            session = self._session
            if session is None or session.handle is not handle:
                logger.debug(f"Ignoring stale decoder completion from {handle!r} ({outcome.kind.value})")
                return

            if outcome.succeeded:
                session.decode_finished = True
                if self.sink.is_playing:
                    # Sink still has buffered audio; its idle report ends the session
                    return
                await self._teardown(SessionState.FINISHED)
                return

            error = DecodeRuntimeError(handle.id, f"Decoder for '{session.clip.name}' {outcome.describe()}")
            logger.error(f"❌ {error.message}")
            await self._teardown(SessionState.FAILED, error=error.message)

    async def _on_sink_idle(self, handle: DecodeHandle, error: Optional[BaseException]):
        async with self._lock:
            session = self._session
            if session is None or session.handle is not handle:
                logger.debug(f"Ignoring stale sink idle for {handle!r}")
                return

            if error is not None:
                logger.error(f"❌ Sink failed while playing '{session.clip.name}': {error}")
                await self._teardown(SessionState.FAILED, error=str(error))
                return

            outcome = handle.outcome
            if outcome is None:
                # stdout hit EOF, so the decoder is exiting; give it a moment to report its code
                try:
                    outcome = await asyncio.wait_for(handle.wait(), timeout=self.supervisor.terminate_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Decoder {handle!r} still running after its output ended")
            if outcome is not None and not outcome.succeeded:
                await self._teardown(SessionState.FAILED, error=outcome.describe())
                return
            await self._teardown(SessionState.FINISHED)

    async def _teardown(self, final_state: SessionState, error: Optional[str] = None):
        """
        Detach the active session from the sink and terminate its decoder.
        Caller holds the lock. Returns after the decoder has exited.
        """
        session = self._session
        self._session = None

        await self.sink.stop()
        await self.supervisor.stop(session.handle)

        session.state = final_state
        session.ended_at = datetime.now(timezone.utc)
        session.error = error
        self._last_session = session

        elapsed = (session.ended_at - session.started_at).total_seconds()
        if final_state == SessionState.FINISHED:
            logger.info(f"✅ Finished playing: {session.clip.filename} ({elapsed:.2f}s)")
        else:
            logger.info(f"Playback of '{session.clip.name}' {final_state.value.lower()} after {elapsed:.2f}s")
