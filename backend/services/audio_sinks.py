"""
Audio sink implementations

PumpingSink reads the decoder's stdout in 20ms frames from a background pump
task and hands each frame to write_frame(). Subclasses decide where frames go:
- NullSink discards them (headless deployments, tests)
- SoundDeviceSink plays them on a local output device
"""
from abc import abstractmethod
from typing import Optional
import asyncio
import logging

from constants import AudioFormat, SinkBackend
from exceptions import ConfigurationError, SinkUnavailableError
from services.interfaces import AudioSink, IdleCallback

logger = logging.getLogger(__name__)


class PumpingSink(AudioSink):
    """Base sink that pumps frames from a stream reader"""

    def __init__(self, frame_size: int = AudioFormat.frame_size_bytes()):
        self.frame_size = frame_size
        self.bytes_written = 0
        self.streams_played = 0
        self._pump_task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return True

    @property
    def is_playing(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    async def play(self, stream: asyncio.StreamReader, on_idle: IdleCallback) -> None:
        if not self.is_connected:
            raise SinkUnavailableError()
        await self.stop()
        await self._prepare()
        self.streams_played += 1
        self._pump_task = asyncio.create_task(self._pump(stream, on_idle))

    async def stop(self) -> None:
        task = self._pump_task
        self._pump_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        await self.stop()

    async def _prepare(self) -> None:
        """Hook run before a new stream starts"""
        pass

    @abstractmethod
    async def write_frame(self, frame: bytes) -> None:
        """Deliver one PCM frame (the last one of a stream may be short)"""
        pass

    async def _pump(self, stream: asyncio.StreamReader, on_idle: IdleCallback):
        error = None
        try:
            while True:
                try:
                    frame = await stream.readexactly(self.frame_size)
                except asyncio.IncompleteReadError as e:
                    # End of stream; the tail may be shorter than a frame
                    if e.partial:
                        await self.write_frame(e.partial)
                        self.bytes_written += len(e.partial)
                    break
                await self.write_frame(frame)
                self.bytes_written += len(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Audio sink pump failed: {e}", exc_info=True)
            error = e

        on_idle(error)


class NullSink(PumpingSink):
    """
    Discards frames.

    Args:
        realtime: Pace consumption at the PCM byte rate so a clip "plays" for
            its real duration; otherwise the stream is drained as fast as
            the decoder produces it
    """

    def __init__(self, realtime: bool = False, frame_size: int = AudioFormat.frame_size_bytes()):
        super().__init__(frame_size)
        self.realtime = realtime
        self._stream_start = 0.0
        self._stream_bytes = 0

    async def _prepare(self) -> None:
        self._stream_start = asyncio.get_running_loop().time()
        self._stream_bytes = 0

    async def write_frame(self, frame: bytes) -> None:
        self._stream_bytes += len(frame)
        if self.realtime:
            due = self._stream_start + self._stream_bytes / AudioFormat.bytes_per_second()
            delay = due - asyncio.get_running_loop().time()
            if delay > 0:
                await asyncio.sleep(delay)


class SoundDeviceSink(PumpingSink):
    """
    Plays frames on a local output device via sounddevice (PortAudio).

    The output stream is opened lazily on first play and kept open between
    clips. Writes block in an executor thread so the event loop keeps running;
    at most one write is in flight, and stop() returns only after it finished.
    """

    def __init__(self, device: Optional[str] = None, frame_size: int = AudioFormat.frame_size_bytes()):
        super().__init__(frame_size)
        try:
            import sounddevice
        except (ImportError, OSError) as e:
            raise ConfigurationError(f"sounddevice sink unavailable: {e}")
        self._sd = sounddevice
        self.device = device
        self._stream = None
        self._pending_write: Optional[asyncio.Future] = None
        self._failed = False

    @property
    def is_connected(self) -> bool:
        return not self._failed

    async def _prepare(self) -> None:
        if self._stream is not None:
            return
        try:
            self._stream = self._sd.RawOutputStream(
                samplerate=AudioFormat.SAMPLE_RATE,
                channels=AudioFormat.CHANNELS,
                dtype='int16',
                device=self.device,
            )
            self._stream.start()
            logger.info(f"🔊 Opened output device: {self.device or 'default'}")
        except Exception as e:
            self._stream = None
            self._failed = True
            logger.error(f"Could not open output device {self.device or 'default'}: {e}")
            raise SinkUnavailableError(f"Audio output device unavailable: {e}")

    async def write_frame(self, frame: bytes) -> None:
        write = asyncio.get_running_loop().run_in_executor(None, self._stream.write, frame)
        self._pending_write = write
        # Cancelling the pump must not orphan the write; stop() waits for it
        await asyncio.shield(write)

    async def stop(self) -> None:
        await super().stop()
        write = self._pending_write
        self._pending_write = None
        if write is not None and not write.done():
            # The executor thread can't be interrupted; the stream is only
            # free for the next clip once its last write returns
            await asyncio.wait({write})

    async def close(self) -> None:
        await super().close()
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None


def create_sink(backend: SinkBackend, device: Optional[str] = None) -> AudioSink:
    """Build the sink selected by configuration"""
    if backend == SinkBackend.SOUNDDEVICE:
        return SoundDeviceSink(device=device)
    return NullSink(realtime=True)
