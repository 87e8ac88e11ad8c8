"""
Service Interfaces

Abstract base classes for the collaborators the playback orchestrator drives.
Concrete implementations live in their own modules so they can be swapped for
fakes in tests.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import asyncio


# Called by a sink when its stream ends: None for a drained stream, the
# exception for a read/write failure.
IdleCallback = Callable[[Optional[BaseException]], None]


class AudioSink(ABC):
    """
    Downstream consumer of the raw PCM stream (48 kHz, 16-bit, stereo, LE).

    A sink plays one stream at a time. It reports back through the on_idle
    callback when the stream is exhausted or fails, which lets the
    orchestrator clean up a session even if the decoder never exits.
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the sink can accept a stream right now"""
        pass

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        """Whether a stream is currently attached"""
        pass

    @abstractmethod
    async def play(self, stream: asyncio.StreamReader, on_idle: IdleCallback) -> None:
        """
        Attach a PCM stream and start consuming it in the background.

        Must return without waiting for playback to finish.

        Raises:
            SinkUnavailableError: If the sink cannot start playing
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """
        Detach the current stream. on_idle is not called for a stopped stream.
        Idempotent; returns once the sink no longer reads the stream.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the sink's resources (application shutdown)"""
        pass
