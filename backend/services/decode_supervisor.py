"""
Decode Process Supervisor

Runs exactly one ffmpeg process per playback attempt, turning a stored clip
into raw PCM (48 kHz, stereo, s16le) on the process's stdout.

Each attempt is represented by a DecodeHandle with a one-shot completion:
- EXITED(code): the process exited on its own (code 0 is a normal end,
  including the case where it produced zero bytes)
- ERROR(cause): supervision itself failed after spawn
- KILLED: stop() was called before the process exited
Whichever happens first wins; later events for the same handle are dropped.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional
import asyncio
import logging

from constants import DecodeConfig
from exceptions import ConfigurationError, DecodeSpawnError, FileMissingError
from utils.ffmpeg_helper import build_pcm_decode_command, get_ffmpeg_path
from utils.uuid_helper import generate_uuid

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    EXITED = 'EXITED'
    ERROR = 'ERROR'
    KILLED = 'KILLED'


@dataclass(frozen=True)
class DecodeOutcome:
    kind: OutcomeKind
    code: Optional[int] = None
    cause: Optional[BaseException] = None
    stderr: str = ''

    @classmethod
    def exited(cls, code: int, stderr: str = '') -> 'DecodeOutcome':
        return cls(OutcomeKind.EXITED, code=code, stderr=stderr)

    @classmethod
    def error(cls, cause: BaseException) -> 'DecodeOutcome':
        return cls(OutcomeKind.ERROR, cause=cause)

    @classmethod
    def killed(cls) -> 'DecodeOutcome':
        return cls(OutcomeKind.KILLED)

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.EXITED and self.code == 0

    def describe(self) -> str:
        if self.kind == OutcomeKind.EXITED:
            detail = f"exited with code {self.code}"
            return f"{detail}: {self.stderr}" if self.stderr else detail
        if self.kind == OutcomeKind.ERROR:
            return f"error: {type(self.cause).__name__}: {self.cause}"
        return "killed"


class DecodeHandle:
    """
    One running decode process.

    The orchestrator owns the session; the handle only carries the process,
    its output stream, and the completion signal.
    """

    def __init__(self, path: Path, process: asyncio.subprocess.Process):
        self.id = generate_uuid()
        self.path = path
        self.process = process
        self.started_at = datetime.now(timezone.utc)
        self._completion: asyncio.Future = asyncio.get_running_loop().create_future()
        self._watcher: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"<DecodeHandle {self.id[:8]} pid={self.pid} {self.path.name}>"

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self.process.stdout

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid

    @property
    def done(self) -> bool:
        return self._completion.done()

    @property
    def outcome(self) -> Optional[DecodeOutcome]:
        return self._completion.result() if self._completion.done() else None

    def complete(self, outcome: DecodeOutcome) -> bool:
        """
        Resolve the completion signal.

        Returns:
            True if this call resolved it, False if it was already resolved
        """
        if self._completion.done():
            logger.debug(f"{self!r}: discarding {outcome.kind.value}, already {self.outcome.kind.value}")
            return False
        self._completion.set_result(outcome)
        return True

    def add_done_callback(self, callback: Callable[['DecodeHandle', DecodeOutcome], None]):
        """Call callback(handle, outcome) once the completion resolves"""
        self._completion.add_done_callback(lambda fut: callback(self, fut.result()))

    async def wait(self) -> DecodeOutcome:
        return await asyncio.shield(self._completion)


class DecodeSupervisor:
    """
    Spawns and terminates decode processes.

    Args:
        ffmpeg_path: ffmpeg binary; resolved with get_ffmpeg_path() on first use if omitted
        terminate_timeout: Seconds to wait after SIGTERM before SIGKILL
    """

    def __init__(self, ffmpeg_path: Optional[str] = None,
                 terminate_timeout: float = DecodeConfig.TERMINATE_TIMEOUT_SECONDS):
        self._ffmpeg_path = ffmpeg_path
        self.terminate_timeout = terminate_timeout

    @property
    def ffmpeg_path(self) -> str:
        if self._ffmpeg_path is None:
            self._ffmpeg_path = get_ffmpeg_path()
        return self._ffmpeg_path

    def build_command(self, path: Path) -> List[str]:
        return build_pcm_decode_command(self.ffmpeg_path, str(path))

    async def start(self, path: Path) -> DecodeHandle:
        """
        Spawn a decode process for path. Returns right after spawn.

        Raises:
            FileMissingError: If path doesn't exist (nothing is spawned)
            DecodeSpawnError: If the process could not be started
        """
        path = Path(path)
        if not path.is_file():
            raise FileMissingError(path.name)

        try:
            cmd = self.build_command(path)
        except ConfigurationError as e:
            raise DecodeSpawnError(str(path), e.message)
        logger.debug(f"Spawning decoder: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to spawn decoder for {path.name}: {e}")
            raise DecodeSpawnError(str(path), f"Failed to start decoder: {e}")

        handle = DecodeHandle(path, process)
        handle._watcher = asyncio.create_task(self._watch(handle))
        logger.info(f"🎛️ Decoder started {handle!r}")
        return handle

    async def _watch(self, handle: DecodeHandle):
        """Wait for the process to exit and resolve the handle"""
        try:
            stderr = await handle.process.stderr.read()
            code = await handle.process.wait()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Lost track of decoder {handle!r}: {e}", exc_info=True)
            handle.complete(DecodeOutcome.error(e))
            return

        tail = stderr.decode(errors='replace').strip()[-DecodeConfig.STDERR_TAIL_CHARS:]
        if handle.complete(DecodeOutcome.exited(code, tail)):
            if code == 0:
                logger.info(f"Decoder finished {handle!r}")
            else:
                logger.warning(f"Decoder {handle!r} exited with code {code}: {tail}")

    async def stop(self, handle: DecodeHandle):
        """
        Terminate the process if it is still running. Idempotent.

        The caller must have detached any reader from handle.stdout first;
        leftover output is drained here so the process can be reaped.
        Returns once the process has exited and its stdout is at EOF.
        """
        process = handle.process
        if process.returncode is None:
            if handle.complete(DecodeOutcome.killed()):
                logger.info(f"🛑 Stopping decoder {handle!r}")
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        elif process.stdout.at_eof():
            return

        try:
            await asyncio.wait_for(self._drain_and_wait(process), timeout=self.terminate_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Decoder {handle!r} ignored SIGTERM, killing")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await self._drain_and_wait(process)

    @staticmethod
    async def _drain_and_wait(process: asyncio.subprocess.Process) -> int:
        # Unread stdout keeps the pipe open and wait() from returning
        while await process.stdout.read(65536):
            pass
        return await process.wait()
