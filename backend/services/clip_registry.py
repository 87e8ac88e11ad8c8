"""
Clip Registry

In-memory map of clip name -> stored file, backed by the clips table.
This is the single source of truth consulted before every playback.

Rules:
- Names are unique; re-uploading a name replaces its entry in place
- Every mutation is persisted before it is acknowledged or broadcast
- If persisting fails the in-memory entry is kept (read-your-write) and the
  caller gets a PersistenceError
- Backing files are only checked lazily, at playback time
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
import asyncio
import threading
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from constants import UploadConfig
from exceptions import ClipNotFoundError, PersistenceError, StorageError, ValidationError
from repositories.clip_repository import ClipRepository
from utils.uuid_helper import generate_stored_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Clip:
    """A named audio asset available for playback"""
    name: str
    filename: str
    emoji: str = ''

    def to_mapping(self) -> dict:
        return {'filename': self.filename, 'emoji': self.emoji}


class ClipRegistry:
    """
    Registry of uploaded clips.

    Args:
        sound_dir: Directory holding the stored clip files
        session_factory: SQLAlchemy sessionmaker for the registry database
    """

    def __init__(self, sound_dir: Path, session_factory: sessionmaker):
        self.sound_dir = Path(sound_dir)
        self._session_factory = session_factory
        self._clips: Dict[str, Clip] = {}
        self._write_lock = threading.RLock()
        self._listeners: List[Callable[[List[Clip]], object]] = []

    def add_listener(self, listener: Callable[[List[Clip]], object]):
        """Register a callback invoked with the new snapshot after every mutation"""
        self._listeners.append(listener)

    def load(self) -> int:
        """
        Populate the registry from the database.

        An unreadable database leaves the registry empty rather than failing
        startup.

        Returns:
            Number of clips loaded
        """
        db = self._session_factory()
        try:
            records = ClipRepository(db).get_ordered()
            clips = {r.name: Clip(name=r.name, filename=r.filename, emoji=r.emoji or '') for r in records}
        except SQLAlchemyError as e:
            logger.warning(f"Could not read clip registry, starting empty: {e}")
            clips = {}
        finally:
            db.close()

        with self._write_lock:
            self._clips = clips
        logger.info(f"Loaded {len(clips)} clip(s) from registry")
        return len(clips)

    def get(self, name: str) -> Clip:
        """
        Look up a clip by name.

        Raises:
            ClipNotFoundError: If no clip has that name
        """
        clip = self._clips.get(name)
        if clip is None:
            raise ClipNotFoundError(name)
        return clip

    def snapshot(self) -> List[Clip]:
        """Point-in-time copy of the registry in insertion order"""
        with self._write_lock:
            return list(self._clips.values())

    def resolve_path(self, clip: Clip) -> Path:
        """Absolute path of a clip's stored file"""
        return self.sound_dir / clip.filename

    def find_missing(self) -> List[Clip]:
        """Clips whose stored file has been removed out-of-band"""
        return [clip for clip in self.snapshot() if not self.resolve_path(clip).is_file()]

    def put(self, name: str, filename: str, emoji: Optional[str] = '') -> Clip:
        """
        Insert or replace a clip, persist it, then notify listeners.

        Args:
            name: Clip name (non-empty)
            filename: Stored file name inside sound_dir; the caller stores the file first
            emoji: Display emoji

        Returns:
            The registered clip

        Raises:
            ValidationError: If name is empty
            PersistenceError: If the database write failed (the clip is still registered in memory)
        """
        self._validate_name(name)
        clip, snapshot, persist_error = self._apply(name, filename, emoji)
        self._notify(snapshot)

        if persist_error is not None:
            raise persist_error
        return clip

    async def store_upload(self, name: str, data: bytes, emoji: Optional[str] = '',
                           original_filename: Optional[str] = None) -> Clip:
        """
        Store uploaded bytes under a generated file name and register the clip.

        The file write and the database commit run in the default executor;
        listeners are notified back on the event loop.

        Args:
            name: Clip name
            data: Raw uploaded file contents
            emoji: Display emoji
            original_filename: Client's file name, only used for its extension

        Returns:
            The registered clip

        Raises:
            ValidationError: If name is empty
            StorageError: If the file could not be written (registry unchanged)
            PersistenceError: See put()
        """
        self._validate_name(name)
        loop = asyncio.get_running_loop()

        filename = await loop.run_in_executor(None, self.write_file, data, original_filename)
        logger.info(f"Stored upload for '{name}' ({len(data)} bytes) as {filename}")

        clip, snapshot, persist_error = await loop.run_in_executor(None, self._apply, name, filename, emoji)
        self._notify(snapshot)

        if persist_error is not None:
            raise persist_error
        return clip

    def write_file(self, data: bytes, original_filename: Optional[str] = None) -> str:
        """
        Write clip bytes into sound_dir under a generated name. Blocking.

        Returns:
            The stored file name (keeps the upload's extension, default .mp3)

        Raises:
            StorageError: If the file could not be written
        """
        extension = Path(original_filename or '').suffix or UploadConfig.DEFAULT_EXTENSION
        filename = generate_stored_filename(extension)
        path = self.sound_dir / filename

        try:
            self.sound_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to save uploaded file {path}: {e}", exc_info=True)
            raise StorageError(str(path), "Failed to save file")
        return filename

    @staticmethod
    def _validate_name(name: Optional[str]):
        if not name or not name.strip():
            raise ValidationError("Clip name must not be empty", invalid_fields={'name': name})

    def _apply(self, name: str, filename: str, emoji: Optional[str]) -> Tuple[Clip, List[Clip], Optional[PersistenceError]]:
        """Mutate the map and persist the row; safe to call from a worker thread"""
        clip = Clip(name=name, filename=filename, emoji=emoji or '')
        persist_error = None

        with self._write_lock:
            # dict assignment keeps an existing key in its original position
            self._clips[name] = clip
            try:
                self._persist(clip)
            except PersistenceError as e:
                persist_error = e
            snapshot = list(self._clips.values())

        logger.info(f"Registered clip '{name}' → {filename}")
        return clip, snapshot, persist_error

    def _persist(self, clip: Clip):
        db = self._session_factory()
        try:
            ClipRepository(db).upsert(clip.name, clip.filename, clip.emoji)
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist clip '{clip.name}': {e}", exc_info=True)
            raise PersistenceError('put', f"Failed to save sound mappings: {e}")
        finally:
            db.close()

    def _notify(self, snapshot: List[Clip]):
        # Listeners (the change notifier) expect to run on the event loop thread
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Registry listener failed: {e}", exc_info=True)
