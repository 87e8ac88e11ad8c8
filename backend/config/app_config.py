"""
Runtime Configuration

Reads the soundboard's settings from environment variables. A ``.env`` file in
the working directory is loaded first so local setups don't need exported
variables.

Variables:
- SOUNDBOARD_SOUND_DIR: where uploaded clips are stored (default ./sounds)
- SOUNDBOARD_DB_PATH: registry database file (default <sound dir>/soundboard.db)
- SOUNDBOARD_PUBLIC_DIR: static frontend directory (default ./public)
- SOUNDBOARD_SINK: audio sink backend, "null" or "sounddevice"
- SOUNDBOARD_AUDIO_DEVICE: output device for the sounddevice sink
- SOUNDBOARD_HOST / SOUNDBOARD_PORT: bind address
- SOUNDBOARD_LOG_DIR: rotating log file directory (default <sound dir>/logs)
"""
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from constants import ServerConfig, SinkBackend
from exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    sound_dir: Path
    db_path: Path
    public_dir: Path
    log_dir: Path
    sink_backend: SinkBackend = SinkBackend.NULL
    audio_device: Optional[str] = None
    host: str = ServerConfig.HOST
    port: int = ServerConfig.PORT

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.db_path}"


def _parse_sink_backend(value: str) -> SinkBackend:
    try:
        return SinkBackend(value.strip().lower())
    except ValueError:
        choices = ", ".join(b.value for b in SinkBackend)
        raise ConfigurationError(
            f"Unknown SOUNDBOARD_SINK '{value}' (expected one of: {choices})",
            missing_keys=["SOUNDBOARD_SINK"],
        )


def _parse_port(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            f"SOUNDBOARD_PORT must be an integer, got '{value}'",
            missing_keys=["SOUNDBOARD_PORT"],
        )


def load_config(env: Optional[dict] = None) -> AppConfig:
    """
    Build the application config from the environment.

    Args:
        env: Optional mapping used instead of os.environ (tests pass one in)

    Returns:
        AppConfig with all paths resolved to absolute paths

    Raises:
        ConfigurationError: If a variable has an invalid value
    """
    if env is None:
        load_dotenv()
        env = os.environ

    sound_dir = Path(env.get("SOUNDBOARD_SOUND_DIR", "sounds")).expanduser().resolve()
    db_path = Path(env.get("SOUNDBOARD_DB_PATH", sound_dir / "soundboard.db")).expanduser().resolve()
    public_dir = Path(env.get("SOUNDBOARD_PUBLIC_DIR", "public")).expanduser().resolve()
    log_dir = Path(env.get("SOUNDBOARD_LOG_DIR", sound_dir / "logs")).expanduser().resolve()

    config = AppConfig(
        sound_dir=sound_dir,
        db_path=db_path,
        public_dir=public_dir,
        log_dir=log_dir,
        sink_backend=_parse_sink_backend(env.get("SOUNDBOARD_SINK", SinkBackend.NULL.value)),
        audio_device=env.get("SOUNDBOARD_AUDIO_DEVICE") or None,
        host=env.get("SOUNDBOARD_HOST", ServerConfig.HOST),
        port=_parse_port(env.get("SOUNDBOARD_PORT", str(ServerConfig.PORT))),
    )
    logger.debug(f"Loaded config: {config}")
    return config
