"""
FFmpeg Binary Helper

Locates the ffmpeg binary used to decode clips and builds its command line.
Lookup order: FFMPEG_PATH environment variable, ffmpeg on PATH, then a
bundled copy in ffmpeg_bins/ (development checkout or PyInstaller bundle).
"""
import os
import sys
import shutil
import logging
from pathlib import Path
from typing import List

from constants import AudioFormat
from exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def get_bundled_binary_path(binary_name: str) -> Path:
    """
    Get path where a bundled binary would live.

    Args:
        binary_name: e.g. 'ffmpeg'
    """
    if getattr(sys, 'frozen', False):
        # Running as PyInstaller bundle
        base_path = Path(sys._MEIPASS)
    else:
        # Running in development
        base_path = Path(__file__).parent.parent.parent
    return base_path / 'ffmpeg_bins' / binary_name


def get_ffmpeg_path() -> str:
    """
    Resolve the ffmpeg binary.

    Returns:
        Absolute path (or PATH-resolvable name) of ffmpeg

    Raises:
        ConfigurationError: If no ffmpeg can be found
    """
    configured = os.environ.get('FFMPEG_PATH')
    if configured:
        logger.debug(f"Using ffmpeg from FFMPEG_PATH: {configured}")
        return configured

    on_path = shutil.which('ffmpeg')
    if on_path:
        logger.debug(f"Using ffmpeg from PATH: {on_path}")
        return on_path

    bundled = get_bundled_binary_path('ffmpeg')
    if bundled.exists():
        logger.info(f"Using bundled ffmpeg: {bundled}")
        return str(bundled)

    raise ConfigurationError(
        "ffmpeg not found. Install ffmpeg, set FFMPEG_PATH, or place a binary in ffmpeg_bins/",
        missing_keys=['FFMPEG_PATH'],
    )


def build_pcm_decode_command(ffmpeg_path: str, input_path: str) -> List[str]:
    """
    Command that decodes any input ffmpeg understands into raw PCM on stdout
    (48 kHz, stereo, signed 16-bit little-endian).
    """
    return [
        ffmpeg_path,
        '-nostdin',
        '-hide_banner',
        '-loglevel', 'error',
        '-analyzeduration', '0',
        '-i', str(input_path),
        '-f', AudioFormat.FFMPEG_FORMAT,
        '-ar', str(AudioFormat.SAMPLE_RATE),
        '-ac', str(AudioFormat.CHANNELS),
        'pipe:1',
    ]
