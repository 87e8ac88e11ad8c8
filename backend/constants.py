"""
Application-wide constants and configuration keys.

This module centralizes the magic strings and numbers used by the soundboard
so the decode pipeline, the sinks, and the HTTP layer agree on them.
"""
from enum import Enum


class AudioFormat:
    """PCM format produced by the decoder and consumed by every sink"""

    SAMPLE_RATE = 48_000
    CHANNELS = 2
    SAMPLE_WIDTH_BYTES = 2  # signed 16-bit little-endian
    FFMPEG_FORMAT = "s16le"
    FRAME_DURATION_MS = 20

    @classmethod
    def frame_size_bytes(cls) -> int:
        """Bytes in one frame (20ms of interleaved stereo s16le = 3840 bytes)"""
        samples = cls.SAMPLE_RATE * cls.FRAME_DURATION_MS // 1000
        return samples * cls.CHANNELS * cls.SAMPLE_WIDTH_BYTES

    @classmethod
    def bytes_per_second(cls) -> int:
        return cls.SAMPLE_RATE * cls.CHANNELS * cls.SAMPLE_WIDTH_BYTES


class DecodeConfig:
    """Decode process supervision constants"""

    TERMINATE_TIMEOUT_SECONDS = 2.0  # Grace period between SIGTERM and SIGKILL
    STDERR_TAIL_CHARS = 500  # How much ffmpeg stderr to keep for logs


class UploadConfig:
    """Upload limits and storage conventions"""

    MAX_FILE_SIZE_BYTES = 20 * 1024 * 1024  # 20 MB
    DEFAULT_EXTENSION = ".mp3"
    FORM_FILE_FIELD = "sound"


class ServerConfig:
    """Server configuration constants"""

    HOST = "0.0.0.0"  # Listen on all interfaces so phones on the LAN can reach it
    PORT = 3000

    @classmethod
    def url(cls) -> str:
        """Get the full server URL"""
        return f"http://{cls.HOST}:{cls.PORT}"

    @classmethod
    def ws_url(cls) -> str:
        """Get the WebSocket URL"""
        return f"ws://{cls.HOST}:{cls.PORT}/ws"


class WebSocketConfig:
    """WebSocket configuration constants"""

    SEND_QUEUE_SIZE = 100  # Per-subscriber backlog before messages are dropped


class MessageTypes:
    """WebSocket message types"""

    SOUNDS = "sounds"
    PING = "ping"
    PONG = "pong"


class SinkBackend(str, Enum):
    """Available audio sink implementations"""

    NULL = "null"
    SOUNDDEVICE = "sounddevice"


class HTTPStatus:
    """HTTP status codes used throughout the application"""

    # Success
    OK = 200
    SEE_OTHER = 303

    # Client Errors
    BAD_REQUEST = 400
    NOT_FOUND = 404
    REQUEST_ENTITY_TOO_LARGE = 413
    UNPROCESSABLE_ENTITY = 422

    # Server Errors
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
