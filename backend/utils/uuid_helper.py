"""
Identifier helpers.

Stored clip files are named by a generated UUID rather than the
user-supplied clip name, so names never collide on disk or escape the
sound directory.
"""
import uuid


def generate_uuid() -> str:
    """
    Generate a new UUID string.

    Returns:
        str: A new UUID4 string
    """
    return str(uuid.uuid4())


def generate_stored_filename(extension: str) -> str:
    """Return a fresh file name like '<uuid4>.mp3' for an uploaded clip"""
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return f"{generate_uuid()}{extension}"
