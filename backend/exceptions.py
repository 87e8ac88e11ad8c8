"""
Custom exception classes for the application.

Every error a request can run into carries a stable ``kind`` string and a
human-readable message, so the HTTP layer can return structured errors
without knowing about individual failure modes.
"""


class ApplicationError(Exception):
    """Base exception for all application errors"""

    kind = "ApplicationError"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, **self.details}


class ConfigurationError(ApplicationError):
    """Raised when there's a configuration issue"""

    kind = "ConfigurationError"

    def __init__(self, message: str, missing_keys: list[str] | None = None):
        details = {"missing_keys": missing_keys} if missing_keys else {}
        super().__init__(message, details)


class ValidationError(ApplicationError):
    """Raised when validation fails"""

    kind = "ValidationError"

    def __init__(self, message: str, invalid_fields: dict | None = None):
        details = {"invalid_fields": invalid_fields} if invalid_fields else {}
        super().__init__(message, details)


class ClipNotFoundError(ApplicationError):
    """Raised when a clip name is not in the registry"""

    kind = "ClipNotFound"

    def __init__(self, name: str):
        super().__init__(f"Sound key '{name}' not found", {"name": name})


class FileMissingError(ApplicationError):
    """Raised when a registry entry points at a file that no longer exists"""

    kind = "FileMissing"

    def __init__(self, filename: str, name: str | None = None):
        details = {"filename": filename}
        if name is not None:
            details["name"] = name
        super().__init__(f"File '{filename}' does not exist", details)


class SinkUnavailableError(ApplicationError):
    """Raised when there is no connected audio sink to play into"""

    kind = "SinkUnavailable"

    def __init__(self, message: str = "Audio sink not connected"):
        super().__init__(message)


class DecodeSpawnError(ApplicationError):
    """Raised when the decode process could not be started"""

    kind = "DecodeSpawnFailure"

    def __init__(self, path: str, message: str):
        super().__init__(message, {"path": path})


class DecodeRuntimeError(ApplicationError):
    """A decode process failed after it was spawned"""

    kind = "DecodeRuntimeFailure"

    def __init__(self, handle_id: str, message: str):
        super().__init__(message, {"handle_id": handle_id})


class PersistenceError(ApplicationError):
    """Raised when the registry snapshot could not be written"""

    kind = "PersistenceFailure"

    def __init__(self, operation: str, message: str):
        super().__init__(message, {"operation": operation})


class StorageError(ApplicationError):
    """Raised when an uploaded file could not be stored"""

    kind = "StorageFailure"

    def __init__(self, path: str, message: str):
        super().__init__(message, {"path": path})
