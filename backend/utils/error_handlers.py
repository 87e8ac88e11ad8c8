"""
Error handling decorators and utilities for API endpoints.

Centralizes the mapping from application exceptions to HTTP responses so every
endpoint returns the same structured error body:

    {"detail": {"kind": "ClipNotFound", "message": "...", ...}}
"""

from functools import wraps
from typing import Callable
from fastapi import HTTPException
import inspect
import logging

from constants import HTTPStatus
from exceptions import (
    ApplicationError,
    ClipNotFoundError,
    ConfigurationError,
    DecodeSpawnError,
    FileMissingError,
    PersistenceError,
    SinkUnavailableError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Order matters: first match wins
_STATUS_BY_ERROR = (
    (ValidationError, HTTPStatus.BAD_REQUEST),
    (ClipNotFoundError, HTTPStatus.NOT_FOUND),
    (FileMissingError, HTTPStatus.NOT_FOUND),
    (SinkUnavailableError, HTTPStatus.SERVICE_UNAVAILABLE),
    (DecodeSpawnError, HTTPStatus.INTERNAL_SERVER_ERROR),
    (PersistenceError, HTTPStatus.INTERNAL_SERVER_ERROR),
    (StorageError, HTTPStatus.INTERNAL_SERVER_ERROR),
    (ConfigurationError, HTTPStatus.INTERNAL_SERVER_ERROR),
)


def status_for_error(error: ApplicationError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return HTTPStatus.INTERNAL_SERVER_ERROR


def to_http_exception(operation_name: str, error: Exception) -> HTTPException:
    """Convert an exception raised by an endpoint into an HTTPException"""
    if isinstance(error, ApplicationError):
        status = status_for_error(error)
        if status < HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.warning(f"{operation_name} - {error.kind}: {error.message}")
        else:
            logger.error(f"{operation_name} - {error.kind}: {error.message}", exc_info=error)
        return HTTPException(status_code=status, detail=error.to_dict())

    logger.error(f"{operation_name} - Unexpected error: {error}", exc_info=error)
    return HTTPException(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        detail={
            "kind": "InternalError",
            "message": f"{operation_name} failed. Please check server logs.",
        },
    )


def handle_api_errors(operation_name: str):
    """
    Decorator to handle application errors consistently across endpoints.

    Args:
        operation_name: Human-readable name of the operation (e.g., "Play sound")

    Example:
        @router.post("/play")
        @handle_api_errors("Play sound")
        async def play(...):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                # Re-raise HTTPException as-is to preserve status code and detail
                raise
            except Exception as e:
                raise to_http_exception(operation_name, e)

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as e:
                raise to_http_exception(operation_name, e)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
