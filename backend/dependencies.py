"""
Dependency injection providers for FastAPI.

The registry, orchestrator and notifier are built once in the application
lifespan and stored on app.state; these providers hand them to routes so
tests can swap in their own instances.
"""

from fastapi import Request, WebSocket
from services.change_notifier import ChangeNotifier
from services.clip_registry import ClipRegistry
from services.playback_orchestrator import PlaybackOrchestrator


def get_registry(request: Request) -> ClipRegistry:
    """
    Provide the clip registry.

    Returns:
        ClipRegistry instance owned by the application
    """
    return request.app.state.registry


def get_orchestrator(request: Request) -> PlaybackOrchestrator:
    """
    Provide the playback orchestrator.

    Returns:
        PlaybackOrchestrator instance owned by the application
    """
    return request.app.state.orchestrator


def get_notifier(websocket: WebSocket) -> ChangeNotifier:
    """Provide the change notifier to WebSocket routes"""
    return websocket.app.state.notifier
