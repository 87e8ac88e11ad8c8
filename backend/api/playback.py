"""
Playback API - play and stop clips, inspect the active session
"""
from fastapi import APIRouter, Depends
from dependencies import get_orchestrator
from services.playback_orchestrator import PlaybackOrchestrator
from utils.error_handlers import handle_api_errors
from schemas import PlayRequest, PlayResponse, PlaybackStatus, StopResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/play", response_model=PlayResponse)
@handle_api_errors("Play sound")
async def play_sound(request: PlayRequest, orchestrator: PlaybackOrchestrator = Depends(get_orchestrator)):
    """
    Play a clip, replacing whatever is currently playing.

    Returns once playback has started, not when it finishes.

    Raises:
        HTTPException: 404 for an unknown clip or a missing file,
            503 if no audio sink is connected, 500 if the decoder can't start
    """
    session = await orchestrator.play(request.sound, client_timestamp=request.playPressedAt)
    return PlayResponse(sound=session.clip.name, handle_id=session.handle.id)


@router.post("/stop", response_model=StopResponse)
@handle_api_errors("Stop playback")
async def stop_playback(orchestrator: PlaybackOrchestrator = Depends(get_orchestrator)):
    """Stop the current clip. Always succeeds, including when nothing is playing."""
    await orchestrator.stop()
    return StopResponse()


@router.get("/api/playback/status", response_model=PlaybackStatus)
async def get_playback_status(orchestrator: PlaybackOrchestrator = Depends(get_orchestrator)):
    """
    Get the state of the playback slot.

    Returns:
        - state: IDLE | PLAYING
        - session: active session (clip, handle id, start time) or null
        - last_session: most recently ended session with its final state
        - sink_connected: whether the audio sink can accept a stream
    """
    return orchestrator.status()
