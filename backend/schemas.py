from pydantic import BaseModel, Field
from typing import Optional, Dict


class ClipMapping(BaseModel):
    """Registry entry as exposed to clients"""
    filename: str
    emoji: str = ''


class PlayRequest(BaseModel):
    """Body of POST /play"""
    sound: str = Field(..., min_length=1)
    playPressedAt: Optional[int] = None  # Client clock, ms since epoch; diagnostics only


class PlayResponse(BaseModel):
    status: str = "Playing"
    sound: str
    handle_id: str


class StopResponse(BaseModel):
    status: str = "Stopped"


class PlaybackStatus(BaseModel):
    state: str
    session: Optional[dict] = None
    last_session: Optional[dict] = None
    sink_connected: bool


SoundMappings = Dict[str, ClipMapping]
