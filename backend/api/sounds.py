"""
Sounds API - upload clips and list the registry
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import RedirectResponse
from typing import Optional
from dependencies import get_registry
from services.clip_registry import ClipRegistry
from utils.error_handlers import handle_api_errors
from constants import HTTPStatus, UploadConfig
from schemas import SoundMappings
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload")
@handle_api_errors("Upload sound")
async def upload_sound(
    sound: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    emoji: Optional[str] = Form(''),
    registry: ClipRegistry = Depends(get_registry),
):
    """
    Store an uploaded clip and register it under name.

    The file is saved under a generated id, the registry entry is persisted and
    every subscriber receives the new snapshot. Re-using a name replaces that
    clip. Redirects back to the board on success.

    Raises:
        HTTPException: 400 if file or name is missing, 413 if the file is too large,
            500 if the file or the registry could not be saved
    """
    if sound is None or not name or not name.strip():
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={"kind": "ValidationError", "message": "Missing file or name"}
        )

    data = await sound.read(UploadConfig.MAX_FILE_SIZE_BYTES + 1)
    if len(data) > UploadConfig.MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            detail={
                "kind": "ValidationError",
                "message": f"File exceeds {UploadConfig.MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB limit"
            }
        )

    await registry.store_upload(name.strip(), data, emoji or '', original_filename=sound.filename)
    return RedirectResponse(url="/", status_code=HTTPStatus.SEE_OTHER)


@router.get("/mappings", response_model=SoundMappings)
@handle_api_errors("Get sound mappings")
async def get_mappings(registry: ClipRegistry = Depends(get_registry)):
    """
    Get the registry as {name: {filename, emoji}} in registration order.
    """
    return {clip.name: clip.to_mapping() for clip in registry.snapshot()}
