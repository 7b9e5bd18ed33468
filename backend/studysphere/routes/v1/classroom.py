# backend/studysphere/routes/v1/classroom.py
"""
Classroom routes - API v1

Meeting room control for online sessions.
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...api.dependencies import get_classroom_service, get_current_actor
from ...core.exceptions import DomainException
from ...principal import Actor
from ...schemas.base_responses import SuccessResponse, success_response
from ...services.classroom_service import ClassroomService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["classroom-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/{session_id}/start", response_model=SuccessResponse)
async def start_class(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(get_current_actor),
    classroom_service: ClassroomService = Depends(get_classroom_service),
) -> SuccessResponse:
    try:
        session = await asyncio.to_thread(classroom_service.start_class, actor, session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Class started successfully",
        {
            "roomId": session.room_id,
            "roomUrl": session.room_url,
            "meetingRoom": session.meeting_room_dict(),
        },
    )


@router.post("/{session_id}/join", response_model=SuccessResponse)
async def join_class(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(get_current_actor),
    classroom_service: ClassroomService = Depends(get_classroom_service),
) -> SuccessResponse:
    try:
        room = await asyncio.to_thread(classroom_service.join_class, actor, session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Joining class", room)


@router.post("/{session_id}/end", response_model=SuccessResponse)
async def end_class(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(get_current_actor),
    classroom_service: ClassroomService = Depends(get_classroom_service),
) -> SuccessResponse:
    try:
        session = await asyncio.to_thread(classroom_service.end_class, actor, session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Class ended", {"meetingRoom": session.meeting_room_dict()})


@router.get("/{session_id}/status", response_model=SuccessResponse)
async def get_class_status(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(get_current_actor),
    classroom_service: ClassroomService = Depends(get_classroom_service),
) -> SuccessResponse:
    try:
        class_status = await asyncio.to_thread(
            classroom_service.get_class_status, actor, session_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Class status retrieved", class_status)
