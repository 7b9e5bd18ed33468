# backend/studysphere/routes/v1/session_requests.py
"""
Session request routes - API v1

Endpoints:
    GET / - Sent (student) or received (tutor) requests
    POST / - Student proposes a session
    GET /stats - Counts by status
    GET /{request_id} - Request details
    PATCH /{request_id}/accept - Tutor accepts and books the session
    PATCH /{request_id}/decline - Tutor declines with a reason
    PATCH /{request_id}/cancel - Student withdraws a pending request
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import (
    get_current_actor,
    get_session_request_service,
    require_student,
    require_tutor,
)
from ...core.exceptions import DomainException
from ...principal import Actor
from ...schemas.base_responses import PaginationMeta, SuccessResponse, success_response
from ...schemas.session_request import (
    SessionRequestAccept,
    SessionRequestCreate,
    SessionRequestDecline,
)
from ...services.session_request_service import SessionRequestService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session-requests-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("", response_model=SuccessResponse)
async def list_session_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: SessionRequestService = Depends(get_session_request_service),
) -> SuccessResponse:
    try:
        requests, total = await asyncio.to_thread(
            service.list_requests, actor, status=status_filter, page=page, limit=limit
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Session requests retrieved successfully",
        {
            "requests": [r.to_dict() for r in requests],
            "pagination": PaginationMeta.build(page, limit, total).model_dump(),
        },
    )


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_session_request(
    payload: SessionRequestCreate = Body(...),
    actor: Actor = Depends(require_student),
    service: SessionRequestService = Depends(get_session_request_service),
) -> SuccessResponse:
    try:
        request = await asyncio.to_thread(service.create_request, actor, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session request sent successfully", {"request": request.to_dict()})


@router.get("/stats", response_model=SuccessResponse)
async def get_session_request_stats(
    actor: Actor = Depends(get_current_actor),
    service: SessionRequestService = Depends(get_session_request_service),
) -> SuccessResponse:
    try:
        stats = await asyncio.to_thread(service.get_stats, actor)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session request statistics retrieved", stats)


@router.get("/{request_id}", response_model=SuccessResponse)
async def get_session_request(
    request_id: str = Path(..., description="Session request ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(get_current_actor),
    service: SessionRequestService = Depends(get_session_request_service),
) -> SuccessResponse:
    try:
        request = await asyncio.to_thread(service.get_request, actor, request_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session request retrieved", {"request": request.to_dict()})


@router.patch("/{request_id}/accept", response_model=SuccessResponse)
async def accept_session_request(
    request_id: str = Path(..., description="Session request ULID", pattern=ULID_PATH_PATTERN),
    payload: Optional[SessionRequestAccept] = Body(None),
    actor: Actor = Depends(require_tutor),
    service: SessionRequestService = Depends(get_session_request_service),
) -> SuccessResponse:
    """Accept a request; the session is booked in the same commit."""
    tutor_response = payload.tutor_response if payload else None
    try:
        request, session = await asyncio.to_thread(
            service.accept_request, actor, request_id, tutor_response
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Session request accepted successfully",
        {"request": request.to_dict(), "session": session.to_dict()},
    )


@router.patch("/{request_id}/decline", response_model=SuccessResponse)
async def decline_session_request(
    request_id: str = Path(..., description="Session request ULID", pattern=ULID_PATH_PATTERN),
    payload: SessionRequestDecline = Body(...),
    actor: Actor = Depends(require_tutor),
    service: SessionRequestService = Depends(get_session_request_service),
) -> SuccessResponse:
    try:
        request = await asyncio.to_thread(
            service.decline_request,
            actor,
            request_id,
            payload.decline_reason,
            payload.tutor_response,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session request declined", {"request": request.to_dict()})


@router.patch("/{request_id}/cancel", response_model=SuccessResponse)
async def cancel_session_request(
    request_id: str = Path(..., description="Session request ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(require_student),
    service: SessionRequestService = Depends(get_session_request_service),
) -> SuccessResponse:
    try:
        request = await asyncio.to_thread(service.cancel_request, actor, request_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session request cancelled", {"request": request.to_dict()})
