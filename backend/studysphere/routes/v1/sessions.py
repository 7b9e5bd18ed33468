# backend/studysphere/routes/v1/sessions.py
"""
Session routes - API v1

Versioned session endpoints under /api/v1/sessions.
All business logic delegated to SessionService.

Endpoints:
    GET / - Caller's sessions with status filter and pagination
    POST / - Book a session directly
    GET /tutor - Tutor's own sessions
    GET /stats - Session statistics for the caller
    GET /available-slots - Free one-hour slots of a tutor on a date
    POST /check-availability - Check a tutor's availability for a range
    GET /{session_id} - Session details (participants and admins)
    PATCH /{session_id}/cancel - Cancel, refunding any payment
    PATCH /{session_id}/complete - Tutor requests completion
    PATCH /{session_id}/complete/approve - Student approves completion
    PATCH /{session_id}/complete/reject - Student rejects completion
    PATCH /{session_id}/reschedule - Move a scheduled session
    PATCH /{session_id}/review - Student reviews a completed session
    PATCH /{session_id}/notes - Update session notes
"""

import asyncio
from datetime import date
import logging
from typing import Any, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_current_actor, get_session_service, require_student
from ...core.exceptions import DomainException
from ...principal import Actor
from ...schemas.base_responses import PaginationMeta, SuccessResponse, success_response
from ...schemas.session import (
    AvailabilityCheck,
    CompletionReject,
    CompletionRequestBody,
    SessionCancel,
    SessionCreate,
    SessionNotesUpdate,
    SessionReschedule,
    SessionReview,
)
from ...services.session_service import SessionService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["sessions-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _session_path() -> Any:
    return Path(
        ...,
        description="Session ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    )


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("", response_model=SuccessResponse)
async def list_sessions(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    """List the caller's sessions, newest first."""
    try:
        sessions, total = await asyncio.to_thread(
            session_service.list_sessions, actor, status=status_filter, page=page, limit=limit
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Sessions retrieved successfully",
        {
            "sessions": [s.to_dict() for s in sessions],
            "pagination": PaginationMeta.build(page, limit, total).model_dump(),
        },
    )


@router.post("", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate = Body(...),
    actor: Actor = Depends(require_student),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    """Book a session directly with a tutor."""
    try:
        session = await asyncio.to_thread(session_service.create_session, actor, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session booked successfully", {"session": session.to_dict()})


@router.get("/tutor", response_model=SuccessResponse)
async def list_tutor_sessions(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        sessions, total = await asyncio.to_thread(
            session_service.list_tutor_sessions,
            actor,
            status=status_filter,
            page=page,
            limit=limit,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Sessions retrieved successfully",
        {
            "sessions": [s.to_dict() for s in sessions],
            "pagination": PaginationMeta.build(page, limit, total).model_dump(),
        },
    )


@router.get("/stats", response_model=SuccessResponse)
async def get_session_stats(
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        stats = await asyncio.to_thread(session_service.get_stats, actor)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session statistics retrieved", stats)


@router.get("/available-slots", response_model=SuccessResponse)
async def get_available_slots(
    tutor_id: str = Query(..., alias="tutorId", min_length=1),
    target_date: date = Query(..., alias="date"),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    """Free one-hour slots for display; bookings are re-checked on commit."""
    try:
        slots = await asyncio.to_thread(
            session_service.get_available_slots, tutor_id, target_date
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Available slots retrieved",
        {"date": target_date.isoformat(), "tutorId": tutor_id, "slots": slots},
    )


@router.post("/check-availability", response_model=SuccessResponse)
async def check_availability(
    payload: AvailabilityCheck = Body(...),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        result = await asyncio.to_thread(
            session_service.check_availability,
            payload.tutor_id,
            payload.start_time,
            payload.end_time,
        )
    except DomainException as e:
        handle_domain_exception(e)
    message = "Time slot is available" if result["available"] else "Time slot is not available"
    return success_response(message, result)


# ============================================================================
# SECTION 2: Session routes
# ============================================================================


@router.get("/{session_id}", response_model=SuccessResponse)
async def get_session(
    session_id: str = _session_path(),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        session = await asyncio.to_thread(session_service.get_session, actor, session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session retrieved successfully", {"session": session.to_dict()})


@router.patch("/{session_id}/cancel", response_model=SuccessResponse)
async def cancel_session(
    session_id: str = _session_path(),
    payload: Optional[SessionCancel] = Body(None),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    """Cancel a session. Refund failures are reported, not raised."""
    reason = payload.reason if payload else None
    try:
        result = await asyncio.to_thread(
            session_service.cancel_session, actor, session_id, reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    message = "Session cancelled successfully"
    if result.payment_refunded:
        message += ". Payment has been refunded."
    return success_response(
        message,
        {"session": result.session.to_dict(), "paymentRefunded": result.payment_refunded},
    )


@router.patch("/{session_id}/complete", response_model=SuccessResponse)
async def request_completion(
    session_id: str = _session_path(),
    payload: Optional[CompletionRequestBody] = Body(None),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    notes = payload.notes if payload else None
    try:
        session = await asyncio.to_thread(
            session_service.request_completion, actor, session_id, notes
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Completion request sent. Waiting for student approval.",
        {"session": session.to_dict()},
    )


@router.patch("/{session_id}/complete/approve", response_model=SuccessResponse)
async def approve_completion(
    session_id: str = _session_path(),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        result = await asyncio.to_thread(session_service.approve_completion, actor, session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Session marked as completed",
        {"session": result.session.to_dict(), "paymentCaptured": result.payment_captured},
    )


@router.patch("/{session_id}/complete/reject", response_model=SuccessResponse)
async def reject_completion(
    session_id: str = _session_path(),
    payload: Optional[CompletionReject] = Body(None),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    reason = payload.reason if payload else None
    try:
        session = await asyncio.to_thread(
            session_service.reject_completion, actor, session_id, reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Completion request rejected", {"session": session.to_dict()})


@router.patch("/{session_id}/reschedule", response_model=SuccessResponse)
async def reschedule_session(
    session_id: str = _session_path(),
    payload: SessionReschedule = Body(...),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        session = await asyncio.to_thread(
            session_service.reschedule_session,
            actor,
            session_id,
            payload.new_start_time,
            payload.new_end_time,
            payload.reason,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session rescheduled successfully", {"session": session.to_dict()})


@router.patch("/{session_id}/review", response_model=SuccessResponse)
async def review_session(
    session_id: str = _session_path(),
    payload: SessionReview = Body(...),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        session = await asyncio.to_thread(
            session_service.review_session, actor, session_id, payload.rating, payload.review
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Review submitted successfully", {"session": session.to_dict()})


@router.patch("/{session_id}/notes", response_model=SuccessResponse)
async def update_notes(
    session_id: str = _session_path(),
    payload: SessionNotesUpdate = Body(...),
    actor: Actor = Depends(get_current_actor),
    session_service: SessionService = Depends(get_session_service),
) -> SuccessResponse:
    try:
        session = await asyncio.to_thread(
            session_service.update_notes, actor, session_id, payload.notes
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Session notes updated", {"session": session.to_dict()})
