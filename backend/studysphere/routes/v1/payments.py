# backend/studysphere/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    GET /mode - Configured payment mode
    GET /history - Caller's payments, newest first
    POST /create-order - Open a payment order for a session
    POST /verify - Verify the checkout signature
    GET /session/{session_id} - Latest payment of a session
    POST /capture/{session_id} - Capture an authorized payment
    POST /refund/{session_id} - Refund an authorized or captured payment
    POST /webhook - Razorpay webhook (signature authenticated)
"""

import asyncio
import logging
from typing import Literal, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Path, Query, Request, status

from ...api.dependencies import get_current_actor, get_payment_service, require_student
from ...core.exceptions import DomainException
from ...principal import Actor
from ...schemas.base_responses import SuccessResponse, success_response
from ...schemas.payment import CreateOrderRequest, RefundRequest, VerifyPaymentRequest
from ...services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/mode", response_model=SuccessResponse)
async def get_payment_mode(
    payment_service: PaymentService = Depends(get_payment_service),
) -> SuccessResponse:
    return success_response("Payment mode retrieved", payment_service.get_payment_mode())


@router.get("/history", response_model=SuccessResponse)
async def get_payment_history(
    role: Optional[Literal["payer", "payee"]] = Query(None),
    actor: Actor = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> SuccessResponse:
    try:
        payments = await asyncio.to_thread(payment_service.get_history, actor, role)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(
        "Payment history retrieved", {"payments": [p.to_dict() for p in payments]}
    )


@router.post("/create-order", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: CreateOrderRequest = Body(...),
    actor: Actor = Depends(require_student),
    payment_service: PaymentService = Depends(get_payment_service),
) -> SuccessResponse:
    """
    Open a payment order for one of the student's sessions.

    In development mode the payment is authorized immediately and no
    checkout data is returned.
    """
    try:
        order = await asyncio.to_thread(payment_service.create_order, actor, payload.session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response(order.message, order.to_dict())


@router.post("/verify", response_model=SuccessResponse)
async def verify_payment(
    payload: VerifyPaymentRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> SuccessResponse:
    try:
        payment = await asyncio.to_thread(
            lambda: payment_service.verify_payment(
                actor,
                payment_id=payload.payment_id,
                order_id=payload.razorpay_order_id,
                gateway_payment_id=payload.razorpay_payment_id,
                signature=payload.razorpay_signature,
            )
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Payment verified successfully", {"payment": payment.to_dict()})


@router.get("/session/{session_id}", response_model=SuccessResponse)
async def get_session_payment(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> SuccessResponse:
    try:
        payment = await asyncio.to_thread(
            payment_service.get_payment_for_session, actor, session_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Payment retrieved", {"payment": payment.to_dict()})


@router.post("/capture/{session_id}", response_model=SuccessResponse)
async def capture_payment(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    actor: Actor = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> SuccessResponse:
    try:
        payment = await asyncio.to_thread(payment_service.capture_payment, actor, session_id)
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Payment captured successfully", {"payment": payment.to_dict()})


@router.post("/refund/{session_id}", response_model=SuccessResponse)
async def refund_payment(
    session_id: str = Path(..., description="Session ULID", pattern=ULID_PATH_PATTERN),
    payload: Optional[RefundRequest] = Body(None),
    actor: Actor = Depends(get_current_actor),
    payment_service: PaymentService = Depends(get_payment_service),
) -> SuccessResponse:
    reason = payload.reason if payload else None
    amount = payload.amount if payload else None
    try:
        payment = await asyncio.to_thread(
            payment_service.refund_payment, actor, session_id, reason, amount
        )
    except DomainException as e:
        handle_domain_exception(e)
    return success_response("Payment refunded successfully", {"payment": payment.to_dict()})


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None, alias="X-Razorpay-Signature"),
    payment_service: PaymentService = Depends(get_payment_service),
) -> dict:
    """
    Handle Razorpay webhook events.

    Authenticated by the HMAC signature over the raw body, not by a bearer token.
    """
    body = await request.body()
    try:
        result = await asyncio.to_thread(
            payment_service.handle_webhook, body, x_razorpay_signature
        )
    except DomainException as e:
        handle_domain_exception(e)
    if result.handled:
        logger.info(f"Webhook {result.event} applied to payment {result.payment_id}")
    return result.to_dict()
