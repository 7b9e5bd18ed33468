# backend/studysphere/services/payment_service.py
"""
Payment Service for StudySphere

Owns the payment ledger for tutoring sessions:
- development mode: orders are authorized immediately with synthetic ids
  and every capture/refund succeeds locally
- test/live mode: orders, captures and refunds go through Razorpay

Gateway calls are never made inside a database transaction. Each gateway
operation follows three phases: read and validate, call the gateway,
write the result. The service never decides session state; it mirrors the
payment status onto ``TutoringSession.payment_status`` and reports the
outcome back to the caller.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
import json
import logging
from typing import Any, Dict, List, Literal, Optional

from sqlalchemy.orm import Session

from ..core import metrics
from ..core.config import settings
from ..core.exceptions import (
    ForbiddenException,
    InvalidSignatureException,
    NotFoundException,
    PaymentException,
    PaymentGatewayException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..events.session_events import PaymentStatusChanged
from ..integrations.razorpay_client import (
    RazorpayClient,
    RazorpayError,
    verify_payment_signature,
    verify_webhook_signature,
)
from ..models.payment import (
    CAPTURABLE_STATUSES,
    REFUNDABLE_STATUSES,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from ..models.tutoring_session import SessionStatus, TutoringSession
from ..principal import Actor, Admin, Student, Tutor
from ..repositories import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from ..repositories.session_repository import SessionRepository
from .base import BaseService
from .notification_service import NotificationService
from .pricing_service import MONEY_QUANT, PricingService

logger = logging.getLogger(__name__)

DEVELOPMENT_MODE = "development"


@dataclass
class PaymentOrder:
    """Result of opening a payment order for a session."""

    payment: Payment
    message: str
    checkout: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment": self.payment.to_dict(),
            "mode": self.payment.mode,
            "checkout": self.checkout,
        }


@dataclass
class WebhookResult:
    event: str
    handled: bool
    payment_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"received": True, "event": self.event, "handled": self.handled}


def _millis() -> int:
    return int(utc_now().timestamp() * 1000)


class PaymentService(BaseService):
    """Service layer for session payments."""

    def __init__(
        self,
        db: Session,
        payment_repository: Optional[PaymentRepository] = None,
        session_repository: Optional[SessionRepository] = None,
        gateway: Optional[RazorpayClient] = None,
        mode: Optional[str] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.payment_repository = (
            payment_repository or RepositoryFactory.create_payment_repository(db)
        )
        self.session_repository = (
            session_repository or RepositoryFactory.create_session_repository(db)
        )
        self._gateway = gateway
        self.mode = mode or settings.payment_mode
        self.notification_service = notification_service or NotificationService()

    @property
    def is_development(self) -> bool:
        return self.mode == DEVELOPMENT_MODE

    def get_payment_mode(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "currency": settings.payment_currency,
            "gatewayConfigured": settings.gateway_configured,
            "keyId": settings.razorpay_key_id or None,
        }

    def _get_gateway(self) -> RazorpayClient:
        if self._gateway is None:
            try:
                self._gateway = RazorpayClient(
                    key_id=settings.razorpay_key_id,
                    key_secret=settings.razorpay_key_secret,
                    base_url=settings.razorpay_base_url,
                    timeout=settings.payment_gateway_timeout_seconds,
                )
            except ValueError as e:
                self.logger.error(f"Payment gateway unavailable: {str(e)}")
                raise PaymentGatewayException(str(e), gateway_code="NOT_CONFIGURED")
        return self._gateway

    # Helpers

    def _load_session(self, session_id: str) -> TutoringSession:
        session = self.session_repository.get_by_id(session_id)
        if not session:
            raise NotFoundException("Session not found")
        return session

    def _load_payment(self, session_id: str) -> Payment:
        payment = self.payment_repository.get_latest_for_session(session_id)
        if not payment:
            raise NotFoundException("Payment not found for this session")
        return payment

    @staticmethod
    def _ensure_can_view(actor: Actor, session: TutoringSession) -> None:
        match actor:
            case Admin():
                return
            case Tutor(id=user_id) | Student(id=user_id):
                if session.is_participant(user_id):
                    return
        raise ForbiddenException("You don't have permission to access this payment")

    def _mirror_onto_session(self, payment: Payment) -> None:
        session = self.session_repository.get_by_id(payment.session_id)
        if session is not None:
            session.payment_status = payment.status

    def _after_transition(self, payment: Payment) -> None:
        """Metrics and participant notification once the transition is committed."""
        metrics.PAYMENT_TRANSITIONS_TOTAL.labels(status=payment.status, mode=payment.mode).inc()
        self.notification_service.notify(
            PaymentStatusChanged(
                payment_id=payment.id, session_id=payment.session_id, status=payment.status
            ),
            [payment.payer_id, payment.payee_id],
        )

    @staticmethod
    def _mark_failed(payment: Payment, message: str, code: Optional[str]) -> None:
        payment.status = PaymentStatus.FAILED.value
        payment.failed_at = utc_now()
        payment.error_message = message
        payment.error_code = code

    # Orders

    @BaseService.measure_operation("create_order")
    def create_order(self, actor: Actor, session_id: str) -> PaymentOrder:
        """
        Open a payment order for a session.

        Raises:
            ForbiddenException: caller is not the session's student
            PaymentException: a non-failed payment already exists
            PaymentGatewayException: the gateway rejected or did not answer
        """
        if not isinstance(actor, Student):
            raise ForbiddenException("Only the student can initiate payment for this session")

        gateway = None if self.is_development else self._get_gateway()

        # Phase 1: validate and open the ledger entry
        with self.transaction():
            session = self._load_session(session_id)
            if session.student_id != actor.id:
                raise ForbiddenException("Only the student can initiate payment for this session")
            if session.status == SessionStatus.CANCELLED.value:
                raise PaymentException(
                    "Cannot initiate payment for a cancelled session",
                    details={"sessionStatus": session.status},
                )

            existing = self.payment_repository.get_latest_for_session(session_id)
            if existing and existing.status != PaymentStatus.FAILED.value:
                raise PaymentException(
                    "Payment already initiated for this session",
                    details={"paymentId": existing.id, "status": existing.status},
                )

            split = PricingService.payment_split(session.price)
            payment = self.payment_repository.create(
                session_id=session.id,
                payer_id=session.student_id,
                payee_id=session.tutor_id,
                amount=split.amount,
                currency=settings.payment_currency,
                platform_fee=split.platform_fee,
                tutor_amount=split.tutor_amount,
                status=PaymentStatus.PENDING.value,
                mode=self.mode,
            )

            if self.is_development:
                stamp = _millis()
                payment.status = PaymentStatus.AUTHORIZED.value
                payment.payment_method = PaymentMethod.DEVELOPMENT.value
                payment.gateway_order_id = f"dev_order_{stamp}"
                payment.gateway_payment_id = f"dev_pay_{stamp}"
                payment.authorized_at = utc_now()
            session.payment_status = payment.status

            payment_id = payment.id
            description = f"Session: {session.title}"
            notes = {
                "sessionId": session.id,
                "studentId": session.student_id,
                "tutorId": session.tutor_id,
            }

        self.log_operation("create_order", payment_id=payment_id, mode=self.mode)

        if self.is_development:
            self.logger.info(f"Development payment {payment_id} auto-authorized")
            self._after_transition(payment)
            return PaymentOrder(
                payment=payment,
                message="Payment authorized (development mode)",
            )

        # Phase 2: gateway call, no transaction held
        minor_amount = PricingService.to_minor_units(payment.amount)
        gateway_error: Optional[RazorpayError] = None
        order: Dict[str, Any] = {}
        try:
            order = gateway.create_order(
                amount=minor_amount,
                currency=payment.currency,
                receipt=f"session_{session_id}",
                notes=notes,
            )
        except RazorpayError as e:
            gateway_error = e

        # Phase 3: persist the outcome
        with self.transaction():
            payment = self.payment_repository.get_by_id(payment_id)
            if gateway_error is not None:
                self._mark_failed(payment, str(gateway_error), gateway_error.error_code)
            else:
                payment.gateway_order_id = order.get("id")
            self._mirror_onto_session(payment)

        if gateway_error is not None:
            self.logger.error(
                f"Order creation failed for payment {payment_id}: {str(gateway_error)}"
            )
            self._after_transition(payment)
            raise PaymentGatewayException(
                f"Failed to create payment order: {str(gateway_error)}",
                gateway_code=gateway_error.error_code,
                timed_out=gateway_error.timed_out,
            )

        return PaymentOrder(
            payment=payment,
            message="Payment order created",
            checkout={
                "key": gateway.key_id,
                "orderId": payment.gateway_order_id,
                "amount": minor_amount,
                "currency": payment.currency,
                "name": "StudySphere",
                "description": description,
            },
        )

    @BaseService.measure_operation("verify_payment")
    def verify_payment(
        self,
        actor: Actor,
        *,
        payment_id: str,
        order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> Payment:
        """
        Verify the checkout signature and authorize the payment.

        A signature mismatch fails the payment permanently; a retry needs a
        new order.
        """
        with self.transaction():
            payment = self.payment_repository.get_by_id(payment_id)
            if not payment:
                raise NotFoundException("Payment not found")
            if payment.payer_id != actor.id:
                raise ForbiddenException("You can only verify your own payments")

            if payment.mode == DEVELOPMENT_MODE:
                return payment

            if payment.status == PaymentStatus.AUTHORIZED.value and (
                payment.gateway_payment_id == gateway_payment_id
            ):
                return payment
            if payment.status != PaymentStatus.PENDING.value:
                raise PaymentException(f"Cannot verify payment with status: {payment.status}")
            if payment.gateway_order_id != order_id:
                raise ValidationException("Order id does not match this payment")

            secret = settings.razorpay_key_secret.get_secret_value()
            if not verify_payment_signature(order_id, gateway_payment_id, signature, secret):
                self._mark_failed(payment, "Invalid payment signature", "INVALID_SIGNATURE")
                self._mirror_onto_session(payment)
                signature_valid = False
            else:
                payment.status = PaymentStatus.AUTHORIZED.value
                payment.gateway_payment_id = gateway_payment_id
                payment.gateway_signature = signature
                payment.authorized_at = utc_now()
                self._mirror_onto_session(payment)
                signature_valid = True

        self._after_transition(payment)
        if not signature_valid:
            self.logger.warning(f"Signature mismatch for payment {payment_id}")
            raise InvalidSignatureException()

        self.logger.info(f"Payment {payment_id} authorized")
        return payment

    # Capture and refund

    @BaseService.measure_operation("capture_for_session")
    def capture_for_session(self, session_id: str) -> Payment:
        """
        Capture the authorized payment of a session.

        Raises:
            NotFoundException: no payment for the session
            PaymentException: payment is not authorized
            PaymentGatewayException: the gateway failed; the payment stays authorized
        """
        with self.transaction():
            payment = self._load_payment(session_id)
            if payment.status not in CAPTURABLE_STATUSES:
                raise PaymentException(f"Cannot capture payment with status: {payment.status}")
            payment_id = payment.id
            development = payment.mode == DEVELOPMENT_MODE
            gateway_payment_id = payment.gateway_payment_id
            minor_amount = PricingService.to_minor_units(payment.amount)
            currency = payment.currency

        gateway_error: Optional[RazorpayError] = None
        if not development:
            try:
                self._get_gateway().capture_payment(
                    gateway_payment_id, amount=minor_amount, currency=currency
                )
            except RazorpayError as e:
                gateway_error = e

        with self.transaction():
            payment = self.payment_repository.get_by_id(payment_id)
            if gateway_error is not None:
                payment.error_message = str(gateway_error)
                payment.error_code = gateway_error.error_code
            else:
                payment.status = PaymentStatus.CAPTURED.value
                payment.captured_at = utc_now()
                payment.error_message = None
                payment.error_code = None
                self._mirror_onto_session(payment)

        if gateway_error is not None:
            self.logger.error(f"Capture failed for payment {payment_id}: {str(gateway_error)}")
            raise PaymentGatewayException(
                f"Failed to capture payment: {str(gateway_error)}",
                gateway_code=gateway_error.error_code,
                timed_out=gateway_error.timed_out,
            )

        self.logger.info(f"Payment {payment_id} captured")
        self._after_transition(payment)
        return payment

    @BaseService.measure_operation("refund_for_session")
    def refund_for_session(
        self,
        session_id: str,
        *,
        reason: Optional[str] = None,
        initiated_by: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> Payment:
        """
        Refund an authorized or captured payment, in full unless ``amount`` is given.

        Raises:
            NotFoundException: no payment for the session
            PaymentException: status does not allow a refund
            ValidationException: refund amount out of range
            PaymentGatewayException: the gateway failed; the payment is unchanged
        """
        with self.transaction():
            payment = self._load_payment(session_id)
            if payment.status not in REFUNDABLE_STATUSES:
                raise PaymentException(f"Cannot refund payment with status: {payment.status}")
            refund_amount = self._resolve_refund_amount(payment.amount, amount)
            payment_id = payment.id
            development = payment.mode == DEVELOPMENT_MODE
            gateway_payment_id = payment.gateway_payment_id

        refund_reason = reason or "Session cancelled or rejected"
        gateway_error: Optional[RazorpayError] = None
        refund: Dict[str, Any] = {"id": f"dev_refund_{_millis()}"} if development else {}
        if not development:
            try:
                refund = self._get_gateway().refund_payment(
                    gateway_payment_id,
                    amount=PricingService.to_minor_units(refund_amount),
                    notes={"reason": refund_reason},
                )
            except RazorpayError as e:
                gateway_error = e

        with self.transaction():
            payment = self.payment_repository.get_by_id(payment_id)
            if gateway_error is not None:
                payment.error_message = str(gateway_error)
                payment.error_code = gateway_error.error_code
            else:
                now = utc_now()
                payment.status = PaymentStatus.REFUNDED.value
                payment.gateway_refund_id = refund.get("id")
                payment.refund_reason = refund_reason
                payment.refund_amount = refund_amount
                payment.refund_initiated_by = initiated_by
                payment.refund_initiated_at = now
                payment.refunded_at = now
                self._mirror_onto_session(payment)

        if gateway_error is not None:
            self.logger.error(f"Refund failed for payment {payment_id}: {str(gateway_error)}")
            raise PaymentGatewayException(
                f"Failed to refund payment: {str(gateway_error)}",
                gateway_code=gateway_error.error_code,
                timed_out=gateway_error.timed_out,
            )

        self.logger.info(f"Payment {payment_id} refunded ({refund_amount})")
        self._after_transition(payment)
        return payment

    @staticmethod
    def _resolve_refund_amount(total: Decimal, requested: Optional[Any]) -> Decimal:
        if requested is None:
            return Decimal(total)
        try:
            value = Decimal(str(requested)).quantize(MONEY_QUANT)
        except (InvalidOperation, ValueError):
            raise ValidationException(f"Invalid refund amount: {requested!r}")
        if value <= 0 or value > Decimal(total):
            raise ValidationException(
                "Refund amount must be greater than 0 and not exceed the payment amount",
                details={"amount": float(total)},
            )
        return value

    def capture_if_authorized(self, session_id: str) -> bool:
        """
        Capture for a completed session when an authorized payment exists.

        Returns False when there is nothing to capture. Gateway errors propagate.
        """
        payment = self.payment_repository.get_latest_for_session(session_id)
        if payment is None or payment.status not in CAPTURABLE_STATUSES:
            return False
        self.capture_for_session(session_id)
        return True

    def refund_if_paid(self, session_id: str, *, reason: Optional[str], initiated_by: str) -> bool:
        """
        Refund for a cancelled session when an authorized or captured payment exists.

        Returns False when there is nothing to refund. Gateway errors propagate.
        """
        payment = self.payment_repository.get_latest_for_session(session_id)
        if payment is None or payment.status not in REFUNDABLE_STATUSES:
            return False
        self.refund_for_session(session_id, reason=reason, initiated_by=initiated_by)
        return True

    def capture_payment(self, actor: Actor, session_id: str) -> Payment:
        """On-demand capture by a participant or an admin."""
        session = self._load_session(session_id)
        self._ensure_can_view(actor, session)
        return self.capture_for_session(session_id)

    def refund_payment(
        self,
        actor: Actor,
        session_id: str,
        reason: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> Payment:
        """On-demand refund by a participant or an admin."""
        session = self._load_session(session_id)
        self._ensure_can_view(actor, session)
        return self.refund_for_session(
            session_id, reason=reason, initiated_by=actor.id, amount=amount
        )

    # Reads

    def get_payment_for_session(self, actor: Actor, session_id: str) -> Payment:
        session = self._load_session(session_id)
        self._ensure_can_view(actor, session)
        return self._load_payment(session_id)

    def get_history(
        self, actor: Actor, role: Optional[Literal["payer", "payee"]] = None
    ) -> List[Payment]:
        """Payments where the caller paid (students) or was paid (tutors)."""
        if role is None:
            role = "payee" if isinstance(actor, Tutor) else "payer"
        return self.payment_repository.get_history(actor.id, role)

    # Webhooks

    @BaseService.measure_operation("handle_webhook")
    def handle_webhook(self, body: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Apply a Razorpay webhook.

        The signature over the raw body is required outside development mode.
        Unknown events and events for unknown payments are acknowledged and ignored.
        """
        if not self.is_development and not verify_webhook_signature(
            body, signature or "", settings.webhook_secret_value
        ):
            self.logger.warning("Rejected webhook with invalid signature")
            raise InvalidSignatureException("Invalid webhook signature")

        try:
            envelope = json.loads(body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationException("Webhook body is not valid JSON")
        if not isinstance(envelope, dict):
            raise ValidationException("Webhook body is not valid JSON")

        event = str(envelope.get("event") or "")
        payload = envelope.get("payload") or {}
        self.logger.info(f"Razorpay webhook received: {event}")

        payment_entity = (payload.get("payment") or {}).get("entity") or {}
        refund_entity = (payload.get("refund") or {}).get("entity") or {}

        with self.transaction():
            match event:
                case "payment.authorized":
                    payment = self._find_by_order(payment_entity.get("order_id"))
                    changed = self._webhook_authorized(payment, payment_entity)
                case "payment.captured":
                    payment = self._find_by_gateway_payment(payment_entity.get("id"))
                    changed = self._webhook_captured(payment)
                case "payment.failed":
                    payment = self._find_by_order(payment_entity.get("order_id"))
                    changed = self._webhook_failed(payment, payment_entity)
                case "refund.created":
                    payment = self._find_by_gateway_payment(refund_entity.get("payment_id"))
                    changed = self._webhook_refunded(payment, refund_entity)
                case _:
                    self.logger.info(f"Unhandled webhook event: {event}")
                    return WebhookResult(event=event, handled=False)

            if changed:
                self._mirror_onto_session(payment)

        if not changed:
            return WebhookResult(event=event, handled=False)

        self._after_transition(payment)
        return WebhookResult(event=event, handled=True, payment_id=payment.id)

    def _find_by_order(self, order_id: Optional[str]) -> Optional[Payment]:
        return self.payment_repository.get_by_gateway_order_id(order_id) if order_id else None

    def _find_by_gateway_payment(self, payment_id: Optional[str]) -> Optional[Payment]:
        return self.payment_repository.get_by_gateway_payment_id(payment_id) if payment_id else None

    @staticmethod
    def _webhook_authorized(payment: Optional[Payment], entity: Dict[str, Any]) -> bool:
        if payment is None or payment.status != PaymentStatus.PENDING.value:
            return False
        payment.status = PaymentStatus.AUTHORIZED.value
        payment.authorized_at = utc_now()
        payment.gateway_payment_id = entity.get("id")
        method = entity.get("method")
        if method in {m.value for m in PaymentMethod}:
            payment.payment_method = method
        return True

    @staticmethod
    def _webhook_captured(payment: Optional[Payment]) -> bool:
        if payment is None or payment.status not in CAPTURABLE_STATUSES:
            return False
        payment.status = PaymentStatus.CAPTURED.value
        payment.captured_at = utc_now()
        return True

    def _webhook_failed(self, payment: Optional[Payment], entity: Dict[str, Any]) -> bool:
        if payment is None or payment.status != PaymentStatus.PENDING.value:
            return False
        self._mark_failed(
            payment,
            entity.get("error_description") or "Payment failed",
            entity.get("error_code"),
        )
        return True

    @staticmethod
    def _webhook_refunded(payment: Optional[Payment], entity: Dict[str, Any]) -> bool:
        if payment is None or payment.status not in REFUNDABLE_STATUSES:
            return False
        now = utc_now()
        payment.status = PaymentStatus.REFUNDED.value
        payment.refunded_at = now
        payment.gateway_refund_id = entity.get("id")
        if payment.refund_initiated_at is None:
            payment.refund_initiated_at = now
            amount = entity.get("amount")
            payment.refund_amount = (
                Decimal(amount) / 100 if isinstance(amount, int) else payment.amount
            )
        return True
