"""Payment Repository for StudySphere."""

import logging
from typing import List, Literal, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import Payment, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """Data access for the payment ledger."""

    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_latest_for_session(self, session_id: str) -> Optional[Payment]:
        """
        Current entry for a session.

        The single non-failed entry wins; otherwise the most recent failure.
        """
        try:
            query = self.db.query(Payment).filter(Payment.session_id == session_id)
            current = query.filter(Payment.status != PaymentStatus.FAILED.value).first()
            if current is not None:
                return current
            return query.order_by(Payment.created_at.desc(), Payment.id.desc()).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting payment for session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payment: {str(e)}")

    def get_by_gateway_order_id(self, order_id: str) -> Optional[Payment]:
        return self.find_one_by(gateway_order_id=order_id)

    def get_by_gateway_payment_id(self, payment_id: str) -> Optional[Payment]:
        return self.find_one_by(gateway_payment_id=payment_id)

    def get_history(self, user_id: str, role: Literal["payer", "payee"]) -> List[Payment]:
        try:
            column = Payment.payer_id if role == "payer" else Payment.payee_id
            return cast(
                List[Payment],
                self.db.query(Payment)
                .filter(column == user_id)
                .order_by(Payment.created_at.desc())
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting payment history for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payment history: {str(e)}")
