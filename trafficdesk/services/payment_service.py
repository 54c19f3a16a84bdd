import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.core.config import settings
from trafficdesk.core.constants import PAYMENT_ID_PREFIX, CaseStatus, PaymentStatus
from trafficdesk.core.exceptions import NotFoundError
from trafficdesk.core.ids import generate_id, utcnow
from trafficdesk.models.cases import Case
from trafficdesk.models.payment import PaymentTransaction
from trafficdesk.schemas.payment import PaymentMethod, PaymentOut
from trafficdesk.services.transitions import CASE_STATUS_TIMESTAMPS, apply_status
from trafficdesk.services.validation import raise_for_errors, validate_payment

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_payment(self, case_id: str, amount: float, method: Optional[PaymentMethod] = None,
                             currency: Optional[str] = None, transaction_id: Optional[str] = None,
                             processing_fee: float = 0.0) -> PaymentOut:
        """
        Record a completed payment for a case and mark the case paid.

        Both writes share one transaction.
        """
        raise_for_errors(validate_payment(amount))
        case = await self.db.get(Case, case_id)
        if case is None:
            logger.warning("Rejected payment for unknown case %s", case_id)
            raise NotFoundError("Case", case_id)

        now = utcnow()
        payment_id = generate_id(PAYMENT_ID_PREFIX)
        payment = PaymentTransaction(
            id=payment_id,
            violation_id=case_id,
            amount=float(amount),
            currency=currency or settings.DEFAULT_CURRENCY,
            status=PaymentStatus.COMPLETED,
            method=(method or PaymentMethod()).model_dump(mode="json"),
            transaction_id=transaction_id or f"txn-{payment_id}",
            processing_fee=processing_fee,
            net_amount=float(amount) - processing_fee,
            paid_at=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(payment)
        apply_status(case, CaseStatus.PAID, CASE_STATUS_TIMESTAMPS, now)

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Recorded payment %s of %.2f %s for case %s", payment.id, payment.amount,
                    payment.currency, case_id)
        return PaymentOut.model_validate(payment)

    async def get_payment(self, payment_id: str) -> Optional[PaymentOut]:
        payment = await self.db.get(PaymentTransaction, payment_id)
        return PaymentOut.model_validate(payment) if payment else None

    async def get_payments_by_case(self, case_id: str) -> List[PaymentOut]:
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.violation_id == case_id)
            .order_by(PaymentTransaction.created_at.asc(), PaymentTransaction.id.asc())
        )
        return [PaymentOut.model_validate(p) for p in result.scalars()]
