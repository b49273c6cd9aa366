# src/payment/services.py
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, List
import logging
import re

from access.models import AccessRecord
from auth.models import AdminActionLog
from catalog.models import ItemType
from catalog.services import CatalogService
from clock import utcnow
from config import settings
from exceptions import ConflictError, NotFoundError, TransientStoreError, ValidationError
from payment.models import Payment, PaymentStatus
from payment.schemas import PaymentStatusResponse
from subscription.models import PlanType
from subscription.services import SubscriptionService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Numeric(10, 2)
MAX_AMOUNT = Decimal("99999999.99")
CURRENCY_PATTERN = re.compile(r"[A-Za-z]{3}")

class PaymentService:
    """
    Payment workflow: a payment is created pending, may get a receipt attached,
    and is then approved or rejected exactly once by an administrator.

    Approval and rejection are conditional updates on ``status = 'pending'``,
    so of two concurrent administrators only one wins; the other gets a
    ConflictError. Callers are trusted to have verified the admin role.
    """

    @staticmethod
    def create_payment(
            user_id: int,
            item_type: ItemType,
            item_id: int,
            plan_type: PlanType,
            amount: float,
            currency: Optional[str],
            db: Session
    ) -> Payment:
        try:
            plan_type = PlanType(plan_type)
        except ValueError:
            raise ValidationError(f"Unknown plan type: {plan_type}")
        try:
            item_type = ItemType(item_type)
        except ValueError:
            raise ValidationError(f"Unknown item type: {item_type}")
        amount = PaymentService._normalize_amount(amount)
        if currency is not None:
            currency = PaymentService._normalize_currency(currency)

        item = CatalogService.get_item(item_type, item_id, db)
        if not item:
            raise NotFoundError(f"{item_type.value.capitalize()} not found")
        if item.is_free:
            raise ValidationError("Free items do not require a payment")

        if settings.REJECT_DUPLICATE_PENDING_PAYMENTS:
            existing = PaymentService.find_pending(user_id, item_type, item_id, db)
            if existing:
                raise ConflictError(f"Payment {existing.id} for this item is already awaiting review")

        payment = Payment(
            user_id=user_id,
            item_type=item_type,
            item_id=item_id,
            plan_type=plan_type,
            amount=amount,
            currency=currency or PaymentService._normalize_currency(item.currency or settings.DEFAULT_CURRENCY),
            status=PaymentStatus.PENDING,
        )
        db.add(payment)
        PaymentService._commit(db, f"create payment for user {user_id}")
        db.refresh(payment)
        logger.info(f"Payment {payment.id} created: user={user_id}, {item_type.value}={item_id}, "
                    f"plan={plan_type.value}, amount={amount} {payment.currency}")
        return payment

    @staticmethod
    def attach_receipt(payment_id: int, receipt_reference: str, db: Session,
                       receipt_filename: Optional[str] = None) -> Payment:
        """Record where the receipt was stored; the status stays pending."""
        if not receipt_reference:
            raise ValidationError("Receipt reference is required")

        try:
            updated = db.query(Payment).filter(
                Payment.id == payment_id,
                Payment.status == PaymentStatus.PENDING
            ).update({
                Payment.receipt_reference: receipt_reference,
                Payment.receipt_filename: receipt_filename,
                Payment.updated_at: utcnow(),
            }, synchronize_session=False)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Attaching receipt to payment {payment_id} failed: {str(e)}")
            raise TransientStoreError("Could not save the receipt, try again later")

        if updated == 0:
            db.rollback()
            PaymentService.get_payment(payment_id, db)
            raise ConflictError("Receipts can only be attached to pending payments")

        PaymentService._commit(db, f"attach receipt to payment {payment_id}")
        logger.info(f"Receipt {receipt_reference} attached to payment {payment_id}")
        return PaymentService.get_payment(payment_id, db)

    @staticmethod
    def approve(payment_id: int, admin_user_id: int, db: Session, now: Optional[datetime] = None) -> AccessRecord:
        """Approve a pending payment and grant access for the plan's duration.

        The status change, the new access record, the user's summary and the
        admin log entry are committed together or not at all.
        """
        now = now or utcnow()
        payment = PaymentService.get_payment(payment_id, db)
        if payment.status != PaymentStatus.PENDING:
            raise ConflictError(f"Payment already {payment.status.value}")

        plan_type = PlanType(payment.plan_type)
        start_date = now
        end_date = now + timedelta(days=settings.PLAN_DURATION_DAYS[plan_type.value])

        try:
            updated = db.query(Payment).filter(
                Payment.id == payment_id,
                Payment.status == PaymentStatus.PENDING
            ).update({
                Payment.status: PaymentStatus.APPROVED,
                Payment.processed_by: admin_user_id,
                Payment.processed_at: now,
                Payment.updated_at: now,
            }, synchronize_session=False)
            if updated == 0:
                db.rollback()
                raise ConflictError("Payment already processed")

            record = AccessRecord(
                user_id=payment.user_id,
                item_type=payment.item_type,
                item_id=payment.item_id,
                plan_type=plan_type,
                payment_id=payment.id,
                start_date=start_date,
                end_date=end_date,
                is_active=True,
            )
            db.add(record)
            db.flush()

            SubscriptionService.refresh_summary(payment.user_id, db, now=now)
            db.add(AdminActionLog(
                admin_id=admin_user_id,
                action=f"Approved payment {payment_id} ({plan_type.value}) for user {payment.user_id}",
                timestamp=now,
            ))
            db.commit()
        except ConflictError:
            raise
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Payment {payment_id} approval lost a race: {str(e)}")
            raise ConflictError("Payment already processed")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Approving payment {payment_id} failed: {str(e)}")
            raise TransientStoreError("Could not approve the payment, try again later")

        db.refresh(record)
        logger.info(f"Payment {payment_id} approved by {admin_user_id}: access record {record.id} "
                    f"valid {start_date.isoformat()} -> {end_date.isoformat()}")
        return record

    @staticmethod
    def reject(payment_id: int, admin_user_id: int, reason: Optional[str], db: Session,
               now: Optional[datetime] = None) -> Payment:
        """Reject a pending payment; no access is granted."""
        now = now or utcnow()
        payment = PaymentService.get_payment(payment_id, db)
        if payment.status != PaymentStatus.PENDING:
            raise ConflictError(f"Payment already {payment.status.value}")

        try:
            updated = db.query(Payment).filter(
                Payment.id == payment_id,
                Payment.status == PaymentStatus.PENDING
            ).update({
                Payment.status: PaymentStatus.REJECTED,
                Payment.admin_notes: reason,
                Payment.processed_by: admin_user_id,
                Payment.processed_at: now,
                Payment.updated_at: now,
            }, synchronize_session=False)
            if updated == 0:
                db.rollback()
                raise ConflictError("Payment already processed")

            db.add(AdminActionLog(
                admin_id=admin_user_id,
                action=f"Rejected payment {payment_id} for user {payment.user_id}",
                timestamp=now,
            ))
            db.commit()
        except ConflictError:
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Rejecting payment {payment_id} failed: {str(e)}")
            raise TransientStoreError("Could not reject the payment, try again later")

        db.refresh(payment)
        logger.info(f"Payment {payment_id} rejected by {admin_user_id}: {reason or 'no reason given'}")
        return payment

    @staticmethod
    def get_payment(payment_id: int, db: Session) -> Payment:
        payment = db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    @staticmethod
    def list_pending(db: Session) -> List[Payment]:
        """Administrator queue, newest first."""
        return db.query(Payment).filter(
            Payment.status == PaymentStatus.PENDING
        ).order_by(Payment.created_at.desc(), Payment.id.desc()).all()

    @staticmethod
    def get_user_payments(user_id: int, db: Session) -> List[Payment]:
        return db.query(Payment).filter(
            Payment.user_id == user_id
        ).order_by(Payment.created_at.desc(), Payment.id.desc()).all()

    @staticmethod
    def find_pending(user_id: int, item_type: ItemType, item_id: int, db: Session) -> Optional[Payment]:
        return db.query(Payment).filter(
            Payment.user_id == user_id,
            Payment.item_type == item_type,
            Payment.item_id == item_id,
            Payment.status == PaymentStatus.PENDING
        ).order_by(Payment.created_at.desc(), Payment.id.desc()).first()

    @staticmethod
    def get_payment_status(user_id: int, item_type: ItemType, item_id: int, db: Session) -> PaymentStatusResponse:
        """Status of the latest payment a user submitted for an item."""
        payment = db.query(Payment).filter(
            Payment.user_id == user_id,
            Payment.item_type == item_type,
            Payment.item_id == item_id
        ).order_by(Payment.created_at.desc(), Payment.id.desc()).first()
        if not payment:
            return PaymentStatusResponse()
        return PaymentStatusResponse(
            status=payment.status.value,
            payment_id=payment.id,
            admin_notes=payment.admin_notes,
            processed_at=payment.processed_at,
        )

    @staticmethod
    def _normalize_amount(amount) -> Decimal:
        """Round to cents as stored; anything not strictly positive after rounding is refused."""
        try:
            value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError("Amount must be a number")
        if not value.is_finite() or value <= 0:
            raise ValidationError("Amount must be positive")
        if value > MAX_AMOUNT:
            raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}")
        return value

    @staticmethod
    def _normalize_currency(currency: str) -> str:
        if not isinstance(currency, str) or not CURRENCY_PATTERN.fullmatch(currency.strip()):
            raise ValidationError("Currency must be a 3-letter code")
        return currency.strip().upper()

    @staticmethod
    def _commit(db: Session, action: str):
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to {action}: {str(e)}")
            raise TransientStoreError("The record store is unavailable, try again later")
