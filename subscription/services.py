# src/subscription/services.py
import logging
from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional
from access.evaluator import days_remaining
from access.models import AccessRecord
from auth.models import User
from clock import utcnow
from config import settings
from payment.models import Payment, PaymentStatus
from subscription.models import PlanType, SubscriptionStatus
from subscription.schemas import SubscriptionAnalytics, SubscriptionOverview, SubscriptionStatusResponse

logger = logging.getLogger(__name__)

class SubscriptionService:
    """
    The summary on the user row is a display cache. It can always be rebuilt
    from access records and is never consulted for access decisions.
    """

    @staticmethod
    def refresh_summary(user_id: int, db: Session, now: Optional[datetime] = None) -> Optional[User]:
        """Re-derive the user's summary from access records. Does not commit."""
        now = now or utcnow()
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            logger.warning(f"Cannot refresh subscription summary: user {user_id} not found")
            return None

        current = db.query(AccessRecord).filter(
            AccessRecord.user_id == user_id,
            AccessRecord.is_active == True,
            AccessRecord.end_date > now
        ).order_by(AccessRecord.end_date.desc(), AccessRecord.id.desc()).first()

        if current:
            user.subscription_status = SubscriptionStatus(PlanType(current.plan_type).value)
            user.subscription_start_date = current.start_date
            user.subscription_end_date = current.end_date
            return user

        last = db.query(AccessRecord).filter(
            AccessRecord.user_id == user_id
        ).order_by(AccessRecord.end_date.desc(), AccessRecord.id.desc()).first()
        if last:
            user.subscription_status = SubscriptionStatus.EXPIRED
            user.subscription_start_date = last.start_date
            user.subscription_end_date = last.end_date
        else:
            user.subscription_status = SubscriptionStatus.FREE
            user.subscription_start_date = None
            user.subscription_end_date = None
        return user

    @staticmethod
    def rebuild_summary(user_id: int, db: Session, now: Optional[datetime] = None) -> SubscriptionStatusResponse:
        user = SubscriptionService.refresh_summary(user_id, db, now=now)
        db.commit()
        if user:
            db.refresh(user)
        return SubscriptionService.get_status(user, now=now)

    @staticmethod
    def get_status(user: Optional[User], now: Optional[datetime] = None) -> SubscriptionStatusResponse:
        """Read the cached summary; no writes happen here."""
        if user is None:
            return SubscriptionStatusResponse(status=SubscriptionStatus.FREE)
        now = now or utcnow()
        status = SubscriptionStatus(user.subscription_status or SubscriptionStatus.FREE)
        remaining = days_remaining(user.subscription_end_date, now) if user.subscription_end_date else None
        is_active = status in (SubscriptionStatus.MONTHLY, SubscriptionStatus.YEARLY) and bool(remaining)
        return SubscriptionStatusResponse(
            status=status,
            start_date=user.subscription_start_date,
            end_date=user.subscription_end_date,
            days_remaining=remaining,
            is_active=is_active,
            is_expiring_soon=is_active and 0 < remaining <= settings.EXPIRING_SOON_DAYS,
        )

    @staticmethod
    def get_overview(user_id: int, db: Session, now: Optional[datetime] = None) -> SubscriptionOverview:
        now = now or utcnow()
        soon = now + timedelta(days=settings.EXPIRING_SOON_DAYS)

        valid = db.query(AccessRecord).filter(
            AccessRecord.user_id == user_id,
            AccessRecord.is_active == True,
            AccessRecord.end_date > now
        )
        active_count = valid.count()
        expiring = valid.filter(AccessRecord.end_date <= soon).order_by(AccessRecord.end_date.asc()).all()

        total_spent = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.user_id == user_id,
            Payment.status == PaymentStatus.APPROVED
        ).scalar()

        return SubscriptionOverview(
            active_subscriptions=active_count,
            expiring_soon=len(expiring),
            total_spent=float(total_spent or 0),
            next_expiration=expiring[0].end_date if expiring else None,
        )

    @staticmethod
    def get_analytics(db: Session, now: Optional[datetime] = None) -> SubscriptionAnalytics:
        now = now or utcnow()
        soon = now + timedelta(days=settings.EXPIRING_SOON_DAYS)

        valid = db.query(AccessRecord).filter(
            AccessRecord.is_active == True,
            AccessRecord.end_date > now
        )
        monthly = valid.filter(AccessRecord.plan_type == PlanType.MONTHLY).count()
        yearly = valid.filter(AccessRecord.plan_type == PlanType.YEARLY).count()
        expiring_soon = valid.filter(AccessRecord.end_date <= soon).count()
        active_users = db.query(func.count(func.distinct(AccessRecord.user_id))).filter(
            AccessRecord.is_active == True,
            AccessRecord.end_date > now
        ).scalar()

        revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).join(
            AccessRecord, AccessRecord.payment_id == Payment.id
        ).filter(
            AccessRecord.is_active == True,
            AccessRecord.end_date > now
        ).scalar()

        pending = db.query(func.count(Payment.id)).filter(Payment.status == PaymentStatus.PENDING).scalar()

        return SubscriptionAnalytics(
            total_monthly_subs=monthly,
            total_yearly_subs=yearly,
            active_users=active_users or 0,
            expiring_soon=expiring_soon,
            total_revenue=float(revenue or 0),
            pending_payments=pending or 0,
        )
