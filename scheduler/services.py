# src/scheduler/services.py
import logging
import smtplib
from datetime import datetime, timedelta
from email.mime.text import MIMEText
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from access.evaluator import days_remaining
from access.models import AccessRecord
from catalog.services import CatalogService
from clock import utcnow
from config import settings
from exceptions import TransientStoreError
from scheduler.schemas import SweepResult
from subscription.services import SubscriptionService

logger = logging.getLogger(__name__)


class ExpirationService:
    """
    Keeps record flags and user summaries in line with elapsed grants.

    Access decisions never depend on this having run: the evaluator compares
    end dates itself.
    """

    @staticmethod
    def sweep(db: Session, now: Optional[datetime] = None) -> SweepResult:
        """Deactivate grants whose end date has passed. Safe to run repeatedly or concurrently."""
        now = now or utcnow()
        try:
            expired = db.query(AccessRecord.id, AccessRecord.user_id).filter(
                AccessRecord.is_active == True,
                AccessRecord.end_date < now
            ).all()
            if not expired:
                logger.info("Expiration sweep: nothing to deactivate")
                return SweepResult(deactivated_count=0)

            deactivated = db.query(AccessRecord).filter(
                AccessRecord.id.in_([row.id for row in expired]),
                AccessRecord.is_active == True
            ).update({
                AccessRecord.is_active: False,
                AccessRecord.updated_at: now,
            }, synchronize_session=False)

            user_ids = sorted({row.user_id for row in expired})
            for user_id in user_ids:
                SubscriptionService.refresh_summary(user_id, db, now=now)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Expiration sweep failed: {str(e)}")
            raise TransientStoreError("Expiration sweep failed, try again later")

        logger.info(f"Deactivated {deactivated} expired access records for {len(user_ids)} users")
        return SweepResult(deactivated_count=deactivated, users_updated=len(user_ids))

    @staticmethod
    def list_expiring_soon(db: Session, window_days: Optional[int] = None,
                           now: Optional[datetime] = None) -> List[AccessRecord]:
        """Active grants ending within the window, soonest first."""
        now = now or utcnow()
        window = settings.EXPIRING_SOON_DAYS if window_days is None else window_days
        return db.query(AccessRecord).filter(
            AccessRecord.is_active == True,
            AccessRecord.end_date > now,
            AccessRecord.end_date <= now + timedelta(days=window)
        ).order_by(AccessRecord.end_date.asc(), AccessRecord.id.asc()).all()

    @staticmethod
    def send_expiration_reminders(db: Session, now: Optional[datetime] = None) -> int:
        """Mail users whose grant ends in exactly one of the reminder days. Returns mails sent."""
        now = now or utcnow()
        if not settings.SMTP_SERVER:
            logger.info("SMTP is not configured, skipping expiration reminders")
            return 0

        sent = 0
        for record in ExpirationService.list_expiring_soon(db, now=now):
            remaining = days_remaining(record.end_date, now)
            if remaining not in settings.REMINDER_DAYS:
                continue
            user = record.user
            if not user or not user.email:
                continue
            item = CatalogService.get_item(record.item_type, record.item_id, db)
            title = item.title if item else f"{record.item_type.value} #{record.item_id}"
            body = (
                f"Hello {user.full_name or user.username},\n\n"
                f"Your {record.plan_type.value} access to \"{title}\" ends in {remaining} "
                f"day{'s' if remaining > 1 else ''} ({record.end_date:%Y-%m-%d}).\n"
                f"Renew it here: {settings.BASE_FRONT_URL}/dashboard\n"
            )
            if ExpirationService.send_email(user.email, "Your PathTech Academy access is expiring", body):
                sent += 1

        logger.info(f"Sent {sent} expiration reminders")
        return sent

    @staticmethod
    def send_email(to_email: str, subject: str, body: str) -> bool:
        try:
            msg = MIMEText(body)
            msg['Subject'] = subject
            msg['From'] = settings.FROM_EMAIL
            msg['To'] = to_email

            with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
                server.starttls()
                if settings.SMTP_USERNAME:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())
            return True
        except Exception as e:
            logger.error(f"SMTP error sending to {to_email}: {str(e)}", exc_info=True)
            return False
