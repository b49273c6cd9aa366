# src/access/services.py
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from access import evaluator
from access.models import AccessRecord
from access.schemas import AccessDecision, AccessStatusResponse, BulkAccessResponse
from catalog.models import ItemType
from catalog.services import CatalogService, PurchasableItem
from clock import utcnow

logger = logging.getLogger(__name__)


class AccessService:
    """Access decisions for course and pack screens. Read-only, fail-closed."""

    @staticmethod
    def latest_valid_record(user_id: int, item_type: ItemType, item_id: int, db: Session,
                            now: datetime) -> Optional[AccessRecord]:
        """Active, unexpired grant with the latest end date."""
        return db.query(AccessRecord).filter(
            AccessRecord.user_id == user_id,
            AccessRecord.item_type == item_type,
            AccessRecord.item_id == item_id,
            AccessRecord.is_active == True,
            AccessRecord.end_date > now,
        ).order_by(AccessRecord.end_date.desc(), AccessRecord.id.desc()).first()

    @staticmethod
    def latest_record(user_id: int, item_type: ItemType, item_id: int, db: Session) -> Optional[AccessRecord]:
        return db.query(AccessRecord).filter(
            AccessRecord.user_id == user_id,
            AccessRecord.item_type == item_type,
            AccessRecord.item_id == item_id,
        ).order_by(AccessRecord.end_date.desc(), AccessRecord.id.desc()).first()

    @staticmethod
    def evaluate(user_id: int, item: PurchasableItem, db: Session, now: Optional[datetime] = None) -> AccessDecision:
        """Current access of a user to an item; any store failure means no access."""
        if item.is_free:
            return evaluator.FREE_ACCESS

        now = now or utcnow()
        try:
            record = AccessService.latest_valid_record(user_id, item.item_type, item.id, db, now)
            if record is not None:
                return evaluator.decide_access(False, record, now)
            last = AccessService.latest_record(user_id, item.item_type, item.id, db)
            return evaluator.decide_access(
                False, None, now,
                had_record=last is not None,
                last_end_date=last.end_date if last else None,
            )
        except Exception as e:
            logger.error(f"Access check failed for user {user_id}, {item.item_type.value} {item.id}: {str(e)}")
            AccessService._reset(db)
            return evaluator.NO_ACCESS

    @staticmethod
    def evaluate_ref(user_id: int, item_type: ItemType, item_id: int, db: Session,
                     now: Optional[datetime] = None) -> AccessDecision:
        """Evaluate by reference; an unknown item is simply not accessible."""
        try:
            item = CatalogService.get_item(item_type, item_id, db)
        except Exception as e:
            logger.error(f"Item lookup failed for {item_type.value} {item_id}: {str(e)}")
            AccessService._reset(db)
            return evaluator.NO_ACCESS
        if item is None:
            return evaluator.NO_ACCESS
        return AccessService.evaluate(user_id, item, db, now)

    @staticmethod
    def check(user_id: int, item_type: ItemType, item_id: int, db: Session,
              now: Optional[datetime] = None) -> AccessStatusResponse:
        decision = AccessService.evaluate_ref(user_id, item_type, item_id, db, now)
        return AccessService._with_flags(decision, item_type, item_id)

    @staticmethod
    def bulk_check(user_id: int, item_type: ItemType, item_ids: Iterable[int], db: Session,
                   now: Optional[datetime] = None) -> BulkAccessResponse:
        """Evaluate each item on its own, keyed by item ID."""
        item_ids = list(dict.fromkeys(item_ids))
        if not item_ids:
            return BulkAccessResponse(configured=True, decisions={})
        if not AccessService.is_configured(db):
            logger.warning("access_records table is not provisioned yet, returning an empty access map")
            return BulkAccessResponse(configured=False, decisions={})

        now = now or utcnow()
        decisions = {
            item_id: AccessService.check(user_id, item_type, item_id, db, now)
            for item_id in item_ids
        }
        return BulkAccessResponse(configured=True, decisions=decisions)

    @staticmethod
    def has_active_access(user_id: int, db: Session, now: Optional[datetime] = None) -> bool:
        """Whether the user holds any currently valid grant."""
        now = now or utcnow()
        try:
            return db.query(AccessRecord.id).filter(
                AccessRecord.user_id == user_id,
                AccessRecord.is_active == True,
                AccessRecord.end_date > now,
            ).first() is not None
        except Exception as e:
            logger.error(f"Active access check failed for user {user_id}: {str(e)}")
            AccessService._reset(db)
            return False

    @staticmethod
    def is_configured(db: Session) -> bool:
        try:
            return inspect(db.get_bind()).has_table(AccessRecord.__tablename__)
        except Exception as e:
            # Evaluation below fails closed item by item if the store is down
            logger.error(f"Could not inspect access table: {str(e)}")
            return True

    @staticmethod
    def _with_flags(decision: AccessDecision, item_type: ItemType, item_id: int) -> AccessStatusResponse:
        return AccessStatusResponse(
            **decision.model_dump(),
            item_type=item_type,
            item_id=item_id,
            is_expiring_soon=evaluator.is_expiring_soon(decision),
            is_expired=evaluator.is_expired(decision),
        )

    @staticmethod
    def _reset(db: Session):
        try:
            db.rollback()
        except Exception as e:
            logger.error(f"Rollback after failed read also failed: {str(e)}")
