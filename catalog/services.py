# src/catalog/services.py
import logging
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from catalog.models import Course, CoursePack, ItemType
from catalog.schemas import ItemResponse, SubscriptionPlan
from config import settings
from subscription.models import PlanType

logger = logging.getLogger(__name__)

PurchasableItem = Union[Course, CoursePack]

_MODELS = {
    ItemType.COURSE: Course,
    ItemType.PACK: CoursePack,
}


class CatalogService:
    @staticmethod
    def model_for(item_type: ItemType):
        return _MODELS[ItemType(item_type)]

    @staticmethod
    def get_item(item_type: ItemType, item_id: int, db: Session) -> Optional[PurchasableItem]:
        """Retrieve a course or pack by type and ID."""
        model = CatalogService.model_for(item_type)
        return db.query(model).filter(model.id == item_id).first()

    @staticmethod
    def list_published(item_type: ItemType, db: Session) -> List[ItemResponse]:
        """Published items, newest first."""
        model = CatalogService.model_for(item_type)
        items = db.query(model).filter(model.is_published == True).order_by(
            model.created_at.desc(), model.id.desc()
        ).all()
        return [ItemResponse.from_orm(item) for item in items]

    @staticmethod
    def get_plans(item: PurchasableItem) -> List[SubscriptionPlan]:
        """Plans on offer for an item; free items have none."""
        plans: List[SubscriptionPlan] = []
        if item.is_free:
            return plans

        if item.monthly_price and item.monthly_price > 0:
            days = settings.PLAN_DURATION_DAYS[PlanType.MONTHLY.value]
            plans.append(SubscriptionPlan(
                type=PlanType.MONTHLY,
                price=float(item.monthly_price),
                duration_days=days,
                currency=item.currency,
                description=f"Access for {days} days",
            ))

        if item.yearly_price and item.yearly_price > 0:
            days = settings.PLAN_DURATION_DAYS[PlanType.YEARLY.value]
            plans.append(SubscriptionPlan(
                type=PlanType.YEARLY,
                price=float(item.yearly_price),
                duration_days=days,
                currency=item.currency,
                description=f"Access for {days} days",
            ))

        return plans
