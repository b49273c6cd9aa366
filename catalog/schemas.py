# src/catalog/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from catalog.models import ItemType
from subscription.models import PlanType

class ItemResponse(BaseModel):
    """Schema for a purchasable course or pack."""
    id: int
    item_type: ItemType
    title: str
    description: Optional[str] = None
    is_free: bool
    monthly_price: float
    yearly_price: float
    currency: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SubscriptionPlan(BaseModel):
    """A plan the user can pick for a paid item."""
    type: PlanType
    price: float
    duration_days: int
    currency: str
    description: str
