# src/access/schemas.py
import enum
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from catalog.models import ItemType
from subscription.models import PlanType


class AccessType(str, enum.Enum):
    FREE = "free"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    EXPIRED = "expired"  # held a grant before, none valid now
    NONE = "none"  # never held a grant


class AccessDecision(BaseModel):
    """Outcome of evaluating one (user, item) pair."""
    has_access: bool
    access_type: AccessType
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None
    can_access: bool

    model_config = {"frozen": True}


class AccessStatusResponse(AccessDecision):
    """Decision plus the flags course and pack screens render."""
    item_type: ItemType
    item_id: int
    is_expiring_soon: bool = False
    is_expired: bool = False


class BulkAccessRequest(BaseModel):
    item_type: ItemType
    item_ids: List[int] = Field(default_factory=list)


class BulkAccessResponse(BaseModel):
    """configured=False means the access table is not provisioned; nothing was evaluated."""
    configured: bool
    decisions: Dict[int, AccessStatusResponse] = Field(default_factory=dict)


class ActiveAccessResponse(BaseModel):
    has_active_access: bool


class AccessRecordResponse(BaseModel):
    id: int
    user_id: int
    item_type: ItemType
    item_id: int
    plan_type: PlanType
    payment_id: Optional[int] = None
    start_date: datetime
    end_date: datetime
    is_active: bool

    class Config:
        from_attributes = True
