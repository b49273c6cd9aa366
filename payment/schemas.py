# src/payment/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from catalog.models import ItemType
from subscription.models import PlanType
from payment.models import PaymentStatus

class PaymentCreate(BaseModel):
    """Schema for submitting a payment for an item."""
    item_type: ItemType = ItemType.COURSE
    item_id: int
    plan_type: PlanType
    amount: float
    currency: Optional[str] = None

class PaymentResponse(BaseModel):
    """Schema for payment response."""
    id: int
    user_id: int
    item_type: ItemType
    item_id: int
    plan_type: PlanType
    amount: float
    currency: str
    receipt_reference: Optional[str] = None
    receipt_filename: Optional[str] = None
    status: PaymentStatus
    admin_notes: Optional[str] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class PaymentStatusResponse(BaseModel):
    """Latest payment of a user for one item; status is "none" when nothing was submitted."""
    status: str = "none"
    payment_id: Optional[int] = None
    admin_notes: Optional[str] = None
    processed_at: Optional[datetime] = None

class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)

class ActionResult(BaseModel):
    """Semantic outcome handed to the notification surface."""
    success: bool
    message: str
    payment: Optional[PaymentResponse] = None
