# src/subscription/schemas.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from subscription.models import SubscriptionStatus

class SubscriptionStatusResponse(BaseModel):
    """Cached subscription summary of a user, for display only."""
    status: SubscriptionStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    days_remaining: Optional[int] = None
    is_active: bool = False
    is_expiring_soon: bool = False

class SubscriptionOverview(BaseModel):
    active_subscriptions: int
    expiring_soon: int
    total_spent: float
    next_expiration: Optional[datetime] = None

class SubscriptionAnalytics(BaseModel):
    """Admin dashboard figures."""
    total_monthly_subs: int
    total_yearly_subs: int
    active_users: int
    expiring_soon: int
    total_revenue: float
    pending_payments: int
