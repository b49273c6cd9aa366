# src/subscription/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from subscription.services import SubscriptionService
from subscription.schemas import SubscriptionOverview, SubscriptionStatusResponse
from auth.routes import get_current_user
from database import get_db
from auth.models import User

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

@router.get("/me", response_model=SubscriptionStatusResponse)
def get_my_subscription(current_user: User = Depends(get_current_user)):
    """Cached subscription summary of the current user."""
    return SubscriptionService.get_status(current_user)

@router.get("/me/overview", response_model=SubscriptionOverview)
def get_my_overview(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Active grants, upcoming expirations and total spent."""
    return SubscriptionService.get_overview(current_user.id, db)

@router.post("/me/refresh", response_model=SubscriptionStatusResponse)
def refresh_my_subscription(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Rebuild the cached summary from access records."""
    return SubscriptionService.rebuild_summary(current_user.id, db)
