# src/admin/routes.py
from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from access.schemas import AccessRecordResponse
from auth.models import User, AdminActionLog
from auth.schemas import UserResponse, AdminActionLogResponse
from auth.routes import check_admin_role
from database import get_db
from exceptions import NotFoundError
from payment.models import Payment, PaymentStatus
from payment.schemas import ActionResult, PaymentResponse, RejectRequest
from payment.services import PaymentService
from scheduler.schemas import SweepResult
from scheduler.services import ExpirationService
from storage.services import ReceiptStorage, get_receipt_storage
from subscription.models import SubscriptionStatus
from subscription.schemas import SubscriptionAnalytics
from subscription.services import SubscriptionService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(check_admin_role)])

@router.get("/users", response_model=List[UserResponse])
def get_users(
    subscription_status: Optional[SubscriptionStatus] = None,
    db: Session = Depends(get_db)
):
    """Retrieve users with optional subscription status filter."""
    query = db.query(User)
    if subscription_status:
        query = query.filter(User.subscription_status == subscription_status)
    return query.order_by(User.id).all()

@router.get("/payments", response_model=List[PaymentResponse])
def get_payments(
    status: Optional[PaymentStatus] = None,
    db: Session = Depends(get_db)
):
    """Retrieve payments with optional status filter."""
    query = db.query(Payment)
    if status:
        query = query.filter(Payment.status == status)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()

@router.get("/payments/pending", response_model=List[PaymentResponse])
def get_pending_payments(db: Session = Depends(get_db)):
    """Review queue, newest first."""
    return PaymentService.list_pending(db)

@router.get("/payments/{payment_id}/receipt")
def get_payment_receipt(
    payment_id: int,
    db: Session = Depends(get_db),
    storage: ReceiptStorage = Depends(get_receipt_storage)
):
    """Resolve the receipt attached to a payment."""
    payment = PaymentService.get_payment(payment_id, db)
    if not payment.receipt_reference:
        raise NotFoundError("No receipt attached to this payment")
    return {"url": storage.get_url(payment.receipt_reference), "filename": payment.receipt_filename}

@router.post("/payments/{payment_id}/approve", response_model=ActionResult)
def approve_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Approve a pending payment and grant access."""
    record = PaymentService.approve(payment_id, current_user.id, db)
    payment = PaymentService.get_payment(payment_id, db)
    return ActionResult(
        success=True,
        message=f"Payment approved, access granted until {record.end_date:%Y-%m-%d}",
        payment=PaymentResponse.from_orm(payment),
    )

@router.post("/payments/{payment_id}/reject", response_model=ActionResult)
def reject_payment(
    payment_id: int,
    request: Optional[RejectRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role)
):
    """Reject a pending payment with an optional reason."""
    reason = request.reason if request else None
    payment = PaymentService.reject(payment_id, current_user.id, reason, db)
    return ActionResult(success=True, message="Payment rejected", payment=PaymentResponse.from_orm(payment))

@router.get("/subscriptions/analytics", response_model=SubscriptionAnalytics)
def get_subscription_analytics(db: Session = Depends(get_db)):
    return SubscriptionService.get_analytics(db)

@router.get("/access/expiring", response_model=List[AccessRecordResponse])
def get_expiring_access(
    window_days: int = Query(default=7, ge=0, le=365),
    db: Session = Depends(get_db)
):
    """Grants ending within the window, for reminders."""
    return ExpirationService.list_expiring_soon(db, window_days=window_days)

@router.post("/access/sweep", response_model=SweepResult)
def run_sweep(db: Session = Depends(get_db)):
    """Deactivate expired grants now instead of waiting for the scheduler."""
    return ExpirationService.sweep(db)

@router.get("/logs", response_model=List[AdminActionLogResponse])
def get_admin_logs(db: Session = Depends(get_db)):
    """Retrieve admin action logs."""
    return db.query(AdminActionLog).order_by(AdminActionLog.timestamp.desc(), AdminActionLog.id.desc()).all()
