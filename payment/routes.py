# src/payment/routes.py
import logging
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session
from typing import List
from payment.services import PaymentService
from payment.schemas import PaymentCreate, PaymentResponse, PaymentStatusResponse
from payment.models import PaymentStatus
from auth.routes import get_current_user
from auth.models import User
from catalog.models import ItemType
from database import get_db
from config import settings
from exceptions import AppError, ConflictError, NotFoundError
from storage.services import ReceiptStorage, get_receipt_storage, validate_receipt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

@router.post("/", response_model=PaymentResponse)
def create_payment(
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Submit a payment for a course or pack; it waits for admin review."""
    return PaymentService.create_payment(
        user_id=current_user.id,
        item_type=payment_data.item_type,
        item_id=payment_data.item_id,
        plan_type=payment_data.plan_type,
        amount=payment_data.amount,
        currency=payment_data.currency,
        db=db
    )

@router.post("/{payment_id}/receipt", response_model=PaymentResponse)
def upload_receipt(
    payment_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ReceiptStorage = Depends(get_receipt_storage)
):
    """Upload the transfer receipt of one of the user's pending payments."""
    payment = PaymentService.get_payment(payment_id, db)
    if payment.user_id != current_user.id:
        raise NotFoundError("Payment not found")
    if payment.status != PaymentStatus.PENDING:
        raise ConflictError("Receipts can only be attached to pending payments")

    data = file.file.read(settings.RECEIPT_MAX_BYTES + 1)
    validate_receipt(file.content_type, len(data))

    key = storage.build_key(current_user.id, payment_id, file.filename, file.content_type)
    receipt = storage.upload(data, key, file.content_type, file.filename)
    try:
        return PaymentService.attach_receipt(payment_id, receipt.key, db, receipt_filename=receipt.filename)
    except AppError:
        logger.warning(f"Receipt {receipt.key} not attached to payment {payment_id}, removing it")
        storage.delete(receipt.key)
        raise

@router.get("/", response_model=List[PaymentResponse])
def get_user_payments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return PaymentService.get_user_payments(current_user.id, db)

@router.get("/status/{item_type}/{item_id}", response_model=PaymentStatusResponse)
def get_payment_status(
    item_type: ItemType,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Status of the user's latest payment for an item."""
    return PaymentService.get_payment_status(current_user.id, item_type, item_id, db)
