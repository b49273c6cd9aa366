# src/payment/models.py
import enum
from sqlalchemy import CheckConstraint, Column, Integer, String, ForeignKey, DateTime, Numeric, Text, Enum, Index
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime
from catalog.models import ItemType
from subscription.models import PlanType, enum_values

class PaymentStatus(str, enum.Enum):
    """pending -> approved | rejected; both outcomes are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class Payment(Base):
    """Represents a user-submitted request to buy access, settled by an admin."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    item_type = Column(Enum(ItemType, name="item_type", native_enum=False, values_callable=enum_values), nullable=False)
    item_id = Column(Integer, nullable=False)
    plan_type = Column(Enum(PlanType, name="plan_type", native_enum=False, values_callable=enum_values), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="TND")
    receipt_reference = Column(String, nullable=True)  # bucket key of the uploaded receipt
    receipt_filename = Column(String, nullable=True)
    status = Column(
        Enum(PaymentStatus, name="payment_status", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    admin_notes = Column(Text, nullable=True)
    processed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="payments", foreign_keys=[user_id])
    processor = relationship("User", foreign_keys=[processed_by])
    access_record = relationship("AccessRecord", back_populates="payment", uselist=False)

    __table_args__ = (
        Index("ix_payments_item", "item_type", "item_id"),
        CheckConstraint("item_type IN ('course', 'pack')", name="ck_payments_item_type"),
        CheckConstraint("plan_type IN ('monthly', 'yearly')", name="ck_payments_plan_type"),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_payments_status"),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
