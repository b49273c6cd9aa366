# src/access/models.py
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship

from catalog.models import ItemType
from database import Base
from subscription.models import PlanType, enum_values


class AccessRecord(Base):
    """A time-bounded grant of one item to one user.

    Rows are written once on payment approval and only ever flipped to
    inactive by the expiration sweep. A renewal adds a new row; several
    historical rows per (user, item) are expected.
    """
    __tablename__ = "access_records"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    item_type = Column(Enum(ItemType, name="item_type", native_enum=False, values_callable=enum_values), nullable=False)
    item_id = Column(Integer, nullable=False)
    plan_type = Column(Enum(PlanType, name="plan_type", native_enum=False, values_callable=enum_values), nullable=False)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True, unique=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="access_records")
    payment = relationship("Payment", back_populates="access_record")

    __table_args__ = (
        Index("ix_access_records_lookup", "user_id", "item_type", "item_id", "is_active"),
        CheckConstraint("item_type IN ('course', 'pack')", name="ck_access_records_item_type"),
        CheckConstraint("plan_type IN ('monthly', 'yearly')", name="ck_access_records_plan_type"),
        CheckConstraint("end_date > start_date", name="ck_access_records_window"),
    )
