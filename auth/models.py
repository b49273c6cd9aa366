# src/auth/models.py
from sqlalchemy import CheckConstraint, Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime
from subscription.models import SubscriptionStatus, enum_values

class User(Base):
    """Represents a student or administrator, as known to the identity provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    role = Column(String, nullable=False, default="user")

    # Denormalized cache of the most significant access record; never used for access decisions
    subscription_status = Column(
        Enum(SubscriptionStatus, name="subscription_status", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=SubscriptionStatus.FREE,
    )
    subscription_start_date = Column(DateTime, nullable=True)
    subscription_end_date = Column(DateTime, nullable=True)

    payments = relationship("Payment", back_populates="user", foreign_keys="Payment.user_id")
    access_records = relationship("AccessRecord", back_populates="user")
    admin_actions = relationship("AdminActionLog", back_populates="admin")

    __table_args__ = (
        CheckConstraint(
            "subscription_status IN ('free', 'monthly', 'yearly', 'expired')",
            name="ck_users_subscription_status",
        ),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

class AdminActionLog(Base):
    """Represents a log of admin actions."""
    __tablename__ = "admin_action_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    admin = relationship("User", back_populates="admin_actions")
