# src/subscription/models.py
import enum


class PlanType(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, enum.Enum):
    """Values of the denormalized summary kept on the user row."""
    FREE = "free"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    EXPIRED = "expired"


def enum_values(enum_cls) -> list:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]
