# src/catalog/models.py
import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text

from database import Base


class ItemType(str, enum.Enum):
    """Kind of purchasable item an access record or payment points at."""
    COURSE = "course"
    PACK = "pack"


class Course(Base):
    """Represents a course that can be free or sold by monthly/yearly plan."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_published = Column(Boolean, nullable=False, default=True)
    is_free = Column(Boolean, nullable=False, default=True)
    monthly_price = Column(Numeric(10, 2), nullable=False, default=0)
    yearly_price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="TND")
    created_at = Column(DateTime, default=datetime.utcnow)

    item_type = ItemType.COURSE


class CoursePack(Base):
    """Represents a bundle of courses, priced and accessed like a single course."""
    __tablename__ = "course_packs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_published = Column(Boolean, nullable=False, default=True)
    is_free = Column(Boolean, nullable=False, default=False)
    monthly_price = Column(Numeric(10, 2), nullable=False, default=0)
    yearly_price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="TND")
    created_at = Column(DateTime, default=datetime.utcnow)

    item_type = ItemType.PACK
