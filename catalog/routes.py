# src/catalog/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from catalog.models import ItemType
from catalog.schemas import ItemResponse, SubscriptionPlan
from catalog.services import CatalogService
from database import get_db
from exceptions import NotFoundError

router = APIRouter(prefix="/catalog", tags=["catalog"])

@router.get("/courses", response_model=List[ItemResponse])
def list_courses(db: Session = Depends(get_db)):
    """Retrieve published courses."""
    return CatalogService.list_published(ItemType.COURSE, db)

@router.get("/packs", response_model=List[ItemResponse])
def list_packs(db: Session = Depends(get_db)):
    """Retrieve published course packs."""
    return CatalogService.list_published(ItemType.PACK, db)

@router.get("/{item_type}/{item_id}/plans", response_model=List[SubscriptionPlan])
def get_item_plans(item_type: ItemType, item_id: int, db: Session = Depends(get_db)):
    """List the plans a user can choose for an item."""
    item = CatalogService.get_item(item_type, item_id, db)
    if not item:
        raise NotFoundError(f"{item_type.value.capitalize()} not found")
    return CatalogService.get_plans(item)
