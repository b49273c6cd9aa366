# src/access/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from access.schemas import AccessStatusResponse, ActiveAccessResponse, BulkAccessRequest, BulkAccessResponse
from access.services import AccessService
from auth.models import User
from auth.routes import get_current_user
from catalog.models import ItemType
from database import get_db

router = APIRouter(prefix="/access", tags=["access"])

@router.get("/me/active", response_model=ActiveAccessResponse)
def get_active_access(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Tell whether the current user holds any valid grant."""
    return ActiveAccessResponse(has_active_access=AccessService.has_active_access(current_user.id, db))

@router.post("/bulk", response_model=BulkAccessResponse)
def check_bulk_access(
    request: BulkAccessRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Evaluate access for every item of a listing screen."""
    return AccessService.bulk_check(current_user.id, request.item_type, request.item_ids, db)

@router.get("/{item_type}/{item_id}", response_model=AccessStatusResponse)
def check_access(
    item_type: ItemType,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Access decision for one course or pack. Denial is a normal answer, not an error."""
    return AccessService.check(current_user.id, item_type, item_id, db)
