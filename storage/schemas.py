# src/storage/schemas.py
from pydantic import BaseModel

class ReceiptReference(BaseModel):
    """Opaque pointer to an uploaded receipt."""
    key: str
    url: str
    filename: str
