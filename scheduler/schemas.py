# src/scheduler/schemas.py
from pydantic import BaseModel

class SweepResult(BaseModel):
    """Outcome of one expiration sweep."""
    deactivated_count: int
    users_updated: int = 0
