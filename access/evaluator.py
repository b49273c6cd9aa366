# src/access/evaluator.py
"""
Pure access rules: no I/O, the caller supplies the record and the clock.

A record grants access while ``end_date > now``; ``end_date == now`` is
already expired.
"""
import math
from datetime import datetime, timedelta
from typing import Optional

from access.schemas import AccessDecision, AccessType
from config import settings

DAY = timedelta(days=1)

FREE_ACCESS = AccessDecision(has_access=True, access_type=AccessType.FREE, can_access=True)
NO_ACCESS = AccessDecision(has_access=False, access_type=AccessType.NONE, can_access=False)


def days_remaining(end_date: datetime, now: datetime) -> int:
    """Whole days left, rounded up and never negative."""
    days = math.ceil((end_date - now) / DAY)
    return max(0, days)


def is_valid(record, now: datetime) -> bool:
    return bool(record.is_active) and record.end_date > now


def decide_access(is_free: bool, record, now: datetime, had_record: bool = False,
                  last_end_date: Optional[datetime] = None) -> AccessDecision:
    """
    Decide access for one item.

    ``record`` is the currently valid grant with the latest end date, or None.
    ``had_record`` tells an expired past grant apart from "never purchased".
    """
    if is_free:
        return FREE_ACCESS

    if record is None or not is_valid(record, now):
        if had_record:
            return AccessDecision(
                has_access=False,
                access_type=AccessType.EXPIRED,
                expires_at=last_end_date,
                days_remaining=0,
                can_access=False,
            )
        return NO_ACCESS

    remaining = days_remaining(record.end_date, now)
    return AccessDecision(
        has_access=True,
        access_type=AccessType(getattr(record.plan_type, "value", record.plan_type)),
        expires_at=record.end_date,
        days_remaining=remaining,
        can_access=remaining > 0,
    )


def is_expiring_soon(decision: AccessDecision, window_days: Optional[int] = None) -> bool:
    window = settings.EXPIRING_SOON_DAYS if window_days is None else window_days
    return decision.days_remaining is not None and 0 < decision.days_remaining <= window


def is_expired(decision: AccessDecision) -> bool:
    return decision.days_remaining is not None and decision.days_remaining <= 0
