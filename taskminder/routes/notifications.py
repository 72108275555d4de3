"""Diagnostics for the notification delivery service."""

from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..models.notification import parse_request_id
from ..services.engine import ReminderEngine, get_engine

router = APIRouter(prefix="/notifications", tags=["notifications"])


class PendingItem(BaseModel):
    id: str
    when: datetime
    task_id: Optional[str] = None


class PendingSummary(BaseModel):
    total: int
    capacity: int
    by_kind: Dict[str, int]
    items: List[PendingItem]


@router.get("/pending", response_model=PendingSummary)
async def pending_notifications(engine: ReminderEngine = Depends(get_engine)) -> PendingSummary:
    """Pending requests grouped by time point and mode."""
    pending = await engine.delivery.list_pending()
    counts: Counter = Counter()
    items = []
    for item in pending:
        parsed = parse_request_id(item.id)
        key = f"{parsed.timepoint.value}_{parsed.mode.value}" if parsed else "other"
        counts[key] += 1
        items.append(PendingItem(id=item.id, when=item.when, task_id=parsed.task_id if parsed else None))

    return PendingSummary(
        total=len(pending),
        capacity=engine.settings.notification_capacity,
        by_kind=dict(counts),
        items=items,
    )
