"""Application lifecycle hooks.

The host application calls these when it enters the foreground, when a
notification is delivered, and on a periodic background wake.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..services.background_services import BackgroundServiceManager, get_background_manager
from ..services.reminders.refresh import RefreshResult

router = APIRouter(tags=["lifecycle"])


class DeliveredRequest(BaseModel):
    request_id: Optional[str] = None


class RefreshResponse(BaseModel):
    """Whether the refresh ran, and what it did."""
    ok: bool
    added: int = 0
    capacity_exceeded: bool = False
    pruned_delivered: int = 0
    pruned_pending: int = 0
    failures: int = 0


def _to_response(result: Optional[RefreshResult]) -> RefreshResponse:
    if result is None:
        return RefreshResponse(ok=False)
    return RefreshResponse(
        ok=True,
        added=result.added,
        capacity_exceeded=result.capacity_exceeded,
        pruned_delivered=result.pruned_delivered,
        pruned_pending=result.pruned_pending,
        failures=len(result.failures),
    )


@router.post("/lifecycle/foreground", response_model=RefreshResponse)
async def foreground(manager: BackgroundServiceManager = Depends(get_background_manager)) -> RefreshResponse:
    return _to_response(await manager.on_foreground())


@router.post("/lifecycle/background-wake", response_model=RefreshResponse)
async def background_wake(manager: BackgroundServiceManager = Depends(get_background_manager)) -> RefreshResponse:
    return _to_response(await manager.on_background_wake())


@router.post("/notifications/delivered", response_model=RefreshResponse)
async def notification_delivered(
    payload: DeliveredRequest,
    manager: BackgroundServiceManager = Depends(get_background_manager),
) -> RefreshResponse:
    return _to_response(await manager.on_notification_delivered(payload.request_id))
