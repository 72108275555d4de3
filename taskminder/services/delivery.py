"""Notification delivery service implementations.

The delivery service is the source of truth for what is scheduled. It owns a
hard global cap on concurrently pending requests shared by every task, so the
engine always re-reads it instead of mirroring its state.
"""

import asyncio
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import AuthorizationDenied, CapacityExceeded, InvalidScheduleTime
from ..logging_config import get_logger
from ..models.notification import DeliveredNotification, NotificationContent, PendingNotification, request_matches
from ..utils.dt import Clock, as_utc, utc_now
from .supabase_client import NOTIFICATIONS_TABLE

logger = get_logger(__name__)

DEFAULT_CAPACITY = 64


class DeliveryService:
    """Interface of the notification delivery service consumed by the engine."""

    async def schedule(self, request_id: str, when: datetime, content: NotificationContent) -> None:
        """Schedule a request. Re-scheduling an existing id overwrites it.

        Raises CapacityExceeded, AuthorizationDenied or InvalidScheduleTime.
        """
        raise NotImplementedError

    async def cancel(self, request_ids: Iterable[str]) -> None:
        """Cancel pending requests. Unknown ids are ignored."""
        raise NotImplementedError

    async def list_pending(self) -> List[PendingNotification]:
        raise NotImplementedError

    async def list_delivered(self) -> List[DeliveredNotification]:
        raise NotImplementedError

    async def remove_delivered(self, request_ids: Iterable[str]) -> None:
        raise NotImplementedError

    async def cancel_matching(self, prefixes: Iterable[str]) -> List[str]:
        """Cancel every pending request matching one of the id patterns."""
        prefixes = tuple(prefixes)
        pending = await self.list_pending()
        ids = [item.id for item in pending if request_matches(item.id, prefixes)]
        if ids:
            await self.cancel(ids)
        return ids


class InMemoryDeliveryService(DeliveryService):
    """Delivery service kept in process memory.

    Mirrors the platform notification center: a fixed capacity, an
    authorization switch, and a delivered log. ``deliver_due`` moves requests
    whose time has come into the delivered log.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, clock: Clock = utc_now, authorized: bool = True):
        self.capacity = capacity
        self.clock = clock
        self.authorized = authorized
        self._pending: Dict[str, Tuple[datetime, NotificationContent]] = {}
        self._delivered: Dict[str, Tuple[datetime, NotificationContent]] = {}
        self._lock = asyncio.Lock()

    async def schedule(self, request_id: str, when: datetime, content: NotificationContent) -> None:
        if not self.authorized:
            raise AuthorizationDenied()
        when = as_utc(when)
        if when <= self.clock():
            raise InvalidScheduleTime()
        async with self._lock:
            if request_id not in self._pending and len(self._pending) >= self.capacity:
                raise CapacityExceeded()
            self._pending[request_id] = (when, content)

    async def cancel(self, request_ids: Iterable[str]) -> None:
        async with self._lock:
            for request_id in request_ids:
                self._pending.pop(request_id, None)

    async def list_pending(self) -> List[PendingNotification]:
        return [
            PendingNotification(id=request_id, when=when)
            for request_id, (when, _) in sorted(self._pending.items(), key=lambda item: item[1][0])
        ]

    async def list_delivered(self) -> List[DeliveredNotification]:
        return [
            DeliveredNotification(id=request_id, delivered_at=delivered_at)
            for request_id, (delivered_at, _) in self._delivered.items()
        ]

    async def remove_delivered(self, request_ids: Iterable[str]) -> None:
        async with self._lock:
            for request_id in request_ids:
                self._delivered.pop(request_id, None)

    async def deliver_due(self, now: Optional[datetime] = None) -> List[str]:
        """Fire every pending request due at or before ``now``."""
        now = as_utc(now) if now else self.clock()
        async with self._lock:
            due = [request_id for request_id, (when, _) in self._pending.items() if when <= now]
            for request_id in due:
                when, content = self._pending.pop(request_id)
                self._delivered[request_id] = (when, content)
        return due

    def content_for(self, request_id: str) -> Optional[NotificationContent]:
        entry = self._pending.get(request_id) or self._delivered.get(request_id)
        return entry[1] if entry else None

    def put_pending(self, request_id: str, when: datetime, content: NotificationContent) -> None:
        """Insert a pending request without any checks (restoring platform state)."""
        self._pending[request_id] = (as_utc(when), content)

    def put_delivered(self, request_id: str, delivered_at: datetime, content: NotificationContent) -> None:
        self._delivered[request_id] = (as_utc(delivered_at), content)


class SupabaseDeliveryService(DeliveryService):
    """Delivery queue kept in the Supabase ``scheduled_notifications`` table.

    A push gateway drains due rows and stamps ``delivered_at``; this class only
    manages the queue and enforces the shared capacity.
    """

    def __init__(self, client, capacity: int = DEFAULT_CAPACITY, clock: Clock = utc_now):
        self.client = client
        self.capacity = capacity
        self.clock = clock

    async def schedule(self, request_id: str, when: datetime, content: NotificationContent) -> None:
        when = as_utc(when)
        if when <= self.clock():
            raise InvalidScheduleTime()

        existing = (
            self.client.table(NOTIFICATIONS_TABLE)
            .select("id")
            .eq("id", request_id)
            .is_("delivered_at", "null")
            .execute()
        )
        if not existing.data:
            pending = (
                self.client.table(NOTIFICATIONS_TABLE)
                .select("id", count="exact")
                .is_("delivered_at", "null")
                .execute()
            )
            if (pending.count or 0) >= self.capacity:
                raise CapacityExceeded()

        data = {
            "id": request_id,
            "task_id": content.task_id,
            "fire_at": when.isoformat(),
            "delivered_at": None,
            "content": content.model_dump(mode="json"),
        }
        self.client.table(NOTIFICATIONS_TABLE).upsert(data).execute()

    async def cancel(self, request_ids: Iterable[str]) -> None:
        ids = list(request_ids)
        if not ids:
            return
        (
            self.client.table(NOTIFICATIONS_TABLE)
            .delete()
            .in_("id", ids)
            .is_("delivered_at", "null")
            .execute()
        )

    async def list_pending(self) -> List[PendingNotification]:
        result = (
            self.client.table(NOTIFICATIONS_TABLE)
            .select("id, fire_at")
            .is_("delivered_at", "null")
            .order("fire_at", desc=False)
            .execute()
        )
        return [
            PendingNotification(id=row["id"], when=row["fire_at"])
            for row in result.data or []
        ]

    async def list_delivered(self) -> List[DeliveredNotification]:
        result = (
            self.client.table(NOTIFICATIONS_TABLE)
            .select("id, delivered_at")
            .not_.is_("delivered_at", "null")
            .execute()
        )
        return [
            DeliveredNotification(id=row["id"], delivered_at=row["delivered_at"])
            for row in result.data or []
        ]

    async def remove_delivered(self, request_ids: Iterable[str]) -> None:
        ids = list(request_ids)
        if not ids:
            return
        (
            self.client.table(NOTIFICATIONS_TABLE)
            .delete()
            .in_("id", ids)
            .not_.is_("delivered_at", "null")
            .execute()
        )
