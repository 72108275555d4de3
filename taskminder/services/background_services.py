"""Lifecycle triggers and the periodic background wake."""

import asyncio
from functools import lru_cache
from typing import Optional

from ..logging_config import get_logger
from ..models.notification import parse_request_id
from .engine import ReminderEngine, get_engine
from .reminders.refresh import RefreshResult

logger = get_logger(__name__)


class BackgroundServiceManager:
    """Runs refresh and archive work for application lifecycle events.

    Triggers never raise: failures are logged and left for the next trigger.
    The background wake loop only sets a minimum spacing between runs, so the
    engine must tolerate arbitrarily long gaps.
    """

    def __init__(self, engine: Optional[ReminderEngine] = None):
        self.engine = engine or get_engine()
        self.wake_interval = self.engine.settings.background_refresh_hours * 3600
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start_services(self) -> None:
        """Start the background wake loop."""

        if self._running:
            logger.warning("Background services already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._wake_loop())
        logger.info(f"📋 Background wake scheduled every {self.engine.settings.background_refresh_hours}h")

    async def stop_services(self) -> None:
        """Stop the background wake loop."""

        if not self._running:
            return

        self._running = False

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._task = None
        logger.info("Background services stopped")

    def is_running(self) -> bool:
        """Check if background services are running."""
        return self._running

    async def on_foreground(self) -> Optional[RefreshResult]:
        """App entered the foreground: refresh reminders and archive old tasks."""
        result = await self._refresh("foreground")
        self._sweep()
        return result

    async def on_notification_delivered(self, request_id: Optional[str] = None) -> Optional[RefreshResult]:
        """A notification was delivered: refill the buffers."""
        parsed = parse_request_id(request_id) if request_id else None
        if parsed is not None:
            logger.info(f"🔔 Delivered {parsed.timepoint.display_name} notification for task {parsed.task_id}")
        return await self._refresh("delivery")

    async def on_background_wake(self) -> Optional[RefreshResult]:
        """Periodic background wake: same work as the foreground trigger."""
        result = await self._refresh("background wake")
        self._sweep()
        return result

    async def _refresh(self, trigger: str) -> Optional[RefreshResult]:
        try:
            return await self.engine.refresh.refresh()
        except Exception as e:
            logger.exception(f"Notification refresh ({trigger}) failed: {e}")
            return None

    def _sweep(self) -> int:
        try:
            archived = self.engine.sweeper.sweep()
        except Exception as e:
            logger.exception(f"Auto archive failed: {e}")
            return 0
        if archived:
            logger.info(f"🗄️ Auto archived {archived} tasks")
        return archived

    async def _wake_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.wake_interval)
                logger.info("🔄 Background wake")
                await self.on_background_wake()
            except asyncio.CancelledError:
                break


@lru_cache(maxsize=1)
def get_background_manager() -> BackgroundServiceManager:
    """Get the global background service manager."""
    return BackgroundServiceManager()
