"""
Fire-and-forget notification dispatch.

dispatch() schedules delivery as a detached asyncio task and returns at once,
so notifications never sit on a payment's critical path. Each task has its
own error boundary: failures are logged as NotificationFailed and swallowed.
In-flight tasks are tracked so shutdown can wait for them.
"""

import asyncio
import logging

from app.engine.errors import NotificationFailed
from app.notifications.base import Notifier, OrderNotification

logger = logging.getLogger("payment_router.notifications")


class NotificationDispatcher:
    def __init__(self, notifier: Notifier, max_pending: int = 100):
        self._notifier = notifier
        self._max_pending = max_pending
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, notification: OrderNotification) -> bool:
        """
        Schedule delivery without awaiting it.

        Returns False (and drops the notification) when too many deliveries
        are already in flight.
        """
        if len(self._tasks) >= self._max_pending:
            logger.warning(
                "Dropping %s notification for %s: %d deliveries pending",
                notification.kind,
                notification.external_id,
                len(self._tasks),
            )
            return False

        task = asyncio.create_task(self._deliver(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _deliver(self, notification: OrderNotification) -> None:
        try:
            await self._notifier.notify(notification)
        except Exception as e:
            failure = NotificationFailed(notification.kind, e)
            logger.error("%s (notifier=%s, attempt=%s)", failure, self._notifier.name, notification.external_id)

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
