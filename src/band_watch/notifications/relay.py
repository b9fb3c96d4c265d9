from __future__ import annotations

import asyncio
import logging
from typing import Optional

from band_watch.notifications.base import Notifier
from band_watch.types import Notification, NotificationPermission

logger = logging.getLogger("band_watch.notifications")


class RelayNotifier(Notifier):
    """Hands notifications to a background task that delivers them in order.

    ``notify`` returns as soon as the notification is queued, so a slow
    channel never holds up a poll. Delivery errors are logged by the worker.
    """

    def __init__(self, inner: Notifier, *, permission: Optional[NotificationPermission] = None) -> None:
        super().__init__(permission=permission)
        self._inner = inner
        self._queue: asyncio.Queue[Optional[Notification]] = asyncio.Queue()
        self._worker: Optional[asyncio.Task[None]] = None

    @property
    def channel(self) -> str:  # type: ignore[override]
        return f"relay:{self._inner.channel}"

    def _default_permission(self) -> NotificationPermission:
        return self._inner.permission()

    async def notify(self, notification: Notification) -> None:
        self._ensure_worker()
        await self._queue.put(notification)

    async def join(self) -> None:
        """Wait until every queued notification has been handled."""
        await self._queue.join()

    async def aclose(self) -> None:
        if self._worker is not None and not self._worker.done():
            await self._queue.put(None)
            await self._worker
        self._worker = None
        await self._inner.aclose()

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                await self._inner.notify(item)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("relay_delivery_failed", extra={"channel": self._inner.channel})
            finally:
                self._queue.task_done()
