from __future__ import annotations

import logging

from band_watch.notifications.base import Notifier
from band_watch.types import Notification, NotificationPermission

logger = logging.getLogger("band_watch.notifications")


class LogNotifier(Notifier):
    """Delivers notifications to the log stream only."""

    channel = "log"

    def _default_permission(self) -> NotificationPermission:
        return "granted"

    async def notify(self, notification: Notification) -> None:
        logger.warning(
            "notification",
            extra={"channel": self.channel, "title": notification.title, "body": notification.body},
        )
