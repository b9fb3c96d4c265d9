__all__ = ["LogNotifier", "Notifier", "RelayNotifier", "TelegramNotifier", "build_notifier"]

from typing import Optional

from band_watch.notifications.base import Notifier
from band_watch.notifications.log import LogNotifier
from band_watch.notifications.relay import RelayNotifier
from band_watch.notifications.telegram import TelegramNotifier
from band_watch.settings import NotificationChannel, Settings


def build_notifier(
    settings: Settings,
    *,
    channel: Optional[NotificationChannel] = None,
    relay: Optional[bool] = None,
) -> Notifier:
    permission = settings.notification_permission
    inner: Notifier
    if (channel or settings.notification_channel) == "log":
        inner = LogNotifier(permission=permission)
    else:
        inner = TelegramNotifier(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            permission=permission,
        )
    use_relay = settings.notification_relay if relay is None else relay
    if use_relay:
        return RelayNotifier(inner, permission=permission)
    return inner
