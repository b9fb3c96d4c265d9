from __future__ import annotations

from typing import Optional

import httpx

from band_watch.notifications.base import Notifier
from band_watch.types import Notification, NotificationPermission


class TelegramNotifier(Notifier):
    channel = "telegram"

    def __init__(
        self,
        *,
        bot_token: str,
        chat_id: str,
        timeout_seconds: float = 10.0,
        permission: Optional[NotificationPermission] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(permission=permission)
        self._bot_token = bot_token.strip()
        self._chat_id = chat_id.strip()
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    def _default_permission(self) -> NotificationPermission:
        return "granted" if self._bot_token and self._chat_id else "default"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def notify(self, notification: Notification) -> None:
        lines = [notification.title, notification.body]
        await self.send("\n".join(line for line in lines if line))

    async def send(self, text: str) -> None:
        if not (self._bot_token and self._chat_id):
            return
        url = f"https://api.telegram.org/bot{self._bot_token}/sendMessage"
        payload = {"chat_id": self._chat_id, "text": text, "disable_web_page_preview": True}
        resp = await self._client.post(url, json=payload)
        resp.raise_for_status()
