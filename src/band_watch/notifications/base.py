from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from band_watch.types import Notification, NotificationPermission


class Notifier(ABC):
    channel: str

    def __init__(self, *, permission: Optional[NotificationPermission] = None) -> None:
        self._permission_override = permission

    def permission(self) -> NotificationPermission:
        if self._permission_override is not None:
            return self._permission_override
        return self._default_permission()

    def enabled(self) -> bool:
        return self.permission() == "granted"

    @abstractmethod
    def _default_permission(self) -> NotificationPermission:
        raise NotImplementedError

    @abstractmethod
    async def notify(self, notification: Notification) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return
