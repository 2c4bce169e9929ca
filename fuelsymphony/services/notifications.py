from __future__ import annotations

import logging
from typing import Literal

from fuelsymphony.schemas import Notification

logger = logging.getLogger("fuelsymphony.notifications")

NotificationLevel = Literal["success", "error", "warning", "info"]

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.WARNING,
}


class Notifier:
    """Collects the transient messages raised while one view is rendered."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def notify(self, level: NotificationLevel, message: str, *, source: str | None = None) -> None:
        self._items.append(Notification(level=level, message=message))
        logger.log(
            _LOG_LEVELS[level],
            "user_notification",
            extra={"level": level, "notification": message, "source": source},
        )

    def success(self, message: str, *, source: str | None = None) -> None:
        self.notify("success", message, source=source)

    def error(self, message: str, *, source: str | None = None) -> None:
        self.notify("error", message, source=source)

    def warning(self, message: str, *, source: str | None = None) -> None:
        self.notify("warning", message, source=source)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def drain(self) -> list[Notification]:
        items, self._items = self._items, []
        return items
