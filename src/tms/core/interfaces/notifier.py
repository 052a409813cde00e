from enum import StrEnum
from typing import Protocol


class NoticeLevel(StrEnum):
    success = "success"
    error = "error"
    neutral = "neutral"


class NotifierPort(Protocol):
    """Delivers one-shot user-facing notices (toasts, console lines, ...)."""

    def notify(self, level: NoticeLevel, title: str, description: str) -> None:  # pragma: no cover - protocol
        ...
