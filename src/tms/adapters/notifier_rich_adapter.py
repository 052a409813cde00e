from typing import Optional

from rich.console import Console
from rich.text import Text

from tms.core.interfaces.notifier import NoticeLevel


class RichConsoleNotifier:
    """NotifierPort printing one styled line per notice to the terminal."""

    _STYLES = {
        NoticeLevel.success: ("bold green", "✔"),
        NoticeLevel.error: ("bold red", "✖"),
        NoticeLevel.neutral: ("bold", "•"),
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def notify(self, level: NoticeLevel, title: str, description: str) -> None:
        style, icon = self._STYLES.get(level, ("", "-"))
        # Text keeps backend-provided strings from being read as markup
        self.console.print(Text.assemble((f"{icon} {title}", style), " ", description))
