from abc import ABC, abstractmethod


class LoggingPort(ABC):
    """Log sink for adapters and settings; `%`-style args are passed through."""

    @abstractmethod
    def debug(self, msg: str, *args) -> None: ...

    @abstractmethod
    def info(self, msg: str, *args) -> None: ...

    @abstractmethod
    def warning(self, msg: str, *args) -> None: ...

    @abstractmethod
    def error(self, msg: str, *args) -> None: ...
