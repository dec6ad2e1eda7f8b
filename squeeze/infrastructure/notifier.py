import logging
from typing import Optional

class Notifier:
    """Foreground notification collaborator. The base class does nothing."""

    def start(self, title: str, text: str) -> None:
        pass

    def update(self, title: Optional[str] = None, text: Optional[str] = None) -> None:
        pass

    def stop(self) -> None:
        pass


class LoggingNotifier(Notifier):
    """Writes every notification change to the log."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.title = ""
        self.text = ""

    def start(self, title: str, text: str) -> None:
        self.title, self.text = title, text
        self.logger.info(f"NOTIFY_START: {title} | {text}")

    def update(self, title: Optional[str] = None, text: Optional[str] = None) -> None:
        if title is not None:
            self.title = title
        if text is not None:
            self.text = text
        self.logger.debug(f"NOTIFY: {self.title} | {self.text}")

    def stop(self) -> None:
        self.logger.info("NOTIFY_STOP")
