"""
Console Blackbox - "The Flight Recorder"

Records browser console messages and uncaught page errors while a page runs.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from playwright.async_api import ConsoleMessage, Error, Page

logger = logging.getLogger("sitecast.console")


def iso_timestamp(timestamp: float) -> str:
    """Format an epoch timestamp like JavaScript's Date.toISOString()."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class LogEntry:
    timestamp: float
    type: str  # console.* method name, or 'pageerror'
    text: str
    location: str | None = None

    def format(self) -> str:
        line = f"[{iso_timestamp(self.timestamp)}] [{self.type.upper()}] {self.text}"
        if self.location:
            line += f" ({self.location})"
        return line


@dataclass
class ConsoleCaptureResult:
    url: str
    duration: float
    messages: list[LogEntry] = field(default_factory=list)
    executed_command: str | None = None


class ConsoleBlackbox:
    """
    Flight Recorder for Browser Console and Error events.
    Attaches to a page and passively records logs.
    """

    def __init__(self):
        self.logs: list[LogEntry] = []

    def attach(self, page: Page):
        """Wire up listeners to the page."""
        page.on("console", self._handle_console)
        page.on("pageerror", self._handle_page_error)

    def detach(self, page: Page):
        page.remove_listener("console", self._handle_console)
        page.remove_listener("pageerror", self._handle_page_error)

    def _handle_console(self, msg: ConsoleMessage):
        """Handle console.* calls."""
        location = msg.location or {}
        where = f"{location['url']}:{location.get('lineNumber', 0)}" if location.get("url") else None
        self.logs.append(
            LogEntry(timestamp=time.time(), type=msg.type, text=msg.text, location=where)
        )

    def _handle_page_error(self, error: Error):
        """Handle uncaught exceptions in the window context."""
        text = error.message
        if error.stack:
            text += "\n" + error.stack
        self.logs.append(LogEntry(timestamp=time.time(), type="pageerror", text=text))
        logger.debug(f"Page error recorded: {error.message}")

    def get_logs(self) -> list[LogEntry]:
        """Recorded entries in arrival order."""
        return list(self.logs)
