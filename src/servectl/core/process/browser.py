"""Default-browser launching capability."""

from __future__ import annotations

import logging
import threading
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class BrowserOpener(Protocol):
    def open_url(self, url: str) -> bool: ...


class WebBrowserOpener:
    """Open URLs with the stdlib ``webbrowser`` registry."""

    def open_url(self, url: str) -> bool:
        try:
            return bool(webbrowser.open(url, new=2))
        except webbrowser.Error as exc:
            logger.warning("Could not open browser for %s: %s", url, exc)
            return False


def schedule_open(opener: BrowserOpener, url: str, *, delay_seconds: float) -> threading.Timer:
    """Open ``url`` once after ``delay_seconds``; failures are logged, never raised.

    The timer thread is non-daemon so a short-lived CLI still opens the page
    before the interpreter exits.
    """

    def _fire() -> None:
        try:
            if not opener.open_url(url):
                logger.warning("Browser did not open %s", url)
        except Exception:  # noqa: BLE001 - best effort side effect
            logger.exception("Opening %s in the browser failed", url)

    timer = threading.Timer(max(0.0, float(delay_seconds)), _fire)
    timer.name = f"servectl-open-{url}"
    timer.start()
    return timer


__all__ = ["BrowserOpener", "WebBrowserOpener", "schedule_open"]
