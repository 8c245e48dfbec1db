"""Progress sinks: silent, logging, rich console, and a fire-and-forget queue."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

from rich.console import Console

from .models import ScrapingProgress

logger = logging.getLogger(__name__)


class NullProgressSink:
    def report(self, progress: ScrapingProgress) -> None:
        return None


class LoggingProgressSink:
    """Write every notification to the log at DEBUG."""

    def report(self, progress: ScrapingProgress) -> None:
        logger.debug(
            "%s: %s (found=%d processed=%d failed=%d)",
            progress.source.value if progress.source else "-",
            progress.activity,
            progress.found,
            progress.processed,
            progress.failed,
        )


class ConsoleProgressSink:
    """Print activity changes per source to a rich console.

    Notifications may arrive interleaved from several source workers, so the
    last activity is tracked per source under a lock.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)
        self._last_activity: dict[str, str] = {}
        self._lock = threading.Lock()

    def report(self, progress: ScrapingProgress) -> None:
        label = progress.source.value if progress.source else "pipeline"
        with self._lock:
            if self._last_activity.get(label) == progress.activity:
                return
            self._last_activity[label] = progress.activity
            line = f"[bold]{label}[/bold]: {progress.activity}"
            if progress.found:
                line += f" [dim]({progress.processed}/{progress.found} processed"
                if progress.failed:
                    line += f", {progress.failed} failed"
                line += ")[/dim]"
            self.console.print(line)


_STOP = object()


class QueuedProgressSink:
    """Deliver notifications to an inner sink on a background thread.

    ``report`` only enqueues, so a slow inner sink never blocks the caller.
    Errors raised by the inner sink are logged and dropped.
    """

    def __init__(self, inner):
        self.inner = inner
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._thread = threading.Thread(target=self._drain, name="progress-sink", daemon=True)
        self._thread.start()

    def report(self, progress: ScrapingProgress) -> None:
        self._queue.put(progress)

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            try:
                self.inner.report(item)
            except Exception as exc:
                logger.debug("Progress sink error: %s", exc)

    def close(self, timeout: float = 5.0) -> None:
        """Flush pending notifications and stop the worker thread."""
        self._queue.put(_STOP)
        self._thread.join(timeout)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
