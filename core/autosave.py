"""Debounced persistence for bursts of edits.

Updates:
  v0.1.1 - 2026-10-17 - Make flush() wait for a background write already running.
  v0.1.0 - 2026-10-17 - Timer-based writer that coalesces scheduled saves.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("prompt_store.autosave")

DEFAULT_DELAY_SECONDS = 0.5


class DebouncedWriter:
    """Run *write* once after a quiet period following the last :meth:`schedule` call.

    A failing background write is logged and kept; the next :meth:`flush`
    re-raises it so the caller still learns the data was not saved, unless a
    newer write is pending, in which case that write runs instead.
    """

    def __init__(self, write: Callable[[], None], delay: float = DEFAULT_DELAY_SECONDS) -> None:
        self._write = write
        self._delay = max(0.0, delay)
        self._lock = threading.Lock()
        # Serialises writes so flush() waits for one already in flight.
        self._write_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._error: BaseException | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        """Restart the quiet-period timer."""
        with self._lock:
            if self._closed:
                raise RuntimeError("DebouncedWriter is closed")
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self._delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def flush(self) -> None:
        """Write now if a save is pending and surface any earlier write failure."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        with self._write_lock:
            with self._lock:
                error, self._error = self._error, None
            if timer is not None:
                # A fresh full write supersedes the failed one.
                self._write()
                return
        if error is not None:
            raise error

    def close(self) -> None:
        """Flush outstanding work and refuse further scheduling."""
        try:
            self.flush()
        finally:
            with self._lock:
                self._closed = True

    def _fire(self) -> None:
        with self._lock:
            if self._timer is None or threading.current_thread() is not self._timer:
                return
            self._timer = None
        with self._write_lock:
            try:
                self._write()
            except Exception as exc:  # noqa: BLE001 - kept for the next flush()
                logger.error("Deferred write failed: %s", exc, exc_info=exc)
                with self._lock:
                    self._error = exc


__all__ = ["DEFAULT_DELAY_SECONDS", "DebouncedWriter"]
