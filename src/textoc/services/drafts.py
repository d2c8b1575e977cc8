"""Per-note edit drafts and the debounce timers that commit them."""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# (delay_seconds, callback) -> object with start() and cancel()
TimerFactory = Callable[[float, Callable[[], None]], Any]


def thread_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Default timer: a daemon ``threading.Timer``."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


@dataclass
class Draft:
    """Uncommitted edits for one note. ``None`` means the field is untouched."""

    note_id: str
    title: Optional[str] = None
    content: Optional[str] = None


class Debouncer:
    """One pending timer per key; rescheduling a key cancels its old timer.

    Args:
        delay: Quiet period in seconds before the callback fires.
        timer_factory: Builds timers; tests inject a manually fired one.
    """

    def __init__(self, delay: float, timer_factory: Optional[TimerFactory] = None):
        self.delay = delay
        self._timer_factory = timer_factory or thread_timer
        self._timers: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def schedule(self, key: str, callback: Callable[[], None]) -> None:
        holder: Dict[str, Any] = {}

        def fire() -> None:
            with self._lock:
                # A timer cancelled after it started running must not fire
                if self._timers.get(key) is not holder.get("timer"):
                    return
                del self._timers[key]
            callback()

        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            timer = self._timer_factory(self.delay, fire)
            holder["timer"] = timer
            self._timers[key] = timer
        timer.start()

    def cancel(self, key: str) -> bool:
        """Cancel the pending timer for ``key``; False if none was pending."""
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._timers

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)
