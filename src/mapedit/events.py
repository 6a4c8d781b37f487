"""EventBus and notice payloads pushed to the surrounding application.

The bus carries notices ("toasts"), attribute-entry requests and mode
changes.  The editor itself is single-threaded; the bus stays thread-safe
so a web layer can drain subscriber queues from another thread.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import asdict, dataclass

NOTICE = "notice"
ATTRIBUTE_ENTRY = "attribute_entry"
MODE_CHANGED = "mode_changed"
QUERY_RESULTS = "query_results"


@dataclass(frozen=True)
class Notice:
    """A short user-facing message.

    Attributes:
        title: Headline.
        description: One-line detail.
        variant: "default", "success" or "destructive".
    """

    title: str
    description: str = ""
    variant: str = "default"

    def to_dict(self) -> dict:
        return asdict(self)


class EventBus:
    """Simple thread-safe pub/sub for pushing events to subscribers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[queue.Queue] = []

    def subscribe(self) -> queue.Queue:
        """Subscribe to events. Returns a Queue that receives all events."""
        q: queue.Queue = queue.Queue(maxsize=100)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    def publish(self, event_type: str, data: dict | None = None) -> None:
        msg = {"type": event_type}
        if data is not None:
            msg["data"] = data
        with self._lock:
            for q in self._subscribers:
                try:
                    q.put_nowait(msg)
                except queue.Full:
                    # Drop the oldest message so the newest notice is kept
                    try:
                        q.get_nowait()
                    except queue.Empty:
                        pass
                    try:
                        q.put_nowait(msg)
                    except queue.Full:
                        pass

    def notify(self, notice: Notice) -> None:
        self.publish(NOTICE, notice.to_dict())


def drain(q: queue.Queue) -> list[dict]:
    """Pop every message currently waiting in ``q``."""
    out = []
    while True:
        try:
            out.append(q.get_nowait())
        except queue.Empty:
            return out
