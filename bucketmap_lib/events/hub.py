"""In-process publish/subscribe hub.

Events are put on an unbounded queue and dispatched by a small pool of
daemon worker threads, so `publish` never waits on subscribers. A handler
that raises is logged and does not affect other handlers or the publisher.
"""
from __future__ import annotations
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]


@dataclass(frozen=True)
class Event:
    name: str
    payload: Any


class EventHub:
    def __init__(self, workers: int = 4) -> None:
        if workers < 1:
            raise ValueError("EventHub needs at least one worker")
        self._workers = workers
        self._lock = threading.Lock()
        self._subs: Dict[str, List[Handler]] = {}
        self._queue: "queue.Queue[Optional[Event]]" = queue.Queue()
        self._threads: List[threading.Thread] = []

    @property
    def running(self) -> bool:
        return bool(self._threads)

    def start(self) -> None:
        with self._lock:
            if self._threads:
                return
            for n in range(self._workers):
                t = threading.Thread(target=self._run, name=f"bucketmap-events-{n}", daemon=True)
                t.start()
                self._threads.append(t)
        logger.debug("Event hub started with %d workers", self._workers)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the workers after the already queued events are dispatched."""
        with self._lock:
            threads, self._threads = self._threads, []
            for _ in threads:
                self._queue.put_nowait(None)
        for t in threads:
            t.join(timeout)
        logger.debug("Event hub stopped")

    def subscribe(self, name: str, handler: Handler) -> Handler:
        with self._lock:
            self._subs.setdefault(name, []).append(handler)
        return handler

    def unsubscribe(self, name: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._subs.get(name, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._subs.pop(name, None)

    def publish(self, name: str, payload: Any) -> None:
        # checked under the lock so nothing lands behind the stop markers
        with self._lock:
            if self._threads:
                self._queue.put_nowait(Event(name, payload))
                return
        logger.debug("Event hub not running; dropping %s", name)

    def join(self) -> None:
        """Block until every queued event has been dispatched."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is None:
                    return
                self._dispatch(event)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: Event) -> None:
        with self._lock:
            handlers = list(self._subs.get(event.name, ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event.name)
