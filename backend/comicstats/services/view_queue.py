# backend/comicstats/services/view_queue.py
"""Background ingestion of views.

Request handlers push ``View`` values and return immediately; a single
consumer thread feeds them to ``StatsClient.add_view``. Failed views wait
out an exponential backoff in a retry buffer owned by the consumer, so
retries never compete with producers for queue slots. Views that run out of
attempts land in a bounded dead-letter buffer.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, List, Optional

from comicstats.errors import CommunicationError
from comicstats.logger import log_event
from comicstats.metrics import (
    VIEW_FAILURES,
    VIEW_QUEUE_DEPTH,
    VIEWS_DEAD_LETTERED,
    VIEWS_ENQUEUED,
    VIEWS_REQUEUED,
    incr,
    set_gauge,
)
from comicstats.services.stats_client import StatsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class View:
    comic_id: str
    guest_id: str
    attempts: int = 0


@dataclass(frozen=True)
class DeadLetter:
    view: View
    reason: str


class ViewQueue:
    def __init__(
        self,
        client: StatsClient,
        *,
        maxsize: int = 1024,
        max_attempts: int = 8,
        backoff_base: float = 0.5,
        backoff_max: float = 30.0,
        dead_letter_size: int = 1000,
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._queue: "queue.Queue[View]" = queue.Queue(maxsize=maxsize)
        self._retry: Deque[View] = deque()
        self._dead: Deque[DeadLetter] = deque(maxlen=dead_letter_size)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -----------------------------
    # Producer side
    # -----------------------------
    def enqueue(self, comic_id: str, guest_id: str) -> None:
        """Queue a view for recording. Blocks while the queue is full."""
        self._queue.put(View(comic_id=comic_id, guest_id=guest_id))
        incr(VIEWS_ENQUEUED)
        set_gauge(VIEW_QUEUE_DEPTH, self._queue.qsize())

    @property
    def pending(self) -> int:
        return self._queue.qsize() + len(self._retry)

    @property
    def dead_letters(self) -> List[DeadLetter]:
        return list(self._dead)

    # -----------------------------
    # Consumer lifecycle
    # -----------------------------
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._consume, name="view-logger", daemon=True)
        self._thread.start()
        logger.info(f"🚀 View queue consumer started (capacity {self._queue.maxsize})")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the consumer; views still queued stay in memory."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if self.pending:
            logger.warning(f"View queue stopped with {self.pending} views pending")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued view was recorded or dead-lettered.

        A view waiting for retry still counts as unfinished. Returns False if
        ``timeout`` ran out first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                if deadline is None:
                    self._queue.all_tasks_done.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def _next(self) -> Optional[View]:
        if self._retry:
            return self._retry.popleft()
        try:
            return self._queue.get(timeout=0.1)
        except queue.Empty:
            return None

    def _consume(self) -> None:
        while not self._stop.is_set():
            view = self._next()
            if view is None:
                continue
            settled = True
            try:
                settled = self.process(view)
            except Exception:
                logger.exception(f"Unexpected error recording view {view}")
                self._dead_letter(view, "error")
            finally:
                # task_done once per enqueued view, when it is recorded or dropped
                if settled:
                    self._queue.task_done()
                set_gauge(VIEW_QUEUE_DEPTH, self.pending)

    # -----------------------------
    # Retry policy
    # -----------------------------
    def backoff(self, attempts: int) -> float:
        if attempts <= 0 or self.backoff_base <= 0:
            return 0.0
        return min(self.backoff_base * (2 ** (attempts - 1)), self.backoff_max)

    def process(self, view: View) -> bool:
        """Record one view. Returns False when it was set aside for retry."""
        try:
            self.client.add_view(view.comic_id, view.guest_id)
            return True
        except CommunicationError:
            incr(VIEW_FAILURES)

        failed = replace(view, attempts=view.attempts + 1)
        if self.max_attempts and failed.attempts >= self.max_attempts:
            self._dead_letter(failed, "max_attempts")
            return True

        logger.warning(f"log failure. Re-queuing view (attempt {failed.attempts})")
        # Cut short on shutdown; the view stays in the retry buffer
        self._stop.wait(self.backoff(failed.attempts))
        self._retry.append(failed)
        incr(VIEWS_REQUEUED)
        return False

    def _dead_letter(self, view: View, reason: str) -> None:
        self._dead.append(DeadLetter(view=view, reason=reason))
        incr(VIEWS_DEAD_LETTERED, reason=reason)
        log_event(
            "view_dead_lettered",
            comic_id=view.comic_id,
            guest_id=view.guest_id,
            level=logging.ERROR,
            reason=reason,
            attempts=view.attempts,
        )
