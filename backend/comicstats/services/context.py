from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from comicstats.config import Settings, settings as default_settings
from comicstats.errors import CommunicationError
from comicstats.services.clock import Clock, SystemClock
from comicstats.services.stats_client import StatsClient
from comicstats.services.store import ConnectionFactory, StoreConnection
from comicstats.services.view_queue import ViewQueue

logger = logging.getLogger(__name__)


@dataclass
class StatsContext:
    """Everything one running instance of the stats engine owns."""

    store: StoreConnection
    client: StatsClient
    queue: ViewQueue

    def start(self) -> None:
        try:
            self.store.connect()
        except CommunicationError:
            # Views queue up and the consumer retries once Redis is back
            logger.warning(f"Redis unreachable at startup: {self.store.last_error}")
        self.queue.start()

    def shutdown(self, drain_timeout: float = 5.0) -> None:
        if self.queue.running and self.queue.pending:
            self.queue.join(drain_timeout)
        self.queue.stop()
        self.store.close()


def build_context(
    cfg: Optional[Settings] = None,
    *,
    clock: Optional[Clock] = None,
    connection_factory: Optional[ConnectionFactory] = None,
) -> StatsContext:
    cfg = cfg or default_settings
    clock = clock or SystemClock()
    store = StoreConnection(connection_factory, clock=clock, cfg=cfg)
    client = StatsClient(store, clock=clock)
    view_queue = ViewQueue(
        client,
        maxsize=cfg.VIEW_QUEUE_SIZE,
        max_attempts=cfg.VIEW_MAX_ATTEMPTS,
        backoff_base=cfg.VIEW_BACKOFF_BASE,
        backoff_max=cfg.VIEW_BACKOFF_MAX,
        dead_letter_size=cfg.VIEW_DEAD_LETTER_SIZE,
    )
    return StatsContext(store=store, client=client, queue=view_queue)
