# backend/comicstats/services/stats_client.py
"""
View recording and readership aggregation on top of Redis.

Key layout (shared with existing deployments, do not change):
    guest-{comic}-{guest}      dedupe marker, 24h
    visitor-{comic}-{guest}    distinct-day counter, 14d sliding
    comics                     zset comic -> last seen
    readers-{comic}            zset guest -> last qualifying view (14d window)
    visitors-daily-{comic}     zset guest -> last view (24h window)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from comicstats.errors import ComicNotFoundError, CommunicationError
from comicstats.logger import log_event
from comicstats.metrics import STATS_REQUESTS, VIEWS_RECORDED, incr
from comicstats.services.clock import Clock, SystemClock
from comicstats.services.store import StoreConnection

logger = logging.getLogger(__name__)

DAY_SECONDS = 60 * 60 * 24
DEDUPE_TTL = DAY_SECONDS
VISITOR_TTL = DAY_SECONDS * 14
READER_WINDOW = DAY_SECONDS * 14
VISITOR_WINDOW = DAY_SECONDS
# Guests seen on more distinct days than this are readers
READER_THRESHOLD = 2

COMICS_KEY = "comics"


def guest_key(comic_id: str, guest_id: str) -> str:
    return f"guest-{comic_id}-{guest_id}"


def visitor_key(comic_id: str, guest_id: str) -> str:
    return f"visitor-{comic_id}-{guest_id}"


def readers_key(comic_id: str) -> str:
    return f"readers-{comic_id}"


def daily_visitors_key(comic_id: str) -> str:
    return f"visitors-daily-{comic_id}"


@dataclass(frozen=True)
class ComicStats:
    comic_id: str
    last_seen: datetime
    readers: int
    readers_24h: int
    visitors_24h: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "comicId": self.comic_id,
            "lastSeen": self.last_seen.isoformat(),
            "lastSeenUnix": int(self.last_seen.timestamp()),
            "readers": self.readers,
            "readers24h": self.readers_24h,
            "visitors24h": self.visitors_24h,
        }


class StatsClient:
    """Records views and answers readership queries for comics."""

    def __init__(self, store: StoreConnection, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()

    def add_view(self, comic_id: str, guest_id: str) -> bool:
        """Log a pageview, discarding repeats from the same guest within 24 hours.

        Returns True when the view was recorded and False when it was a
        duplicate. Raises ``CommunicationError`` if Redis cannot be reached;
        steps already applied are not rolled back.
        """
        # Rate limiter (one counted view per comic per guest per day)
        fresh = self.store.execute("set", guest_key(comic_id, guest_id), 1, nx=True, ex=DEDUPE_TTL)
        if not fresh:
            incr(VIEWS_RECORDED, outcome="duplicate")
            return False

        now = self.clock.now()
        self.store.execute("zadd", COMICS_KEY, {comic_id: now})

        counter = visitor_key(comic_id, guest_id)
        try:
            days_visited = int(self.store.execute("incr", counter))
        finally:
            # Sliding 14 day expiry, refreshed even when the increment failed
            self.store.execute("expire", counter, VISITOR_TTL)

        if days_visited <= READER_THRESHOLD:
            self.store.execute("zadd", daily_visitors_key(comic_id), {guest_id: now})
        else:
            self.store.execute("zadd", readers_key(comic_id), {guest_id: now})

        incr(VIEWS_RECORDED, outcome="recorded")
        log_event("view_recorded", comic_id=comic_id, guest_id=guest_id, level=logging.DEBUG, days=days_visited)
        return True

    def fetch_comic_stats(self, comic_id: str) -> ComicStats:
        """Build a stats snapshot for ``comic_id``.

        Stale reader and daily-visitor entries are pruned first, so every call
        pays the compaction cost for its comic. Raises ``ComicNotFoundError``
        for comics that never had a recorded view.
        """
        try:
            stats = self._fetch(comic_id)
        except CommunicationError:
            incr(STATS_REQUESTS, outcome="error")
            raise
        incr(STATS_REQUESTS, outcome="ok")
        return stats

    def _fetch(self, comic_id: str) -> ComicStats:
        score = self.store.execute("zscore", COMICS_KEY, comic_id)
        if score is None:
            incr(STATS_REQUESTS, outcome="not_found")
            raise ComicNotFoundError(comic_id)

        now = self.clock.now()
        readers = readers_key(comic_id)
        visitors = daily_visitors_key(comic_id)

        self.store.execute("zremrangebyscore", readers, "-inf", now - READER_WINDOW)
        self.store.execute("zremrangebyscore", visitors, "-inf", now - VISITOR_WINDOW)

        stats = ComicStats(
            comic_id=comic_id,
            last_seen=datetime.fromtimestamp(int(score), tz=timezone.utc),
            readers=int(self.store.execute("zcard", readers)),
            readers_24h=int(self.store.execute("zcount", readers, now - VISITOR_WINDOW, "+inf")),
            visitors_24h=int(self.store.execute("zcard", visitors)),
        )
        return stats
