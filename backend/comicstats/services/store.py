# backend/comicstats/services/store.py

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

import redis

from comicstats.config import Settings, settings as default_settings
from comicstats.errors import CommunicationError, StoreDiagnostic
from comicstats.metrics import STORE_RECONNECTS, incr
from comicstats.services.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], "redis.Redis"]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


def redis_factory(cfg: Settings) -> ConnectionFactory:
    """Build a factory dialing the configured Redis with the dial timeout applied."""

    def _dial() -> redis.Redis:
        if cfg.REDIS_URL:
            return redis.Redis.from_url(
                cfg.REDIS_URL,
                socket_connect_timeout=cfg.REDIS_DIAL_TIMEOUT,
                decode_responses=True,
            )
        return redis.Redis(
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
            password=cfg.REDIS_PASSWORD or None,
            socket_connect_timeout=cfg.REDIS_DIAL_TIMEOUT,
            decode_responses=True,
        )

    return _dial


class StoreConnection:
    """Owns the single link to Redis.

    Every command runs under one mutex, so the connection can be shared by the
    queue consumer and any number of request threads. After a command error a
    PING is issued; if that fails too the link is torn down and dialed again on
    next use. The failed command is never replayed and the caller always gets
    a plain ``CommunicationError``; the real cause is kept in ``last_error``.
    """

    def __init__(
        self,
        factory: Optional[ConnectionFactory] = None,
        *,
        save_policy: Optional[str] = None,
        clock: Optional[Clock] = None,
        cfg: Optional[Settings] = None,
    ):
        cfg = cfg or default_settings
        self._factory = factory or redis_factory(cfg)
        self._save_policy = cfg.REDIS_SAVE_POLICY if save_policy is None else save_policy
        self._clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._client: Optional[redis.Redis] = None
        self.state = ConnectionState.DISCONNECTED
        self.last_error: Optional[StoreDiagnostic] = None

    # -----------------------------
    # Connection lifecycle
    # -----------------------------
    def connect(self) -> None:
        """Dial the store. Raises ``CommunicationError`` if it cannot be reached."""
        with self._lock:
            try:
                self._dial()
            except redis.RedisError as exc:
                raise self.ensure_healthy(exc, "CONNECT") from exc

    def _dial(self) -> None:
        self._teardown()
        self.state = ConnectionState.CONNECTING
        client = self._factory()
        try:
            client.ping()
        except redis.RedisError:
            self.state = ConnectionState.DISCONNECTED
            _close_quietly(client)
            raise
        self._client = client
        self.state = ConnectionState.CONNECTED
        logger.info("✅ Connected to Redis.")
        self._apply_save_policy(client)

    def _apply_save_policy(self, client: redis.Redis) -> None:
        if not self._save_policy:
            return
        try:
            client.config_set("save", self._save_policy)
        except redis.RedisError as exc:
            # Managed Redis often disables CONFIG; durability then follows the server's own policy
            logger.warning(f"Could not set save policy {self._save_policy!r}: {exc}")

    def _teardown(self) -> None:
        if self._client is not None:
            _close_quietly(self._client)
            self._client = None
        self.state = ConnectionState.DISCONNECTED

    def close(self) -> None:
        with self._lock:
            self._teardown()

    # -----------------------------
    # Error handling
    # -----------------------------
    def ensure_healthy(self, exc: BaseException, command: str) -> CommunicationError:
        """Record ``exc``, probe the link and drop it if the probe fails.

        Returns the generic error for the caller to raise.
        """
        with self._lock:
            self.last_error = StoreDiagnostic.from_exception(command, exc, self._clock.time())
            logger.error(f"Redis command failed: {self.last_error}")
            if self._client is None:
                return CommunicationError()
            self.state = ConnectionState.RECONNECTING
            try:
                self._client.ping()
            except redis.RedisError as probe_exc:
                logger.warning(f"Redis liveness probe failed, dropping connection: {probe_exc}")
                incr(STORE_RECONNECTS)
                self._teardown()
            else:
                self.state = ConnectionState.CONNECTED
            return CommunicationError()

    # -----------------------------
    # Command execution
    # -----------------------------
    def execute(self, command: str, *args: Any, **kwargs: Any) -> Any:
        """Run one redis-py command (by method name) on the shared connection."""
        with self._lock:
            try:
                if self._client is None:
                    self._dial()
                return getattr(self._client, command)(*args, **kwargs)
            except redis.RedisError as exc:
                raise self.ensure_healthy(exc, command.upper()) from exc

    def ping(self) -> bool:
        try:
            return bool(self.execute("ping"))
        except CommunicationError:
            return False


def _close_quietly(client: Any) -> None:
    try:
        client.close()
    except Exception:
        logger.debug("Closing redis client failed", exc_info=True)
