from comicstats.config import Settings
from comicstats.services.context import build_context
from comicstats.services.store import ConnectionState


def test_settings_normalize_loose_values():
    cfg = Settings(LOG_LEVEL="debug", BUTTON_BASE_URL="http://stats.example.com/", VIEW_QUEUE_SIZE=0)
    assert cfg.LOG_LEVEL == "DEBUG"
    assert cfg.BUTTON_BASE_URL == "http://stats.example.com"
    assert cfg.VIEW_QUEUE_SIZE == 1


def test_build_context_wires_settings(fake_redis, clock):
    cfg = Settings(VIEW_QUEUE_SIZE=7, VIEW_MAX_ATTEMPTS=2, VIEW_BACKOFF_BASE=0.25, VIEW_BACKOFF_MAX=1.0)
    ctx = build_context(cfg, clock=clock, connection_factory=fake_redis.factory)
    assert ctx.client.store is ctx.store
    assert ctx.queue.client is ctx.client
    assert ctx.queue.max_attempts == 2
    assert ctx.queue.backoff(3) == 1.0


def test_contexts_are_isolated(clock):
    from conftest import FakeRedis

    first, second = FakeRedis(clock), FakeRedis(clock)
    a = build_context(clock=clock, connection_factory=first.factory)
    b = build_context(clock=clock, connection_factory=second.factory)
    a.store.connect()
    b.store.connect()
    a.client.add_view("c1", "g1")
    assert first.get("guest-c1-g1") == "1"
    assert second.get("guest-c1-g1") is None


def test_start_tolerates_unreachable_store(context, fake_redis):
    fake_redis.down = True
    context.start()
    try:
        assert context.queue.running
        assert context.store.state is ConnectionState.DISCONNECTED
    finally:
        context.shutdown()
    assert not context.queue.running
