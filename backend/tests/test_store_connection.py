import pytest
import redis

from comicstats.errors import CommunicationError
from comicstats.services.store import ConnectionState, StoreConnection


def test_connect_applies_save_policy(store, fake_redis):
    assert store.state is ConnectionState.CONNECTED
    assert fake_redis.config["save"] == "900 1"
    assert fake_redis.dials == 1


def test_connect_survives_rejected_config(fake_redis, clock, test_settings):
    fake_redis.reject_config = True
    conn = StoreConnection(fake_redis.factory, clock=clock, cfg=test_settings)
    conn.connect()
    assert conn.state is ConnectionState.CONNECTED
    assert "save" not in fake_redis.config


def test_empty_save_policy_skips_config(fake_redis, clock, test_settings):
    conn = StoreConnection(fake_redis.factory, save_policy="", clock=clock, cfg=test_settings)
    conn.connect()
    assert "config_set" not in fake_redis.calls


def test_connect_failure_is_generic(fake_redis, clock, test_settings):
    fake_redis.down = True
    conn = StoreConnection(fake_redis.factory, clock=clock, cfg=test_settings)
    with pytest.raises(CommunicationError) as exc_info:
        conn.connect()
    assert str(exc_info.value) == "communication with redis failed"
    assert conn.state is ConnectionState.DISCONNECTED
    assert conn.last_error.command == "CONNECT"
    assert conn.last_error.kind == "ConnectionError"
    assert "refused" in conn.last_error.cause


def test_command_error_with_live_probe_keeps_connection(store, fake_redis, clock):
    fake_redis.failing = {"incr"}
    with pytest.raises(CommunicationError) as exc_info:
        store.execute("incr", "counter")
    # Cause is kept for diagnostics only
    assert isinstance(exc_info.value.__cause__, redis.ResponseError)
    assert "injected failure" not in str(exc_info.value)
    assert store.last_error.command == "INCR"
    assert store.last_error.kind == "ResponseError"
    assert store.last_error.at == clock.time()
    assert store.state is ConnectionState.CONNECTED
    assert fake_redis.calls[-1] == "ping"
    assert fake_redis.dials == 1


def test_failed_probe_tears_down_and_redials_on_next_use(store, fake_redis):
    fake_redis.down = True
    with pytest.raises(CommunicationError):
        store.execute("zcard", "comics")
    assert store.state is ConnectionState.DISCONNECTED
    assert fake_redis.closes == 1

    fake_redis.down = False
    assert store.execute("zcard", "comics") == 0
    assert store.state is ConnectionState.CONNECTED
    assert fake_redis.dials == 2


def test_failed_command_is_not_replayed(store, fake_redis):
    fake_redis.failing = {"set"}
    with pytest.raises(CommunicationError):
        store.execute("set", "k", 1)
    assert fake_redis.calls.count("set") == 1
    assert fake_redis.get("k") is None


def test_ping_reports_instead_of_raising(store, fake_redis):
    assert store.ping() is True
    fake_redis.down = True
    assert store.ping() is False
