from __future__ import annotations

import threading

import pytest
from solders.hash import Hash

from ore_cli.blockhash import BlockhashCache, FreshnessToken
from ore_cli.rpc_client import RPCTransportError


class ScriptedRPC:
    """Return queued blockhashes; queued exceptions are raised instead."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls = 0

    def get_latest_blockhash(self, commitment=None):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _value(blockhash: Hash, height: int) -> dict:
    return {"blockhash": str(blockhash), "lastValidBlockHeight": height}


def test_read_before_initialize_raises() -> None:
    cache = BlockhashCache(ScriptedRPC())  # type: ignore[arg-type]
    with pytest.raises(RuntimeError):
        cache.read()


def test_initialize_publishes_first_token() -> None:
    first = Hash.new_unique()
    cache = BlockhashCache(ScriptedRPC(_value(first, 150)))  # type: ignore[arg-type]

    token = cache.initialize()

    assert cache.read() is token
    assert token.blockhash == first
    assert token.last_valid_block_height == 150


def test_initialize_propagates_transport_errors() -> None:
    rpc = ScriptedRPC(RPCTransportError("node down"))
    cache = BlockhashCache(rpc)  # type: ignore[arg-type]
    with pytest.raises(RPCTransportError):
        cache.initialize()


def test_failed_refreshes_keep_last_good_token() -> None:
    first = Hash.new_unique()
    failures = [RPCTransportError("timeout") for _ in range(5)]
    cache = BlockhashCache(ScriptedRPC(_value(first, 10), *failures))  # type: ignore[arg-type]
    token = cache.initialize()

    for _ in failures:
        assert cache.refresh_once() is False
        assert cache.read() is token


def test_refresh_replaces_token_without_mutating_old_one() -> None:
    first, second = Hash.new_unique(), Hash.new_unique()
    cache = BlockhashCache(ScriptedRPC(_value(first, 10), _value(second, 20)))  # type: ignore[arg-type]
    old = cache.initialize()

    assert cache.refresh_once() is True

    new = cache.read()
    assert new is not old
    assert new.blockhash == second
    assert old.blockhash == first
    with pytest.raises(Exception):
        old.last_valid_block_height = 99  # type: ignore[misc]


def test_fetch_does_not_publish() -> None:
    first, second = Hash.new_unique(), Hash.new_unique()
    cache = BlockhashCache(ScriptedRPC(_value(first, 10), _value(second, 20)))  # type: ignore[arg-type]
    cache.initialize()

    fetched = cache.fetch()

    assert fetched.blockhash == second
    assert cache.read().blockhash == first


def test_read_does_not_wait_for_inflight_refresh() -> None:
    first, second = Hash.new_unique(), Hash.new_unique()
    entered = threading.Event()
    release = threading.Event()

    class SlowRPC(ScriptedRPC):
        def get_latest_blockhash(self, commitment=None):
            if self.calls == 1:
                entered.set()
                release.wait(5)
            return super().get_latest_blockhash(commitment)

    cache = BlockhashCache(SlowRPC(_value(first, 10), _value(second, 20)))  # type: ignore[arg-type]
    cache.initialize()

    refresher = threading.Thread(target=cache.refresh_once)
    refresher.start()
    assert entered.wait(5)

    assert cache.read().blockhash == first

    release.set()
    refresher.join(5)
    assert cache.read().blockhash == second


def test_run_returns_immediately_when_stopped() -> None:
    rpc = ScriptedRPC(_value(Hash.new_unique(), 10))
    cache = BlockhashCache(rpc, refresh_interval=60)  # type: ignore[arg-type]
    cache.initialize()
    stop = threading.Event()
    stop.set()

    cache.run(stop)

    assert rpc.calls == 1


def test_start_and_stop_background_thread() -> None:
    rpc = ScriptedRPC(*[_value(Hash.new_unique(), height) for height in range(1, 200)])
    cache = BlockhashCache(rpc, refresh_interval=0.01)  # type: ignore[arg-type]
    cache.initialize()

    thread = cache.start()
    assert cache.start() is thread
    cache.stop(timeout=5)

    assert not thread.is_alive()
    assert isinstance(cache.read(), FreshnessToken)


def test_token_expiry_is_strictly_after_last_valid_height() -> None:
    token = FreshnessToken(Hash.new_unique(), last_valid_block_height=100, observed_at=0.0)
    assert not token.expired_at(100)
    assert token.expired_at(101)
