"""Unit tests for the in-memory nonce store."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from oauth_broker.state.nonce_store_memory import InMemoryNonceStore


@pytest.fixture
def store(clock):
    """Store with room for three nonces."""
    return InMemoryNonceStore(max_entries=3, clock=clock)


def test_consume_is_single_use(store, clock):
    store.register("n1", clock.now + 1000)

    assert store.consume("n1") is True
    assert store.consume("n1") is False


def test_consume_unknown_nonce(store):
    assert store.consume("never-registered") is False


def test_contains_does_not_consume(store, clock):
    store.register("n1", clock.now + 1000)

    assert store.contains("n1") is True
    assert store.contains("n1") is True
    assert store.consume("n1") is True
    assert store.contains("n1") is False


def test_capacity_evicts_oldest_first(store, clock):
    """Registering past capacity drops the oldest nonce only."""
    for nonce in ["n1", "n2", "n3", "n4"]:
        store.register(nonce, clock.now + 1000)

    assert len(store) == 3
    assert store.consume("n1") is False
    assert store.consume("n2") is True
    assert store.consume("n3") is True
    assert store.consume("n4") is True


def test_expired_nonce_cannot_be_consumed(store, clock):
    store.register("n1", clock.now + 100)
    clock.advance(101)

    assert store.contains("n1") is False
    assert store.consume("n1") is False


def test_nonce_valid_at_exact_expiry(store, clock):
    store.register("n1", clock.now + 100)
    clock.advance(100)

    assert store.consume("n1") is True


def test_register_sweeps_expired_entries(store, clock):
    """Abandoned flows are dropped even below capacity."""
    store.register("old-1", clock.now + 10)
    store.register("old-2", clock.now + 10)
    clock.advance(50)
    store.register("fresh", clock.now + 1000)

    assert len(store) == 1
    assert store.contains("fresh")


def test_consume_sweeps_expired_entries(store, clock):
    store.register("old", clock.now + 10)
    store.register("live", clock.now + 1000)
    clock.advance(50)

    store.consume("missing")

    assert len(store) == 1


def test_clear(store, clock):
    store.register("n1", clock.now + 1000)
    store.clear()

    assert len(store) == 0
    assert store.consume("n1") is False


def test_invalid_capacity():
    with pytest.raises(ValueError):
        InMemoryNonceStore(max_entries=0)


def test_concurrent_consume_has_exactly_one_winner(clock):
    """Racing consumers of one nonce: exactly one succeeds."""
    store = InMemoryNonceStore(max_entries=10, clock=clock)
    store.register("contested", clock.now + 1000)

    workers = 16
    barrier = threading.Barrier(workers)

    def attempt(_):
        barrier.wait()
        return store.consume("contested")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))

    assert results.count(True) == 1
    assert results.count(False) == workers - 1
