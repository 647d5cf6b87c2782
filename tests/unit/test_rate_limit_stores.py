"""Unit tests for rate limit stores (in-memory and SQL)"""

import time
import pytest
from typing import List, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from merchant_gateway.domain.exceptions import StoreContentionError, StoreUnavailableError
from merchant_gateway.domain.models import RateLimitConfig, RateLimitRecord
from merchant_gateway.domain.rate_limiter import RateLimiter
from merchant_gateway.infrastructure.rate_limit_store.in_memory import InMemoryRateLimitStore
from merchant_gateway.infrastructure.rate_limit_store.sql import SqlRateLimitStore


def _append(timestamp_ms: int):
    """Mutation that appends one request timestamp and returns the new log"""

    def mutate(record: Optional[RateLimitRecord], now_ms: int):
        requests: List[int] = list(record.requests) if record else []
        requests.append(timestamp_ms)
        updated = RateLimitRecord(
            identifier="user_1",
            function_name="fn",
            requests=requests,
            created_at_ms=record.created_at_ms if record else timestamp_ms,
            updated_at_ms=timestamp_ms,
        )
        return updated, requests

    return mutate


@pytest.fixture(params=["memory", "sql"])
def store(request, clock):
    if request.param == "memory":
        return InMemoryRateLimitStore(clock=clock)
    return request.getfixturevalue("sql_store")


@pytest.fixture
def broken_store(tmp_path, clock) -> SqlRateLimitStore:
    """SQL store pointed at a database file that cannot be opened"""
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nested' / 'rl.db'}")
    return SqlRateLimitStore(sessionmaker(bind=engine), max_retries=3, use_server_time=False, clock=clock)


# ---------------------------------------------------------------------------
# Shared contract
# ---------------------------------------------------------------------------


def test_atomic_update_creates_and_extends_record(store):
    assert store.atomic_update("fn_user_1", _append(1000)) == [1000]
    assert store.atomic_update("fn_user_1", _append(2000)) == [1000, 2000]

    record = store.get("fn_user_1")
    assert record.requests == [1000, 2000]
    assert record.created_at_ms == 1000
    assert record.updated_at_ms == 2000


def test_atomic_update_without_record_writes_nothing(store):
    assert store.atomic_update("fn_user_1", lambda record, now_ms: (None, "denied")) == "denied"
    assert store.get("fn_user_1") is None


def test_mutation_receives_store_time(store, clock):
    seen = []

    def mutate(record, now_ms):
        seen.append(now_ms)
        return None, None

    store.atomic_update("fn_user_1", mutate)

    assert seen == [clock.now_ms]
    assert store.now_ms() == clock.now_ms


def test_get_missing_key(store):
    assert store.get("fn_nobody") is None


def test_delete_is_idempotent(store):
    store.atomic_update("fn_user_1", _append(1000))

    store.delete("fn_user_1")
    store.delete("fn_user_1")

    assert store.get("fn_user_1") is None


def test_delete_stale_oldest_first_up_to_limit(store):
    for i, updated_at in enumerate([500, 100, 300, 5000]):
        store.atomic_update(f"fn_user_{i}", _append(updated_at))

    assert store.delete_stale(cutoff_ms=1000, limit=2) == 2
    assert store.get("fn_user_1") is None
    assert store.get("fn_user_2") is None
    assert store.get("fn_user_0") is not None

    assert store.delete_stale(cutoff_ms=1000, limit=2) == 1
    assert store.get("fn_user_3") is not None
    assert store.delete_stale(cutoff_ms=1000, limit=2) == 0


def test_get_returns_a_copy(store):
    store.atomic_update("fn_user_1", _append(1000))

    store.get("fn_user_1").requests.append(9999)

    assert store.get("fn_user_1").requests == [1000]


# ---------------------------------------------------------------------------
# SQL optimistic concurrency
# ---------------------------------------------------------------------------


def test_concurrent_update_is_retried_against_fresh_state(sql_store: SqlRateLimitStore, sql_session_factory, clock):
    sql_store.atomic_update("fn_user_1", _append(1000))
    competitor = SqlRateLimitStore(sql_session_factory, max_retries=0, use_server_time=False, clock=clock)
    attempts = []

    def mutate(record, now_ms):
        attempts.append(list(record.requests))
        if len(attempts) == 1:
            # Another instance commits between our read and our write
            competitor.atomic_update("fn_user_1", _append(2000))
        return _append(3000)(record, now_ms)

    assert sql_store.atomic_update("fn_user_1", mutate) == [1000, 2000, 3000]
    assert attempts == [[1000], [1000, 2000]]
    assert sql_store.get("fn_user_1").requests == [1000, 2000, 3000]


def test_concurrent_first_insert_is_retried(sql_store: SqlRateLimitStore, sql_session_factory, clock):
    competitor = SqlRateLimitStore(sql_session_factory, max_retries=0, use_server_time=False, clock=clock)
    seen = []

    def mutate(record, now_ms):
        seen.append(record)
        if len(seen) == 1:
            competitor.atomic_update("fn_user_1", _append(1000))
        return _append(2000)(record, now_ms)

    assert sql_store.atomic_update("fn_user_1", mutate) == [1000, 2000]
    assert seen[0] is None
    assert sql_store.get("fn_user_1").created_at_ms == 1000


def test_contention_error_after_retries(sql_session_factory, clock):
    store = SqlRateLimitStore(sql_session_factory, max_retries=2, use_server_time=False, clock=clock)
    competitor = SqlRateLimitStore(sql_session_factory, max_retries=0, use_server_time=False, clock=clock)
    store.atomic_update("fn_user_1", _append(1000))
    attempts = []

    def always_loses(record, now_ms):
        attempts.append(now_ms)
        competitor.atomic_update("fn_user_1", _append(2000))
        return _append(3000)(record, now_ms)

    with pytest.raises(StoreContentionError):
        store.atomic_update("fn_user_1", always_loses)

    assert len(attempts) == 3


def test_unreachable_database_raises_store_unavailable(broken_store: SqlRateLimitStore):
    with pytest.raises(StoreUnavailableError):
        broken_store.atomic_update("fn_user_1", _append(1000))
    with pytest.raises(StoreUnavailableError):
        broken_store.get("fn_user_1")
    with pytest.raises(StoreUnavailableError):
        broken_store.delete_stale(cutoff_ms=1000, limit=10)


async def test_limiter_fails_open_on_unreachable_database(broken_store: SqlRateLimitStore):
    limiter = RateLimiter(broken_store, timeout_seconds=2.0, enabled=True)

    result = await limiter.check("fn", "user_1", RateLimitConfig(max_requests=1, window_ms=60000))

    assert result.allowed is True
    assert result.remaining == 1


def test_server_time_is_read_from_database(sql_session_factory):
    store = SqlRateLimitStore(sql_session_factory, use_server_time=True)

    assert abs(store.now_ms() - time.time() * 1000) < 5000


async def test_limiter_end_to_end_on_sql_store(sql_store: SqlRateLimitStore, clock):
    limiter = RateLimiter(sql_store, timeout_seconds=2.0, enabled=True)
    config = RateLimitConfig(max_requests=2, window_ms=60000)

    results = [await limiter.check("fn", "user_1", config) for _ in range(3)]

    assert [r.allowed for r in results] == [True, True, False]
    assert (await limiter.status("fn", "user_1", config)).current == 2

    clock.advance(60000)
    assert (await limiter.check("fn", "user_1", config)).allowed is True


def test_in_memory_lock_table_does_not_grow(clock):
    store = InMemoryRateLimitStore(clock=clock)
    for i in range(100):
        store.atomic_update(f"fn_user_{i}", _append(1000 + i))
    store.get("fn_user_0")
    store.delete("fn_user_1")
    store.delete_stale(cutoff_ms=1050, limit=100)

    assert len(store._locks) == 0
    assert store.get("fn_user_99").requests == [1099]
