import asyncio

import pytest
from sqlalchemy.orm.exc import StaleDataError

from academy.core.concurrency import KeyedLock, retry_on_conflict
from academy.core.errors import AcademyError, Conflict, NotFound
from academy.core.notifications import NotificationBroker
from academy.core.security import create_access_token, create_refresh_token
from academy.core.auth import decode_user_id


async def test_keyed_lock_serializes_same_key():
    locks = KeyedLock("test")
    order = []

    async def work(key, label):
        async with locks.hold(key):
            order.append(f"{label}-start")
            await asyncio.sleep(0.01)
            order.append(f"{label}-end")

    await asyncio.gather(work(1, "a"), work(1, "b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]
    assert len(locks) == 0


async def test_keyed_lock_allows_different_keys():
    locks = KeyedLock("test")
    order = []

    async def work(key):
        async with locks.hold(key):
            order.append(f"{key}-start")
            await asyncio.sleep(0.01)
            order.append(f"{key}-end")

    await asyncio.gather(work(1), work(2))

    assert order[:2] == ["1-start", "2-start"]


async def test_keyed_lock_released_on_error():
    locks = KeyedLock("test")
    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")
    async with locks.hold("k"):
        pass
    assert len(locks) == 0


class FakeSession:
    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


async def test_retry_on_conflict_retries_then_succeeds():
    session = FakeSession()
    calls = []

    async def operation():
        calls.append(1)
        if len(calls) < 2:
            raise StaleDataError("version mismatch")
        return "ok"

    assert await retry_on_conflict(session, operation, what="thing") == "ok"
    assert session.rollbacks == 1


async def test_retry_on_conflict_gives_up():
    session = FakeSession()

    async def operation():
        raise StaleDataError("version mismatch")

    with pytest.raises(Conflict):
        await retry_on_conflict(session, operation, what="thing")
    assert session.rollbacks == 3


async def test_retry_on_conflict_does_not_retry_other_errors():
    session = FakeSession()

    async def operation():
        raise NotFound("gone")

    with pytest.raises(NotFound):
        await retry_on_conflict(session, operation, what="thing")
    assert session.rollbacks == 0


def test_error_kinds():
    err = NotFound()
    assert isinstance(err, AcademyError)
    assert err.kind == "NotFound"
    assert err.status_code == 404
    assert err.message == "Not found"
    assert Conflict("custom").message == "custom"


async def test_broker_delivers_to_each_listener():
    broker = NotificationBroker()
    first = broker.subscribe(7)
    second = broker.subscribe(7)

    assert broker.publish(7, "points_changed", {"delta": 5}) == 2
    assert broker.publish(8, "points_changed") == 0

    event = first.get_nowait()
    assert event["type"] == "points_changed"
    assert event["data"] == {"delta": 5}
    assert second.get_nowait()["data"] == {"delta": 5}

    broker.unsubscribe(7, first)
    broker.unsubscribe(7, second)
    assert broker.listener_count(7) == 0


async def test_broker_drops_when_listener_is_full():
    broker = NotificationBroker(queue_size=1)
    queue = broker.subscribe(1)

    assert broker.publish(1, "rank_changed") == 1
    assert broker.publish(1, "rank_changed") == 0
    assert queue.qsize() == 1


def test_tokens():
    access = create_access_token({"sub": "42"})
    refresh = create_refresh_token({"sub": "42"})

    assert decode_user_id(access) == 42
    assert decode_user_id(refresh) is None
    assert decode_user_id("not-a-token") is None
