import asyncio

import pytest

from src.services.user_lock import KeyedLock


@pytest.mark.asyncio
async def test_same_key_runs_one_at_a_time():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("42"):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_different_keys_overlap():
    locks = KeyedLock()
    both_inside = asyncio.Event()
    inside = set()

    async def worker(key):
        async with locks.hold(key):
            inside.add(key)
            if len(inside) == 2:
                both_inside.set()
            await asyncio.wait_for(both_inside.wait(), timeout=1)

    await asyncio.gather(worker("1"), worker("2"))

    assert inside == {"1", "2"}


@pytest.mark.asyncio
async def test_lock_released_after_error():
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        async with locks.hold("42"):
            assert locks.is_locked("42")
            raise RuntimeError("boom")

    assert locks.is_locked("42") is False
    assert len(locks) == 0
