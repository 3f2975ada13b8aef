"""Tests for the keyed asyncio lock registry."""

import asyncio

from src.shared.locks import KeyedLock


class TestKeyedLock:
    async def test_serializes_same_key(self):
        locks = KeyedLock()
        order: list[str] = []

        async def worker(name: str):
            async with locks.acquire(("+911234567890", "login")):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-start", "a-end", "b-start", "b-end"], ["b-start", "b-end", "a-start", "a-end"])

    async def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        inside = asyncio.Event()
        released = asyncio.Event()

        async def holder():
            async with locks.acquire("first"):
                inside.set()
                await released.wait()

        task = asyncio.create_task(holder())
        await inside.wait()

        async with locks.acquire("second"):
            assert len(locks) == 2

        released.set()
        await task

    async def test_registry_is_emptied_after_use(self):
        locks = KeyedLock()
        async with locks.acquire("key"):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_lock_released_on_error(self):
        locks = KeyedLock()
        try:
            async with locks.acquire("key"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        async with locks.acquire("key"):
            pass
        assert len(locks) == 0
