"""
Unit tests for SessionLockRegistry

Tests FIFO ordering per key, independence across keys, cancellation of
queued callers and completion of started mutations.
"""
import asyncio

import pytest

from salesagent.services.session_locks import SessionLockRegistry


@pytest.mark.asyncio
async def test_run_exclusive_returns_result():
    locks = SessionLockRegistry()

    async def work():
        return 42

    assert await locks.run_exclusive("s1", work) == 42
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_run_exclusive_propagates_errors_and_releases():
    locks = SessionLockRegistry()

    async def boom():
        raise KeyError("nope")

    with pytest.raises(KeyError):
        await locks.run_exclusive("s1", boom)

    assert locks.pending("s1") == 0
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_same_key_is_fifo_and_never_overlaps():
    locks = SessionLockRegistry()
    order = []
    active = 0
    max_active = 0

    def make(i):
        async def work():
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.001)
            order.append(i)
            active -= 1
        return work

    await asyncio.gather(*(locks.run_exclusive("s1", make(i)) for i in range(20)))

    assert order == list(range(20))
    assert max_active == 1


@pytest.mark.asyncio
async def test_different_keys_overlap():
    locks = SessionLockRegistry()
    started = {"a": asyncio.Event(), "b": asyncio.Event()}

    def make(me, other):
        async def work():
            started[me].set()
            await started[other].wait()
            return me
        return work

    results = await asyncio.wait_for(
        asyncio.gather(
            locks.run_exclusive("a", make("a", "b")),
            locks.run_exclusive("b", make("b", "a")),
        ),
        timeout=1,
    )

    assert results == ["a", "b"]


@pytest.mark.asyncio
async def test_cancelled_waiter_is_skipped():
    locks = SessionLockRegistry()
    applied = []
    gate = asyncio.Event()

    def make(name, wait=False):
        async def work():
            if wait:
                await gate.wait()
            applied.append(name)
        return work

    holder = asyncio.create_task(locks.run_exclusive("s1", make("holder", wait=True)))
    await asyncio.sleep(0)
    waiter = asyncio.create_task(locks.run_exclusive("s1", make("waiter")))
    tail = asyncio.create_task(locks.run_exclusive("s1", make("tail")))
    await asyncio.sleep(0)

    assert locks.pending("s1") == 3
    waiter.cancel()
    await asyncio.sleep(0)
    gate.set()

    await holder
    await tail
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert applied == ["holder", "tail"]
    assert locks.pending("s1") == 0


@pytest.mark.asyncio
async def test_started_work_survives_caller_cancellation():
    locks = SessionLockRegistry()
    finished = asyncio.Event()

    async def work():
        await asyncio.sleep(0.02)
        finished.set()

    task = asyncio.create_task(locks.run_exclusive("s1", work))
    await asyncio.sleep(0.005)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.wait_for(finished.wait(), timeout=1)
    await asyncio.sleep(0)
    assert locks.pending("s1") == 0


@pytest.mark.asyncio
async def test_next_caller_waits_for_detached_work():
    locks = SessionLockRegistry()
    events = []

    async def slow():
        await asyncio.sleep(0.02)
        events.append("slow done")

    async def fast():
        events.append("fast ran")

    first = asyncio.create_task(locks.run_exclusive("s1", slow))
    await asyncio.sleep(0.005)
    first.cancel()

    await locks.run_exclusive("s1", fast)

    assert events == ["slow done", "fast ran"]
