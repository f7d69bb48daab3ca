"""
Per-session mutual exclusion for conversation mutations.

Each session id maps to one asyncio.Lock. asyncio.Lock hands ownership to
waiters in arrival order, so mutations on a session are applied FIFO and each
one sees the effects of its predecessors. Sessions never share a lock, so
different sessions proceed concurrently.

Entries are reference counted (holder + waiters) and removed when the last
caller leaves, so idle sessions do not accumulate locks.

Cancellation:
- A caller cancelled while still waiting for the lock is dropped from the
  queue and its mutation never runs.
- Once a caller reaches the head of the queue its mutation runs in its own
  task, shielded from the caller. It completes (and releases the lock) even
  if the caller stops waiting.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, TypeVar

from salesagent.config.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    refs: int = 0


class SessionLockRegistry:
    """
    Keyed FIFO locks.

    Usage:
        locks = SessionLockRegistry()

        async def mutate():
            ...

        result = await locks.run_exclusive(session_id, mutate)
    """

    def __init__(self):
        self._entries: Dict[str, _LockEntry] = {}

    def pending(self, key: str) -> int:
        """Number of callers holding or waiting for the lock of a key."""
        entry = self._entries.get(key)
        return entry.refs if entry else 0

    def __len__(self) -> int:
        return len(self._entries)

    async def run_exclusive(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run fn() while holding the lock for key.

        Args:
            key: Session id
            fn: Zero-argument coroutine function performing the mutation

        Returns:
            Whatever fn() returns

        Raises:
            Whatever fn() raises; asyncio.CancelledError if the caller is
            cancelled (the mutation still completes if it already started)
        """
        entry = self._checkout(key)
        try:
            await entry.lock.acquire()
        except BaseException:
            # Abandoned while queued: never applied
            self._checkin(key, entry)
            logger.debug(f"🔒 Abandoned queued mutation for session {key[:8]}...")
            raise

        logger.trace(f"🔒 Lock acquired for session {key[:8]}... (queued={entry.refs - 1})")
        task = asyncio.ensure_future(self._run_locked(key, entry, fn))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                task.add_done_callback(_log_detached_result(key))
            raise

    async def _run_locked(self, key: str, entry: _LockEntry, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        finally:
            entry.lock.release()
            self._checkin(key, entry)
            logger.trace(f"🔓 Lock released for session {key[:8]}...")

    def _checkout(self, key: str) -> _LockEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _LockEntry()
            self._entries[key] = entry
        entry.refs += 1
        return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        entry.refs -= 1
        if entry.refs == 0 and self._entries.get(key) is entry:
            del self._entries[key]


def _log_detached_result(key: str) -> Callable[[asyncio.Future], None]:
    """Done-callback that consumes the outcome of a mutation whose caller left."""

    def _callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"❌ Detached mutation for session {key[:8]}... failed: {error}")
        else:
            logger.debug(f"✅ Detached mutation for session {key[:8]}... completed")

    return _callback
