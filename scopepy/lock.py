from __future__ import annotations
import inspect
from typing import Any, Optional

import anyio

from .duration import Duration, DurationLike
from .protocol import Handle


class LockProxy:
    """Resource view of a blocking mutex with an optional acquisition timeout.

    Works with ``threading.Lock``, ``RLock``, ``Semaphore`` and anything else
    offering ``acquire(timeout=...) -> bool`` and ``release()``. When the
    timeout elapses, ``acquire()`` returns ``None`` (Empty) and the lock is
    not held. On success it returns an anonymous Handle that unlocks once.

    Args:
        lock: The mutex-like primitive
        timeout: A Duration, or a bare number of seconds (not
            milliseconds; use Duration.millis(250) for 250 ms). None waits
            forever
        label: Name used in logs and errors
    """
    def __init__(self, lock: Any, timeout: DurationLike = None, label: Optional[str] = None):
        self._lock = lock
        self.timeout: Optional[Duration] = Duration.coerce(timeout)
        self.label = label or f"lock:{type(lock).__name__}"

    @property
    def lock(self) -> Any: return self._lock

    def _handle(self) -> Handle[Any]:
        return Handle(release=self._lock.release, label=self.label)

    def acquire(self) -> Optional[Handle[Any]]:
        if self.timeout is None: ok = self._lock.acquire()
        else: ok = self._lock.acquire(timeout=self.timeout.seconds)
        if ok is False: return None
        return self._handle()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r}, timeout={self.timeout})"


class AsyncLockProxy(LockProxy):
    """Same as :class:`LockProxy` for ``asyncio``/``anyio`` locks and semaphores."""
    async def acquire(self) -> Optional[Handle[Any]]:  # type: ignore[override]
        if self.timeout is None:
            await self._lock.acquire()
            return self._handle()
        with anyio.move_on_after(self.timeout.seconds) as cs:
            await self._lock.acquire()
        if cs.cancelled_caught: return None
        return self._handle()


def with_timeout(lock: Any, timeout: DurationLike = None, label: Optional[str] = None) -> LockProxy:
    """Wrap a lock as a Resource whose acquisition gives up after ``timeout``.

    Picks :class:`AsyncLockProxy` when ``lock.acquire`` is a coroutine function.
    A bare number is taken as seconds; pass ``Duration.millis(n)`` for a
    millisecond timeout.

    Example:
        ```python
        lock = threading.Lock()
        run_scoped([with_timeout(lock, Duration.millis(250))], critical, fallback=busy)
        ```
    """
    if inspect.iscoroutinefunction(lock.acquire): return AsyncLockProxy(lock, timeout, label)
    return LockProxy(lock, timeout, label)
