from __future__ import annotations
import asyncio
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Iterable, List, Optional

from .errors import LifecycleError, as_acquisition_error
from .protocol import Handle, acquire_async, label_of
from .runtime import Runtime, default_runtime


class EntryState(Enum):
    PENDING = auto()
    ACQUIRED = auto()
    FAILED = auto()
    EMPTY = auto()


@dataclass
class BatchEntry:
    """One concurrently acquired member of a batch."""
    index: int
    label: Optional[str] = None
    state: EntryState = EntryState.PENDING
    handle: Optional[Handle[Any]] = None
    error: Optional[BaseException] = None

    @property
    def terminal(self) -> bool:
        return self.state is not EntryState.PENDING

    def acquired(self, handle: Handle[Any]) -> None:
        self.handle = handle; self.state = EntryState.ACQUIRED

    def failed(self, error: BaseException) -> None:
        self.error = error; self.state = EntryState.FAILED

    def empty(self) -> None:
        self.state = EntryState.EMPTY


class Batch:
    """Acquire several resources concurrently as one unit.

    Every factory is called and every acquisition started at once. The batch
    waits for all of them to settle, never abandoning one in flight. If all
    succeed, ``acquire()`` returns one aggregate Handle whose value is the
    list of values in declared order; releasing it releases every member
    concurrently. If any member fails or is Empty, the acquired members are
    released concurrently and the batch raises the first hard error in
    declared order, or returns ``None`` when every miss was a soft one.

    A Batch is itself an async resource, so it can be handed to
    ``run_scoped_async`` like any other.

    Args:
        factories: Zero-argument callables producing the resources
        runtime: Runtime providing the supervisor and logger
        label: Name used in logs and errors

    Example:
        ```python
        batch = Batch([lambda: Connection("a"), lambda: Connection("b")])
        await run_scoped_async([batch], lambda conns: use(*conns))
        ```
    """
    def __init__(self, factories: Iterable[Callable[[], Any]], *, runtime: Optional[Runtime] = None, label: Optional[str] = None):
        self._factories = list(factories)
        self._runtime = runtime
        self.label = label or f"batch[{len(self._factories)}]"
        self.entries: List[BatchEntry] = []
        self._started = False

    async def _acquire_entry(self, entry: BatchEntry, factory: Callable[[], Any]) -> None:
        try:
            resource = factory()
            entry.label = label_of(resource)
            out = await acquire_async(resource)
        except Exception as ex:
            entry.failed(as_acquisition_error(ex, entry.label))
        except BaseException as ex:
            entry.failed(ex)
        else:
            if out.is_acquired(): entry.acquired(out.handle)  # type: ignore[attr-defined]
            else: entry.empty()

    async def acquire(self) -> Optional[Handle[List[Any]]]:
        if self._started: raise LifecycleError(f"{self.label} was already acquired")
        self._started = True
        rt = self._runtime or default_runtime()
        log = rt.logger.bind(component="batch", batch=self.label)
        self.entries = [BatchEntry(i) for i in range(len(self._factories))]
        log.debug("batch.start", size=len(self.entries))
        scope = rt.scope()
        try:
            await asyncio.gather(*(self._acquire_entry(e, f) for e, f in zip(self.entries, self._factories)))
        except BaseException:
            for e in self.entries:
                if e.state is EntryState.ACQUIRED: scope.push(e.handle)  # type: ignore[arg-type]
            await scope.aclose(failed=True)
            raise
        for e in self.entries:
            if e.state is EntryState.ACQUIRED: scope.push(e.handle)  # type: ignore[arg-type]

        failed = [e for e in self.entries if e.state is EntryState.FAILED]
        missing = [e for e in self.entries if e.state is EntryState.EMPTY]
        if failed or missing:
            log.debug("batch.rollback", held=len(scope), failed=len(failed), empty=len(missing))
            await scope.aclose(failed=True)
            if failed:
                err = failed[0].error
                assert err is not None
                raise err
            return None

        values = [None if e.handle.anonymous else e.handle.value for e in self.entries]  # type: ignore[union-attr]

        async def release_all() -> None:
            err = await scope.aclose()
            if err is not None: raise err

        log.debug("batch.acquired", size=len(values))
        return Handle(values, release_all, label=self.label)


async def run_batch(factories: Iterable[Callable[[], Any]], *, runtime: Optional[Runtime] = None) -> Optional[Handle[List[Any]]]:
    """Acquire a :class:`Batch` directly; the caller owns the returned aggregate Handle."""
    return await Batch(factories, runtime=runtime).acquire()
