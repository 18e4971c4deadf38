from __future__ import annotations
import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from .errors import CloseError, LifecycleError, as_close_error
from .logger import ConsoleLogger
from .protocol import Handle

if TYPE_CHECKING:
    from .runtime import Supervisor


class Scope:
    """Ordered stack of handles released in LIFO order.

    Handles are released in reverse of the order they were pushed, whatever
    way the scope is left. ``close()`` releases one handle after another;
    ``aclose()`` starts every release in reverse order and awaits them
    together. Each handle is released exactly once.

    Close errors never escape ``close()``/``aclose()`` directly. Every one
    of them is recorded in ``close_errors`` and reported to the supervisor;
    the first one is returned so the caller can raise it when nothing
    earlier failed.

    Example:
        ```python
        with Scope() as scope:
            db = Database("postgresql://...")
            scope.push(Handle(db, db.close))
            cache = Cache("redis://...")
            scope.add_finalizer(cache.close)
            ...
        # cache.close(), then db.close()
        ```
    """
    def __init__(self, supervisor: Optional["Supervisor"] = None, logger: Optional[ConsoleLogger] = None):
        if supervisor is None or logger is None:
            from .runtime import default_runtime
            rt = default_runtime()
            supervisor = supervisor or rt.supervisor
            logger = logger or rt.logger
        self._supervisor = supervisor
        self._log = logger.bind(component="scope")
        self._handles: List[Handle[Any]] = []
        self._closed = False
        self.close_errors: List[CloseError] = []

    def __len__(self) -> int: return len(self._handles)

    @property
    def closed(self) -> bool: return self._closed

    @property
    def handles(self) -> tuple[Handle[Any], ...]: return tuple(self._handles)

    def values(self) -> tuple[Any, ...]:
        """Values of the held handles in acquisition order, anonymous ones skipped."""
        return tuple(h.value for h in self._handles if not h.anonymous)

    def push(self, handle: Handle[Any]) -> Handle[Any]:
        if self._closed: raise LifecycleError("scope is already closed")
        self._handles.append(handle)
        self._supervisor.on_acquire(handle)
        self._log.debug("resource.acquired", label=handle.label, depth=len(self._handles))
        return handle

    def add_finalizer(self, fin: Callable[[], Any], label: Optional[str] = None) -> Handle[Any]:
        """Register a bare cleanup callable (sync or async) as an anonymous handle."""
        return self.push(Handle(release=fin, label=label))

    def _take(self) -> List[Handle[Any]]:
        self._closed = True
        handles = list(reversed(self._handles)); self._handles.clear()
        return handles

    def report(self, err: CloseError, suppressed: bool) -> None:
        """Hand one close error to the supervisor; each error is reported once."""
        if not err.reported:
            err.reported = True
            self._supervisor.on_close_error(err, suppressed)
        if suppressed:
            self._log.warn("resource.close.suppressed", label=err.label, error=repr(err.cause))

    def _report(self, errors: List[CloseError], failed: bool, defer_first: bool = False) -> Optional[CloseError]:
        self.close_errors.extend(errors)
        for i, err in enumerate(errors):
            if i == 0 and defer_first and not failed: continue
            self.report(err, failed or i > 0)
        if failed or not errors: return None
        return errors[0]

    def close(self, failed: bool = False, defer_first: bool = False) -> Optional[CloseError]:
        """Release every handle sequentially, last acquired first.

        A ``KeyboardInterrupt`` or other non-``Exception`` raised by one
        release does not stop the others; it is re-raised once every handle
        has been released, with all close errors suppressed.

        Args:
            failed: Whether something earlier (body or acquisition) already
                failed; if so every close error is suppressed
            defer_first: Leave the returned error unreported; the caller
                settles it with :meth:`report`

        Returns:
            The close error the caller should raise, or None
        """
        if self._closed: return None
        errors: List[CloseError] = []
        interrupt: Optional[BaseException] = None
        for h in self._take():
            try:
                r = h.release()
                if inspect.isawaitable(r):
                    if inspect.iscoroutine(r): r.close()
                    raise TypeError(f"release of {h.label!r} is asynchronous; use aclose()")
            except Exception as ex:
                errors.append(as_close_error(ex, h.label))
            except BaseException as ex:
                if interrupt is None: interrupt = ex
            self._supervisor.on_release(h)
            self._log.debug("resource.released", label=h.label)
        err = self._report(errors, failed or interrupt is not None, defer_first)
        if interrupt is not None: raise interrupt
        return err

    async def aclose(self, failed: bool = False, defer_first: bool = False) -> Optional[CloseError]:
        """Release every handle concurrently; releases start last acquired first.

        ``defer_first`` works as for :meth:`close`.
        """
        if self._closed: return None
        handles = self._take()

        async def release_one(h: Handle[Any]) -> None:
            try:
                await h.arelease()
            finally:
                self._supervisor.on_release(h)
                self._log.debug("resource.released", label=h.label)

        results = await asyncio.gather(*(release_one(h) for h in handles), return_exceptions=True)
        errors = [as_close_error(r, h.label) for h, r in zip(handles, results) if isinstance(r, BaseException)]
        return self._report(errors, failed, defer_first)

    def __enter__(self) -> "Scope": return self

    def __exit__(self, et, e, tb) -> None:
        err = self.close(failed=e is not None)
        if err is not None: raise err

    async def __aenter__(self) -> "Scope": return self

    async def __aexit__(self, et, e, tb) -> None:
        err = await self.aclose(failed=e is not None)
        if err is not None: raise err
