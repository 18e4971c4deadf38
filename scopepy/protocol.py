from __future__ import annotations
import inspect
from typing import Any, Awaitable, Callable, Generic, Optional, Protocol, TypeVar, runtime_checkable

from .errors import AcquisitionError
from .outcome import Outcome, outcome_of

A = TypeVar("A")


class _NoValue:
    __slots__ = ()
    def __repr__(self) -> str: return "NO_VALUE"


NO_VALUE: Any = _NoValue()


@runtime_checkable
class Resource(Protocol):
    """Anything that can be acquired.

    ``acquire()`` returns a Handle on success, ``None`` when the resource is
    unavailable (soft failure, nothing allocated), and raises on hard failure.
    Async resources declare ``async def acquire``; the async engines accept both.
    """
    def acquire(self) -> Any: ...


@runtime_checkable
class AsyncResource(Protocol):
    async def acquire(self) -> Any: ...


class Handle(Generic[A]):
    """An owned value plus a one-shot release capability.

    The release capability is invoked at most once no matter how many times
    ``release()`` is called; later calls return ``None``. The capability may
    be synchronous or return an awaitable, in which case ``release()`` hands
    the awaitable back and ``arelease()`` awaits it.

    Args:
        value: Value exposed to the body; omit for anonymous handles (locks)
        release: Zero-argument callable freeing the underlying resource
        label: Optional name used in logs and errors

    Example:
        ```python
        conn = pool.checkout()
        h = Handle(conn, conn.close, label="db")
        h.release()   # closes
        h.release()   # no-op
        ```
    """
    __slots__ = ("_value", "_release", "label", "_released")

    def __init__(self, value: A = NO_VALUE, release: Optional[Callable[[], Any]] = None, label: Optional[str] = None):
        self._value = value; self._release = release; self.label = label; self._released = False

    @property
    def value(self) -> A: return self._value

    @property
    def anonymous(self) -> bool: return self._value is NO_VALUE

    @property
    def released(self) -> bool: return self._released

    def release(self) -> Any:
        if self._released: return None
        self._released = True
        if self._release is None: return None
        return self._release()

    async def arelease(self) -> None:
        r = self.release()
        if inspect.isawaitable(r): await r

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        name = f" {self.label!r}" if self.label else ""
        return f"Handle{name}({self._value!r}, {state})"


def label_of(resource: Any) -> str:
    label = getattr(resource, "label", None)
    return label if isinstance(label, str) and label else type(resource).__name__


def _wrap(ex: Exception, label: str) -> AcquisitionError:
    err = ex if isinstance(ex, AcquisitionError) else AcquisitionError(ex, label)
    if err.label is None: err.label = label
    return err


def _finish(raw: Any, label: str) -> Outcome[Any]:
    out = outcome_of(raw)
    h = out.handle_or_none()
    if h is not None and h.label is None: h.label = label
    return out


def acquire(resource: Any) -> Outcome[Any]:
    """Acquire a synchronous resource once and normalize the result.

    Returns ``Acquired(handle)`` or ``EMPTY``; hard failures are raised as
    ``AcquisitionError`` chained to the original exception.

    Raises:
        TypeError: If the resource is asynchronous
    """
    label = label_of(resource)
    try:
        raw = resource.acquire()
    except Exception as ex:
        err = _wrap(ex, label)
        if err is ex: raise
        raise err from ex
    if inspect.isawaitable(raw):
        if inspect.iscoroutine(raw): raw.close()
        raise TypeError(f"resource {label!r} is asynchronous; use run_scoped_async()")
    return _finish(raw, label)


async def acquire_async(resource: Any) -> Outcome[Any]:
    """Async counterpart of :func:`acquire`; accepts sync and async resources."""
    label = label_of(resource)
    try:
        raw = resource.acquire()
        if inspect.isawaitable(raw): raw = await raw
    except Exception as ex:
        err = _wrap(ex, label)
        if err is ex: raise
        raise err from ex
    return _finish(raw, label)


class _FromResource:
    def __init__(self, mk: Callable[[], Any], close: Optional[Callable[[Any], Any]], label: Optional[str]):
        self._mk = mk; self._close = close; self.label = label

    def _handle(self, value: Any) -> Optional[Handle[Any]]:
        if value is None: return None
        close = self._close
        return Handle(value, (lambda: close(value)) if close is not None else None, label=self.label)

    def acquire(self) -> Optional[Handle[Any]]:
        return self._handle(self._mk())


class _AsyncFromResource(_FromResource):
    async def acquire(self) -> Optional[Handle[Any]]:  # type: ignore[override]
        return self._handle(await self._mk())


def from_resource(mk: Callable[[], Any] | Callable[[], Awaitable[Any]], close: Optional[Callable[[Any], Any]] = None, label: Optional[str] = None) -> Resource:
    """Build a Resource from a constructor and a close function.

    ``mk`` may be a plain or ``async`` function; returning ``None`` means the
    resource is unavailable. ``close`` receives the value and may be async.

    Example:
        ```python
        db = from_resource(lambda: Database(url), lambda d: d.close(), label="db")
        rows = run_scoped([db], lambda d: d.query("select 1"))
        ```
    """
    if inspect.iscoroutinefunction(mk): return _AsyncFromResource(mk, close, label)
    return _FromResource(mk, close, label)
