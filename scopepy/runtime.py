from __future__ import annotations
import inspect
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Callable, Iterable, Iterator, List, Optional, Tuple, TypeVar

from .core import Cause
from .errors import CloseError, MissingResourceError
from .logger import ConsoleLogger
from .protocol import Handle, acquire, acquire_async, label_of
from .scope import Scope

A = TypeVar("A")


class Supervisor:
    """Lifecycle callbacks; the base class ignores everything."""
    def on_acquire(self, handle: Handle[Any]) -> None:
        pass

    def on_release(self, handle: Handle[Any]) -> None:
        pass

    def on_close_error(self, error: CloseError, suppressed: bool) -> None:
        pass


class CollectingSupervisor(Supervisor):
    """Supervisor that keeps every event, including swallowed close errors.

    Only the first close error of a scope or batch is ever raised. Install
    this supervisor to see all of them.

    Example:
        ```python
        sup = CollectingSupervisor()
        rt = Runtime(supervisor=sup)
        try:
            rt.run_scoped([a, b, c], body)
        except CloseError:
            print(sup.cause().render())
        ```
    """
    def __init__(self) -> None:
        self.acquired: List[Handle[Any]] = []
        self.released: List[Handle[Any]] = []
        self.close_errors: List[Tuple[CloseError, bool]] = []

    def on_acquire(self, handle: Handle[Any]) -> None: self.acquired.append(handle)
    def on_release(self, handle: Handle[Any]) -> None: self.released.append(handle)
    def on_close_error(self, error: CloseError, suppressed: bool) -> None: self.close_errors.append((error, suppressed))

    @property
    def suppressed(self) -> List[CloseError]:
        return [e for e, s in self.close_errors if s]

    def cause(self) -> Cause:
        return Cause.of(e for e, _ in self.close_errors)

    def clear(self) -> None:
        self.acquired.clear(); self.released.clear(); self.close_errors.clear()


class Runtime:
    """Runs bodies against scoped resources.

    Resources are acquired left to right and released right to left. A
    body error always wins over release errors; with a clean body the
    first release error is raised and later ones are only reported to the
    supervisor and logged.

    Args:
        supervisor: Lifecycle callbacks (default: no-op)
        logger: Logger for lifecycle events (default: ``ConsoleLogger`` at WARN)

    Example:
        ```python
        rt = Runtime(logger=ConsoleLogger(level="DEBUG"))

        total = rt.run_scoped(
            [db_resource, cache_resource],
            lambda db, cache: db.count() + cache.count(),
        )

        rows = await rt.run_scoped_async([pool_resource], fetch_rows)
        ```
    """
    def __init__(self, supervisor: Optional[Supervisor] = None, logger: Optional[ConsoleLogger] = None):
        self.supervisor = supervisor or Supervisor()
        self.logger = logger or ConsoleLogger("scopepy")
        self._log = self.logger.bind(component="runtime")

    def scope(self) -> Scope:
        return Scope(self.supervisor, self.logger)

    def _acquire_into(self, scope: Scope, resources: Iterable[Any]) -> Optional[str]:
        # Returns the label of the first Empty resource, None when all were acquired.
        # On Empty the scope is left open for the caller to close.
        for r in resources:
            try:
                out = acquire(r)
            except BaseException:
                self._log.debug("scope.rollback", label=label_of(r), held=len(scope))
                scope.close(failed=True)
                raise
            if out.is_empty():
                self._log.debug("scope.empty", label=label_of(r), held=len(scope))
                return label_of(r)
            scope.push(out.handle)
        return None

    async def _acquire_into_async(self, scope: Scope, resources: Iterable[Any]) -> Optional[str]:
        for r in resources:
            try:
                out = await acquire_async(r)
            except BaseException:
                self._log.debug("scope.rollback", label=label_of(r), held=len(scope))
                await scope.aclose(failed=True)
                raise
            if out.is_empty():
                self._log.debug("scope.empty", label=label_of(r), held=len(scope))
                return label_of(r)
            scope.push(out.handle)
        return None

    def run_scoped(self, resources: Iterable[Any], body: Callable[..., A], fallback: Optional[Callable[[], A]] = None) -> A:
        """Acquire ``resources`` in order, run ``body`` with their values, release in reverse.

        Args:
            resources: Ordered resources; each is acquired exactly once
            body: Called with the bound values (anonymous handles skipped)
            fallback: Called with no arguments when a resource is Empty, after
                the resources already held were released. If it returns, the
                first of those release errors is raised; if it raises, its
                error wins

        Returns:
            The body's result, or the fallback's when a resource was Empty

        Raises:
            AcquisitionError: A resource failed hard; earlier ones were released
            MissingResourceError: A resource was Empty and there is no fallback
            CloseError: The body (or fallback) succeeded but a release failed
        """
        scope = self.scope()
        missing = self._acquire_into(scope, resources)
        if missing is not None:
            if fallback is None:
                scope.close(failed=True)
                raise MissingResourceError(missing)
            err = scope.close(defer_first=True)
            try:
                result = fallback()
            except BaseException:
                if err is not None: scope.report(err, suppressed=True)
                raise
            if err is not None:
                scope.report(err, suppressed=False)
                raise err
            return result
        try:
            result = body(*scope.values())
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result): result.close()
                raise TypeError("body returned an awaitable; use run_scoped_async()")
        except BaseException:
            scope.close(failed=True)
            raise
        err = scope.close()
        if err is not None: raise err
        return result

    async def run_scoped_async(self, resources: Iterable[Any], body: Callable[..., Any], fallback: Optional[Callable[[], Any]] = None) -> Any:
        """Async form of :meth:`run_scoped`.

        Resources, body, fallback and release capabilities may each be sync
        or async. Releases of one scope start in reverse acquisition order
        and are awaited together.
        """
        scope = self.scope()
        missing = await self._acquire_into_async(scope, resources)
        if missing is not None:
            if fallback is None:
                await scope.aclose(failed=True)
                raise MissingResourceError(missing)
            err = await scope.aclose(defer_first=True)
            try:
                result = fallback()
                if inspect.isawaitable(result): result = await result
            except BaseException:
                if err is not None: scope.report(err, suppressed=True)
                raise
            if err is not None:
                scope.report(err, suppressed=False)
                raise err
            return result
        try:
            result = body(*scope.values())
            if inspect.isawaitable(result): result = await result
        except BaseException:
            await scope.aclose(failed=True)
            raise
        err = await scope.aclose()
        if err is not None: raise err
        return result

    @contextmanager
    def using(self, *resources: Any) -> Iterator[Tuple[Any, ...]]:
        """``with`` form of :meth:`run_scoped`; an Empty resource raises MissingResourceError.

        Example:
            ```python
            with rt.using(db, with_timeout(lock, 0.5)) as (conn,):
                conn.execute(...)
            ```
        """
        scope = self.scope()
        missing = self._acquire_into(scope, resources)
        if missing is not None:
            scope.close(failed=True)
            raise MissingResourceError(missing)
        try:
            yield scope.values()
        except BaseException:
            scope.close(failed=True)
            raise
        err = scope.close()
        if err is not None: raise err

    @asynccontextmanager
    async def async_using(self, *resources: Any) -> AsyncIterator[Tuple[Any, ...]]:
        scope = self.scope()
        missing = await self._acquire_into_async(scope, resources)
        if missing is not None:
            await scope.aclose(failed=True)
            raise MissingResourceError(missing)
        try:
            yield scope.values()
        except BaseException:
            await scope.aclose(failed=True)
            raise
        err = await scope.aclose()
        if err is not None: raise err


_default: Optional[Runtime] = None


def default_runtime() -> Runtime:
    global _default
    if _default is None: _default = Runtime()
    return _default


def set_default_runtime(rt: Optional[Runtime]) -> Optional[Runtime]:
    """Replace the process-wide runtime used by module-level helpers; returns the previous one."""
    global _default
    prev, _default = _default, rt
    return prev


def run_scoped(resources: Iterable[Any], body: Callable[..., A], fallback: Optional[Callable[[], A]] = None, *, runtime: Optional[Runtime] = None) -> A:
    return (runtime or default_runtime()).run_scoped(resources, body, fallback)


async def run_scoped_async(resources: Iterable[Any], body: Callable[..., Any], fallback: Optional[Callable[[], Any]] = None, *, runtime: Optional[Runtime] = None) -> Any:
    return await (runtime or default_runtime()).run_scoped_async(resources, body, fallback)


def using(*resources: Any, runtime: Optional[Runtime] = None):
    return (runtime or default_runtime()).using(*resources)


def async_using(*resources: Any, runtime: Optional[Runtime] = None):
    return (runtime or default_runtime()).async_using(*resources)
