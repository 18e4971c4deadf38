from __future__ import annotations
from typing import Optional


class LifecycleError(RuntimeError):
    """Base class for errors raised by the lifecycle runtime itself."""


class AcquisitionError(LifecycleError):
    """A resource failed hard while being acquired.

    Anything a resource raises from ``acquire()`` is wrapped in this error
    (the original exception is kept as ``cause`` and chained as
    ``__cause__``). Previously acquired siblings have already been released
    by the time the caller sees it.

    Args:
        cause: The exception raised by the resource, if any
        label: Optional name of the failing resource
    """
    def __init__(self, cause: Optional[BaseException] = None, label: Optional[str] = None, message: Optional[str] = None):
        self.cause = cause; self.label = label
        if message is None:
            where = f" {label!r}" if label else ""
            message = f"acquisition of resource{where} failed" + (f": {type(cause).__name__}: {cause}" if cause is not None else "")
        super().__init__(message)


class MissingResourceError(AcquisitionError, LookupError):
    """A resource yielded Empty and no fallback was supplied."""
    def __init__(self, label: Optional[str] = None):
        where = f" {label!r}" if label else ""
        super().__init__(None, label, f"resource{where} is unavailable and no fallback was given")


class CloseError(LifecycleError):
    """A release capability raised.

    Only the first close error of a scope or batch is ever raised, and only
    when the body (or acquisition) did not already fail. Later ones are
    reported to the runtime's supervisor and logged.
    """
    def __init__(self, cause: BaseException, label: Optional[str] = None):
        self.cause = cause; self.label = label
        self.reported = False
        where = f" {label!r}" if label else ""
        super().__init__(f"release of resource{where} failed: {type(cause).__name__}: {cause}")


def as_acquisition_error(ex: BaseException, label: Optional[str] = None) -> AcquisitionError:
    if isinstance(ex, AcquisitionError): return ex
    err = AcquisitionError(ex, label); err.__cause__ = ex
    return err


def as_close_error(ex: BaseException, label: Optional[str] = None) -> CloseError:
    if isinstance(ex, CloseError): return ex
    err = CloseError(ex, label); err.__cause__ = ex
    return err
