from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from .protocol import Handle

A = TypeVar("A")


class Outcome(Generic[A]):
    """Result of one acquisition attempt: ``Acquired(handle)`` or ``EMPTY``.

    Hard failures never appear here; they are raised. The base class is
    abstract: ``Acquired`` and ``EMPTY`` are its only implementations.
    """
    def is_acquired(self) -> bool: raise NotImplementedError  # abstract
    def is_empty(self) -> bool: return not self.is_acquired()

    def handle_or_none(self) -> "Handle[A] | None":
        return self.handle if self.is_acquired() else None  # type: ignore[attr-defined]


@dataclass(frozen=True)
class Acquired(Outcome[A]):
    handle: "Handle[A]"
    def is_acquired(self) -> bool: return True


class _Empty(Outcome[Any]):
    __slots__ = ()
    def __repr__(self) -> str: return "EMPTY"
    def __bool__(self) -> bool: return False
    def is_acquired(self) -> bool: return False


EMPTY: Outcome[Any] = _Empty()


def outcome_of(raw: Any) -> Outcome[Any]:
    """Normalize whatever ``acquire()`` returned into an Outcome.

    Accepts a Handle, ``None`` (soft failure), or an Outcome.
    """
    from .protocol import Handle
    if isinstance(raw, Outcome): return raw
    if raw is None: return EMPTY
    if isinstance(raw, Handle): return Acquired(raw)
    raise TypeError(f"acquire() must return a Handle or None, got {type(raw).__name__}")
