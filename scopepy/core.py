from __future__ import annotations
from dataclasses import dataclass, field
import traceback
from typing import Iterable, Optional


@dataclass(frozen=True)
class Cause:
    """Tree of errors collected while tearing a scope or batch down.

    ``both`` joins errors from releases that ran concurrently, ``then``
    joins errors from releases that ran one after another.
    """
    kind: str
    left: Optional["Cause"] = None
    right: Optional["Cause"] = None
    error: Optional[BaseException] = None
    annotations: list[str] = field(default_factory=list)

    def render(self, indent: str = "", include_traces: bool = False) -> str:
        def line(s: str) -> str: return indent + s + "\n"
        notes = "".join(line("@ " + n) for n in self.annotations)
        if self.kind == 'fail':
            s = notes + line(f"Fail({self.error!r})")
            if include_traces and self.error is not None and self.error.__traceback__:
                tb = ''.join(traceback.format_exception(type(self.error), self.error, self.error.__traceback__))
                s += ''.join(indent + '  ' + l for l in tb.splitlines(True))
            return s
        if self.kind == 'empty': return notes + line("Empty")
        op = 'Both' if self.kind == 'both' else 'Then'
        l = self.left.render(indent + "  ", include_traces) if self.left else indent + "  (empty)\n"
        r = self.right.render(indent + "  ", include_traces) if self.right else indent + "  (empty)\n"
        return notes + line(op + ":") + l + r

    def errors(self) -> list[BaseException]:
        if self.kind == 'fail': return [self.error] if self.error is not None else []
        out: list[BaseException] = []
        if self.left: out.extend(self.left.errors())
        if self.right: out.extend(self.right.errors())
        return out

    def annotate(self, note: str) -> "Cause":
        return Cause(kind=self.kind, left=self.left, right=self.right, error=self.error, annotations=[*self.annotations, note])

    @staticmethod
    def empty() -> "Cause": return Cause(kind='empty')
    @staticmethod
    def fail(e: BaseException) -> "Cause": return Cause(kind='fail', error=e)
    @staticmethod
    def both(l: "Cause", r: "Cause") -> "Cause": return Cause(kind='both', left=l, right=r)
    @staticmethod
    def then(l: "Cause", r: "Cause") -> "Cause": return Cause(kind='then', left=l, right=r)

    @staticmethod
    def of(errors: Iterable[BaseException], concurrent: bool = False) -> "Cause":
        causes = [Cause.fail(e) for e in errors]
        if not causes: return Cause.empty()
        join = Cause.both if concurrent else Cause.then
        acc = causes[0]
        for c in causes[1:]: acc = join(acc, c)
        return acc
