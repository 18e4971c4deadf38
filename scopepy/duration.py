from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True, order=True)
class Duration:
    seconds: float

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError(f"duration must be non-negative, got {self.seconds!r}s")

    @staticmethod
    def seconds_(s: float) -> "Duration":
        return Duration(float(s))

    @staticmethod
    def millis(ms: float) -> "Duration":
        return Duration(float(ms) / 1000.0)

    @staticmethod
    def coerce(value: "DurationLike") -> Optional["Duration"]:
        """None passes through, numbers are seconds."""
        if value is None or isinstance(value, Duration): return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"expected seconds or Duration, got {type(value).__name__}")
        return Duration(float(value))

    def as_millis(self) -> float:
        return self.seconds * 1000.0

    def __str__(self) -> str:
        s = self.seconds
        if s < 1.0:
            return f"{int(s*1000)}ms"
        return f"{s:.3f}s"


DurationLike = Union[Duration, float, int, None]
