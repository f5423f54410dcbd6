# core/buffer/lengths.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Iterator, Optional, Sequence

@dataclass(frozen=True)
class CandidateLengthSet:
    """
    Password lengths currently being watched.
    Immutable for one configuration epoch; replaced wholesale on change.
    """
    watched: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "watched", frozenset(n for n in self.watched if n > 0))

    @classmethod
    def from_lengths(cls, lengths: Iterable[int], max_length: Optional[int] = None) -> "CandidateLengthSet":
        picked = {int(n) for n in lengths}
        if max_length is not None:
            picked = {n for n in picked if n <= max_length}
        return cls(frozenset(picked))

    @classmethod
    def from_flags(cls, flags: Sequence[bool], max_length: Optional[int] = None) -> "CandidateLengthSet":
        """Index i set to a truthy value means length i is watched (index 0 is ignored)."""
        return cls.from_lengths((i for i, on in enumerate(flags) if on), max_length=max_length)

    def is_watched(self, n: int) -> bool:
        return n in self.watched

    def max_length(self) -> int:
        return max(self.watched, default=0)

    def checkable(self, available: int) -> Iterator[int]:
        """Watched lengths the buffer can currently supply, shortest first."""
        for n in range(1, min(available, self.max_length()) + 1):
            if self.is_watched(n):
                yield n

    def __bool__(self) -> bool:
        return bool(self.watched)

    def __len__(self) -> int:
        return len(self.watched)
