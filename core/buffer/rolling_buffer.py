# core/buffer/rolling_buffer.py
from __future__ import annotations
from collections import deque
from typing import Deque, Optional, Tuple

DEFAULT_CLEAR_SECONDS = 10.0

class RollingBuffer:
    """
    Most recently typed character codes, oldest first.
    - a pause longer than clear_seconds starts a fresh burst
    - never holds more than the max_len passed to the latest append/trim
    - contents only leave through suffix()
    """
    def __init__(self, clear_seconds: float = DEFAULT_CLEAR_SECONDS):
        self.clear_seconds = clear_seconds
        self._chars: Deque[int] = deque()
        self.last_update: Optional[float] = None

    def reset(self) -> None:
        self._chars.clear()

    def append(self, code: int, now: float, max_len: int) -> None:
        if self.last_update is not None and now - self.last_update > self.clear_seconds:
            self.reset()
        self._chars.append(code)
        self.trim(max_len)
        self.last_update = now

    def trim(self, max_len: int) -> None:
        # drop from the front; newest characters are what can complete a password
        while self._chars and len(self._chars) > max(max_len, 0):
            self._chars.popleft()

    def suffix(self, k: int) -> Tuple[int, ...]:
        if k <= 0 or k > len(self._chars):
            raise ValueError(f"suffix length {k} not available (have {len(self._chars)})")
        return tuple(self._chars)[-k:]

    def __len__(self) -> int:
        return len(self._chars)

    def __repr__(self) -> str:
        return f"RollingBuffer(len={len(self._chars)}, clear_seconds={self.clear_seconds})"
