from __future__ import annotations
import threading
from dataclasses import dataclass
from typing import Any, Dict

@dataclass(frozen=True)
class PageContext:
    url: str = ""
    referrer: str = ""

    def to_record(self) -> Dict[str, Any]:
        return {"url": self.url, "referrer": self.referrer}

class ContextState:
    """Current page for a host that navigates; monitors read a snapshot per call."""
    def __init__(self, initial: PageContext = PageContext()):
        self._lock = threading.RLock()
        self._current = initial

    def update(self, url: str, referrer: str = "") -> PageContext:
        with self._lock:
            self._current = PageContext(url=url, referrer=referrer)
            return self._current

    def get_current(self) -> PageContext:
        with self._lock:
            return self._current
