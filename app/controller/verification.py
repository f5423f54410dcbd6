# app/controller/verification.py
from __future__ import annotations
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Protocol

import structlog

from app.controller.context_state import PageContext

log = structlog.get_logger()

class Verifier(Protocol):
    """
    Secret comparison lives outside the monitor. Implementations must not block:
    they hand back a Future that resolves to True when the candidate matches a
    watched credential.
    """
    def check_candidate(self, candidate: str, context: PageContext) -> "Future[bool]":
        ...

class CallableVerifier:
    """Runs a blocking check function on a small worker pool."""
    def __init__(
        self,
        check: Callable[[str, PageContext], bool],
        executor: Optional[Executor] = None,
        max_workers: int = 2,
    ):
        self._check = check
        self._own_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="verifier")

    def check_candidate(self, candidate: str, context: PageContext) -> "Future[bool]":
        return self._executor.submit(self._check, candidate, context)

    def shutdown(self) -> None:
        if self._own_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
            log.info("verifier.shutdown")
