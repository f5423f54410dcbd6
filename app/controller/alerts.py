# app/controller/alerts.py
from __future__ import annotations
from queue import Queue
from typing import Iterable, Protocol

import structlog

from app.controller.context_state import PageContext
from core.hooks.events import AlertEvent, AlertKind
from core.utils.queueing import safe_put

log = structlog.get_logger()

class AlertSink(Protocol):
    def notify_password_match(self, context: PageContext) -> None: ...
    def notify_otp_observed(self, context: PageContext, looks_like_login_page: bool) -> None: ...
    def notify_phishing_suspected(self, context: PageContext) -> None: ...
    def notify_otp_cleared(self, context: PageContext) -> None: ...

class QueueAlertSink:
    """Turns alert call-outs into AlertEvent(s) on a queue."""
    def __init__(self, out_q: Queue, debug: bool = False):
        self.out_q = out_q
        self.debug = debug

    def notify_password_match(self, context: PageContext) -> None:
        self._emit(AlertKind.PASSWORD_MATCH, context, rationale="watched password typed on this page")

    def notify_otp_observed(self, context: PageContext, looks_like_login_page: bool) -> None:
        self._emit(
            AlertKind.OTP_OBSERVED, context,
            looks_like_login_page=looks_like_login_page,
            rationale="one-time code typed after a password match",
        )

    def notify_phishing_suspected(self, context: PageContext) -> None:
        self._emit(AlertKind.PHISHING_SUSPECTED, context, rationale="page content matches login snippets")

    def notify_otp_cleared(self, context: PageContext) -> None:
        self._emit(AlertKind.OTP_CLEARED, context)

    def _emit(self, kind: AlertKind, context: PageContext, **kw) -> None:
        ev = AlertEvent.of(kind, context.url, context.referrer, **kw)
        safe_put(self.out_q, ev)
        if self.debug:
            log.debug("alert.emit", kind=kind.value, url=context.url)

class FanoutAlertSink:
    """Forwards each call-out to every sink; one failing sink does not starve the rest."""
    def __init__(self, sinks: Iterable[AlertSink]):
        self.sinks = tuple(sinks)

    def notify_password_match(self, context: PageContext) -> None:
        self._each("notify_password_match", context)

    def notify_otp_observed(self, context: PageContext, looks_like_login_page: bool) -> None:
        self._each("notify_otp_observed", context, looks_like_login_page)

    def notify_phishing_suspected(self, context: PageContext) -> None:
        self._each("notify_phishing_suspected", context)

    def notify_otp_cleared(self, context: PageContext) -> None:
        self._each("notify_otp_cleared", context)

    def _each(self, method: str, *args) -> None:
        for sink in self.sinks:
            try:
                getattr(sink, method)(*args)
            except Exception as e:
                log.warning("alert.sink.error", sink=type(sink).__name__, method=method, err=str(e))
