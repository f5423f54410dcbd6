# app/controller/keystroke_monitor.py
from __future__ import annotations
import itertools
import threading
import time
import uuid
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import replace
from enum import Enum
from typing import Callable, Iterable, Optional

import structlog

from app.controller.alerts import AlertSink
from app.controller.config import MonitorConfig
from app.controller.context_state import PageContext
from app.controller.verification import Verifier
from app.policy.managed import ManagedPolicy
from core.buffer.lengths import CandidateLengthSet
from core.buffer.rolling_buffer import RollingBuffer
from core.hooks.events import KeystrokeEvent, VerifyResultEvent, is_char_code
from core.otp.otp_tracker import OtpOutcome, OtpTracker

log = structlog.get_logger()

class MonitorState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"

class KeystrokeMonitor:
    """
    Watches one page's keystrokes for a typed watched password, then for an OTP.

    Per accepted keystroke:
      - events without an origin view, or with a non-increasing timestamp, are dropped
      - an armed OtpTracker sees the key first
      - Enter clears the rolling buffer; keys without a character stop here
      - every watched suffix length the buffer can supply goes to the verifier

    Verifier answers come back as VerifyResultEvent through `dispatch` and are
    only acted on while still RUNNING in the epoch that issued them.
    """
    def __init__(
        self,
        verifier: Verifier,
        alerts: AlertSink,
        context: PageContext = PageContext(),
        policy: Optional[ManagedPolicy] = None,
        config: Optional[MonitorConfig] = None,
        clock: Callable[[], float] = time.perf_counter,
        looks_like_login: Optional[Callable[[], bool]] = None,
        dispatch: Optional[Callable[[VerifyResultEvent], None]] = None,
    ):
        self.verifier = verifier
        self.alerts = alerts
        self.context = context
        self.policy = policy or ManagedPolicy()
        self.cfg = config or self.policy.monitor_config()
        self.clock = clock
        self.looks_like_login = looks_like_login or (lambda: False)
        self.dispatch = dispatch or self.on_verify_result

        self.lengths = CandidateLengthSet()
        self.buffer = RollingBuffer(clear_seconds=self.cfg.clear_seconds)
        self.otp = OtpTracker(required_digits=self.cfg.otp_length, window_seconds=self.cfg.clear_otp_seconds)

        self.token = uuid.uuid4().hex
        self._lock = threading.RLock()
        self._state = MonitorState.STOPPED
        self._epoch = 0
        self._request_ids = itertools.count(1)
        self._pending: "OrderedDict[int, int]" = OrderedDict()   # request_id -> epoch
        self._last_accepted: Optional[float] = None

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitorState.RUNNING

    # ---- lifecycle ----

    def configure(
        self,
        watched_lengths: Iterable[int],
        otp_required_digits: Optional[int] = None,
        clear_seconds: Optional[float] = None,
        clear_otp_seconds: Optional[float] = None,
    ) -> None:
        with self._lock:
            changes = {}
            if otp_required_digits:
                changes["otp_length"] = otp_required_digits
            if clear_seconds is not None:
                changes["clear_seconds"] = clear_seconds
            if clear_otp_seconds is not None:
                changes["clear_otp_seconds"] = clear_otp_seconds
            self.cfg = replace(self.cfg, **changes)

            self.buffer.clear_seconds = self.cfg.clear_seconds
            self.otp.required_digits = self.cfg.otp_length
            self.otp.window_seconds = self.cfg.clear_otp_seconds
            self._set_lengths(watched_lengths)
            log.info("monitor.configure", watched=len(self.lengths), otp_length=self.cfg.otp_length)

            if not self.lengths and self.is_running:
                self._stop("no-watched-lengths")

    def start(self, watched_lengths: Optional[Iterable[int]] = None, otp_armed_at: Optional[float] = None) -> bool:
        with self._lock:
            if watched_lengths is not None:
                self._set_lengths(watched_lengths)
            if not self.lengths:
                self._stop("no-watched-lengths")
                return False
            if otp_armed_at is not None:
                # OTP window carried over from an earlier page in the same tab
                self.otp.arm(otp_armed_at)
            if self.policy.is_safe_login_url(self.context.url):
                self._stop("safe-login-url")
                return False

            self.buffer.reset()
            self._epoch += 1
            self._state = MonitorState.RUNNING
            log.info("monitor.start", epoch=self._epoch, watched=len(self.lengths), url=self.context.url)
            return True

    def stop(self) -> None:
        with self._lock:
            self._stop("command")

    def _stop(self, reason: str) -> None:
        was_running = self.is_running
        self._state = MonitorState.STOPPED
        self._epoch += 1
        self._pending.clear()
        self.buffer.reset()
        if was_running:
            log.info("monitor.stop", reason=reason, epoch=self._epoch)

    def _set_lengths(self, watched_lengths: Iterable[int]) -> None:
        self.lengths = CandidateLengthSet.from_lengths(watched_lengths, max_length=self.policy.max_length)
        self.buffer.trim(self.lengths.max_length())

    # ---- keystrokes ----

    def on_keystroke(self, ev: KeystrokeEvent) -> bool:
        """Returns True when the event was accepted."""
        with self._lock:
            if not self.is_running:
                return False
            if not ev.has_origin_view:
                log.debug("keystroke.drop", reason="no-origin-view")
                return False
            if self._last_accepted is not None and ev.t_mono <= self._last_accepted:
                log.debug("keystroke.drop", reason="non-increasing-timestamp")
                return False
            self._last_accepted = ev.t_mono

            now = self.clock()
            code = ev.char_code if is_char_code(ev.char_code) else 0
            if self.otp.active:
                self._track_otp(code, now)

            if code == self.cfg.enter_code:
                self.buffer.reset()
                return True
            if code == 0:
                return True

            self.buffer.append(code, now, self.lengths.max_length())
            for length in self.lengths.checkable(len(self.buffer)):
                self._submit(length)
            return True

    def _track_otp(self, code: int, now: float) -> None:
        outcome = self.otp.observe(code, now)
        if outcome is OtpOutcome.COMPLETED:
            looks = self._looks_like_login()
            self._notify("notify_otp_observed", self.context, looks)
            self.otp.disarm()
            log.info("otp.observed", looks_like_login_page=looks)
        elif outcome in (OtpOutcome.EXPIRED, OtpOutcome.CLEARED):
            log.debug("otp.clear", outcome=outcome.value)
        else:
            return
        self._notify("notify_otp_cleared", self.context)

    def _looks_like_login(self) -> bool:
        try:
            return bool(self.looks_like_login())
        except Exception as e:
            log.warning("heuristic.error", err=str(e))
            return False

    # ---- verification ----

    def _submit(self, length: int) -> None:
        candidate = "".join(map(chr, self.buffer.suffix(length)))
        request_id = next(self._request_ids)
        epoch = self._epoch
        self._pending[request_id] = epoch
        while len(self._pending) > self.cfg.max_pending_checks:
            self._pending.popitem(last=False)

        try:
            fut = self.verifier.check_candidate(candidate, self.context)
        except Exception as e:
            self._pending.pop(request_id, None)
            log.warning("verifier.error", err=str(e))
            return
        fut.add_done_callback(lambda f: self._deliver(f, request_id, epoch))

    def _deliver(self, fut: "Future[bool]", request_id: int, epoch: int) -> None:
        try:
            ev = VerifyResultEvent(monitor_token=self.token, request_id=request_id, epoch=epoch,
                                   is_match=bool(fut.result()))
        except Exception as e:
            ev = VerifyResultEvent(monitor_token=self.token, request_id=request_id, epoch=epoch,
                                   is_match=False, error=str(e) or type(e).__name__)
        try:
            self.dispatch(ev)
        except Exception as e:
            log.warning("verifier.dispatch.error", err=str(e))

    def on_verify_result(self, ev: VerifyResultEvent) -> bool:
        """Returns True when the result armed the OTP tracker."""
        with self._lock:
            if ev.error:
                log.warning("verifier.failed", request_id=ev.request_id, err=ev.error)
            if ev.monitor_token != self.token or not self.is_running or ev.epoch != self._epoch:
                log.debug("verify.stale", request_id=ev.request_id)
                return False
            if self._pending.pop(ev.request_id, None) is None:
                return False
            if not ev.is_match:
                return False

            self.otp.arm(self.clock())
            log.info("password.match", url=self.context.url, enterprise=self.policy.enterprise)
            if not self.policy.enterprise:
                self._notify("notify_password_match", self.context)
            return True

    def _notify(self, method: str, *args) -> None:
        try:
            getattr(self.alerts, method)(*args)
        except Exception as e:
            log.warning("alert.sink.error", method=method, err=str(e))
