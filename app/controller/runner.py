from __future__ import annotations
import threading
import time
from queue import Empty, Queue
from typing import Callable, Iterable, Mapping, Optional
import structlog

from app.controller.alerts import AlertSink, FanoutAlertSink, QueueAlertSink
from app.controller.context_state import ContextState
from app.controller.credentials import PasswordStore
from app.controller.event_bus import event_queue
from app.controller.keystroke_monitor import KeystrokeMonitor
from app.controller.page_session import PageSession
from app.controller.verification import Verifier
from app.policy.managed import ManagedPolicy
from core.crypto.alert_store import AlertLog
from core.hooks.events import AlertEvent, BaseEvent, KeystrokeEvent, VerifyResultEvent
from core.utils.queueing import safe_put


log = structlog.get_logger()

class HookRuntime:
    """
    Host integration: one consumer thread applies keystrokes, verifier results
    and alerts to the current page's KeystrokeMonitor in queue order.
    """
    def __init__(
        self,
        verifier: Verifier,
        policy: Optional[ManagedPolicy] = None,
        source=None,
        queue: Queue = event_queue,
        extra_sinks: Iterable[AlertSink] = (),
        alert_log: Optional[AlertLog] = None,
        on_event: Optional[Callable[[BaseEvent, int], None]] = None,
        clock: Callable[[], float] = time.perf_counter,
        passwords: Optional[PasswordStore] = None,
    ):
        self.verifier = verifier
        self.passwords = passwords
        self.policy = policy or ManagedPolicy()
        self.queue = queue
        self.alerts = FanoutAlertSink([QueueAlertSink(queue), *extra_sinks])
        self.alert_log = alert_log
        self.ctx = ContextState()
        self.clock = clock
        self.monitor: Optional[KeystrokeMonitor] = None
        self.session: Optional[PageSession] = None

        if source is None:
            # pynput needs a display server at import time
            from core.hooks.keyboard_listener import KeyboardHook
            source = KeyboardHook(queue)
        self.source = source

        self._consumer_thr: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._on_event = on_event
        self._count = 0

    # ---- page lifecycle ----

    def navigate(self, url: str, referrer: str = "", html_source: Callable[[], str] = lambda: "") -> Optional[KeystrokeMonitor]:
        """Tear down the previous page's monitor and open one for the new page."""
        if self.monitor is not None:
            self.monitor.stop()
        context = self.ctx.update(url, referrer)
        self.session = PageSession(context, self.verifier, self.alerts, policy=self.policy, html_source=html_source,
                                   clock=self.clock, passwords=self.passwords)
        self.monitor = self.session.open()
        if self.monitor is not None:
            self.monitor.dispatch = self._enqueue
        return self.monitor

    def watch(self, watched_lengths: Iterable[int], otp_armed_at: Optional[float] = None) -> bool:
        """Status update from the verification service: (re)start with new lengths."""
        if self.monitor is None:
            return False
        self.monitor.stop()
        return self.monitor.start(watched_lengths, otp_armed_at=otp_armed_at)

    def submit_login(self, fields: Mapping[str, str]) -> bool:
        """Login form submit routed from the host for the current page."""
        if self.session is None:
            return False
        return self.session.submit_login(fields)

    def _enqueue(self, ev: BaseEvent) -> None:
        safe_put(self.queue, ev)

    # ---- threads ----

    def start(self) -> None:
        self._stop_evt.clear()
        self.source.start()
        self._consumer_thr = threading.Thread(target=self._consume_loop, daemon=True)
        self._consumer_thr.start()
        log.info("hooks.runtime.start")

    def stop(self) -> None:
        self.source.stop()
        self._stop_evt.set()
        if self._consumer_thr:
            self._consumer_thr.join(timeout=1.0)
        if self.monitor is not None:
            self.monitor.stop()
        log.info("hooks.runtime.stop")

    def _consume_loop(self):
        while not self._stop_evt.is_set():
            try:
                ev: BaseEvent = self.queue.get(timeout=0.5)
            except Empty:
                continue
            self.process(ev)

    def process(self, ev: BaseEvent) -> None:
        monitor = self.monitor
        try:
            if isinstance(ev, KeystrokeEvent):
                if monitor is not None:
                    monitor.on_keystroke(ev)
            elif isinstance(ev, VerifyResultEvent):
                if monitor is not None:
                    monitor.on_verify_result(ev)
            elif isinstance(ev, AlertEvent):
                log.info("alert.flag", kind=ev.kind.value, severity=ev.severity.value, url=ev.url,
                         looks_like_login_page=ev.looks_like_login_page)
                if self.alert_log is not None:
                    self.alert_log.append(ev)
        except Exception as e:
            log.warning("hooks.runtime.process.error", etype=ev.etype.name, err=str(e))

        self._count += 1
        if self._on_event:
            try:
                self._on_event(ev, self._count)
            except Exception as e:
                log.warning("hooks.runtime.on_event.error", err=str(e))
