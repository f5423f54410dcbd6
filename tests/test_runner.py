# tests/test_runner.py
# How to run (from repo root):  pytest -q
#
# What this covers:
#   - navigate/watch lifecycle of the per-page monitor
#   - keystrokes, verifier answers and alerts all flow through one queue
#   - alerts land in the encrypted alert log
#   - the consumer thread drives the same path

import threading
from queue import Queue

from app.controller.runner import HookRuntime
from core.crypto.alert_store import AlertLog
from core.crypto.key_manager import MasterKeyManager
from core.hooks.events import AlertEvent, KeystrokeEvent, VerifyResultEvent
from core.utils.queueing import drain

from helpers import FakeClock, RecordingPasswordStore, RecordingSink, RecordingVerifier


class FakeSource:
    def __init__(self):
        self.started = 0
        self.stopped = 0

    def start(self):
        self.started += 1

    def stop(self):
        self.stopped += 1


def _runtime(**kw):
    kw.setdefault("source", FakeSource())
    kw.setdefault("queue", Queue(maxsize=100))
    kw.setdefault("clock", FakeClock())
    return HookRuntime(RecordingVerifier("hunter"), **kw)

def _keys(text, start=1.0):
    return [KeystrokeEvent(char_code=ord(ch), t_mono=start + i) for i, ch in enumerate(text)]

def _pump(rt):
    """Process queued events until the queue stays empty; returns everything seen."""
    seen = []
    while True:
        batch = drain(rt.queue)
        if not batch:
            return seen
        for ev in batch:
            rt.process(ev)
        seen.extend(batch)


def test_watch_requires_an_open_page():
    rt = _runtime()
    assert rt.watch([6]) is False
    assert rt.navigate("https://evil.example/login") is not None
    assert rt.watch([6]) is True
    assert rt.monitor.is_running

def test_password_match_round_trips_through_queue():
    sink = RecordingSink()
    rt = _runtime(extra_sinks=[sink])
    rt.navigate("https://evil.example/login", referrer="https://mail.example/")
    rt.watch([6])

    for ev in _keys("hunter"):
        rt.process(ev)
    assert not rt.monitor.otp.active            # answer still queued

    seen = _pump(rt)
    assert any(isinstance(e, VerifyResultEvent) and e.is_match for e in seen)
    alerts = [e for e in seen if isinstance(e, AlertEvent)]
    assert [a.kind.value for a in alerts] == ["password_match"]
    assert alerts[0].referrer == "https://mail.example/"
    assert sink.kinds() == ["password_match"]
    assert rt.monitor.otp.active

def test_navigate_discards_answers_for_previous_page():
    rt = _runtime()
    rt.navigate("https://evil.example/login")
    rt.watch([6])
    for ev in _keys("hunter"):
        rt.process(ev)
    old = rt.monitor

    rt.navigate("https://other.example/")
    assert not old.is_running
    rt.watch([6])
    _pump(rt)
    assert not rt.monitor.otp.active
    assert not old.otp.active

def test_check_connection_page_has_no_monitor():
    rt = _runtime()
    assert rt.navigate("https://accounts.youtube.com/accounts/CheckConnection") is None
    rt.process(KeystrokeEvent(char_code=ord("a"), t_mono=1.0))
    assert rt.watch([6]) is False

def test_alerts_are_written_to_alert_log(tmp_path):
    keys = MasterKeyManager(str(tmp_path / "secrets")).log_keys()
    store = AlertLog(keys, db_path=str(tmp_path / "alerts.sqlite3"))
    rt = _runtime(alert_log=store)
    rt.navigate("https://evil.example/login")
    rt.watch([6])
    for ev in _keys("hunter123456"):
        rt.process(ev)
        _pump(rt)

    kinds = [rec["kind"] for _seq, rec in store.read_records()]
    assert kinds == ["password_match", "otp_observed", "otp_cleared"]

def test_on_event_callback_counts_and_survives_errors():
    counts = []

    def on_event(ev, n):
        counts.append(n)
        raise RuntimeError("ui closed")

    rt = _runtime(on_event=on_event)
    rt.process(KeystrokeEvent(char_code=ord("a"), t_mono=1.0))
    rt.process(KeystrokeEvent(char_code=ord("b"), t_mono=2.0))
    assert counts == [1, 2]

def test_consumer_thread_processes_queue():
    done = threading.Event()
    seen = []

    def on_event(ev, n):
        seen.append(ev)
        if isinstance(ev, AlertEvent):
            done.set()

    source = FakeSource()
    rt = _runtime(source=source, on_event=on_event)
    rt.navigate("https://evil.example/login")
    rt.watch([6])
    rt.start()
    try:
        for ev in _keys("hunter"):
            rt.queue.put(ev)
        assert done.wait(timeout=5.0)
    finally:
        rt.stop()

    assert source.started == 1 and source.stopped == 1
    assert not rt.monitor.is_running
    assert any(isinstance(e, AlertEvent) and e.kind.value == "password_match" for e in seen)

def test_login_submit_reaches_password_store():
    store = RecordingPasswordStore()
    rt = _runtime(passwords=store)
    assert rt.submit_login({"Email": "alice@gmail.com", "Passwd": "pw"}) is False
    rt.navigate("https://accounts.google.com/ServiceLogin")
    assert rt.submit_login({"Email": "alice@gmail.com", "Passwd": "pw"}) is True
    rt.navigate("https://accounts.google.com/SecondFactor")
    assert store.actions() == ["delete", "set", "save"]
