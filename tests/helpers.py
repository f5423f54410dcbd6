# tests/helpers.py
# Shared fakes for the monitor tests: a manual clock, verifiers that hand back
# concurrent.futures.Future objects, and an alert sink that records call-outs.

from concurrent.futures import Future

from core.hooks.events import KeystrokeEvent


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingVerifier:
    """Answers immediately: True when the candidate is one of `secrets`."""
    def __init__(self, *secrets):
        self.secrets = set(secrets)
        self.calls = []

    def check_candidate(self, candidate, context):
        self.calls.append(candidate)
        fut = Future()
        fut.set_result(candidate in self.secrets)
        return fut


class PendingVerifier:
    """Keeps every future unresolved until the test resolves it."""
    def __init__(self):
        self.calls = []
        self.futures = []

    def check_candidate(self, candidate, context):
        fut = Future()
        self.calls.append(candidate)
        self.futures.append(fut)
        return fut


class RaisingVerifier:
    def __init__(self):
        self.calls = 0

    def check_candidate(self, candidate, context):
        self.calls += 1
        raise ConnectionError("verification service unavailable")


class RecordingSink:
    def __init__(self):
        self.events = []

    def notify_password_match(self, context):
        self.events.append(("password_match", context.url))

    def notify_otp_observed(self, context, looks_like_login_page):
        self.events.append(("otp_observed", looks_like_login_page))

    def notify_phishing_suspected(self, context):
        self.events.append(("phishing_suspected", context.url))

    def notify_otp_cleared(self, context):
        self.events.append(("otp_cleared", context.url))

    def kinds(self):
        return [e[0] for e in self.events]


class Typist:
    """Feeds keystrokes with strictly increasing event timestamps."""
    def __init__(self, monitor, clock: FakeClock, gap: float = 0.1):
        self.monitor = monitor
        self.clock = clock
        self.gap = gap
        self.t = 0.0

    def key(self, code: int, has_origin_view: bool = True) -> bool:
        self.t += 1.0
        self.clock.advance(self.gap)
        return self.monitor.on_keystroke(KeystrokeEvent(char_code=code, t_mono=self.t, has_origin_view=has_origin_view))

    def type(self, text: str) -> None:
        for ch in text:
            self.key(ord(ch))

    def enter(self) -> bool:
        return self.key(13)


class RecordingPasswordStore:
    def __init__(self):
        self.events = []

    def set_possible_password(self, email, password, context):
        self.events.append(("set", email, password))

    def save_possible_password(self, context):
        self.events.append(("save", context.url))

    def delete_possible_password(self, context):
        self.events.append(("delete", context.url))

    def actions(self):
        return [e[0] for e in self.events]
