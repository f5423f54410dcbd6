# core/otp/otp_tracker.py
from __future__ import annotations
from enum import Enum
from typing import Optional

from core.hooks.events import is_digit_code, is_printable_code

DEFAULT_OTP_DIGITS = 6
DEFAULT_OTP_WINDOW_SECONDS = 60.0

class OtpOutcome(Enum):
    IGNORED = "ignored"      # inactive, or non-printable before any digit
    COUNTED = "counted"
    CLEARED = "cleared"      # non-digit input broke the code
    EXPIRED = "expired"      # window elapsed before this key
    COMPLETED = "completed"  # required digits reached; caller alerts then disarms

class OtpTracker:
    """
    Counts digits typed after a verified password match.
    Active only inside [armed_at, armed_at + window_seconds).
    digit_count only moves forward, or back to 0 on disarm.
    """
    def __init__(self, required_digits: int = DEFAULT_OTP_DIGITS, window_seconds: float = DEFAULT_OTP_WINDOW_SECONDS):
        self.required_digits = required_digits
        self.window_seconds = window_seconds
        self.active = False
        self.armed_at: Optional[float] = None
        self.digit_count = 0

    def arm(self, now: float) -> None:
        self.active = True
        self.armed_at = now
        self.digit_count = 0

    def disarm(self) -> None:
        self.active = False
        self.digit_count = 0

    def expired(self, now: float) -> bool:
        return self.armed_at is None or now - self.armed_at >= self.window_seconds

    def observe(self, code: int, now: float) -> OtpOutcome:
        if not self.active:
            return OtpOutcome.IGNORED
        if self.expired(now):
            self.disarm()
            return OtpOutcome.EXPIRED

        if is_digit_code(code):
            self.digit_count += 1
        elif is_printable_code(code) or self.digit_count > 0:
            self.disarm()
            return OtpOutcome.CLEARED
        else:
            # modifiers/navigation before the first digit
            return OtpOutcome.IGNORED

        if self.digit_count >= self.required_digits:
            return OtpOutcome.COMPLETED
        return OtpOutcome.COUNTED
