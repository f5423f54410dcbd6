from __future__ import annotations
from dataclasses import dataclass

from core.hooks.events import ENTER_CODE
from app.policy.heuristics import TIGHT_SCAN_LIMIT

@dataclass(frozen=True)
class MonitorConfig:
    # rolling buffer: pause (seconds) that starts a fresh typing burst
    clear_seconds: float = 10.0

    # OTP window after a verified match (seconds) and code length
    clear_otp_seconds: float = 60.0
    otp_length: int = 6

    # key that always ends a typing burst
    enter_code: int = ENTER_CODE

    # cap on outstanding verifier requests per monitor
    max_pending_checks: int = 256

    # tight phishing heuristic scan bound (characters)
    tight_scan_limit: int = TIGHT_SCAN_LIMIT
