from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Dict, Any
import time
from datetime import datetime, timezone

# --- timing helpers ---
def utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")

def mono_ts() -> float:
    # Monotonic high-res timestamp (immune to system clock changes)
    return time.perf_counter()

# --- key codes ---
ENTER_CODE = 13
SPACE_CODE = 0x20
DIGIT_FIRST = 0x30
DIGIT_LAST = 0x39
MAX_CHAR_CODE = 0x10FFFF

def is_digit_code(code: int) -> bool:
    return DIGIT_FIRST <= code <= DIGIT_LAST

def is_char_code(code: int) -> bool:
    """A code that maps to a real character; 0 and out-of-range codes do not."""
    return 0 < code <= MAX_CHAR_CODE

def is_printable_code(code: int) -> bool:
    """Space and control codes count as non-printable."""
    return code > SPACE_CODE

# --- core enums ---
class EventType(Enum):
    """Top-level classifier for event routing."""
    KEYSTROKE = auto()
    VERIFY_RESULT = auto()
    ALERT = auto()

class AlertKind(Enum):
    PASSWORD_MATCH = "password_match"
    OTP_OBSERVED = "otp_observed"
    OTP_CLEARED = "otp_cleared"
    PHISHING_SUSPECTED = "phishing_suspected"

class Severity(Enum):
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

# --- base event ---
@dataclass(frozen=True)
class BaseEvent:
    """Common shape for all events."""
    etype: EventType = field(init=False)         # auto-set by subclasses
    t_utc: Optional[str] = None                  # lazy; materialized on serialize
    t_mono: float = field(default_factory=mono_ts)

    def to_record(self) -> Dict[str, Any]:
        return {
            "etype": self.etype.name,
            "t_utc": self.t_utc or utc_iso(),
            "t_mono": self.t_mono,
        }

# --- keystroke event ---
@dataclass(frozen=True)
class KeystrokeEvent(BaseEvent):
    """
    One character-producing key press from the input layer.
    t_mono is the input layer's own timestamp and must strictly increase.
    The character code is kept out of repr() and to_record().
    """
    char_code: int = field(default=0, repr=False)   # 0 = no distinguishable character
    has_origin_view: bool = True                     # False for script/software-injected input

    def __post_init__(self):
        object.__setattr__(self, "etype", EventType.KEYSTROKE)

    def to_record(self) -> Dict[str, Any]:
        base = super().to_record()
        base.update({
            "has_origin_view": self.has_origin_view,
        })
        return base

# --- verification result ---
@dataclass(frozen=True)
class VerifyResultEvent(BaseEvent):
    """Completion of one candidate check, correlated by (monitor_token, request_id, epoch)."""
    monitor_token: str = ""
    request_id: int = 0
    epoch: int = 0
    is_match: bool = False
    error: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "etype", EventType.VERIFY_RESULT)

    def to_record(self) -> Dict[str, Any]:
        base = super().to_record()
        base.update({
            "monitor_token": self.monitor_token,
            "request_id": self.request_id,
            "epoch": self.epoch,
            "is_match": self.is_match,
            "error": self.error,
        })
        return base

# --- alert event ---
ALERT_SEVERITY = {
    AlertKind.PASSWORD_MATCH: Severity.HIGH,
    AlertKind.OTP_OBSERVED: Severity.HIGH,
    AlertKind.PHISHING_SUSPECTED: Severity.MEDIUM,
    AlertKind.OTP_CLEARED: Severity.INFO,
}

@dataclass(frozen=True)
class AlertEvent(BaseEvent):
    """Monitoring decision handed to downstream consumers (banner, audit log, email)."""
    kind: AlertKind = AlertKind.PASSWORD_MATCH
    severity: Severity = Severity.INFO
    url: str = ""
    referrer: str = ""
    looks_like_login_page: Optional[bool] = None     # only set for OTP alerts
    rationale: str = ""

    def __post_init__(self):
        object.__setattr__(self, "etype", EventType.ALERT)

    @classmethod
    def of(cls, kind: AlertKind, url: str, referrer: str, **kw) -> "AlertEvent":
        return cls(kind=kind, severity=ALERT_SEVERITY[kind], url=url, referrer=referrer, **kw)

    def to_record(self) -> Dict[str, Any]:
        base = super().to_record()
        base.update({
            "kind": self.kind.value,
            "severity": self.severity.value,
            "url": self.url,
            "referrer": self.referrer,
            "looks_like_login_page": self.looks_like_login_page,
            "rationale": self.rationale,
        })
        return base
