from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit

import structlog

log = structlog.get_logger()

@dataclass
class Verdict:
    allowed: bool
    reason: str

def domain_of(url: Optional[str]) -> str:
    try:
        return (urlsplit(url or "").hostname or "").lower()
    except ValueError:
        return ""

def is_whitelisted_domain(domain: str, suffixes: Iterable[str]) -> bool:
    """Suffix match, not equality: login.accounts.google.com matches accounts.google.com."""
    domain = (domain or "").lower()
    return any(domain.endswith(s.lower()) for s in suffixes if s)

@dataclass
class WhitelistPolicy:
    allow: tuple[str, ...] = ("accounts.google.com",)

    def decide(self, url: Optional[str]) -> Verdict:
        domain = domain_of(url)
        for suffix in self.allow:
            if suffix and is_whitelisted_domain(domain, (suffix,)):
                log.debug("whitelist.match", domain=domain, suffix=suffix)
                return Verdict(True, f"allow:{suffix}")
        # anything not on the list is eligible for phishing checks
        log.debug("whitelist.miss", domain=domain)
        return Verdict(False, "default-deny")
