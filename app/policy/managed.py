"""
Managed (enterprise) policy for the password catcher.

An empty managed mapping means consumer use: the Google defaults below apply
and password-reuse warnings are shown to the user. A non-empty mapping means
enterprise use: snippet and whitelist lists are replaced wholesale and the
numeric limits are only overridden when set.
"""
from __future__ import annotations
import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import quote

import structlog

from app.controller.config import MonitorConfig
from app.policy.whitelist import WhitelistPolicy

log = structlog.get_logger()

GAIA_URL = "https://accounts.google.com/"
GAIA_SECOND_FACTOR_URL = "https://accounts.google.com/SecondFactor"
YOUTUBE_CHECK_URL = "https://accounts.youtube.com/accounts/CheckConnection"

CONSUMER_HTML = (
    "One account. All of Google.",
    "Sign in with your Google Account",
    "<title>Sign in - Google Accounts",
    "//ssl.gstatic.com/accounts/ui/logo_2x.png",
)

CONSUMER_HTML_TIGHT = (
    # https://accounts.google.com/ServiceLogin
    ('<form novalidate="" method="post" '
     'action="https://accounts.google.com/ServiceLoginAuth" '
     'id="gaia_loginform">'),
    ('<input id="Passwd" name="Passwd" type="password" placeholder="Password" '
     'class="">'),
    ('<input id="signIn" name="signIn" class="rc-button rc-button-submit" '
     'type="submit" value="Sign in">'),
    ('<input id="signIn" name="signIn" class="rc-button rc-button-submit" '
     'value="Sign in" type="submit">'),
    # https://accounts.google.com/b/0/EditPasswd
    '<div class="editpasswdpage main content clearfix">',
)

CONSUMER_WHITELIST = ("accounts.google.com",)

def _strings(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)

@dataclass(frozen=True)
class ManagedPolicy:
    enterprise: bool = False
    corp_email_domain: Optional[str] = None
    corp_html: tuple[str, ...] = CONSUMER_HTML
    corp_html_tight: tuple[str, ...] = CONSUMER_HTML_TIGHT
    security_email_address: Optional[str] = None
    sso_url: Optional[str] = None
    sso_form_selector: Optional[str] = None
    sso_password_selector: Optional[str] = None
    sso_username_selector: Optional[str] = None
    whitelist_top_domains: tuple[str, ...] = CONSUMER_WHITELIST
    max_length: int = 100
    otp_length: int = 6

    @classmethod
    def from_mapping(cls, managed: Optional[Mapping[str, Any]]) -> "ManagedPolicy":
        if not managed:
            log.info("policy.load", mode="consumer")
            return cls()

        log.info("policy.load", mode="enterprise", keys=sorted(managed))
        return cls(
            enterprise=True,
            corp_email_domain=managed.get("corp_email_domain"),
            corp_html=_strings(managed.get("corp_html")),
            corp_html_tight=_strings(managed.get("corp_html_tight")),
            security_email_address=managed.get("security_email_address"),
            sso_url=managed.get("sso_url"),
            sso_form_selector=managed.get("sso_form_selector"),
            sso_password_selector=managed.get("sso_password_selector"),
            sso_username_selector=managed.get("sso_username_selector"),
            whitelist_top_domains=_strings(managed.get("whitelist_top_domains")),
            max_length=int(managed.get("max_length") or cls.max_length),
            otp_length=int(managed.get("otp_length") or cls.otp_length),
        )

    @classmethod
    def from_json_file(cls, path: Path) -> "ManagedPolicy":
        return cls.from_mapping(json.loads(Path(path).read_text(encoding="utf-8")))

    def is_sso_url(self, url: str) -> bool:
        return bool(self.sso_url) and url.startswith(self.sso_url)

    def is_safe_login_url(self, url: str) -> bool:
        """Pages where the real credential is expected; never watched."""
        return self.is_sso_url(url) or url.startswith(GAIA_URL)

    def whitelist(self) -> WhitelistPolicy:
        return WhitelistPolicy(allow=self.whitelist_top_domains)

    def is_whitelisted_url(self, url: str) -> bool:
        return self.whitelist().decide(url).allowed

    def phishing_report_mailto(self, url: str) -> Optional[str]:
        """mailto: link for reporting a flagged page to the security team."""
        if not self.security_email_address:
            return None
        subject = "User has detected possible phishing site."
        body = (f"I have visited {url} and a phishing warning was triggered. "
                "Please see if this is indeed a phishing attempt and requires further action.")
        return f"mailto:{self.security_email_address}?subject={quote(subject)}&body={quote(body)}"

    def monitor_config(self, base: Optional[MonitorConfig] = None) -> MonitorConfig:
        return replace(base or MonitorConfig(), otp_length=self.otp_length)
