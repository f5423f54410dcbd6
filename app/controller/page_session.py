# app/controller/page_session.py
from __future__ import annotations
import time
from enum import Enum
from typing import Callable, Mapping, Optional

import structlog

from app.controller.alerts import AlertSink
from app.controller.config import MonitorConfig
from app.controller.context_state import PageContext
from app.controller.credentials import PasswordStore, gaia_submission, sso_submission
from app.controller.keystroke_monitor import KeystrokeMonitor
from app.controller.verification import Verifier
from app.policy.heuristics import looks_like_login_page, looks_like_login_page_bounded
from app.policy.managed import GAIA_SECOND_FACTOR_URL, GAIA_URL, YOUTUBE_CHECK_URL, ManagedPolicy

log = structlog.get_logger()

GAIA_FORM_SELECTOR = "#gaia_loginform"

class PageKind(Enum):
    CHECK_CONNECTION = "check_connection"   # login page side request, not a real login
    SSO_LOGIN = "sso_login"
    SECOND_FACTOR = "second_factor"         # only reached after a correct password
    PASSWORD_LOGIN = "password_login"
    OTHER = "other"

class PageSession:
    """
    Page initialisation: classifies the URL, keeps the possible-password store
    in step with the page kind, raises the phishing alert for look-alike pages
    and hands back the KeystrokeMonitor for this page.
    """
    def __init__(
        self,
        context: PageContext,
        verifier: Verifier,
        alerts: AlertSink,
        policy: Optional[ManagedPolicy] = None,
        html_source: Callable[[], str] = lambda: "",
        config: Optional[MonitorConfig] = None,
        clock: Callable[[], float] = time.perf_counter,
        passwords: Optional[PasswordStore] = None,
    ):
        self.context = context
        self.verifier = verifier
        self.alerts = alerts
        self.policy = policy or ManagedPolicy()
        self.html_source = html_source
        self.cfg = self.policy.monitor_config(config)
        self.clock = clock
        self.passwords = passwords
        self.kind = self.classify()

    def classify(self) -> PageKind:
        url = self.context.url
        if url.startswith(YOUTUBE_CHECK_URL):
            return PageKind.CHECK_CONNECTION
        if self.policy.is_sso_url(url):
            return PageKind.SSO_LOGIN
        if url.startswith(GAIA_SECOND_FACTOR_URL):
            return PageKind.SECOND_FACTOR
        if url.startswith(GAIA_URL):
            return PageKind.PASSWORD_LOGIN
        return PageKind.OTHER

    def looks_like_login(self) -> bool:
        return looks_like_login_page(self.html_source(), self.policy.corp_html)

    def looks_like_login_tight(self) -> bool:
        return looks_like_login_page_bounded(self.html_source(), self.policy.corp_html_tight, self.cfg.tight_scan_limit)

    def login_form_selector(self) -> Optional[str]:
        """Form the host should route submit events from, if this page has one."""
        if self.kind is PageKind.SSO_LOGIN:
            return self.policy.sso_form_selector
        if self.kind is PageKind.PASSWORD_LOGIN:
            return GAIA_FORM_SELECTOR
        return None

    def open(self) -> Optional[KeystrokeMonitor]:
        kind = self.kind
        log.info("page.open", kind=kind.value, url=self.context.url)
        if kind is PageKind.CHECK_CONNECTION:
            return None

        if kind in (PageKind.SSO_LOGIN, PageKind.PASSWORD_LOGIN):
            # a re-prompt after a wrong password must not keep the old guess
            self._passwords("delete_possible_password", self.context)
        elif kind is PageKind.SECOND_FACTOR:
            self._passwords("save_possible_password", self.context)
        else:
            if not self.policy.is_whitelisted_url(self.context.url) and self.looks_like_login_tight():
                log.warning("page.phishing_suspected", url=self.context.url,
                            report=self.policy.phishing_report_mailto(self.context.url))
                try:
                    self.alerts.notify_phishing_suspected(self.context)
                except Exception as e:
                    log.warning("alert.sink.error", method="notify_phishing_suspected", err=str(e))
            self._passwords("save_possible_password", self.context)

        return KeystrokeMonitor(
            self.verifier,
            self.alerts,
            context=self.context,
            policy=self.policy,
            config=self.cfg,
            clock=self.clock,
            looks_like_login=self.looks_like_login,
        )

    def submit_login(self, fields: Mapping[str, str]) -> bool:
        """
        Login form submitted on this page. `fields` maps the form's field
        selectors (SSO) or ids (Google) to their values. Returns True when a
        possible password was handed to the store.
        """
        if self.kind is PageKind.SSO_LOGIN:
            submission = sso_submission(fields, self.policy)
        elif self.kind is PageKind.PASSWORD_LOGIN:
            submission = gaia_submission(fields, self.policy)
        else:
            return False
        if submission is None:
            return False
        log.info("login.submit", kind=self.kind.value, email=submission.email)
        return self._passwords("set_possible_password", submission.email, submission.password, self.context)

    def _passwords(self, method: str, *args) -> bool:
        if self.passwords is None:
            return False
        try:
            getattr(self.passwords, method)(*args)
            return True
        except Exception as e:
            log.warning("passwords.error", method=method, err=str(e))
            return False
