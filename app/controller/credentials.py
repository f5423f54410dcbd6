# app/controller/credentials.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

import structlog

from app.controller.context_state import PageContext
from app.policy.managed import ManagedPolicy

log = structlog.get_logger()

# Field names of the Google login form.
GAIA_EMAIL_FIELD = "Email"
GAIA_PASSWORD_FIELD = "Passwd"

class PasswordStore(Protocol):
    """
    Keeper of the password typed on a login page. A password submitted on a
    login page is only "possible" until a later page confirms the login.
    """
    def set_possible_password(self, email: str, password: str, context: PageContext) -> None: ...
    def save_possible_password(self, context: PageContext) -> None: ...
    def delete_possible_password(self, context: PageContext) -> None: ...

@dataclass(frozen=True)
class LoginSubmission:
    email: str
    password: str

    def __repr__(self) -> str:
        return f"LoginSubmission(email={self.email!r})"

def sso_submission(fields: Mapping[str, str], policy: ManagedPolicy) -> Optional[LoginSubmission]:
    """SSO form values keyed by the policy's selectors; bare usernames get the corp domain."""
    username = fields.get(policy.sso_username_selector or "", "")
    password = fields.get(policy.sso_password_selector or "", "")
    if not username or not password:
        log.debug("login.sso.incomplete")
        return None
    if "@" not in username:
        username += policy.corp_email_domain or ""
    return LoginSubmission(username, password)

def gaia_submission(fields: Mapping[str, str], policy: ManagedPolicy) -> Optional[LoginSubmission]:
    """Google form values; enterprise use ignores logins outside the corp domain."""
    email = fields.get(GAIA_EMAIL_FIELD, "").lower().strip()
    password = fields.get(GAIA_PASSWORD_FIELD, "")
    if policy.enterprise and not email.endswith(policy.corp_email_domain or ""):
        log.debug("login.gaia.ignored", reason="not-corp-domain")
        return None
    return LoginSubmission(email, password)
