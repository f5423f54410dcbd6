# tests/test_policy.py
# How to run (from repo root):  pytest -q
#
# What this covers:
#   - domain suffix whitelist
#   - loose/tight login-page snippet heuristics
#   - managed policy: consumer defaults vs. enterprise mapping

import json

from app.policy.heuristics import TIGHT_SCAN_LIMIT, looks_like_login_page, looks_like_login_page_bounded
from app.policy.managed import CONSUMER_HTML, CONSUMER_WHITELIST, ManagedPolicy
from app.policy.whitelist import WhitelistPolicy, domain_of, is_whitelisted_domain

def test_whitelist_is_suffix_match():
    assert is_whitelisted_domain("login.accounts.google.com", ["accounts.google.com"])
    assert is_whitelisted_domain("accounts.google.com", ["accounts.google.com"])
    assert not is_whitelisted_domain("accounts.google.com.evil.com", ["accounts.google.com"])
    assert not is_whitelisted_domain("example.com", [])
    assert not is_whitelisted_domain("example.com", [""])

def test_domain_of_url():
    assert domain_of("https://Login.Accounts.Google.com:443/path?q=1") == "login.accounts.google.com"
    assert domain_of("not a url") == ""
    assert domain_of(None) == ""

def test_whitelist_policy_verdicts():
    pol = WhitelistPolicy(allow=("accounts.google.com", "corp.example"))
    v = pol.decide("https://intranet.corp.example/home")
    assert v.allowed and v.reason == "allow:corp.example"
    v = pol.decide("https://accounts.google.com.evil.com/")
    assert not v.allowed and v.reason == "default-deny"

def test_loose_heuristic_scans_whole_document():
    html = "x" * 500_000 + "<title>Sign in - Google Accounts</title>"
    assert looks_like_login_page(html, CONSUMER_HTML)
    assert not looks_like_login_page("<html>hello</html>", CONSUMER_HTML)
    assert not looks_like_login_page("<html>hello</html>", [""])

def test_tight_heuristic_is_bounded():
    snippet = '<div class="editpasswdpage main content clearfix">'
    near = "x" * 10 + snippet
    far = "x" * TIGHT_SCAN_LIMIT + snippet
    assert looks_like_login_page_bounded(near, [snippet])
    assert not looks_like_login_page_bounded(far, [snippet])
    assert looks_like_login_page_bounded(far, [snippet], limit=len(far))
    assert not looks_like_login_page_bounded(None, [snippet])

def test_consumer_policy_defaults():
    pol = ManagedPolicy.from_mapping({})
    assert not pol.enterprise
    assert pol.corp_html == CONSUMER_HTML
    assert pol.whitelist_top_domains == CONSUMER_WHITELIST
    assert pol.max_length == 100 and pol.otp_length == 6
    assert pol.is_safe_login_url("https://accounts.google.com/ServiceLogin")
    assert not pol.is_safe_login_url("https://example.com/")
    assert pol.is_whitelisted_url("https://login.accounts.google.com/x")

def test_enterprise_policy_replaces_lists_and_keeps_unset_limits():
    pol = ManagedPolicy.from_mapping({
        "corp_email_domain": "@corp.example",
        "corp_html": ["Corp SSO"],
        "whitelist_top_domains": ["corp.example"],
        "sso_url": "https://sso.corp.example/",
        "otp_length": 8,
    })
    assert pol.enterprise
    assert pol.corp_html == ("Corp SSO",)
    assert pol.corp_html_tight == ()
    assert pol.max_length == 100
    assert pol.otp_length == 8
    assert pol.monitor_config().otp_length == 8
    assert pol.is_safe_login_url("https://sso.corp.example/login")
    assert pol.is_whitelisted_url("https://mail.corp.example/")
    assert not pol.is_whitelisted_url("https://login.accounts.google.com/")

def test_policy_from_json_file(tmp_path):
    path = tmp_path / "policy.json"
    path.write_text(json.dumps({"max_length": 40, "whitelist_top_domains": "corp.example"}), encoding="utf-8")
    pol = ManagedPolicy.from_json_file(path)
    assert pol.enterprise
    assert pol.max_length == 40
    assert pol.whitelist_top_domains == ("corp.example",)

def test_phishing_report_mailto():
    assert ManagedPolicy.from_mapping({}).phishing_report_mailto("https://evil.example/") is None
    pol = ManagedPolicy.from_mapping({"security_email_address": "secops@corp.example"})
    link = pol.phishing_report_mailto("https://evil.example/?a=1&b=2")
    assert link.startswith("mailto:secops@corp.example?subject=")
    assert "https%3A//evil.example/%3Fa%3D1%26b%3D2" in link
