# tests/test_cli.py
# How to run (from repo root):  pytest -q
#
# What this covers:
#   - `pwcatcher scan` JSON output
#   - `pwcatcher verify` / `pwcatcher alerts` exit codes against a real log

import json

from core.crypto.alert_store import AlertLog
from core.crypto.key_manager import MasterKeyManager
from core.hooks.events import AlertEvent, AlertKind
from tools.catcher_cli import main


def test_scan_flags_look_alike_page(tmp_path, capsys):
    html = tmp_path / "page.html"
    html.write_text('<html><div class="editpasswdpage main content clearfix"></div></html>', encoding="utf-8")
    assert main(["scan", "https://evil.example/login", "--html", str(html)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["kind"] == "other"
    assert out["whitelisted"] is False
    assert out["whitelist_reason"] == "default-deny"
    assert out["looks_like_login_tight"] is True
    assert out["enterprise"] is False

def test_scan_with_enterprise_policy(tmp_path, capsys):
    policy = tmp_path / "policy.json"
    policy.write_text(json.dumps({"sso_url": "https://sso.corp.example/"}), encoding="utf-8")
    assert main(["scan", "https://sso.corp.example/login", "--policy", str(policy)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["kind"] == "sso_login"
    assert out["safe_login_url"] is True
    assert out["enterprise"] is True

def test_verify_and_alerts_commands(tmp_path, capsys):
    secrets = str(tmp_path / "secrets")
    db = str(tmp_path / "alerts.sqlite3")
    store = AlertLog(MasterKeyManager(secrets).log_keys(), db_path=db)
    store.append(AlertEvent.of(AlertKind.PHISHING_SUSPECTED, "https://evil.example/", ""))

    assert main(["verify", "--db", db, "--secrets", secrets]) == 0
    assert "All checks passed." in capsys.readouterr().out

    assert main(["alerts", "--db", db, "--secrets", secrets]) == 0
    assert "phishing_suspected" in capsys.readouterr().out

def test_alerts_without_keys_fails(tmp_path):
    assert main(["alerts", "--db", str(tmp_path / "x.sqlite3"), "--secrets", str(tmp_path / "none")]) == 2

def test_scan_reports_login_form_and_mailto(tmp_path, capsys):
    policy = tmp_path / "policy.json"
    policy.write_text(json.dumps({"security_email_address": "secops@corp.example"}), encoding="utf-8")
    assert main(["scan", "https://accounts.google.com/ServiceLogin", "--policy", str(policy)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["login_form"] == "#gaia_loginform"
    assert out["report_mailto"].startswith("mailto:secops@corp.example")
