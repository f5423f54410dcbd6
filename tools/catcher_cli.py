from __future__ import annotations
import argparse, json, sys
from pathlib import Path
from typing import Optional, Sequence

import structlog

from app.logging_config import configure_logging

log = structlog.get_logger()

def _load_policy(path: Optional[str]):
    from app.policy.managed import ManagedPolicy
    if not path:
        return ManagedPolicy()
    return ManagedPolicy.from_json_file(Path(path))

def cmd_scan(args) -> int:
    from app.controller.context_state import PageContext
    from app.controller.page_session import PageSession
    from app.policy.heuristics import looks_like_login_page, looks_like_login_page_bounded

    policy = _load_policy(args.policy)
    html = Path(args.html).read_text(encoding="utf-8", errors="replace") if args.html else ""
    session = PageSession(PageContext(url=args.url), verifier=None, alerts=None, policy=policy)
    verdict = policy.whitelist().decide(args.url)

    result = {
        "url": args.url,
        "kind": session.classify().value,
        "enterprise": policy.enterprise,
        "safe_login_url": policy.is_safe_login_url(args.url),
        "whitelisted": verdict.allowed,
        "whitelist_reason": verdict.reason,
        "looks_like_login": looks_like_login_page(html, policy.corp_html),
        "looks_like_login_tight": looks_like_login_page_bounded(html, policy.corp_html_tight, session.cfg.tight_scan_limit),
        "login_form": session.login_form_selector(),
        "report_mailto": policy.phishing_report_mailto(args.url),
    }
    print(json.dumps(result, indent=2))
    return 0

def cmd_verify(args) -> int:
    from tools.verify_alerts import verify_log
    stats, errors = verify_log(
        db_path=args.db,
        secrets_dir=None if args.signatures_only else args.secrets,
        limit=args.limit,
        no_decrypt=args.no_decrypt,
        verbose=args.verbose,
    )
    print("\n=== Verification Summary ===")
    print(f"Alerts checked      : {stats.total}")
    print(f"Header signatures   : {stats.sig_ok}/{stats.total} OK")
    if args.signatures_only:
        print("Chain/Decrypt       : skipped (no master key)")
    else:
        print(f"Chain HMAC          : {stats.chain_ok}/{stats.total} OK")
        print("Decrypt check       :", "skipped" if args.no_decrypt else f"{stats.decrypt_ok}/{stats.total} OK")
    if errors:
        print("\nErrors:")
        for e in errors:
            print(" -", e)
        return 2
    print("\nAll checks passed.")
    return 0

def cmd_alerts(args) -> int:
    from core.crypto.alert_store import AlertLog
    from tools.verify_alerts import load_keys
    errors: list = []
    keys = load_keys(args.secrets, errors)
    if keys is None:
        print(errors[0], file=sys.stderr)
        return 2
    store = AlertLog(keys, db_path=args.db)
    for seq, rec in store.read_records(limit=args.limit):
        print(f"{seq:>6}  {rec.get('t_utc')}  {rec.get('kind'):<20} {rec.get('url')}")
    return 0

def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="pwcatcher", description="Password catcher tools")
    ap.add_argument("--debug", action="store_true")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_scan = sub.add_parser("scan", help="Classify a page and run the phishing heuristics")
    p_scan.add_argument("url")
    p_scan.add_argument("--html", help="Saved page HTML")
    p_scan.add_argument("--policy", help="Managed policy JSON")
    p_scan.set_defaults(func=cmd_scan)

    p_verify = sub.add_parser("verify", help="Verify alert log (signatures + chain + decrypt)")
    p_verify.add_argument("--db", default="pwcatcher_alerts.sqlite3")
    p_verify.add_argument("--secrets", default="secrets")
    p_verify.add_argument("--limit", type=int)
    p_verify.add_argument("--signatures-only", action="store_true")
    p_verify.add_argument("--no-decrypt", action="store_true")
    p_verify.add_argument("-v", "--verbose", action="store_true")
    p_verify.set_defaults(func=cmd_verify)

    p_alerts = sub.add_parser("alerts", help="Print decrypted alert records")
    p_alerts.add_argument("--db", default="pwcatcher_alerts.sqlite3")
    p_alerts.add_argument("--secrets", default="secrets")
    p_alerts.add_argument("--limit", type=int)
    p_alerts.set_defaults(func=cmd_alerts)

    args = ap.parse_args(argv)
    configure_logging(debug=args.debug, json=False, stream=sys.stderr)
    log.debug("cli.start", cmd=args.cmd)
    return args.func(args)

if __name__ == "__main__":
    sys.exit(main())
