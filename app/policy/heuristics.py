# app/policy/heuristics.py
from __future__ import annotations
from typing import Iterable, Optional

import structlog

log = structlog.get_logger()

# Large pages are only scanned up to this many characters by the tight check.
TIGHT_SCAN_LIMIT = 100_000

def _first_hit(html: str, snippets: Iterable[str]) -> Optional[str]:
    for snippet in snippets:
        if snippet and snippet in html:
            return snippet
    return None

def looks_like_login_page(html: Optional[str], snippets: Iterable[str]) -> bool:
    """Loose check: any configured snippet anywhere in the document."""
    hit = _first_hit(html or "", snippets)
    log.debug("heuristic.loose", matched=hit is not None)
    return hit is not None

def looks_like_login_page_bounded(
    html: Optional[str],
    snippets: Iterable[str],
    limit: int = TIGHT_SCAN_LIMIT,
) -> bool:
    """Tight check: stricter snippets, first `limit` characters only."""
    hit = _first_hit((html or "")[:max(limit, 0)], snippets)
    log.debug("heuristic.tight", matched=hit is not None, limit=limit)
    return hit is not None
