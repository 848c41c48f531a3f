"""Cookie-based login scoring.

Score range: 0-10 (clamped). Pure functions, no I/O.

  base       = number of live cookies
  auth bonus = 2 per live cookie whose name contains an auth keyword
  site bonus = 3 per live cookie whose name contains a site session marker

A cookie can collect both bonuses ("web_session" contains "session" and is
a site marker). Keyword matching is a case-sensitive substring test.
"""

import logging
from collections.abc import Iterable

from xhs_session.core.schemas import CookieInfo, CookieRecord, CookieScore

logger = logging.getLogger(__name__)

MAX_SCORE = 10
AUTH_BONUS = 2
SITE_BONUS = 3

AUTH_KEYWORDS = ("session", "token", "user", "auth")
SITE_KEYWORDS = ("xiaohongshu", "xhs", "web_session", "web_sessionid")


def is_live(cookie: CookieRecord, now: float) -> bool:
    """A cookie is live if it never expires (expires <= 0) or expires after now."""
    return cookie.expires <= 0 or cookie.expires > now


def live_cookies(cookies: Iterable[CookieRecord], now: float) -> list[CookieRecord]:
    """Filter to live cookies, preserving order."""
    return [c for c in cookies if is_live(c, now)]


def score_cookies(cookies: Iterable[CookieRecord], now: float) -> CookieScore:
    """Rate a cookie set at time ``now`` (unix seconds)."""
    live = live_cookies(cookies, now)
    auth_hits = sum(1 for c in live if _matches(c.name, AUTH_KEYWORDS))
    site_hits = sum(1 for c in live if _matches(c.name, SITE_KEYWORDS))

    raw = len(live) + AUTH_BONUS * auth_hits + SITE_BONUS * site_hits
    score = min(MAX_SCORE, raw)

    logger.debug(
        "Cookie score %d (live=%d, auth=%d, site=%d, raw=%d)",
        score, len(live), auth_hits, site_hits, raw,
    )
    return CookieScore(score=score, live_cookies=tuple(live))


def cookie_info(live: Iterable[CookieRecord]) -> CookieInfo | None:
    """Count and earliest real expiry of a live cookie set. None when empty."""
    live = list(live)
    if not live:
        return None
    expiries = [c.expires for c in live if c.expires > 0]
    return CookieInfo(count=len(live), expires=min(expiries) if expiries else None)


def _matches(name: str, keywords: tuple[str, ...]) -> bool:
    return any(kw in name for kw in keywords)
