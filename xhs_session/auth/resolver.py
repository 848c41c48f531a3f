"""Unified Login-Status Resolver.

One threshold, one combination rule:

  1. cookie_score = score of the stored cookies
  2. a visible login prompt on the live page vetoes everything
  3. otherwise logged in iff cookie_score >= threshold

The page never adds to the score; it can only veto.

``resolve()`` is a status query and never raises.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from xhs_session.auth.cookie_store import CookieStore
from xhs_session.auth.scorer import cookie_info, score_cookies
from xhs_session.browser.inspector import PageStateInspector, legacy_page_weight
from xhs_session.core.config import LOGIN_SCORE_THRESHOLD
from xhs_session.core.errors import PageUnavailableError
from xhs_session.core.schemas import LoginVerdict, PageSnapshot

logger = logging.getLogger(__name__)


class LoginStatusResolver:
    """Combines the cookie score and a page snapshot into one LoginVerdict.

    Usage::

        resolver = LoginStatusResolver(CookieStore("cookies.json"))
        verdict = await resolver.resolve(page)
        if not verdict.is_logged_in:
            ...  # open a login window
    """

    def __init__(
        self,
        store: CookieStore,
        inspector: PageStateInspector | None = None,
        *,
        threshold: int = LOGIN_SCORE_THRESHOLD,
        memo_seconds: float = 2.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._inspector = inspector or PageStateInspector()
        self._threshold = threshold
        self._memo_seconds = memo_seconds
        self._clock = clock
        self._memo: tuple[float, bool, LoginVerdict] | None = None

    @property
    def threshold(self) -> int:
        return self._threshold

    def invalidate(self) -> None:
        """Forget the memoized verdict (call after the cookie file changes)."""
        self._memo = None

    async def resolve(self, page: Any | None = None) -> LoginVerdict:
        """Return the current verdict. Never raises."""
        now = self._clock()
        memoized = self._from_memo(now, with_page=page is not None)
        if memoized is not None:
            return memoized

        try:
            verdict = await self._compute(page, now)
        except Exception as e:
            logger.warning("Login status could not be determined: %s", e, exc_info=True)
            return LoginVerdict(
                is_logged_in=False,
                score=0,
                cookie_score=0,
                computed_at=datetime.fromtimestamp(now),
                error=type(e).__name__,
            )

        self._memo = (now, page is not None, verdict)
        return verdict

    async def _compute(self, page: Any | None, now: float) -> LoginVerdict:
        scored = score_cookies(self._store.load_or_empty(), now)

        snapshot: PageSnapshot | None = None
        if page is not None:
            try:
                snapshot = await self._inspector.inspect(page)
            except PageUnavailableError as e:
                logger.info("No page signal (%s); deciding from cookies alone", e)

        if snapshot is not None and snapshot.has_login_prompt:
            is_logged_in = False
        else:
            is_logged_in = scored.score >= self._threshold

        logger.info(
            "Login verdict: %s (cookie score %d, threshold %d, veto=%s, page weight=%s)",
            "logged in" if is_logged_in else "not logged in",
            scored.score,
            self._threshold,
            bool(snapshot and snapshot.has_login_prompt),
            legacy_page_weight(snapshot) if snapshot is not None else "n/a",
        )
        return LoginVerdict(
            is_logged_in=is_logged_in,
            score=scored.score,
            cookie_score=scored.score,
            page_signal=snapshot,
            cookie_info=cookie_info(scored.live_cookies),
            computed_at=datetime.fromtimestamp(now),
        )

    def _from_memo(self, now: float, *, with_page: bool) -> LoginVerdict | None:
        if self._memo is None or self._memo_seconds <= 0:
            return None
        computed_at, had_page, verdict = self._memo
        if now - computed_at >= self._memo_seconds:
            return None
        # A cookie-only verdict cannot answer a question about the page.
        if with_page and not had_page:
            return None
        logger.debug("Reusing login verdict from %.2fs ago", now - computed_at)
        return verdict
