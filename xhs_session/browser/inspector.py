"""Page-State Inspector: samples login-related DOM signals into a PageSnapshot.

One ``page.evaluate`` round trip per inspection. Selector knowledge lives in
``platforms/xhs/selectors.py``; this module only knows how to ask.
"""

import logging
from typing import Any

from patchright.async_api import Error as PlaywrightError

from xhs_session.core.errors import PageUnavailableError
from xhs_session.core.schemas import PageSnapshot
from xhs_session.platforms.xhs.selectors import (
    CONTENT_SELECTORS,
    LOGIN_MODAL_SELECTORS,
    LOGIN_PROMPT_TEXTS,
    NAVIGATION_SELECTORS,
    USER_SELECTORS,
)
from xhs_session.platforms.xhs.urls import is_login_url

logger = logging.getLogger(__name__)

DEFAULT_NAVIGATION_TIMEOUT_MS = 30000
DEFAULT_SETTLE_DELAY_MS = 3000

# Historical page weights. Diagnostic only, never part of the verdict.
USER_ELEMENTS_WEIGHT = 3
NAVIGATION_WEIGHT = 2
CONTENT_WEIGHT = 2
LOGIN_PROMPT_WEIGHT = -2

PROBE_SCRIPT = r"""
(markers) => {
  const anyMatch = (selectors) => selectors.some((s) => {
    try { return document.querySelector(s) !== null; } catch (e) { return false; }
  });
  const bodyText = document.body ? document.body.innerText || '' : '';
  return {
    url: window.location.href,
    title: document.title || '',
    hasUserElements: anyMatch(markers.user),
    hasNavigation: anyMatch(markers.navigation),
    hasContent: anyMatch(markers.content),
    hasLoginModal: anyMatch(markers.loginModal),
    hasLoginText: markers.promptTexts.some((t) => bodyText.includes(t)),
  };
}
"""

_PROBE_MARKERS: dict[str, list[str]] = {
    "user": list(USER_SELECTORS),
    "navigation": list(NAVIGATION_SELECTORS),
    "content": list(CONTENT_SELECTORS),
    "loginModal": list(LOGIN_MODAL_SELECTORS),
    "promptTexts": list(LOGIN_PROMPT_TEXTS),
}


class PageStateInspector:
    """Extracts a PageSnapshot from an already-loaded page."""

    def __init__(
        self,
        *,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS,
    ) -> None:
        self._navigation_timeout_ms = navigation_timeout_ms
        self._settle_delay_ms = settle_delay_ms

    async def inspect(self, page: Any) -> PageSnapshot:
        """Sample DOM signals from ``page``.

        Raises:
            PageUnavailableError: The page is closed or the probe failed.
        """
        if page is None or page.is_closed():
            msg = "page is closed"
            raise PageUnavailableError(msg)
        try:
            raw = await page.evaluate(PROBE_SCRIPT, _PROBE_MARKERS)
        except PlaywrightError as e:
            msg = f"page probe failed: {e}"
            raise PageUnavailableError(msg) from e

        snapshot = _snapshot_from_probe(raw or {})
        logger.debug(
            "Page snapshot %s: user=%s prompt=%s nav=%s content=%s",
            snapshot.url, snapshot.has_user_elements, snapshot.has_login_prompt,
            snapshot.has_navigation, snapshot.has_search_results_or_content,
        )
        return snapshot

    async def navigate_and_inspect(self, page: Any, url: str) -> PageSnapshot:
        """Navigate to ``url``, wait for it to settle, then inspect.

        Raises:
            PageUnavailableError: Page closed, navigation failed or timed out.
        """
        if page is None or page.is_closed():
            msg = "page is closed"
            raise PageUnavailableError(msg)
        try:
            await page.goto(
                url, wait_until="domcontentloaded", timeout=self._navigation_timeout_ms,
            )
            if self._settle_delay_ms:
                await page.wait_for_timeout(self._settle_delay_ms)
        except PlaywrightError as e:
            msg = f"navigation to {url} did not settle: {e}"
            raise PageUnavailableError(msg) from e
        return await self.inspect(page)


def legacy_page_weight(snapshot: PageSnapshot) -> int:
    """Weighted page score from the days of additive scoring. Logging only."""
    weight = 0
    if snapshot.has_user_elements:
        weight += USER_ELEMENTS_WEIGHT
    if snapshot.has_navigation:
        weight += NAVIGATION_WEIGHT
    if snapshot.has_search_results_or_content:
        weight += CONTENT_WEIGHT
    if snapshot.has_login_prompt:
        weight += LOGIN_PROMPT_WEIGHT
    return weight


def _snapshot_from_probe(raw: dict[str, Any]) -> PageSnapshot:
    url = str(raw.get("url") or "")
    # Being redirected to a login page is a prompt even before the modal renders.
    prompt = bool(raw.get("hasLoginText")) or bool(raw.get("hasLoginModal")) or is_login_url(url)
    return PageSnapshot(
        url=url,
        title=str(raw.get("title") or ""),
        has_user_elements=bool(raw.get("hasUserElements")),
        has_login_prompt=prompt,
        has_navigation=bool(raw.get("hasNavigation")),
        has_search_results_or_content=bool(raw.get("hasContent")),
    )
