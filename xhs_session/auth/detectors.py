"""Login detection strategies, tried in priority order.

Used while a human is completing login in the browser window:

  1. dom: user elements visible and no login prompt
  2. local_storage: a localStorage key mentions user/login/session
  3. session_storage: same test on sessionStorage
  4. context_cookies: the live context's cookies score at or above threshold

The first strategy that reports success wins. A strategy that raises is
logged and skipped; it never aborts the chain.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from xhs_session.auth.cookie_store import parse_cookie_records
from xhs_session.auth.scorer import score_cookies
from xhs_session.browser.inspector import PageStateInspector
from xhs_session.core.config import LOGIN_SCORE_THRESHOLD
from xhs_session.platforms.xhs.selectors import STORAGE_KEY_MARKERS

logger = logging.getLogger(__name__)

# (page, context, threshold) -> logged in?
Detector = Callable[[Any, Any, int], Awaitable[bool]]

_STORAGE_PROBE = """
([storageName, markers]) => {
  const storage = window[storageName];
  if (!storage) return false;
  for (let i = 0; i < storage.length; i++) {
    const key = (storage.key(i) || '').toLowerCase();
    if (markers.some((m) => key.includes(m))) return true;
  }
  return false;
}
"""

_inspector = PageStateInspector()


@dataclass(frozen=True)
class DetectionResult:
    logged_in: bool
    strategy: str | None = None


async def detect_by_dom(page: Any, context: Any, threshold: int) -> bool:
    snapshot = await _inspector.inspect(page)
    return snapshot.has_user_elements and not snapshot.has_login_prompt


async def detect_by_local_storage(page: Any, context: Any, threshold: int) -> bool:
    return bool(await page.evaluate(_STORAGE_PROBE, ["localStorage", list(STORAGE_KEY_MARKERS)]))


async def detect_by_session_storage(page: Any, context: Any, threshold: int) -> bool:
    return bool(await page.evaluate(_STORAGE_PROBE, ["sessionStorage", list(STORAGE_KEY_MARKERS)]))


async def detect_by_context_cookies(page: Any, context: Any, threshold: int) -> bool:
    records = parse_cookie_records(await context.cookies())
    return score_cookies(records, time.time()).score >= threshold


DEFAULT_STRATEGIES: tuple[tuple[str, Detector], ...] = (
    ("dom", detect_by_dom),
    ("local_storage", detect_by_local_storage),
    ("session_storage", detect_by_session_storage),
    ("context_cookies", detect_by_context_cookies),
)


async def detect_login(
    page: Any,
    context: Any,
    *,
    threshold: int = LOGIN_SCORE_THRESHOLD,
    strategies: Sequence[tuple[str, Detector]] = DEFAULT_STRATEGIES,
) -> DetectionResult:
    """Run ``strategies`` in order; the first one that succeeds decides."""
    for name, detect in strategies:
        try:
            if await detect(page, context, threshold):
                logger.info("Login detected by '%s' strategy", name)
                return DetectionResult(logged_in=True, strategy=name)
        except Exception as e:
            logger.warning("Login detection strategy '%s' failed: %s", name, e)
    return DetectionResult(logged_in=False)
