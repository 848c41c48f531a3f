"""Authenticator: wires cookie store, resolver, session manager and gate.

Flow for ``ensure_authenticated``:
  1. Get (or create) the shared browser session
  2. Load live stored cookies into it
  3. Open the explore page and resolve the verdict with the page
  4. Not logged in? Open one login window (gate-guarded) and re-resolve
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any

from xhs_session.auth.cookie_store import CookieStore
from xhs_session.auth.detectors import detect_login
from xhs_session.auth.gate import LoginAttemptGate
from xhs_session.auth.resolver import LoginStatusResolver
from xhs_session.auth.scorer import live_cookies
from xhs_session.browser.inspector import PageStateInspector
from xhs_session.browser.session import BrowserLauncher, BrowserSessionManager, SessionHandle
from xhs_session.core.config import LoginConfig, Settings
from xhs_session.core.errors import BrowserLaunchError, PageUnavailableError
from xhs_session.core.schemas import LoginVerdict
from xhs_session.platforms.xhs.urls import EXPLORE_URL, LOGIN_URL

logger = logging.getLogger(__name__)


class LoginAttemptOutcome(str, Enum):
    LOGGED_IN = "logged_in"
    TIMED_OUT = "timed_out"
    HANDLED_ELSEWHERE = "handled_elsewhere"
    FAILED = "failed"


class Authenticator:
    """Top-level login orchestration for one process."""

    def __init__(
        self,
        store: CookieStore,
        resolver: LoginStatusResolver,
        manager: BrowserSessionManager,
        gate: LoginAttemptGate,
        login_config: LoginConfig | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._manager = manager
        self._gate = gate
        self._login_config = login_config or LoginConfig()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        launcher: BrowserLauncher | None = None,
    ) -> "Authenticator":
        store = CookieStore(settings.cookies.path)
        inspector = PageStateInspector(
            navigation_timeout_ms=settings.browser.navigation_timeout_ms,
            settle_delay_ms=settings.browser.settle_delay_ms,
        )
        resolver = LoginStatusResolver(
            store,
            inspector,
            threshold=settings.login.threshold,
            memo_seconds=settings.login.status_memo_seconds,
        )
        manager = BrowserSessionManager(settings.browser, launcher)
        gate = LoginAttemptGate(
            cooldown_s=settings.gate.cooldown_s,
            stale_after_s=settings.gate.stale_after_s,
            max_failed_attempts=settings.gate.max_failed_attempts,
        )
        return cls(store, resolver, manager, gate, settings.login)

    @property
    def manager(self) -> BrowserSessionManager:
        return self._manager

    @property
    def resolver(self) -> LoginStatusResolver:
        return self._resolver

    @property
    def store(self) -> CookieStore:
        return self._store

    async def status(self) -> dict[str, Any]:
        """Cookie-only verdict as the status payload. Never opens a browser."""
        verdict = await self._resolver.resolve()
        return verdict.to_status()

    async def ensure_authenticated(
        self,
        caller_id: str,
        *,
        allow_login_window: bool = True,
    ) -> LoginVerdict:
        """Bring the shared session to a logged-in state if possible.

        Raises:
            BrowserLaunchError: The browser could not be started.
        """
        await self._manager.get_session()
        stored = live_cookies(self._store.load_or_empty(), time.time())
        if stored:
            await self._manager.load_cookies_into_session(stored)
        else:
            logger.info("No live stored cookies; checking the page as-is")

        verdict = await self._resolve_on(EXPLORE_URL)
        if verdict.is_logged_in or not allow_login_window:
            return verdict

        outcome = await self.open_login_window(caller_id)
        logger.info("Login window outcome for '%s': %s", caller_id, outcome.value)
        self._resolver.invalidate()
        return await self._resolve_on(EXPLORE_URL)

    async def open_login_window(self, caller_id: str) -> LoginAttemptOutcome:
        """Show the login page and wait for a human to finish logging in.

        Only one caller gets to open the window; the others get
        ``HANDLED_ELSEWHERE`` straight away.
        """
        if not self._gate.try_acquire(caller_id):
            return LoginAttemptOutcome.HANDLED_ELSEWHERE

        outcome = LoginAttemptOutcome.FAILED
        try:
            handle = await self._manager.ensure_visible(LOGIN_URL, force_foreground=True)
            outcome = await self._wait_for_login(handle)
            if outcome is LoginAttemptOutcome.LOGGED_IN:
                await self._persist_session_cookies()
        except (BrowserLaunchError, PageUnavailableError) as e:
            logger.error("Login window failed for '%s': %s", caller_id, e)
        finally:
            self._gate.release(caller_id, succeeded=outcome is LoginAttemptOutcome.LOGGED_IN)
        return outcome

    async def reinitialize_browser(self, caller_id: str) -> bool:
        """Restart the shared browser, unless someone else is already at it."""
        if not self._gate.try_acquire(caller_id):
            return False
        ok = False
        try:
            await self._manager.restart()
            ok = True
        except BrowserLaunchError as e:
            logger.error("Browser reinitialization failed for '%s': %s", caller_id, e)
        finally:
            self._gate.release(caller_id, succeeded=ok)
        return ok

    async def _resolve_on(self, url: str) -> LoginVerdict:
        try:
            handle = await self._manager.ensure_visible(url)
        except PageUnavailableError as e:
            logger.warning("Could not open %s: %s", url, e)
            return await self._resolver.resolve(self._manager.page)
        return await self._resolver.resolve(handle.page)

    async def _wait_for_login(self, handle: SessionHandle) -> LoginAttemptOutcome:
        timeout = self._login_config.login_wait_timeout_s
        interval = self._login_config.poll_interval_s
        deadline = time.monotonic() + timeout
        logger.info("Waiting up to %.0fs for login to complete in the browser", timeout)

        while True:
            result = await detect_login(
                handle.page, handle.context, threshold=self._resolver.threshold,
            )
            if result.logged_in:
                return LoginAttemptOutcome.LOGGED_IN
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("Login not completed within %.0fs", timeout)
                return LoginAttemptOutcome.TIMED_OUT
            await asyncio.sleep(min(interval, remaining))

    async def _persist_session_cookies(self) -> None:
        records = await self._manager.session_cookies()
        if not records:
            logger.warning("Login detected but the browser holds no cookies; nothing saved")
            return
        self._store.save(records)
        self._resolver.invalidate()
