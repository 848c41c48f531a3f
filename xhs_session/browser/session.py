"""Browser session management using patchright.

Rules:
  - One persistent browser context + one page per process, reused by every
    caller.
  - Concurrent callers share a single in-flight initialization.
  - A dead session is detected by a cheap probe and recreated, never patched.
  - The browser driver is injected (``BrowserLauncher``) so tests need no browser.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import TracebackType
from typing import Any, Protocol

from patchright.async_api import Error as PlaywrightError
from patchright.async_api import Playwright, async_playwright

from xhs_session.auth.cookie_store import parse_cookie_records
from xhs_session.core.config import BrowserConfig
from xhs_session.core.errors import BrowserLaunchError, PageUnavailableError, SessionNotReadyError
from xhs_session.core.schemas import CookieRecord

logger = logging.getLogger(__name__)

_MAXIMIZE_SCRIPT = """
() => {
  if (window.screen && window.screen.availWidth && window.screen.availHeight) {
    window.moveTo(0, 0);
    window.resizeTo(window.screen.availWidth, window.screen.availHeight);
  }
}
"""


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    INVALID = "invalid"
    CLOSED = "closed"


@dataclass
class SessionHandle:
    """The live context/page pair. Replaced, never repaired, when it dies."""

    context: Any
    page: Any
    initialized_at: datetime = field(default_factory=datetime.now)
    is_valid: bool = True


class BrowserLauncher(Protocol):
    """Minimal driver interface: open a persistent context, shut the driver down."""

    async def launch(
        self,
        user_data_dir: str,
        *,
        headless: bool,
        args: list[str],
    ) -> Any: ...

    async def stop(self) -> None: ...


class PatchrightLauncher:
    """Launches Chromium through patchright with a persistent user-data dir."""

    def __init__(self) -> None:
        self._playwright: Playwright | None = None
        self._start_lock = asyncio.Lock()

    async def launch(self, user_data_dir: str, *, headless: bool, args: list[str]) -> Any:
        # Overlapping launches must share one driver.
        async with self._start_lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
        # no_viewport lets --start-maximized / --window-size decide the window size
        return await self._playwright.chromium.launch_persistent_context(
            user_data_dir,
            headless=headless,
            args=args,
            no_viewport=True,
        )

    async def stop(self) -> None:
        if self._playwright is not None:
            pw, self._playwright = self._playwright, None
            await pw.stop()


class BrowserSessionManager:
    """Owns the single shared browser context and page.

    Usage::

        async with BrowserSessionManager(config) as manager:
            handle = await manager.get_session()
            await handle.page.goto("https://...")
    """

    def __init__(self, config: BrowserConfig, launcher: BrowserLauncher | None = None) -> None:
        self._config = config
        self._launcher: BrowserLauncher = launcher or PatchrightLauncher()
        self._handle: SessionHandle | None = None
        self._state = SessionState.UNINITIALIZED
        self._init_task: asyncio.Task[SessionHandle] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def page(self) -> Any:
        """The page of the live session. Raises if no session is ready."""
        if self._handle is None or self._state is not SessionState.READY:
            msg = "no live browser session - call get_session() first"
            raise SessionNotReadyError(msg)
        return self._handle.page

    async def __aenter__(self) -> "BrowserSessionManager":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def get_session(self, timeout: float | None = None) -> SessionHandle:
        """Return the live session, creating it if needed.

        Args:
            timeout: Optional deadline in seconds. On expiry raises
                ``asyncio.TimeoutError``; an in-flight initialization keeps
                running for other callers.

        Raises:
            BrowserLaunchError: The browser could not be started.
        """
        if timeout is None:
            return await self._get_session()
        return await asyncio.wait_for(self._get_session(), timeout)

    async def _get_session(self) -> SessionHandle:
        handle = self._handle
        if handle is not None and self._state is SessionState.READY:
            if await self._probe(handle):
                return handle
            logger.warning("Browser session failed its liveness probe; reinitializing")
            self._state = SessionState.INVALID
            await self._discard_handle()

        task = self._init_task
        if task is not None and not task.done():
            logger.info("Browser initialization already in flight; waiting for it")
            try:
                return await asyncio.wait_for(
                    asyncio.shield(task), self._config.init_wait_timeout_s,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Browser initialization still running after %.0fs; starting a new one",
                    self._config.init_wait_timeout_s,
                )
                if self._init_task is task:
                    self._init_task = None

        task = asyncio.create_task(self._initialize())
        self._init_task = task
        task.add_done_callback(self._clear_init_task)
        return await asyncio.shield(task)

    async def _initialize(self) -> SessionHandle:
        # A stray handle can exist if a waiter gave up on a slow initializer.
        await self._discard_handle()
        self._state = SessionState.INITIALIZING
        logger.info("Launching browser (user data dir: %s)", self._config.user_data_dir)

        context: Any = None
        try:
            context = await self._launcher.launch(
                self._config.user_data_dir,
                headless=self._config.headless,
                args=self._config.launch_args,
            )
            page = context.pages[0] if context.pages else await context.new_page()
            context.set_default_timeout(self._config.timeout_ms)
        except asyncio.CancelledError:
            if context is not None:
                await _close_quietly(context)
            raise
        except Exception as e:
            if context is not None:
                await _close_quietly(context)
            if self._handle is not None and self._handle.is_valid:
                # Superseded by a newer initializer that already succeeded.
                logger.warning("Superseded browser initialization failed (%s); keeping live session", e)
                return self._handle
            self._state = SessionState.INVALID
            await self._stop_launcher()
            msg = f"could not launch browser: {e}"
            raise BrowserLaunchError(msg) from e

        if self._handle is not None and self._handle.is_valid:
            # Another initializer finished while this one was launching.
            logger.warning("Discarding duplicate browser context from a concurrent initialization")
            await _close_quietly(context)
            return self._handle

        self._handle = SessionHandle(context=context, page=page)
        self._state = SessionState.READY
        logger.info("Browser session ready")
        return self._handle

    def _clear_init_task(self, task: "asyncio.Task[SessionHandle]") -> None:
        if self._init_task is task:
            self._init_task = None

    async def _probe(self, handle: SessionHandle) -> bool:
        try:
            if handle.page.is_closed():
                return False
            await asyncio.wait_for(
                handle.page.evaluate("document.title"), self._config.probe_timeout_s,
            )
            return True
        except Exception:
            logger.debug("Liveness probe failed", exc_info=True)
            return False

    async def _discard_handle(self, *, stop_launcher: bool = True) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        handle.is_valid = False
        await _close_quietly(handle.context)
        if stop_launcher:
            await self._stop_launcher()

    async def _stop_launcher(self) -> None:
        try:
            await self._launcher.stop()
        except Exception:
            logger.debug("Error while stopping browser driver", exc_info=True)

    async def restart(self) -> SessionHandle:
        """Throw away the current session and start a fresh one."""
        logger.info("Restarting browser session")
        await self._discard_handle()
        self._state = SessionState.UNINITIALIZED
        return await self.get_session()

    async def close(self) -> None:
        """Release the browser. Safe to call more than once."""
        task, self._init_task = self._init_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, BrowserLaunchError):
                pass
        if self._handle is not None:
            logger.info("Closing browser session")
        await self._discard_handle(stop_launcher=False)
        # A cancelled initialization may have started the driver without a handle.
        await self._stop_launcher()
        self._state = SessionState.CLOSED

    # ------------------------------------------------------------------
    # Cookies and visibility
    # ------------------------------------------------------------------

    async def load_cookies_into_session(self, cookies: list[CookieRecord]) -> None:
        """Replace every cookie in the live context with ``cookies``.

        Raises:
            SessionNotReadyError: No live context.
        """
        context = self._live_context()
        await context.clear_cookies()
        if cookies:
            await context.add_cookies([c.to_browser_dict() for c in cookies])
        logger.info("Loaded %d cookies into the browser session", len(cookies))

    async def session_cookies(self) -> list[CookieRecord]:
        """Read the live context's cookies.

        Raises:
            SessionNotReadyError: No live context.
        """
        context = self._live_context()
        return parse_cookie_records(await context.cookies())

    async def ensure_visible(self, url: str, *, force_foreground: bool = False) -> SessionHandle:
        """Get the session, show ``url`` in it and optionally raise the window.

        Raises:
            BrowserLaunchError: The browser could not be started.
            PageUnavailableError: Navigation failed or timed out.
        """
        handle = await self.get_session()
        page = handle.page
        try:
            await page.goto(
                url, wait_until="domcontentloaded", timeout=self._config.navigation_timeout_ms,
            )
        except PlaywrightError as e:
            msg = f"could not open {url}: {e}"
            raise PageUnavailableError(msg) from e

        if force_foreground:
            await page.bring_to_front()
            try:
                await page.evaluate(_MAXIMIZE_SCRIPT)
            except PlaywrightError:
                logger.debug("Could not maximize window", exc_info=True)
            logger.info("Browser window brought to front at %s", url)
        return handle

    def _live_context(self) -> Any:
        if self._handle is None or self._state is not SessionState.READY:
            msg = "no live browser context"
            raise SessionNotReadyError(msg)
        return self._handle.context


async def _close_quietly(context: Any) -> None:
    try:
        await context.close()
    except Exception:
        logger.debug("Error while closing browser context", exc_info=True)
