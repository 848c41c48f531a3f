"""Tests for the authenticator: cookie loading, login window and gate usage."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

from tests.fakes import LOGGED_IN_PROBE, LOGIN_PROMPT_PROBE, FakeLauncher
from xhs_session.auth.authenticator import Authenticator, LoginAttemptOutcome
from xhs_session.auth.cookie_store import CookieStore
from xhs_session.auth.detectors import DetectionResult
from xhs_session.auth.gate import LoginAttemptGate
from xhs_session.auth.resolver import LoginStatusResolver
from xhs_session.browser.session import BrowserSessionManager
from xhs_session.core.config import BrowserConfig, LoginConfig, Settings
from xhs_session.core.schemas import CookieRecord
from xhs_session.platforms.xhs.urls import EXPLORE_URL, LOGIN_URL

WEB_SESSION = {"name": "web_session", "value": "abc", "domain": ".xiaohongshu.com"}


def _build(
    tmp_path: Path,
    launcher: FakeLauncher,
    gate: LoginAttemptGate | None = None,
) -> Authenticator:
    store = CookieStore(tmp_path / "cookies.json")
    resolver = LoginStatusResolver(store, memo_seconds=0)
    manager = BrowserSessionManager(BrowserConfig(), launcher)
    login = LoginConfig(login_wait_timeout_s=0.05, poll_interval_s=0.01)
    return Authenticator(store, resolver, manager, gate or LoginAttemptGate(), login)


def _page(launcher: FakeLauncher) -> Any:
    return launcher.contexts[-1].pages[0]


def _detect_and_log_in() -> AsyncMock:
    """detect_login stand-in: the human finishes logging in on the first poll."""

    async def detect(page: Any, context: Any, **kwargs: Any) -> DetectionResult:
        context.cookies = AsyncMock(return_value=[WEB_SESSION])
        page.evaluate = AsyncMock(return_value=LOGGED_IN_PROBE)
        return DetectionResult(logged_in=True, strategy="dom")

    return AsyncMock(side_effect=detect)


# ---------------------------------------------------------------------------
# TestEnsureAuthenticated
# ---------------------------------------------------------------------------


class TestEnsureAuthenticated:
    async def test_stored_cookies_loaded_and_verified(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGGED_IN_PROBE)
        auth = _build(tmp_path, launcher)
        auth.store.save([CookieRecord.model_validate(WEB_SESSION)])

        verdict = await auth.ensure_authenticated("t")

        assert verdict.is_logged_in is True
        context = launcher.contexts[0]
        context.clear_cookies.assert_awaited_once()
        assert context.add_cookies.await_args.args[0][0]["name"] == "web_session"
        _page(launcher).goto.assert_awaited_with(
            EXPLORE_URL, wait_until="domcontentloaded", timeout=30000,
        )

    async def test_expired_stored_cookies_not_loaded(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGIN_PROMPT_PROBE)
        auth = _build(tmp_path, launcher)
        auth.store.save([CookieRecord(name="web_session", value="abc", expires=1.0)])

        verdict = await auth.ensure_authenticated("t", allow_login_window=False)

        assert verdict.is_logged_in is False
        launcher.contexts[0].add_cookies.assert_not_awaited()

    async def test_no_login_window_when_not_allowed(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGIN_PROMPT_PROBE)
        gate = LoginAttemptGate()
        auth = _build(tmp_path, launcher, gate)

        verdict = await auth.ensure_authenticated("t", allow_login_window=False)

        assert verdict.is_logged_in is False
        assert gate.state().last_attempt_at is None

    async def test_prompt_vetoes_stored_cookies_then_login_window_fixes_it(
        self, tmp_path: Path,
    ) -> None:
        launcher = FakeLauncher(probe=LOGIN_PROMPT_PROBE)
        auth = _build(tmp_path, launcher)
        auth.store.save([CookieRecord.model_validate(WEB_SESSION)])

        with patch("xhs_session.auth.authenticator.detect_login", _detect_and_log_in()):
            verdict = await auth.ensure_authenticated("t")

        assert verdict.is_logged_in is True
        assert [r.name for r in auth.store.load()] == ["web_session"]


# ---------------------------------------------------------------------------
# TestOpenLoginWindow
# ---------------------------------------------------------------------------


class TestOpenLoginWindow:
    async def test_success_saves_cookies_and_releases_gate(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGIN_PROMPT_PROBE)
        gate = LoginAttemptGate()
        auth = _build(tmp_path, launcher, gate)

        with patch("xhs_session.auth.authenticator.detect_login", _detect_and_log_in()):
            outcome = await auth.open_login_window("t")

        assert outcome is LoginAttemptOutcome.LOGGED_IN
        _page(launcher).bring_to_front.assert_awaited_once()
        assert _page(launcher).goto.await_args.args[0] == LOGIN_URL
        assert [r.name for r in auth.store.load()] == ["web_session"]
        state = gate.state()
        assert state.is_reopening is False
        assert state.last_reopen_at is not None

    async def test_timeout_releases_gate_without_saving(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGIN_PROMPT_PROBE)
        gate = LoginAttemptGate()
        auth = _build(tmp_path, launcher, gate)
        never = AsyncMock(return_value=DetectionResult(logged_in=False))

        with patch("xhs_session.auth.authenticator.detect_login", never):
            outcome = await auth.open_login_window("t")

        assert outcome is LoginAttemptOutcome.TIMED_OUT
        assert never.await_count >= 2
        assert not auth.store.path.exists()
        state = gate.state()
        assert state.is_reopening is False
        assert state.last_reopen_at is None
        assert state.failed_attempts == 1

    async def test_gate_held_elsewhere(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGIN_PROMPT_PROBE)
        gate = LoginAttemptGate()
        gate.try_acquire("other")
        auth = _build(tmp_path, launcher, gate)

        outcome = await auth.open_login_window("t")

        assert outcome is LoginAttemptOutcome.HANDLED_ELSEWHERE
        assert launcher.launch_count == 0
        assert gate.state().owner_instance_id == "other"

    async def test_launch_failure_reports_failed(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(fail=True)
        gate = LoginAttemptGate()
        auth = _build(tmp_path, launcher, gate)

        outcome = await auth.open_login_window("t")

        assert outcome is LoginAttemptOutcome.FAILED
        assert gate.state().is_reopening is False

    async def test_logged_in_without_cookies_saves_nothing(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGGED_IN_PROBE)
        auth = _build(tmp_path, launcher)
        found = AsyncMock(return_value=DetectionResult(logged_in=True, strategy="dom"))

        with patch("xhs_session.auth.authenticator.detect_login", found):
            outcome = await auth.open_login_window("t")

        assert outcome is LoginAttemptOutcome.LOGGED_IN
        assert not auth.store.path.exists()


# ---------------------------------------------------------------------------
# TestReinitializeAndStatus
# ---------------------------------------------------------------------------


class TestReinitializeBrowser:
    async def test_restarts_session(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGGED_IN_PROBE)
        auth = _build(tmp_path, launcher)
        await auth.manager.get_session()

        assert await auth.reinitialize_browser("t") is True
        assert launcher.launch_count == 2

    async def test_rejected_while_gate_held(self, tmp_path: Path) -> None:
        launcher = FakeLauncher(probe=LOGGED_IN_PROBE)
        gate = LoginAttemptGate()
        gate.try_acquire("other")
        auth = _build(tmp_path, launcher, gate)

        assert await auth.reinitialize_browser("t") is False
        assert launcher.launch_count == 0

    async def test_launch_failure_returns_false(self, tmp_path: Path) -> None:
        auth = _build(tmp_path, FakeLauncher(fail=True))
        assert await auth.reinitialize_browser("t") is False


class TestStatus:
    async def test_cookie_only_payload_without_browser(self, tmp_path: Path) -> None:
        launcher = FakeLauncher()
        auth = _build(tmp_path, launcher)
        auth.store.save([CookieRecord.model_validate(WEB_SESSION)])

        status = await auth.status()

        assert status == {
            "isLoggedIn": True,
            "loginScore": 6,
            "cookieInfo": {"count": 1, "expires": None},
        }
        assert launcher.launch_count == 0


class TestFromSettings:
    def test_wires_configuration(self, tmp_path: Path) -> None:
        settings = Settings.model_validate({
            "cookies": {"path": str(tmp_path / "c.json")},
            "login": {"threshold": 5},
        })
        auth = Authenticator.from_settings(settings, FakeLauncher())
        assert auth.store.path == tmp_path / "c.json"
        assert auth.resolver.threshold == 5
