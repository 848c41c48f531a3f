"""Tests for the page-state inspector (mock pages, no browser)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from patchright.async_api import Error as PlaywrightError

from tests.fakes import LOGGED_IN_PROBE, LOGIN_PROMPT_PROBE, make_page
from xhs_session.browser.inspector import (
    PROBE_SCRIPT,
    PageStateInspector,
    legacy_page_weight,
)
from xhs_session.core.errors import PageUnavailableError
from xhs_session.core.schemas import PageSnapshot

# ---------------------------------------------------------------------------
# TestInspect
# ---------------------------------------------------------------------------


class TestInspect:
    async def test_logged_in_page(self) -> None:
        snapshot = await PageStateInspector().inspect(make_page(LOGGED_IN_PROBE))
        assert snapshot.has_user_elements is True
        assert snapshot.has_login_prompt is False
        assert snapshot.has_navigation is True
        assert snapshot.has_search_results_or_content is True
        assert snapshot.url == "https://www.xiaohongshu.com/explore"

    async def test_login_prompt_page(self) -> None:
        snapshot = await PageStateInspector().inspect(make_page(LOGIN_PROMPT_PROBE))
        assert snapshot.has_login_prompt is True
        assert snapshot.has_user_elements is False

    async def test_login_modal_alone_counts_as_prompt(self) -> None:
        page = make_page({"hasLoginModal": True, "hasLoginText": False})
        snapshot = await PageStateInspector().inspect(page)
        assert snapshot.has_login_prompt is True

    async def test_login_text_alone_counts_as_prompt(self) -> None:
        page = make_page({"hasLoginModal": False, "hasLoginText": True})
        snapshot = await PageStateInspector().inspect(page)
        assert snapshot.has_login_prompt is True

    async def test_redirect_to_login_page_counts_as_prompt(self) -> None:
        page = make_page({**LOGGED_IN_PROBE, "url": "https://www.xiaohongshu.com/login?redirectPath=%2Fexplore"})
        snapshot = await PageStateInspector().inspect(page)
        assert snapshot.has_login_prompt is True

    async def test_search_for_login_keyword_is_not_a_prompt(self) -> None:
        url = "https://www.xiaohongshu.com/search_result?keyword=login&type=51"
        snapshot = await PageStateInspector().inspect(make_page({**LOGGED_IN_PROBE, "url": url}))
        assert snapshot.has_login_prompt is False

    async def test_single_evaluate_round_trip(self) -> None:
        page = make_page(LOGGED_IN_PROBE)
        await PageStateInspector().inspect(page)
        page.evaluate.assert_awaited_once()
        assert page.evaluate.await_args.args[0] == PROBE_SCRIPT
        markers = page.evaluate.await_args.args[1]
        assert "请先登录" in markers["promptTexts"]

    async def test_empty_probe_result(self) -> None:
        page = make_page()
        page.evaluate = AsyncMock(return_value=None)
        assert await PageStateInspector().inspect(page) == PageSnapshot()

    async def test_closed_page_raises(self) -> None:
        page = make_page()
        page.is_closed = MagicMock(return_value=True)
        with pytest.raises(PageUnavailableError):
            await PageStateInspector().inspect(page)
        page.evaluate.assert_not_awaited()

    async def test_none_page_raises(self) -> None:
        with pytest.raises(PageUnavailableError):
            await PageStateInspector().inspect(None)

    async def test_evaluate_failure_raises_page_unavailable(self) -> None:
        page = make_page()
        page.evaluate = AsyncMock(side_effect=PlaywrightError("Target closed"))
        with pytest.raises(PageUnavailableError, match="Target closed"):
            await PageStateInspector().inspect(page)


# ---------------------------------------------------------------------------
# TestNavigateAndInspect
# ---------------------------------------------------------------------------


class TestNavigateAndInspect:
    async def test_navigates_settles_then_inspects(self) -> None:
        page = make_page(LOGGED_IN_PROBE)
        inspector = PageStateInspector(navigation_timeout_ms=12000, settle_delay_ms=500)
        snapshot = await inspector.navigate_and_inspect(page, "https://example.test/a")
        page.goto.assert_awaited_once_with(
            "https://example.test/a", wait_until="domcontentloaded", timeout=12000,
        )
        page.wait_for_timeout.assert_awaited_once_with(500)
        assert snapshot.has_user_elements is True

    async def test_zero_settle_skips_wait(self) -> None:
        page = make_page(LOGGED_IN_PROBE)
        await PageStateInspector(settle_delay_ms=0).navigate_and_inspect(page, "https://x.test")
        page.wait_for_timeout.assert_not_awaited()

    async def test_navigation_timeout_raises_page_unavailable(self) -> None:
        page = make_page()
        page.goto = AsyncMock(side_effect=PlaywrightError("Timeout 30000ms exceeded"))
        with pytest.raises(PageUnavailableError, match="did not settle"):
            await PageStateInspector().navigate_and_inspect(page, "https://x.test")


class TestLegacyPageWeight:
    def test_all_positive_signals(self) -> None:
        snap = PageSnapshot(
            has_user_elements=True, has_navigation=True, has_search_results_or_content=True,
        )
        assert legacy_page_weight(snap) == 7

    def test_prompt_subtracts(self) -> None:
        snap = PageSnapshot(has_navigation=True, has_login_prompt=True)
        assert legacy_page_weight(snap) == 0
