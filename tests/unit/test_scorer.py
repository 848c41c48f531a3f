"""Tests for the cookie scorer: liveness, bonuses, clamping and CookieInfo."""

from xhs_session.auth.scorer import (
    MAX_SCORE,
    cookie_info,
    is_live,
    live_cookies,
    score_cookies,
)
from xhs_session.core.schemas import CookieRecord

NOW = 1_700_000_000.0


def _cookie(name: str, *, expires: float = -1, value: str = "v") -> CookieRecord:
    return CookieRecord(name=name, value=value, expires=expires)


# ---------------------------------------------------------------------------
# TestIsLive
# ---------------------------------------------------------------------------


class TestIsLive:
    def test_session_cookie_is_live(self) -> None:
        assert is_live(_cookie("a", expires=-1), NOW) is True
        assert is_live(_cookie("a", expires=0), NOW) is True

    def test_future_expiry_is_live(self) -> None:
        assert is_live(_cookie("a", expires=NOW + 1), NOW) is True

    def test_expiry_equal_to_now_is_dead(self) -> None:
        """Expiry boundary is strict: expires == now is already expired."""
        assert is_live(_cookie("a", expires=NOW), NOW) is False

    def test_past_expiry_is_dead(self) -> None:
        assert is_live(_cookie("a", expires=NOW - 100), NOW) is False

    def test_live_cookies_preserves_order(self) -> None:
        cookies = [_cookie("b"), _cookie("x", expires=NOW - 1), _cookie("a")]
        assert [c.name for c in live_cookies(cookies, NOW)] == ["b", "a"]


# ---------------------------------------------------------------------------
# TestScoreCookies
# ---------------------------------------------------------------------------


class TestScoreCookies:
    def test_empty_set_scores_zero(self) -> None:
        result = score_cookies([], NOW)
        assert result.score == 0
        assert result.live_cookies == ()

    def test_web_session_collects_both_bonuses(self) -> None:
        """web_session: 1 live + 2 (contains 'session') + 3 (site marker) = 6."""
        result = score_cookies([_cookie("web_session", value="abc", expires=0)], NOW)
        assert result.score == 6

    def test_expired_cookie_scores_zero(self) -> None:
        result = score_cookies([_cookie("foo", value="bar", expires=NOW - 100)], NOW)
        assert result.score == 0
        assert result.live_cookies == ()

    def test_plain_cookie_counts_one(self) -> None:
        assert score_cookies([_cookie("a1")], NOW).score == 1

    def test_auth_bonus_only(self) -> None:
        assert score_cookies([_cookie("access_token")], NOW).score == 3

    def test_site_bonus_only(self) -> None:
        assert score_cookies([_cookie("xhsTracker")], NOW).score == 4

    def test_keyword_match_is_case_sensitive(self) -> None:
        assert score_cookies([_cookie("SESSION")], NOW).score == 1

    def test_clamped_to_max(self) -> None:
        cookies = [_cookie(f"web_session{i}") for i in range(5)]
        assert score_cookies(cookies, NOW).score == MAX_SCORE

    def test_adding_live_cookie_never_lowers_score(self) -> None:
        base = [_cookie("a1"), _cookie("token")]
        before = score_cookies(base, NOW).score
        for extra in ("b", "web_session", "userid", "gid"):
            after = score_cookies([*base, _cookie(extra)], NOW).score
            assert after >= before

    def test_expired_cookies_are_ignored(self) -> None:
        live = [_cookie("a1")]
        with_dead = [*live, _cookie("web_session", expires=NOW - 1)]
        assert score_cookies(with_dead, NOW).score == score_cookies(live, NOW).score


# ---------------------------------------------------------------------------
# TestCookieInfo
# ---------------------------------------------------------------------------


class TestCookieInfo:
    def test_empty_is_none(self) -> None:
        assert cookie_info([]) is None

    def test_earliest_positive_expiry(self) -> None:
        info = cookie_info([
            _cookie("a", expires=NOW + 50),
            _cookie("b", expires=-1),
            _cookie("c", expires=NOW + 10),
        ])
        assert info is not None
        assert info.count == 3
        assert info.expires == NOW + 10

    def test_only_session_cookies(self) -> None:
        info = cookie_info([_cookie("a"), _cookie("b", expires=0)])
        assert info is not None
        assert info.count == 2
        assert info.expires is None
