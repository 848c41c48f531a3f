"""Xiaohongshu URLs and the search URL builder.

Pure functions, zero browser dependency.
"""

from urllib.parse import quote, urlencode, urlparse

BASE_URL = "https://www.xiaohongshu.com"
EXPLORE_URL = f"{BASE_URL}/explore"
LOGIN_URL = f"{BASE_URL}/login"

# type=51 selects the notes tab of the search page.
SEARCH_NOTE_TYPE = "51"

LOGIN_URL_MARKERS = ("login", "signin")


def build_search_url(keyword: str) -> str:
    """Build a search-result URL for a keyword (URL-encoded, spaces as %20)."""
    keyword = keyword.strip()
    if not keyword:
        msg = "keyword must not be empty"
        raise ValueError(msg)
    params = {"keyword": keyword, "type": SEARCH_NOTE_TYPE}
    return f"{BASE_URL}/search_result?{urlencode(params, quote_via=quote)}"


def is_login_url(url: str) -> bool:
    """True if the URL path looks like a login/sign-in page.

    Only the path is checked, so a search for "login" is not a login page.
    """
    path = urlparse(url).path.lower()
    return any(marker in path for marker in LOGIN_URL_MARKERS)
