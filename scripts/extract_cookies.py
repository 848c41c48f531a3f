"""Extract Xiaohongshu cookies via patchright without the login-detection loop.

Usage:
    .venv/bin/python scripts/extract_cookies.py [--output cookies.json]

Opens a Chromium window. Log in to Xiaohongshu manually, then press Enter
in the terminal. Cookies are saved in the cookie-store format.
"""

import argparse

from patchright.sync_api import sync_playwright

from xhs_session.auth.cookie_store import CookieStore, parse_cookie_records
from xhs_session.platforms.xhs.urls import LOGIN_URL


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--output", default="cookies.json", help="Cookie file to write")
    args = parser.parse_args()

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=False)
        context = browser.new_context()
        page = context.new_page()
        page.goto(LOGIN_URL)

        input("\n>>> Log in to Xiaohongshu, then press Enter here to save cookies...")

        records = parse_cookie_records(context.cookies())
        CookieStore(args.output).save(records)
        print(f"Saved {len(records)} cookies to {args.output}")

        browser.close()


if __name__ == "__main__":
    main()
