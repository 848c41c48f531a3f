"""CLI entry point for the Xiaohongshu session keeper."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from xhs_session.auth.authenticator import Authenticator, LoginAttemptOutcome
from xhs_session.auth.cookie_store import CookieStore, ingest_cookies
from xhs_session.core.config import Settings
from xhs_session.core.db import init_db
from xhs_session.core.errors import BrowserLaunchError
from xhs_session.core.log_filter import DuplicateMessageFilter
from xhs_session.pipeline.batch import export_results_json, run_batch

EXIT_ERROR = 1
EXIT_NOT_AUTHENTICATED = 2

CLI_CALLER_ID = "cli"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser = argparse.ArgumentParser(
        description="Xiaohongshu session keeper - keep a logged-in browser session and search with it",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "status", parents=[common],
        help="Print the cookie-based login status as JSON",
    )

    login_parser = subparsers.add_parser(
        "login", parents=[common],
        help="Open a browser window and wait for a manual login",
    )
    login_parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for the login to complete (default: from config)",
    )

    import_parser = subparsers.add_parser(
        "import-cookies", parents=[common],
        help="Save pasted cookies (JSON array or 'a=1; b=2' header) as the cookie set",
    )
    import_parser.add_argument(
        "--file",
        help="Read cookies from this file instead of stdin",
    )

    search_parser = subparsers.add_parser(
        "search", parents=[common],
        help="Run the configured keyword searches on an authenticated session",
    )
    search_parser.add_argument(
        "--keyword", "-k",
        action="append",
        help="Keyword to search (repeatable; overrides batch.keywords in config)",
    )
    search_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )

    subparsers.add_parser(
        "clear-cookies", parents=[common],
        help="Delete the stored cookie file",
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool, dedup_window_s: float = 5.0) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    dedup = DuplicateMessageFilter(window_s=dedup_window_s)
    for handler in logging.getLogger().handlers:
        handler.addFilter(dedup)


async def cmd_status(settings: Settings) -> None:
    authenticator = Authenticator.from_settings(settings)
    print(json.dumps(await authenticator.status(), indent=2))


async def cmd_login(settings: Settings, timeout: float | None) -> int:
    if timeout is not None:
        settings.login.login_wait_timeout_s = timeout
    authenticator = Authenticator.from_settings(settings)

    async with authenticator.manager:
        verdict = await authenticator.ensure_authenticated(CLI_CALLER_ID, allow_login_window=False)
        if verdict.is_logged_in:
            print(f"Already logged in (score {verdict.score}).")
            return 0
        outcome = await authenticator.open_login_window(CLI_CALLER_ID)

    if outcome is LoginAttemptOutcome.LOGGED_IN:
        print(f"Login complete. Cookies saved to {authenticator.store.path}")
        return 0
    print(f"Login not completed ({outcome.value}).", file=sys.stderr)
    return EXIT_NOT_AUTHENTICATED


def cmd_import_cookies(settings: Settings, file: str | None) -> None:
    raw_text = Path(file).read_text(encoding="utf-8") if file else sys.stdin.read()
    raw_text = raw_text.strip()
    if raw_text.startswith("["):
        try:
            raw = json.loads(raw_text)
        except json.JSONDecodeError as e:
            msg = f"cookie input is not valid JSON: {e}"
            raise ValueError(msg) from e
    else:
        raw = raw_text

    records = ingest_cookies(CookieStore(settings.cookies.path), raw)
    print(f"Saved {len(records)} cookies to {settings.cookies.path}")


async def cmd_search(settings: Settings, keywords: list[str], export_format: str | None) -> int:
    if not keywords:
        print("No keywords to search (set batch.keywords or pass --keyword).", file=sys.stderr)
        return EXIT_ERROR

    conn = init_db(settings.database.path)
    authenticator = Authenticator.from_settings(settings)
    try:
        async with authenticator.manager as manager:
            results = await run_batch(keywords, authenticator, manager, conn, settings)
    finally:
        conn.close()

    if results and all(r.status == "not_authenticated" for r in results):
        print(
            f"Not authenticated: {len(results)} keywords skipped. "
            "Run 'python main.py login' or 'python main.py import-cookies' first.",
            file=sys.stderr,
        )
        return EXIT_NOT_AUTHENTICATED

    print(f"\nSearch complete: {len(results)} keywords.")
    for r in results:
        print(f"  '{r.keyword}': {r.status}")

    if export_format == "json" and results:
        print(f"\n{export_results_json(results)}")
    return 0


def cmd_clear_cookies(settings: Settings) -> None:
    CookieStore(settings.cookies.path).clear()
    print(f"Cookie file {settings.cookies.path} removed.")


def load_settings(path: str) -> Settings:
    """Load settings, falling back to defaults when the default file is absent."""
    if not Path(path).exists() and path == "config/settings.yaml":
        return Settings()
    return Settings.from_yaml(path)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    setup_logging(args.verbose, settings.logging.dedup_window_s)

    code = 0
    try:
        if args.command == "status":
            asyncio.run(cmd_status(settings))
        elif args.command == "login":
            code = asyncio.run(cmd_login(settings, args.timeout))
        elif args.command == "import-cookies":
            cmd_import_cookies(settings, args.file)
        elif args.command == "search":
            keywords = [k.strip() for k in args.keyword if k.strip()] if args.keyword else settings.batch.keywords
            code = asyncio.run(cmd_search(settings, keywords, args.export))
        elif args.command == "clear-cookies":
            cmd_clear_cookies(settings)
    except (FileNotFoundError, ValueError, BrowserLaunchError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
