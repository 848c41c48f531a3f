"""Batch runner: searches a list of keywords on an authenticated session.

Data flow:
  1. One authentication check up front (no login window retries mid-batch)
  2. Per keyword: open the search URL, settle, inspect the page
  3. A login prompt or a lost browser mid-batch stops the run; the rest are
     marked not_authenticated
  4. Every outcome is written to the search_runs table
"""

import json
import logging
import sqlite3
from datetime import datetime

from xhs_session.auth.authenticator import Authenticator
from xhs_session.browser.actions import keyword_pause
from xhs_session.browser.inspector import PageStateInspector
from xhs_session.browser.session import BrowserSessionManager
from xhs_session.core.config import Settings
from xhs_session.core.db import insert_search_run
from xhs_session.core.errors import BrowserLaunchError, PageUnavailableError
from xhs_session.core.schemas import BatchItemResult
from xhs_session.platforms.xhs.urls import build_search_url

logger = logging.getLogger(__name__)

BATCH_CALLER_ID = "batch"


async def run_batch(
    keywords: list[str],
    authenticator: Authenticator,
    manager: BrowserSessionManager,
    conn: sqlite3.Connection,
    settings: Settings,
    *,
    caller_id: str = BATCH_CALLER_ID,
) -> list[BatchItemResult]:
    """Run every keyword through the shared page, gated on one login verdict.

    Returns one BatchItemResult per keyword, in input order.
    """
    if not keywords:
        return []

    try:
        verdict = await authenticator.ensure_authenticated(caller_id)
    except BrowserLaunchError as e:
        logger.error("Could not start a browser session: %s", e)
        return _record_all(conn, _not_authenticated(keywords, error=str(e)))
    if not verdict.is_logged_in:
        logger.warning(
            "Session not authenticated (score %d); skipping %d keywords",
            verdict.score, len(keywords),
        )
        return _record_all(conn, _not_authenticated(keywords))

    inspector = PageStateInspector(
        navigation_timeout_ms=settings.browser.navigation_timeout_ms,
        settle_delay_ms=settings.browser.settle_delay_ms,
    )
    results: list[BatchItemResult] = []

    for i, keyword in enumerate(keywords):
        if i > 0:
            await keyword_pause(settings.batch.delay_min_s, settings.batch.delay_max_s)

        result = await _search_keyword(keyword, inspector, manager)
        insert_search_run(conn, result)
        results.append(result)

        if result.status == "not_authenticated":
            remaining = keywords[i + 1:]
            logger.warning(
                "Session lost its login on '%s'; stopping batch (%d keywords left)",
                keyword, len(remaining),
            )
            results.extend(_record_all(conn, _not_authenticated(remaining)))
            break

    ok = sum(1 for r in results if r.status == "ok")
    logger.info("Batch complete: %d/%d keywords with content", ok, len(keywords))
    return results


async def _search_keyword(
    keyword: str,
    inspector: PageStateInspector,
    manager: BrowserSessionManager,
) -> BatchItemResult:
    started_at = datetime.now()
    url = build_search_url(keyword)
    logger.info("Searching '%s'", keyword)

    try:
        handle = await manager.get_session()
        snapshot = await inspector.navigate_and_inspect(handle.page, url)
    except BrowserLaunchError as e:
        logger.error("Browser session lost during search for '%s': %s", keyword, e)
        return BatchItemResult(
            keyword=keyword,
            status="not_authenticated",
            url=url,
            error=str(e),
            started_at=started_at,
            finished_at=datetime.now(),
        )
    except PageUnavailableError as e:
        logger.warning("Search for '%s' failed: %s", keyword, e)
        return BatchItemResult(
            keyword=keyword,
            status="failed",
            url=url,
            error=str(e),
            started_at=started_at,
            finished_at=datetime.now(),
        )

    if snapshot.has_login_prompt:
        status = "not_authenticated"
    elif snapshot.has_search_results_or_content:
        status = "ok"
    else:
        status = "no_content"

    return BatchItemResult(
        keyword=keyword,
        status=status,
        url=snapshot.url or url,
        has_content=snapshot.has_search_results_or_content,
        started_at=started_at,
        finished_at=datetime.now(),
    )


def _not_authenticated(keywords: list[str], error: str = "not authenticated") -> list[BatchItemResult]:
    return [
        BatchItemResult(keyword=kw, status="not_authenticated", error=error)
        for kw in keywords
    ]


def _record_all(conn: sqlite3.Connection, results: list[BatchItemResult]) -> list[BatchItemResult]:
    for r in results:
        insert_search_run(conn, r)
    return results


def export_results_json(results: list[BatchItemResult]) -> str:
    """Export batch results as a JSON string."""
    data = [
        {
            "keyword": r.keyword,
            "status": r.status,
            "url": r.url,
            "has_content": r.has_content,
            "error": r.error,
        }
        for r in results
    ]
    return json.dumps(data, indent=2, ensure_ascii=False)
