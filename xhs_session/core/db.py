"""SQLite ledger of batch search runs."""

import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

from xhs_session.core.schemas import BatchItemResult

_SEARCH_RUNS_TABLE = """
CREATE TABLE IF NOT EXISTS search_runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    keyword         TEXT    NOT NULL,
    status          TEXT    NOT NULL,
    url             TEXT    NOT NULL DEFAULT '',
    has_content     INTEGER NOT NULL DEFAULT 0,
    error           TEXT,
    started_at      TEXT    NOT NULL,
    finished_at     TEXT    NOT NULL
);
"""

_SEARCH_RUNS_INDEX = """
CREATE INDEX IF NOT EXISTS idx_search_runs_started_at ON search_runs (started_at);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_SEARCH_RUNS_TABLE)
    conn.execute(_SEARCH_RUNS_INDEX)
    conn.commit()
    return conn


def insert_search_run(conn: sqlite3.Connection, result: BatchItemResult) -> int:
    """Record one keyword outcome. Returns the row ID."""
    cursor = conn.execute(
        """
        INSERT INTO search_runs
            (keyword, status, url, has_content, error, started_at, finished_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            result.keyword,
            result.status,
            result.url,
            int(result.has_content),
            result.error,
            result.started_at.isoformat(),
            result.finished_at.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def recent_search_runs(
    conn: sqlite3.Connection,
    *,
    days: int = 7,
    status: str | None = None,
) -> list[sqlite3.Row]:
    """Return runs started within the last ``days``, newest first."""
    cutoff = (datetime.now() - timedelta(days=days)).isoformat()
    if status is None:
        return conn.execute(
            "SELECT * FROM search_runs WHERE started_at >= ? ORDER BY started_at DESC, id DESC",
            (cutoff,),
        ).fetchall()
    return conn.execute(
        """
        SELECT * FROM search_runs
        WHERE started_at >= ? AND status = ?
        ORDER BY started_at DESC, id DESC
        """,
        (cutoff, status),
    ).fetchall()
