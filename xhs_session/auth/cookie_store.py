"""JSON-file cookie store: the persisted record of which credentials we hold.

No in-memory cache: every call re-reads or rewrites the file.
Every save replaces the whole set; there is no merge.
"""

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from xhs_session.core.errors import CookieFileNotFoundError
from xhs_session.core.schemas import CookieRecord

logger = logging.getLogger(__name__)


class CookieStore:
    """Reads and writes a JSON array of cookie records at ``path``."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[CookieRecord]:
        """Load all cookie records.

        Raises:
            CookieFileNotFoundError: The file does not exist.
            ValueError: The file is not valid JSON or not a cookie list.
        """
        if not self._path.exists():
            msg = f"Cookie file not found: {self._path}"
            raise CookieFileNotFoundError(msg)

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            msg = f"Cookie file is not valid JSON: {self._path}: {e}"
            raise ValueError(msg) from e

        # Older login windows wrote {"cookies": [...], "timestamp": ..., "domain": ...}
        if isinstance(data, dict) and isinstance(data.get("cookies"), list):
            data = data["cookies"]
        if not isinstance(data, list):
            msg = f"Cookie file is not a JSON array: {self._path}"
            raise ValueError(msg)

        records = parse_cookie_records(data)
        logger.debug("Loaded %d cookies from %s", len(records), self._path)
        return records

    def load_or_empty(self) -> list[CookieRecord]:
        """``load()`` with a missing file treated as an empty set."""
        try:
            return self.load()
        except CookieFileNotFoundError:
            logger.debug("Cookie file not found: %s", self._path)
            return []

    def save(self, cookies: Iterable[CookieRecord]) -> None:
        """Atomically replace the stored set. OSError propagates."""
        records = list(cookies)
        payload = json.dumps([c.to_browser_dict() for c in records], indent=2, ensure_ascii=False)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Saved %d cookies to %s", len(records), self._path)

    def clear(self) -> None:
        """Delete the cookie file. Clearing a missing file is a no-op."""
        self._path.unlink(missing_ok=True)
        logger.info("Cleared cookie file %s", self._path)


def ingest_cookies(store: CookieStore, raw: str | Iterable[Mapping[str, Any]]) -> list[CookieRecord]:
    """Validate pasted cookies and save them as the new set.

    ``raw`` is either a list of mappings (name/value plus optional
    attributes, as exported by devtools) or a ``Cookie:`` header string
    (``"a=1; b=2"``). Entries with an empty name or value are dropped.

    Raises:
        ValueError: Nothing valid remained after filtering.
    """
    entries = _split_header(raw) if isinstance(raw, str) else list(raw)
    records = parse_cookie_records(entries)
    if not records:
        msg = "no valid cookies to save (each cookie needs a non-empty name and value)"
        raise ValueError(msg)

    dropped = len(entries) - len(records)
    if dropped:
        logger.warning("Dropped %d invalid cookie entries during ingestion", dropped)
    store.save(records)
    return records


def _split_header(header: str) -> list[dict[str, str]]:
    entries: list[dict[str, str]] = []
    for part in header.split(";"):
        name, sep, value = part.strip().partition("=")
        entries.append({"name": name.strip(), "value": value.strip() if sep else ""})
    return entries


def parse_cookie_records(entries: Iterable[Any]) -> list[CookieRecord]:
    """Validate raw cookie mappings, skipping (and logging) invalid ones."""
    records: list[CookieRecord] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            logger.warning("Skipping non-object cookie entry: %r", entry)
            continue
        try:
            records.append(CookieRecord.model_validate(dict(entry)))
        except ValidationError as e:
            logger.warning("Skipping invalid cookie %r: %s", entry.get("name"), e.errors()[0]["msg"])
    return records
