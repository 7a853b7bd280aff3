"""
Knowledge Base Entry Stores

Loads question/answer pairs from the curated source: a local JSON script, a
CSV export of the spreadsheet, or a Google Sheet downloaded as CSV. Stores
only provide data; ranking happens in `matcher`.

Key Features:
- Uniform load_entries() / load_snapshot() interface
- Case-insensitive "question" / "answer" columns, other columns kept as metadata
- Content digest per snapshot for cache keys
- Optional time-based refresh wrapper that serves stale data on fetch errors

Dependencies:
- requests: HTTP client for the Google Sheets CSV export

Author: Quinn Evans
"""

import csv
import hashlib
import io
import json
import math
import os
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional

import requests

from config import env_number
from exception_logger import exception_logger
from knowledge import AssistError, EntrySnapshot, InvalidArgument, KnowledgeEntry

SHEET_EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export"


class EntryStoreError(AssistError):
    """Raised when the knowledge base cannot be fetched or parsed."""


def _rows_to_entries(rows: Iterable[dict]) -> List[KnowledgeEntry]:
    entries = []
    for row in rows:
        if not isinstance(row, dict):
            raise EntryStoreError(f"Expected an object per entry, got {type(row).__name__}")
        # csv.DictReader files surplus cells under the None key
        keys = {str(key).strip().lower(): key for key in row if key is not None}
        question = row[keys["question"]] if "question" in keys else None
        answer = row[keys["answer"]] if "answer" in keys else None
        question = "" if question is None else str(question).strip()
        if not question:
            continue
        answer = "" if answer is None else str(answer).strip()
        metadata = {
            str(key).strip(): value
            for key, value in row.items()
            if key is not None and str(key).strip().lower() not in ("question", "answer")
        }
        entries.append(KnowledgeEntry(question=question, answer=answer, metadata=metadata or None))
    return entries


def _parse_csv(text: str) -> List[KnowledgeEntry]:
    reader = csv.DictReader(io.StringIO(text))
    fields = [name.strip().lower() for name in reader.fieldnames or []]
    if "question" not in fields or "answer" not in fields:
        raise EntryStoreError("Sheet must have 'question' and 'answer' header columns.")
    return _rows_to_entries(reader)


def snapshot_version(entries: Iterable[KnowledgeEntry]) -> str:
    digest = hashlib.sha1()
    for entry in entries:
        digest.update(str(entry.question).encode("utf-8", "replace"))
        digest.update(b"\x1f")
        digest.update(str(entry.answer).encode("utf-8", "replace"))
        digest.update(b"\x1e")
    return digest.hexdigest()


class EntryStore:
    """Base class for knowledge base sources."""

    def load_entries(self) -> List[KnowledgeEntry]:
        raise NotImplementedError

    def load_snapshot(self) -> EntrySnapshot:
        entries = tuple(self.load_entries())
        return EntrySnapshot(entries=entries, version=snapshot_version(entries))


class StaticEntryStore(EntryStore):
    """Serves a fixed list of entries, handy for scripts and tests."""

    def __init__(self, entries: Iterable[KnowledgeEntry] = ()):
        self.entries = list(entries)

    def load_entries(self) -> List[KnowledgeEntry]:
        return list(self.entries)


class JsonEntryStore(EntryStore):
    """
    Reads a JSON list of {"question": ..., "answer": ...} objects.

    Attributes:
        path (Path): Location of the JSON file
    """

    def __init__(self, path):
        self.path = Path(path)

    def load_entries(self) -> List[KnowledgeEntry]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise EntryStoreError(f"Could not read {self.path}: {exc}") from exc
        if not isinstance(data, list):
            raise EntryStoreError(f"{self.path} must contain a list of entries.")
        return _rows_to_entries(data)


class CsvEntryStore(EntryStore):
    """Reads a CSV export of the knowledge base spreadsheet."""

    def __init__(self, path):
        self.path = Path(path)

    def load_entries(self) -> List[KnowledgeEntry]:
        try:
            text = self.path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise EntryStoreError(f"Could not read {self.path}: {exc}") from exc
        return _parse_csv(text)


class GoogleSheetEntryStore(EntryStore):
    """
    Downloads a Google Sheet tab as CSV.

    The sheet must be shared so that the export URL is readable without
    credentials ("anyone with the link" or published to the web).

    Attributes:
        sheet_id (str): Spreadsheet id from the sheet URL
        gid (str): Tab id, "0" for the first tab
        timeout (float): HTTP timeout in seconds
        session (requests.Session): Persistent HTTP session
    """

    def __init__(self, sheet_id: str, gid: str = "0", session: requests.Session = None,
                 timeout: float = 10.0):
        if not sheet_id:
            raise EntryStoreError("A Google Sheet id is required.")
        self.sheet_id = sheet_id
        self.gid = gid
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return SHEET_EXPORT_URL.format(sheet_id=self.sheet_id)

    def load_entries(self) -> List[KnowledgeEntry]:
        try:
            response = self.session.get(
                self.url,
                params={"format": "csv", "gid": self.gid},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise EntryStoreError(f"Could not download sheet {self.sheet_id}: {exc}") from exc
        # text/csv without a charset would otherwise decode as ISO-8859-1
        try:
            text = response.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise EntryStoreError(f"Sheet {self.sheet_id} is not UTF-8 encoded: {exc}") from exc
        return _parse_csv(text)


class CachedEntryStore(EntryStore):
    """
    Reuses the last snapshot of another store until a TTL expires.

    When a refresh fails and an earlier snapshot exists, the stale snapshot
    is served and the failure logged; with nothing cached the error is raised.

    Attributes:
        store (EntryStore): Wrapped source
        ttl_seconds (float): Snapshot lifetime
    """

    def __init__(self, store: EntryStore, ttl_seconds: float = 300.0, clock=time.monotonic):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._snapshot: Optional[EntrySnapshot] = None
        self._loaded_at = 0.0
        self._lock = threading.Lock()

    def load_entries(self) -> List[KnowledgeEntry]:
        return list(self.load_snapshot().entries)

    def load_snapshot(self) -> EntrySnapshot:
        with self._lock:
            now = self.clock()
            if self._snapshot is not None and now - self._loaded_at < self.ttl_seconds:
                return self._snapshot
            try:
                self._snapshot = self.store.load_snapshot()
                self._loaded_at = now
            except EntryStoreError as exc:
                if self._snapshot is None:
                    raise
                exception_logger.log_exception(exc, "entry_store", "serving stale snapshot")
            return self._snapshot

    def invalidate(self):
        with self._lock:
            self._snapshot = None


def entry_store_from_config() -> EntryStore:
    """
    Build the entry store described by the environment.

    SHEETASSIST_SHEET_ID selects a Google Sheet (tab SHEETASSIST_SHEET_GID),
    otherwise SHEETASSIST_QA_FILE names a .json or .csv file
    (default qa_script.json). The result is cached for SHEETASSIST_SHEET_TTL
    seconds.
    """
    sheet_id = os.getenv("SHEETASSIST_SHEET_ID")
    if sheet_id:
        store = GoogleSheetEntryStore(sheet_id, gid=os.getenv("SHEETASSIST_SHEET_GID", "0"))
    else:
        qa_file = Path(os.getenv("SHEETASSIST_QA_FILE", "qa_script.json"))
        if qa_file.suffix.lower() == ".csv":
            store = CsvEntryStore(qa_file)
        else:
            store = JsonEntryStore(qa_file)
    ttl = env_number("SHEETASSIST_SHEET_TTL", 300.0, float)
    if not math.isfinite(ttl) or ttl < 0:
        raise InvalidArgument(f"SHEETASSIST_SHEET_TTL must be a non-negative number of seconds, got {ttl!r}")
    return CachedEntryStore(store, ttl_seconds=ttl)
