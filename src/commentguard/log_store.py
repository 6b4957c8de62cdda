"""Decision log storage.

Every ``evaluate`` call appends exactly one LogRecord. Two stores ship:

- InMemoryLogStore: thread-safe list, used in tests and short-lived workers
- JsonlLogStore: append-only JSONL file with fcntl locking so several
  worker processes can append concurrently

RESOURCE LIMITS:
- File locking timeout: 5 seconds
- Query page size: 10-200 records
"""

import fcntl
import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta, timezone
from pathlib import Path
from typing import Optional

from .config import GuardConfig
from .models import LogRecord

logger = logging.getLogger("commentguard.log_store")

__all__ = [
    "InMemoryLogStore",
    "JsonlLogStore",
    "LogPage",
    "LogQuery",
    "LogStore",
    "LogStoreError",
    "purge_old_logs",
]

LOCK_TIMEOUT_SECONDS = 5.0
# Reopen attempts when a purge swapped the file under an open handle
MAX_REOPEN_ATTEMPTS = 5
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 200


class LogStoreError(Exception):
    """Raised when a decision record cannot be persisted."""


@dataclass
class LogQuery:
    """Filters for browsing the decision log.

    Attributes:
        decision: Exact decision value (spam, valid)
        has_error: True for records with an error, False for clean records
        model: Case-insensitive substring of the model identifier
        entity_id: Exact entity (comment) identifier
        date_start: Inclusive start day (UTC)
        date_end: Inclusive end day (UTC)
        limit: Page size, clamped to 10-200
        offset: Records to skip, newest first
    """

    decision: Optional[str] = None
    has_error: Optional[bool] = None
    model: Optional[str] = None
    entity_id: Optional[str] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    limit: int = 50
    offset: int = 0

    def matches(self, record: LogRecord) -> bool:
        if self.decision and record.decision != self.decision:
            return False
        if self.has_error is not None and record.has_error != self.has_error:
            return False
        if self.model and self.model.lower() not in record.model.lower():
            return False
        if self.entity_id is not None and record.entity_id != self.entity_id:
            return False
        created = _as_utc(record.created_at)
        if self.date_start and created < datetime.combine(
            self.date_start, dt_time.min, tzinfo=timezone.utc
        ):
            return False
        if self.date_end and created > datetime.combine(
            self.date_end, dt_time.max, tzinfo=timezone.utc
        ):
            return False
        return True


@dataclass
class LogPage:
    """One page of query results plus the total number of matches."""

    records: list[LogRecord]
    total: int


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _paginate(records: list[LogRecord], query: LogQuery) -> LogPage:
    matched = [r for r in records if query.matches(r)]
    # Newest first; insertion order breaks ties
    ordered = sorted(
        enumerate(matched), key=lambda item: (_as_utc(item[1].created_at), item[0]), reverse=True
    )
    limit = max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, query.limit))
    offset = max(0, query.offset)
    page = [record for _, record in ordered[offset : offset + limit]]
    return LogPage(records=page, total=len(matched))


class LogStore(ABC):
    """Abstract decision log store."""

    @abstractmethod
    def append(self, record: LogRecord) -> None:
        """Persist one record.

        Raises:
            LogStoreError: If the record could not be written
        """

    @abstractmethod
    def query(self, query: Optional[LogQuery] = None) -> LogPage:
        """Return a page of records matching ``query``, newest first."""

    @abstractmethod
    def purge_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        """Delete records older than ``days`` days. Returns deleted count."""


class InMemoryLogStore(LogStore):
    """Thread-safe in-process log store."""

    def __init__(self):
        self._records: list[LogRecord] = []
        self._lock = threading.Lock()

    @property
    def records(self) -> list[LogRecord]:
        """Snapshot of all records in insertion order."""
        with self._lock:
            return list(self._records)

    def append(self, record: LogRecord) -> None:
        with self._lock:
            self._records.append(record)

    def query(self, query: Optional[LogQuery] = None) -> LogPage:
        return _paginate(self.records, query or LogQuery())

    def purge_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        cutoff = _as_utc(now or datetime.now(timezone.utc)) - timedelta(days=days)
        with self._lock:
            kept = [r for r in self._records if _as_utc(r.created_at) >= cutoff]
            deleted = len(self._records) - len(kept)
            self._records = kept
        return deleted


def _acquire_lock(file_handle, timeout: float = LOCK_TIMEOUT_SECONDS) -> bool:
    """Acquire file lock with timeout. Returns True if acquired."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            fcntl.flock(file_handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except BlockingIOError:
            time.sleep(0.05)
    return False


def _release_lock(file_handle) -> None:
    """Release file lock."""
    try:
        fcntl.flock(file_handle, fcntl.LOCK_UN)
    except OSError as e:
        logger.warning("lock_release_failed", extra={"error": str(e)})


class JsonlLogStore(LogStore):
    """Append-only JSONL decision log shared between processes.

    Appends hold an exclusive lock only for the duration of one line write,
    so concurrent evaluations do not serialize against each other beyond
    that. Purges rewrite the file through a temp file + rename, so every
    writer re-checks after locking that its handle still names the live file
    and reopens when it does not.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _is_current(self, file_handle) -> bool:
        """True when the open handle still refers to the file at ``self.path``.

        A purge renames a rewritten file over the log; handles opened before
        that point at the unlinked inode.
        """
        try:
            path_stat = os.stat(self.path)
        except FileNotFoundError:
            return False
        handle_stat = os.fstat(file_handle.fileno())
        return (handle_stat.st_dev, handle_stat.st_ino) == (path_stat.st_dev, path_stat.st_ino)

    def append(self, record: LogRecord) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            for attempt in range(MAX_REOPEN_ATTEMPTS):
                with open(self.path, "a", encoding="utf-8") as f:
                    if not _acquire_lock(f):
                        raise LogStoreError(f"Timed out locking {self.path}")
                    try:
                        if self._is_current(f):
                            f.write(line)
                            f.flush()
                            return
                    finally:
                        _release_lock(f)
                logger.debug("log_file_replaced_reopening", extra={"attempt": attempt + 1})
        except OSError as e:
            raise LogStoreError(f"Failed to append to {self.path}: {e}") from e
        raise LogStoreError(f"{self.path} kept being replaced during append")

    def _read_all(self) -> list[LogRecord]:
        if not self.path.exists():
            return []
        records: list[LogRecord] = []
        with open(self.path, encoding="utf-8") as f:
            for i, line in enumerate(f):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(LogRecord.from_dict(json.loads(line)))
                except (ValueError, TypeError) as e:
                    logger.warning(
                        "invalid_log_entry",
                        extra={"line": i, "error": str(e), "path": str(self.path)},
                    )
        return records

    def query(self, query: Optional[LogQuery] = None) -> LogPage:
        return _paginate(self._read_all(), query or LogQuery())

    def purge_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        if not self.path.exists():
            return 0
        cutoff = _as_utc(now or datetime.now(timezone.utc)) - timedelta(days=days)

        for _ in range(MAX_REOPEN_ATTEMPTS):
            with open(self.path, "r+", encoding="utf-8") as f:
                if not _acquire_lock(f):
                    raise LogStoreError(f"Timed out locking {self.path}")
                try:
                    # Another purge may have replaced the file before we locked
                    if self._is_current(f):
                        return self._rewrite_locked(f, cutoff)
                finally:
                    _release_lock(f)
        raise LogStoreError(f"{self.path} kept being replaced during purge")

    def _rewrite_locked(self, file_handle, cutoff: datetime) -> int:
        """Drop records older than ``cutoff``; caller holds the lock."""
        kept_lines: list[str] = []
        deleted = 0
        for line in file_handle:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                record = LogRecord.from_dict(json.loads(stripped))
            except (ValueError, TypeError):
                # Keep unreadable entries for manual inspection
                kept_lines.append(stripped + "\n")
                continue
            if _as_utc(record.created_at) < cutoff:
                deleted += 1
            else:
                kept_lines.append(stripped + "\n")

        if deleted:
            temp_file = self.path.with_suffix(".tmp")
            temp_file.write_text("".join(kept_lines), encoding="utf-8")
            temp_file.rename(self.path)
        return deleted


def purge_old_logs(
    store: LogStore, config: GuardConfig, now: Optional[datetime] = None
) -> int:
    """Retention sweep: delete records older than ``log_retention_days``.

    A retention of 0 days keeps records forever.

    Returns:
        Number of deleted records
    """
    days = config.log_retention_days
    if days <= 0:
        logger.debug("log_purge_disabled")
        return 0
    deleted = store.purge_older_than(days, now=now)
    logger.info("log_purge_complete", extra={"deleted": deleted, "retention_days": days})
    return deleted
