"""SQLite-backed history of httpd process averages."""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path

from httpd_limits.errors import HistoryStoreError
from httpd_limits.models import HistoricalRecord, SizeAverages

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("/var/tmp/httpd_limits.sqlite")
DEFAULT_RETAIN_DAYS = 30

TABLE = "process_averages"


class MaxBy(Enum):
    """Column used to pick the largest saved record."""

    REAL_AVG = "realavg"
    RUNNING = "running"


_ORDER_COLUMN = {
    MaxBy.REAL_AVG: "real_avg",
    MaxBy.RUNNING: "running_count",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _stamp(moment: datetime) -> str:
    """Fixed-width ISO timestamp, so text order is time order."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


class HistoryStore:
    """
    Append-only log of size averages with a retention window.

    Single writer, single reader: each run prunes old rows, optionally
    reads the largest record and optionally appends its own averages.
    """

    def __init__(self, path: Path | str = DEFAULT_DB_PATH) -> None:
        """
        Open (and create if needed) the history database.

        Raises:
            HistoryStoreError: When the database cannot be opened.
        """
        self._path = Path(path)
        logger.debug("Connecting to database %s", self._path)
        try:
            self._con = sqlite3.connect(self._path)
        except sqlite3.Error as exc:
            raise HistoryStoreError(f"{self._path} - {exc}") from exc

        try:
            with self._con:
                self._con.execute(
                    f"""CREATE TABLE IF NOT EXISTS {TABLE} (
                        recorded_at TEXT PRIMARY KEY,
                        real_avg REAL NOT NULL,
                        shared_avg REAL NOT NULL,
                        real_total REAL NOT NULL,
                        running_count INTEGER NOT NULL)"""
                )
        except sqlite3.Error as exc:
            self._con.close()
            raise HistoryStoreError(f"{self._path} - {exc}") from exc

    @property
    def path(self) -> Path:
        return self._path

    def close(self) -> None:
        self._con.close()

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def prune(self, retain_days: int = DEFAULT_RETAIN_DAYS, now: datetime | None = None) -> int:
        """Remove rows older than retain_days. Returns the number removed."""
        cutoff = (now or _now()) - timedelta(days=retain_days)
        logger.debug("Removing DB rows older than %d days", retain_days)
        try:
            with self._con:
                cursor = self._con.execute(
                    f"DELETE FROM {TABLE} WHERE recorded_at < ?",
                    (_stamp(cutoff),),
                )
        except sqlite3.Error as exc:
            raise HistoryStoreError(f"{self._path} - {exc}") from exc
        return cursor.rowcount

    def append(self, sizes: SizeAverages, now: datetime | None = None) -> HistoricalRecord:
        """Save the current averages."""
        record = HistoricalRecord(
            recorded_at=now or _now(),
            real_avg_mb=sizes.real_avg_mb,
            shared_avg_mb=sizes.shared_avg_mb,
            real_total_mb=sizes.real_total_mb,
            running_count=sizes.running_count,
        )
        logger.debug(
            "Adding HttpdRealAvg: %.2f and HttpdSharedAvg: %.2f values to database",
            record.real_avg_mb,
            record.shared_avg_mb,
        )
        try:
            with self._con:
                self._con.execute(
                    f"INSERT OR REPLACE INTO {TABLE} VALUES (?, ?, ?, ?, ?)",
                    (
                        _stamp(record.recorded_at),
                        record.real_avg_mb,
                        record.shared_avg_mb,
                        record.real_total_mb,
                        record.running_count,
                    ),
                )
        except sqlite3.Error as exc:
            raise HistoryStoreError(f"{self._path} - {exc}") from exc
        return record

    def largest(
        self,
        by: MaxBy = MaxBy.REAL_AVG,
        retain_days: int = DEFAULT_RETAIN_DAYS,
        now: datetime | None = None,
    ) -> HistoricalRecord | None:
        """Return the record with the largest value of `by` in the window, if any."""
        cutoff = (now or _now()) - timedelta(days=retain_days)
        column = _ORDER_COLUMN[by]
        logger.debug("Selecting largest %s value in past %d days", column, retain_days)
        try:
            row = self._con.execute(
                f"""SELECT recorded_at, real_avg, shared_avg, real_total, running_count
                    FROM {TABLE} WHERE recorded_at >= ?
                    ORDER BY {column} DESC, recorded_at DESC LIMIT 1""",
                (_stamp(cutoff),),
            ).fetchone()
        except sqlite3.Error as exc:
            raise HistoryStoreError(f"{self._path} - {exc}") from exc

        if row is None:
            logger.debug("No saved averages found in database")
            return None

        record = HistoricalRecord(
            recorded_at=datetime.fromisoformat(row[0]),
            real_avg_mb=row[1],
            shared_avg_mb=row[2],
            real_total_mb=row[3],
            running_count=row[4],
        )
        logger.debug(
            "Found largest %s: HttpdRealAvg %.2f (HttpdSharedAvg %.2f) on %s",
            column,
            record.real_avg_mb,
            record.shared_avg_mb,
            record.recorded_at,
        )
        return record
