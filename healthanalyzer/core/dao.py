"""
Relational store: entries, findings, summaries and metrics.

All records are insert-only. Saving a record whose id already exists is a
ConstraintError, never an overwrite. Range queries return the most recent
date first; rows sharing a date come back newest insertion first.
"""

import json
import sqlite3
import uuid
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from .cancel import CancelToken
from .db import ConnectionPool, guarded, transaction
from .errors import ConstraintError, NotFoundError, SerializationError
from .schema import Entry, Finding, Metric, Summary
from .validation import EntryWrite, FindingWrite, MetricWrite, SummaryWrite, calendar_date
from ..util.logging import logger

DateLike = Union[date, str]

ENTRY_COLUMNS = "id, date, category, input_text, analysis_text, created_at"


def new_id() -> str:
    return str(uuid.uuid4())


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _validated(model: Type[BaseModel], **fields: Any) -> BaseModel:
    try:
        return model(**fields)
    except ValidationError as e:
        raise ConstraintError(str(e)) from e


def iso_date(value: DateLike) -> str:
    """Canonical YYYY-MM-DD form of a date argument."""
    if isinstance(value, datetime):
        value = value.date()
    try:
        return calendar_date.validate_python(value).isoformat()
    except ValidationError as e:
        raise ConstraintError(f"invalid calendar date {value!r}") from e


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"malformed stored date {value!r}") from e


def _parse_timestamp(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"malformed stored timestamp {value!r}") from e


def entry_from_row(row: sqlite3.Row) -> Entry:
    return Entry(
        id=row["id"],
        date=_parse_date(row["date"]),
        category=row["category"],
        input_text=row["input_text"],
        analysis_text=row["analysis_text"],
        created_at=_parse_timestamp(row["created_at"]),
    )


def finding_from_row(row: sqlite3.Row) -> Finding:
    try:
        categories = json.loads(row["categories"])
    except ValueError as e:
        raise SerializationError(f"malformed categories for finding {row['id']}") from e
    return Finding(
        id=row["id"],
        date=_parse_date(row["date"]),
        finding_text=row["finding_text"],
        categories=categories,
        created_at=_parse_timestamp(row["created_at"]),
    )


def summary_from_row(row: sqlite3.Row) -> Summary:
    return Summary(
        id=row["id"],
        period_start=_parse_date(row["period_start"]),
        period_end=_parse_date(row["period_end"]),
        category=row["category"],
        summary_text=row["summary_text"],
        created_at=_parse_timestamp(row["created_at"]),
    )


def metric_from_row(row: sqlite3.Row) -> Metric:
    return Metric(
        id=row["id"],
        entry_id=row["entry_id"],
        key=row["key"],
        value=row["value"],
        created_at=_parse_timestamp(row["created_at"]),
    )


class RelationalStore:
    """CRUD over the four relational tables."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def save_entry(self, entry: Entry, cancel: Optional[CancelToken] = None) -> Entry:
        """
        Insert a new entry.

        Args:
            entry: Entry to store; id and created_at are generated when empty
            cancel: Optional cancellation token

        Returns:
            The stored Entry

        Raises:
            ConstraintError: id already exists or a field is invalid
        """
        record = _validated(
            EntryWrite,
            id=entry.id or new_id(),
            date=entry.date,
            category=entry.category,
            input_text=entry.input_text,
            analysis_text=entry.analysis_text,
            created_at=entry.created_at or now_utc(),
        )

        with self._pool.connection() as conn, guarded(conn, cancel):
            conn.execute(
                f"INSERT INTO entries ({ENTRY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (record.id, record.date.isoformat(), record.category, record.input_text,
                 record.analysis_text, record.created_at.isoformat())
            )

        logger.log_store_operation("save_entry", record.id, {"category": record.category})
        return Entry(**record.model_dump())

    def get_entries_by_date_range(self, category: str, from_date: DateLike, to_date: DateLike,
                                  cancel: Optional[CancelToken] = None) -> List[Entry]:
        """Entries of one category dated within [from_date, to_date], most recent first."""
        params = (category, iso_date(from_date), iso_date(to_date))

        with self._pool.connection() as conn, guarded(conn, cancel):
            rows = conn.execute(
                f"""SELECT {ENTRY_COLUMNS}
                    FROM entries
                    WHERE category = ? AND date >= ? AND date <= ?
                    ORDER BY date DESC, rowid DESC""",
                params
            ).fetchall()

        return [entry_from_row(row) for row in rows]

    def get_entry_by_id(self, entry_id: str, cancel: Optional[CancelToken] = None) -> Entry:
        """
        Look up one entry.

        Raises:
            NotFoundError: no entry has this id
        """
        with self._pool.connection() as conn, guarded(conn, cancel):
            row = conn.execute(
                f"SELECT {ENTRY_COLUMNS} FROM entries WHERE id = ?", (entry_id,)
            ).fetchone()

        if row is None:
            raise NotFoundError(f"entry {entry_id!r} not found")
        return entry_from_row(row)

    # -------------------------------------------------------------------------
    # Findings
    # -------------------------------------------------------------------------

    def save_finding(self, finding: Finding, cancel: Optional[CancelToken] = None) -> Finding:
        """Insert a new finding. Categories are stored as a JSON array."""
        record = _validated(
            FindingWrite,
            id=finding.id or new_id(),
            date=finding.date,
            finding_text=finding.finding_text,
            categories=list(finding.categories or []),
            created_at=finding.created_at or now_utc(),
        )

        with self._pool.connection() as conn, guarded(conn, cancel):
            conn.execute(
                "INSERT INTO findings (id, date, finding_text, categories, created_at) VALUES (?, ?, ?, ?, ?)",
                (record.id, record.date.isoformat(), record.finding_text,
                 json.dumps(record.categories, ensure_ascii=False), record.created_at.isoformat())
            )

        logger.log_store_operation("save_finding", record.id, {"categories": record.categories})
        return Finding(**record.model_dump())

    def get_recent_findings(self, limit: int, cancel: Optional[CancelToken] = None) -> List[Finding]:
        """At most `limit` findings, most recent date first. limit <= 0 yields none."""
        if limit <= 0:
            if cancel is not None:
                cancel.raise_if_cancelled()
            return []

        with self._pool.connection() as conn, guarded(conn, cancel):
            rows = conn.execute(
                """SELECT id, date, finding_text, categories, created_at
                   FROM findings
                   ORDER BY date DESC, rowid DESC
                   LIMIT ?""",
                (limit,)
            ).fetchall()

        return [finding_from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Summaries
    # -------------------------------------------------------------------------

    def save_summary(self, summary: Summary, cancel: Optional[CancelToken] = None) -> Summary:
        """Insert a new summary; period_start must not be after period_end."""
        record = _validated(
            SummaryWrite,
            id=summary.id or new_id(),
            period_start=summary.period_start,
            period_end=summary.period_end,
            category=summary.category,
            summary_text=summary.summary_text,
            created_at=summary.created_at or now_utc(),
        )

        with self._pool.connection() as conn, guarded(conn, cancel):
            conn.execute(
                """INSERT INTO summaries (id, period_start, period_end, category, summary_text, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (record.id, record.period_start.isoformat(), record.period_end.isoformat(),
                 record.category, record.summary_text, record.created_at.isoformat())
            )

        logger.log_store_operation("save_summary", record.id, {"category": record.category})
        return Summary(**record.model_dump())

    def get_summaries(self, category: str, from_date: DateLike, to_date: DateLike,
                      cancel: Optional[CancelToken] = None) -> List[Summary]:
        """Summaries of one category whose whole period lies in [from_date, to_date]."""
        params = (category, iso_date(from_date), iso_date(to_date))

        with self._pool.connection() as conn, guarded(conn, cancel):
            rows = conn.execute(
                """SELECT id, period_start, period_end, category, summary_text, created_at
                   FROM summaries
                   WHERE category = ? AND period_start >= ? AND period_end <= ?
                   ORDER BY period_start DESC, period_end DESC, rowid DESC""",
                params
            ).fetchall()

        return [summary_from_row(row) for row in rows]

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def save_metrics(self, entry_id: str, metrics: List[Metric],
                     cancel: Optional[CancelToken] = None) -> List[Metric]:
        """
        Insert a batch of metrics for one entry in a single transaction.

        Either every metric is stored or none is.

        Args:
            entry_id: Owning entry; must already exist
            metrics: Metrics to store; their entry_id may be empty
            cancel: Optional cancellation token

        Returns:
            The stored metrics, in batch order

        Raises:
            ConstraintError: entry does not exist, duplicate id, or invalid metric
        """
        created_at = now_utc()
        records = []
        for metric in metrics:
            if metric.entry_id and metric.entry_id != entry_id:
                raise ConstraintError(
                    f"metric {metric.key!r} belongs to entry {metric.entry_id!r}, not {entry_id!r}"
                )
            records.append(_validated(
                MetricWrite,
                id=metric.id or new_id(),
                entry_id=entry_id,
                key=metric.key,
                value=metric.value,
                created_at=metric.created_at or created_at,
            ))

        if not records:
            if cancel is not None:
                cancel.raise_if_cancelled()
            return []

        with self._pool.connection() as conn, guarded(conn, cancel):
            with transaction(conn):
                for record in records:
                    if cancel is not None:
                        cancel.raise_if_cancelled()
                    conn.execute(
                        "INSERT INTO metrics (id, entry_id, key, value, created_at) VALUES (?, ?, ?, ?, ?)",
                        (record.id, record.entry_id, record.key, record.value,
                         record.created_at.isoformat())
                    )

        logger.log_store_operation("save_metrics", entry_id, {"count": len(records)})
        return [Metric(**record.model_dump()) for record in records]

    def get_metrics(self, category: str, key: str, from_date: DateLike, to_date: DateLike,
                    cancel: Optional[CancelToken] = None) -> List[Metric]:
        """Metrics named `key` whose entry has `category` and a date in range, newest entry first."""
        params = (category, key, iso_date(from_date), iso_date(to_date))

        with self._pool.connection() as conn, guarded(conn, cancel):
            rows = conn.execute(
                """SELECT m.id, m.entry_id, m.key, m.value, m.created_at
                   FROM metrics m
                   JOIN entries e ON e.id = m.entry_id
                   WHERE e.category = ? AND m.key = ? AND e.date >= ? AND e.date <= ?
                   ORDER BY e.date DESC, e.rowid DESC, m.rowid ASC""",
                params
            ).fetchall()

        return [metric_from_row(row) for row in rows]
