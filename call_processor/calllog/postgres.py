"""Upstream contact log source backed by the dialler's reporting database.

Reads configuration from environment variables:
    DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Protocol

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row

from call_processor.models import CallRecord
from call_processor.utils.errors import CallLogError, ConfigurationError

logger = logging.getLogger(__name__)

EXCLUDED_DISPOSITIONS: tuple[str, ...] = (
    "No Answer - No Voicemail Available",
    "No Answer - Voicemail Available",
    "Engaged",
    "Done",
    "Invalid Endpoint",
)

_BASE_QUERY = """
    SELECT contact_id, recording_location, agent_username, queue_name,
           campaign_name, campaign_id, customer_cli, agent_hold_time,
           total_hold_time, time_in_queue, initiation_timestamp,
           disposition_title, total_call_time
    FROM reporting.contact_log
    WHERE agent_username IS NOT NULL
      AND disposition_title IS NOT NULL
      AND disposition_title <> ALL(%(excluded)s)
"""


class CallLogSource(Protocol):
    """Anything that can list call records for a time window."""

    async def fetch_call_logs(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[CallRecord]: ...


def build_query(
    start: datetime | None = None, end: datetime | None = None
) -> tuple[str, dict[str, Any]]:
    """Return the contact log query and its parameters for a window."""
    query = _BASE_QUERY
    params: dict[str, Any] = {"excluded": list(EXCLUDED_DISPOSITIONS)}
    if start is not None:
        query += "  AND initiation_timestamp >= %(start)s\n"
        params["start"] = start
    if end is not None:
        query += "  AND initiation_timestamp <= %(end)s\n"
        params["end"] = end
    query += "ORDER BY initiation_timestamp DESC"
    return query, params


class PostgresCallLogSource:
    """Queries reporting.contact_log with psycopg's async connection.

    A connection is opened per query; call log reads are infrequent
    compared with the per-record work that follows them.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        dbname: str | None = None,
        user: str | None = None,
        password: str | None = None,
        connect_timeout: int = 10,
    ) -> None:
        self.host = host or os.environ.get("DB_HOST", "")
        self.port = port or int(os.environ.get("DB_PORT", "5432"))
        self.dbname = dbname or os.environ.get("DB_NAME", "")
        self.user = user or os.environ.get("DB_USER", "")
        self.password = password or os.environ.get("DB_PASSWORD", "")
        self.connect_timeout = connect_timeout

        for setting, value in (
            ("DB_HOST", self.host),
            ("DB_NAME", self.dbname),
            ("DB_USER", self.user),
        ):
            if not value:
                raise ConfigurationError(f"{setting} is required", setting=setting)

    @property
    def conninfo(self) -> str:
        return make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.dbname,
            user=self.user,
            password=self.password,
            connect_timeout=self.connect_timeout,
        )

    async def fetch_call_logs(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> list[CallRecord]:
        """Return call records newest first, optionally bounded by start/end.

        Rows that cannot be parsed are logged and skipped.

        Raises:
            CallLogError: If the database cannot be reached or queried.
        """
        query, params = build_query(start, end)
        try:
            async with await psycopg.AsyncConnection.connect(self.conninfo) as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    rows = await cur.fetchall()
        except psycopg.Error as exc:
            raise CallLogError(f"Call log query failed: {exc}") from exc

        records: list[CallRecord] = []
        for row in rows:
            try:
                records.append(CallRecord.from_row(row))
            except ValueError as exc:
                logger.warning("Skipping malformed call log row: %s", exc)

        logger.info("Fetched %d call log records", len(records))
        return records
