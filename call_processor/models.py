"""Call record data model shared by every pipeline stage.

CallRecord rows come from the upstream contact log and are read-only to
the pipeline, apart from the transient already_persisted flag.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

AUDIO_EXTENSION_PATTERN = re.compile(r"\.(wav|mp3|m4a|aac|flac)$", re.IGNORECASE)
# '%' is admitted so URL-encoded locations reach the locator, which decodes them
LOCATION_CHARS_PATTERN = re.compile(r"^[a-zA-Z0-9._\-/\\:%]+$")


def is_valid_recording_location(location: str | None) -> bool:
    """Return True if a recording location looks like an audio file path."""
    if not location or not location.strip():
        return False
    return bool(
        AUDIO_EXTENSION_PATTERN.search(location)
        and LOCATION_CHARS_PATTERN.match(location)
    )


def _as_float(value: Any) -> float | None:
    # numeric columns arrive as Decimal from the database driver
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class CallDuration:
    """Total call time as logged by the dialler."""

    minutes: int = 0
    seconds: int = 0

    @classmethod
    def from_value(cls, value: Any) -> CallDuration | None:
        """Parse a duration from a dict, a JSON string, or None."""
        if value is None or value == "":
            return None
        if isinstance(value, CallDuration):
            return value
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return None
        if not isinstance(value, dict):
            return None
        return cls(
            minutes=int(value.get("minutes") or 0),
            seconds=int(value.get("seconds") or 0),
        )

    @property
    def total_seconds(self) -> int:
        return self.minutes * 60 + self.seconds

    def to_payload(self) -> dict[str, int]:
        return {"minutes": self.minutes, "seconds": self.seconds}


@dataclass
class CallRecord:
    """One logged customer interaction with its recording locator."""

    contact_id: str
    recording_location: str = ""
    agent_username: str = ""
    queue_name: str | None = None
    campaign_name: str | None = None
    campaign_id: str | None = None
    customer_cli: str | None = None
    agent_hold_time: float | None = None
    total_hold_time: float | None = None
    time_in_queue: float | None = None
    initiation_timestamp: str | None = None
    disposition_title: str | None = None
    total_call_time: CallDuration | None = None
    already_persisted: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> CallRecord:
        """Build a CallRecord from a contact log row.

        Raises:
            ValueError: If the row has no contact_id.
        """
        contact_id = row.get("contact_id")
        if not contact_id:
            raise ValueError("Missing 'contact_id' in call log row")

        initiation = row.get("initiation_timestamp")
        if isinstance(initiation, datetime):
            initiation = initiation.isoformat()

        campaign_id = row.get("campaign_id")

        return cls(
            contact_id=str(contact_id),
            recording_location=row.get("recording_location") or "",
            agent_username=row.get("agent_username") or "",
            queue_name=row.get("queue_name"),
            campaign_name=row.get("campaign_name"),
            campaign_id=str(campaign_id) if campaign_id is not None else None,
            customer_cli=row.get("customer_cli"),
            agent_hold_time=_as_float(row.get("agent_hold_time")),
            total_hold_time=_as_float(row.get("total_hold_time")),
            time_in_queue=_as_float(row.get("time_in_queue")),
            initiation_timestamp=initiation,
            disposition_title=row.get("disposition_title"),
            total_call_time=CallDuration.from_value(row.get("total_call_time")),
        )

    @property
    def has_valid_recording(self) -> bool:
        return is_valid_recording_location(self.recording_location)
