"""Candidate path generation for call recordings on the SFTP server.

The upstream contact log only carries a hint for where a recording lives:
sometimes a bucket-prefixed key, sometimes a relative path, sometimes just
a filename. The dialler files recordings under YYYY/MM/DD folders, and
recordings are read shortly after the call, so candidates for recent days
are tried before the bare filename.

This module is pure: it performs no I/O.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, date, datetime, timedelta
from urllib.parse import unquote

logger = logging.getLogger(__name__)

RELATIVE_ROOT = "./"
DEFAULT_BASE_DIR = "tsa-dialler"
DEFAULT_BUCKET_PREFIXES: tuple[str, ...] = ("amazon-connect-b1a9c08821e5/",)
DEFAULT_DAYS_BACK = 7


def _decode_hint(hint: str) -> str:
    try:
        return unquote(hint, errors="strict")
    except UnicodeDecodeError:
        logger.debug("Could not URL-decode recording hint, using as-is: %s", hint)
        return hint


def _strip_leading_root(path: str) -> str:
    while path.startswith((RELATIVE_ROOT, "/")):
        path = path[len(RELATIVE_ROOT):] if path.startswith(RELATIVE_ROOT) else path[1:]
    return path


def _dedupe(paths: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            ordered.append(path)
    return ordered


class RecordingLocator:
    """Builds the ordered candidate list for a recording hint.

    Args:
        base_dir: Directory under the relative root that holds the dated
            recording folders (default "tsa-dialler").
        bucket_prefixes: Storage bucket tokens that may lead a hint and are
            not part of the server path.
        days_back: How many days before today to include in the date window.
    """

    def __init__(
        self,
        base_dir: str | None = None,
        bucket_prefixes: tuple[str, ...] | None = None,
        days_back: int = DEFAULT_DAYS_BACK,
    ) -> None:
        if base_dir is None:
            base_dir = os.environ.get("SFTP_BASE_DIR", DEFAULT_BASE_DIR)
        if bucket_prefixes is None:
            env_prefixes = os.environ.get("SFTP_BUCKET_PREFIXES", "")
            bucket_prefixes = (
                tuple(p.strip() for p in env_prefixes.split(",") if p.strip())
                or DEFAULT_BUCKET_PREFIXES
            )
        self.base_dir = base_dir.strip("/")
        self.bucket_prefixes = bucket_prefixes
        self.days_back = days_back

    def locate(self, hint: str, today: date | None = None) -> list[str]:
        """Return de-duplicated candidate paths for a recording hint.

        Args:
            hint: Recording location from the contact log.
            today: Reference day for the date window (default: UTC today).

        Returns:
            Ordered candidate paths: the hint's own path (if it has one),
            then the date window from today backwards, then the bare
            filename. Each appears relative-root-prefixed first.
        """
        if today is None:
            today = datetime.now(UTC).date()

        decoded = _decode_hint(hint)
        candidates: list[str] = []

        normalized = decoded.replace("\\", "/")

        if "/" in normalized:
            relative = _strip_leading_root(self._strip_bucket_prefix(normalized))
            if relative:
                candidates.append(f"{RELATIVE_ROOT}{relative}")
                candidates.append(relative)

        filename = normalized.rsplit("/", 1)[-1]

        for offset in range(self.days_back + 1):
            day = today - timedelta(days=offset)
            dated = f"{day:%Y/%m/%d}/{filename}"
            if self.base_dir:
                dated = f"{self.base_dir}/{dated}"
            candidates.append(f"{RELATIVE_ROOT}{dated}")
            candidates.append(dated)

        # The bare filename always closes the list, even when the hint was
        # itself just "./<filename>".
        fallback = [f"{RELATIVE_ROOT}{filename}", filename]
        head = [c for c in candidates if c not in fallback]
        return _dedupe(head) + _dedupe(fallback)

    def _strip_bucket_prefix(self, path: str) -> str:
        path = _strip_leading_root(path)
        for prefix in self.bucket_prefixes:
            if path.startswith(prefix):
                return path[len(prefix):]
        return path


def locate(hint: str, today: date | None = None) -> list[str]:
    """Locate candidates with the default locator configuration."""
    return RecordingLocator().locate(hint, today=today)
