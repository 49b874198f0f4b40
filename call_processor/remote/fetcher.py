"""Resilient recording fetcher.

Tries an ordered list of candidate paths over a single remote session,
buffering each candidate fully and checking its byte count against the
server-declared size before accepting it. Every phase has its own time
budget and the whole sweep is bounded by a total budget.
"""

from __future__ import annotations

import asyncio
import logging

from call_processor.remote.interface import (
    FetchResult,
    RemoteFileConnector,
    RemoteFileSession,
)
from call_processor.utils.errors import (
    FetchTimeoutError,
    IntegrityError,
    RecordingNotFoundError,
    RemoteReadError,
)

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 25.0
STAT_TIMEOUT_SECONDS = 15.0
TOTAL_TIMEOUT_SECONDS = 180.0
MIN_RECORDING_BYTES = 10_000
STREAM_CHUNK_BYTES = 256 * 1024
CANDIDATE_DELAY_SECONDS = 0.2


class ResilientFetcher:
    """Fetch the first valid recording among candidate paths.

    Args:
        connector: Opens remote sessions; one session per fetch.
        connect_timeout: Budget for establishing the session.
        stat_timeout: Budget for each existence and size probe.
        total_timeout: Budget for the whole sweep, including streaming.
        min_size: Files smaller than this are skipped as placeholders.
        chunk_size: Streaming read size.
        candidate_delay: Pause after a failed candidate before the next.
    """

    def __init__(
        self,
        connector: RemoteFileConnector,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
        stat_timeout: float = STAT_TIMEOUT_SECONDS,
        total_timeout: float = TOTAL_TIMEOUT_SECONDS,
        min_size: int = MIN_RECORDING_BYTES,
        chunk_size: int = STREAM_CHUNK_BYTES,
        candidate_delay: float = CANDIDATE_DELAY_SECONDS,
    ) -> None:
        self.connector = connector
        self.connect_timeout = connect_timeout
        self.stat_timeout = stat_timeout
        self.total_timeout = total_timeout
        self.min_size = min_size
        self.chunk_size = chunk_size
        self.candidate_delay = candidate_delay

    async def fetch(
        self, candidates: list[str], contact_id: str | None = None
    ) -> FetchResult:
        """Return the first candidate that exists, is large enough and
        transfers completely.

        Raises:
            RecordingNotFoundError: No candidate was usable.
            IntegrityError: Candidates existed but none transferred intact.
            FetchTimeoutError: A phase or the whole sweep ran out of time.
            RemoteConnectionError: The session could not be established.
        """
        if not candidates:
            raise RecordingNotFoundError(
                "No candidate paths to try", contact_id=contact_id, candidates=[]
            )

        try:
            async with asyncio.timeout(self.total_timeout):
                return await self._sweep(candidates, contact_id)
        except TimeoutError as exc:
            raise FetchTimeoutError(
                f"Fetch exceeded {self.total_timeout:.0f}s total budget",
                contact_id=contact_id,
                phase="total",
            ) from exc

    async def _connect(self, contact_id: str | None) -> RemoteFileSession:
        try:
            return await asyncio.wait_for(
                self.connector.connect(), timeout=self.connect_timeout
            )
        except TimeoutError as exc:
            raise FetchTimeoutError(
                f"Connect exceeded {self.connect_timeout:.0f}s",
                contact_id=contact_id,
                phase="connect",
            ) from exc

    async def _sweep(
        self, candidates: list[str], contact_id: str | None
    ) -> FetchResult:
        integrity_failure: IntegrityError | None = None

        session = await self._connect(contact_id)
        async with session:
            for path in candidates:
                try:
                    stat = await asyncio.wait_for(
                        session.stat(path), timeout=self.stat_timeout
                    )
                except TimeoutError as exc:
                    raise FetchTimeoutError(
                        f"Stat of '{path}' exceeded {self.stat_timeout:.0f}s",
                        contact_id=contact_id,
                        phase="stat",
                    ) from exc
                except RemoteReadError as exc:
                    logger.warning(
                        "Stat failed for candidate %s: %s",
                        path,
                        exc,
                        extra={"contact_id": contact_id, "candidate": path},
                    )
                    await asyncio.sleep(self.candidate_delay)
                    continue

                if stat is None:
                    continue
                if stat.size <= 0:
                    logger.debug("Skipping empty candidate %s", path)
                    continue
                if stat.size < self.min_size:
                    logger.info(
                        "Skipping candidate %s: %d bytes is below %d",
                        path,
                        stat.size,
                        self.min_size,
                        extra={"contact_id": contact_id, "candidate": path},
                    )
                    continue

                try:
                    data = await self._read_all(session, path)
                except RemoteReadError as exc:
                    logger.warning(
                        "Read failed for candidate %s: %s",
                        path,
                        exc,
                        extra={"contact_id": contact_id, "candidate": path},
                    )
                    await asyncio.sleep(self.candidate_delay)
                    continue

                if len(data) != stat.size:
                    integrity_failure = IntegrityError(
                        f"Transferred {len(data)} of {stat.size} bytes for '{path}'",
                        contact_id=contact_id,
                        path=path,
                        expected=stat.size,
                        actual=len(data),
                    )
                    logger.warning(
                        "Integrity mismatch for candidate %s: %d != %d",
                        path,
                        len(data),
                        stat.size,
                        extra={"contact_id": contact_id, "candidate": path},
                    )
                    await asyncio.sleep(self.candidate_delay)
                    continue

                logger.info(
                    "Fetched recording %s (%d bytes)",
                    path,
                    len(data),
                    extra={"contact_id": contact_id, "candidate": path},
                )
                return FetchResult(
                    path=path,
                    data=data,
                    declared_size=stat.size,
                    verified_size=len(data),
                )

        if integrity_failure is not None:
            raise integrity_failure
        raise RecordingNotFoundError(
            f"No usable recording among {len(candidates)} candidates",
            contact_id=contact_id,
            candidates=candidates,
        )

    async def _read_all(self, session: RemoteFileSession, path: str) -> bytes:
        buffer = bytearray()
        async for chunk in session.read_chunks(path, self.chunk_size):
            buffer.extend(chunk)
        return bytes(buffer)
