"""Periodic processing of recent calls.

Every interval, processes missing transcriptions for the rolling window
that ends now. A failing cycle is logged and the loop carries on.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import UTC, datetime, timedelta

from call_processor.pipeline import BatchRequest, BatchResult, CallProcessor

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 300.0
DEFAULT_LOOKBACK_HOURS = 24.0
DEFAULT_MAX_PROCESS_COUNT = 10


class AutoProcessor:
    """Runs CallProcessor on a fixed interval.

    Reads configuration from environment variables when not passed:
        AUTO_PROCESS_INTERVAL_SECONDS, AUTO_PROCESS_LOOKBACK_HOURS,
        AUTO_PROCESS_MAX_RECORDS
    """

    def __init__(
        self,
        processor: CallProcessor,
        interval_seconds: float | None = None,
        lookback_hours: float | None = None,
        max_process_count: int | None = None,
    ) -> None:
        self.processor = processor
        self.interval_seconds = interval_seconds or float(
            os.environ.get("AUTO_PROCESS_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)
        )
        self.lookback_hours = lookback_hours or float(
            os.environ.get("AUTO_PROCESS_LOOKBACK_HOURS", DEFAULT_LOOKBACK_HOURS)
        )
        self.max_process_count = max_process_count or int(
            os.environ.get("AUTO_PROCESS_MAX_RECORDS", DEFAULT_MAX_PROCESS_COUNT)
        )
        self._running = False
        self._wakeup = asyncio.Event()

    def build_request(self, now: datetime | None = None) -> BatchRequest:
        end = now or datetime.now(UTC)
        return BatchRequest(
            start=end - timedelta(hours=self.lookback_hours),
            end=end,
            max_process_count=self.max_process_count,
        )

    async def run_once(self, now: datetime | None = None) -> BatchResult:
        """Process one window ending at now."""
        request = self.build_request(now)
        result = await self.processor.process_calls(request)
        logger.info(
            "Auto-process cycle done: %d processed, %d errors",
            result.processed_count,
            len(result.errors),
        )
        return result

    async def run(self) -> None:
        """Start the processing loop. Runs until stopped."""
        self._running = True
        logger.info(
            "Auto processor starting (every %.0fs, %.1fh lookback, max %d)",
            self.interval_seconds,
            self.lookback_hours,
            self.max_process_count,
        )

        while self._running:
            try:
                await self.run_once()
            except Exception:
                logger.error("Unexpected error in auto-process cycle", exc_info=True)

            if not self._running:
                break
            try:
                await asyncio.wait_for(
                    self._wakeup.wait(), timeout=self.interval_seconds
                )
            except TimeoutError:
                pass

    def stop(self) -> None:
        """Signal the processing loop to stop."""
        self._running = False
        self._wakeup.set()
        logger.info("Auto processor stopping")
