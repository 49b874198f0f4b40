"""Service entry point for the call transcription pipeline.

Starts the periodic AutoProcessor alongside a lightweight HTTP health
check server (the hosting platform requires a listening port). Handles
SIGTERM/SIGINT with a bounded graceful shutdown.
"""

import asyncio
import logging
import os
import signal
from asyncio import StreamReader, StreamWriter

from call_processor.observability.logger import setup_logging
from call_processor.pipeline import CallProcessor
from call_processor.scheduler.auto_processor import AutoProcessor

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 25


async def _health_handler(reader: StreamReader, writer: StreamWriter) -> None:
    """Minimal HTTP handler that returns 200 OK for liveness probes."""
    await reader.read(4096)
    response = (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: text/plain\r\n"
        "Content-Length: 2\r\n"
        "\r\n"
        "ok"
    )
    writer.write(response.encode())
    await writer.drain()
    writer.close()


async def _run(processor: CallProcessor, auto_processor: AutoProcessor) -> None:
    """Run the health server and auto processor until a shutdown signal."""
    port = int(os.environ.get("PORT", "8080"))
    server = await asyncio.start_server(_health_handler, "0.0.0.0", port)
    logger.info("Health server listening on port %d", port)

    processor_task = asyncio.create_task(auto_processor.run())

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _shutdown() -> None:
        logger.info("Received shutdown signal")
        auto_processor.stop()
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _shutdown)

    await stop_event.wait()

    # Let an in-progress record finish, within the platform's grace period
    try:
        await asyncio.wait_for(processor_task, timeout=SHUTDOWN_TIMEOUT_SECONDS)
    except TimeoutError:
        logger.warning(
            "Auto processor did not stop within %ds, cancelling",
            SHUTDOWN_TIMEOUT_SECONDS,
        )

    server.close()
    await server.wait_closed()
    await processor.close()


def main() -> None:
    """Build the pipeline from the environment and run the service."""
    setup_logging()
    logger.info("Call processor starting")

    processor = CallProcessor.from_env()
    auto_processor = AutoProcessor(processor)

    asyncio.run(_run(processor, auto_processor))


if __name__ == "__main__":
    main()
