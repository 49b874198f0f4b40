"""Tests for call_processor.main shutdown behavior."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from call_processor.main import SHUTDOWN_TIMEOUT_SECONDS, _health_handler, _run


def _capture_signal_handlers(loop):
    """Replace add_signal_handler with one that records callbacks."""
    callbacks = []

    def capture_handler(sig, callback):
        callbacks.append(callback)

    original_add = loop.add_signal_handler
    loop.add_signal_handler = capture_handler
    return callbacks, original_add


class TestShutdownTimeout:
    """Tests for graceful shutdown with timeout."""

    def test_shutdown_timeout_constant_is_25(self) -> None:
        """Shutdown timeout is 25s (5s buffer before the platform's 30s kill)."""
        assert SHUTDOWN_TIMEOUT_SECONDS == 25

    async def test_clean_shutdown_within_timeout(self) -> None:
        """An auto processor that stops quickly completes shutdown and closes."""
        auto_processor = MagicMock()
        processor = MagicMock()
        processor.close = AsyncMock()

        async def fake_run():
            while auto_processor._running:
                await asyncio.sleep(0.01)

        auto_processor._running = True
        auto_processor.run = fake_run

        def stop_auto_processor():
            auto_processor._running = False

        auto_processor.stop.side_effect = stop_auto_processor

        with patch("call_processor.main.asyncio.start_server") as mock_server:
            mock_srv = AsyncMock()
            mock_srv.close = MagicMock()
            mock_server.return_value = mock_srv

            loop = asyncio.get_running_loop()
            callbacks, original_add = _capture_signal_handlers(loop)

            try:
                task = asyncio.create_task(_run(processor, auto_processor))
                await asyncio.sleep(0.05)

                assert callbacks
                callbacks[0]()

                await asyncio.wait_for(task, timeout=2.0)
            finally:
                loop.add_signal_handler = original_add

        auto_processor.stop.assert_called_once()
        mock_srv.close.assert_called_once()
        processor.close.assert_awaited_once()

    async def test_shutdown_timeout_abandons_hanging_processor(self) -> None:
        """When a cycle hangs beyond the timeout, shutdown still completes."""
        import call_processor.main as main_mod

        auto_processor = MagicMock()
        processor = MagicMock()
        processor.close = AsyncMock()

        async def hanging_run():
            await asyncio.sleep(9999)

        auto_processor.run = hanging_run

        original_timeout = main_mod.SHUTDOWN_TIMEOUT_SECONDS
        main_mod.SHUTDOWN_TIMEOUT_SECONDS = 0.1

        try:
            with patch("call_processor.main.asyncio.start_server") as mock_server:
                mock_srv = AsyncMock()
                mock_srv.close = MagicMock()
                mock_server.return_value = mock_srv

                loop = asyncio.get_running_loop()
                callbacks, original_add = _capture_signal_handlers(loop)

                try:
                    task = asyncio.create_task(_run(processor, auto_processor))
                    await asyncio.sleep(0.05)

                    assert callbacks
                    callbacks[0]()

                    await asyncio.wait_for(task, timeout=2.0)
                finally:
                    loop.add_signal_handler = original_add
        finally:
            main_mod.SHUTDOWN_TIMEOUT_SECONDS = original_timeout

        processor.close.assert_awaited_once()


class TestHealthHandler:
    """Tests for the liveness probe handler."""

    async def test_returns_200_ok(self) -> None:
        reader = AsyncMock()
        reader.read.return_value = b"GET / HTTP/1.1\r\n\r\n"
        writer = MagicMock()
        writer.drain = AsyncMock()

        await _health_handler(reader, writer)

        written = writer.write.call_args[0][0]
        assert written.startswith(b"HTTP/1.1 200 OK")
        assert written.endswith(b"ok")
        writer.close.assert_called_once()
