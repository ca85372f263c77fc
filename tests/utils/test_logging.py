"""Tests for structured logging setup."""

import threading

import structlog

from zkstate.utils.logging import add_app_context, build_processors, configure_logging, get_logger


class TestLogging:
    """Test logging helpers."""

    def test_app_context(self):
        """Test entries are tagged with the application name."""
        event = add_app_context(None, "info", {"event": "Loaded cluster snapshot"})

        assert event == {"event": "Loaded cluster snapshot", "app": "zkstate"}

    def test_thread_name_added(self):
        """Test entries logged on the dispatcher thread carry its name."""
        adder = next(
            p for p in build_processors()
            if isinstance(p, structlog.processors.CallsiteParameterAdder)
        )
        events = []

        thread = threading.Thread(
            target=lambda: events.append(adder(None, "info", {"event": "Refreshed cluster state"})),
            name="zkstate-watch-dispatcher",
        )
        thread.start()
        thread.join()

        assert events[0]["thread_name"] == "zkstate-watch-dispatcher"

    def test_configure_and_log(self):
        """Test configured loggers accept key/value context."""
        configure_logging(log_level="DEBUG", log_format="console")

        logger = get_logger("zkstate.test")
        logger.info("Reader ready", source="zookeeper")
        logger.error("Refresh failed", section="aliases", error="boom")
