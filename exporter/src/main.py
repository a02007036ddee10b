"""
Exporter daemon main loop for the ECHONET Lite metrics exporter.

Startup:
1. Configure structured JSON logging and load :class:`ExporterSettings`.
2. Load the transport named by ``ECHONET_TRANSPORT``.
3. Build the :class:`Exporter` (validates gauge vs. rule tables; a
   mismatch aborts startup) and run the discovery window.

Then a **poll loop** calls ``poll_and_export()`` every ``poll_interval_s``,
writes the exposition to ``TEXTFILE_PATH`` (if set) and updates the health
file.  An exception in one iteration is logged and does not stop the loop.
Graceful shutdown on SIGTERM/SIGINT sets a shared asyncio.Event; the loop
finishes its current iteration and the transport is closed.

CHANGELOG:
- 2026-10-16: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from exporter.src.errors import ExporterError
from exporter.src.health import HealthWriter

if TYPE_CHECKING:
    from exporter.src.exporter import Exporter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the exporter daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup.

    Args:
        settings: An ExporterSettings instance (or any object with the same attrs).
    """
    logger.info(
        "Exporter starting with config: "
        "echonet_transport=%s, echonet_netif=%s, discovery_timeout_s=%s, "
        "poll_interval_s=%s, fetch_timeout_s=%s, max_concurrent_devices=%s, "
        "textfile_path=%s, health_path=%s, include_process_metrics=%s",
        settings.echonet_transport,  # type: ignore[union-attr]
        settings.echonet_netif,  # type: ignore[union-attr]
        settings.discovery_timeout_s,  # type: ignore[union-attr]
        settings.poll_interval_s,  # type: ignore[union-attr]
        settings.fetch_timeout_s,  # type: ignore[union-attr]
        settings.max_concurrent_devices,  # type: ignore[union-attr]
        settings.textfile_path,  # type: ignore[union-attr]
        settings.health_path,  # type: ignore[union-attr]
        settings.include_process_metrics,  # type: ignore[union-attr]
    )


# ---------------------------------------------------------------------------
# Single-iteration function (easily testable)
# ---------------------------------------------------------------------------


async def _poll_once(
    *,
    exporter: Exporter,
    textfile_path: str | None,
    health: HealthWriter | None,
) -> bool:
    """Execute a single poll-export cycle.

    Catches all exceptions so that the caller's loop is never broken.
    After each poll attempt the health writer is updated.

    Returns:
        True if the cycle completed, False if it raised.
    """
    ok = False
    try:
        await exporter.poll_and_export()
        if textfile_path:
            exporter.sink.write_textfile(textfile_path)
        ok = True
    except Exception:
        logger.error("Poll cycle error", exc_info=True)

    if health is not None:
        try:
            health.record_poll(
                device_count=len(exporter.devices),
                sample_count=exporter.last_sample_count if ok else 0,
            )
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)
    return ok


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def run_loop(
    *,
    exporter: Exporter,
    poll_interval_s: float,
    shutdown_event: asyncio.Event,
    textfile_path: str | None = None,
    health: HealthWriter | None = None,
) -> None:
    """Run the poll loop until shutdown_event is set.

    Executes _poll_once, then sleeps for poll_interval_s, checking the
    shutdown event between iterations.
    """
    logger.info("Poll loop started (interval=%ss)", poll_interval_s)
    while not shutdown_event.is_set():
        await _poll_once(exporter=exporter, textfile_path=textfile_path, health=health)
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=poll_interval_s,
            )
    logger.info("Poll loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build the exporter, run the loop.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    from exporter.src.config import ExporterSettings
    from exporter.src.exporter import Exporter
    from exporter.src.transport import load_transport

    settings = ExporterSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    transport = load_transport(settings.echonet_transport, settings)
    try:
        exporter = Exporter(
            transport,
            fetch_timeout_s=settings.fetch_timeout_s,
            max_concurrent_devices=settings.max_concurrent_devices,
            include_process_metrics=settings.include_process_metrics,
        )
    except ExporterError:
        await transport.close()
        raise
    health = HealthWriter(settings.health_path) if settings.health_path else None

    try:
        await exporter.start(discovery_timeout_s=settings.discovery_timeout_s)
        await run_loop(
            exporter=exporter,
            poll_interval_s=settings.poll_interval_s,
            shutdown_event=shutdown_event,
            textfile_path=settings.textfile_path or None,
            health=health,
        )
    finally:
        await exporter.close()


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the exporter daemon."""
    try:
        asyncio.run(async_main())
    except ExporterError:
        logger.critical("Exporter failed to start", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
