"""
Exporter context: owns the transport, device set, poller and metric sink.

Replaces process-wide singletons with one explicitly constructed object
that is started (discovery), polled per scrape, and closed at shutdown::

    exporter = Exporter(transport)
    await exporter.start(discovery_timeout_s=5.0)
    text = await exporter.poll_and_export()
    await exporter.close()

Constructing an :class:`Exporter` validates the gauge table against the
class rule table, so a configuration mismatch fails before anything is
served.

CHANGELOG:
- 2026-10-16: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from exporter.src.classes import DEFAULT_REGISTRY, ClassDecoderRegistry
from exporter.src.discovery import DeviceSet, discover_devices
from exporter.src.metrics import GAUGES, GaugeDef, MetricSink
from exporter.src.poller import (
    DEFAULT_FETCH_TIMEOUT_S,
    DEFAULT_MAX_CONCURRENT_DEVICES,
    DevicePoller,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from exporter.src.models import MetricSample
    from exporter.src.transport import Transport

logger = logging.getLogger(__name__)


class Exporter:
    """Explicit context object wiring discovery, polling and the sink.

    Args:
        transport: Device transport collaborator.
        registry: Class rule table.
        gauges: Gauge declarations.
        fetch_timeout_s: Timeout per property read.
        max_concurrent_devices: Devices polled at the same time.
        include_process_metrics: Export process/platform collectors too.

    Raises:
        ConfigurationError: If the gauge and rule tables disagree.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        registry: ClassDecoderRegistry = DEFAULT_REGISTRY,
        gauges: Iterable[GaugeDef] = GAUGES,
        fetch_timeout_s: float | None = DEFAULT_FETCH_TIMEOUT_S,
        max_concurrent_devices: int = DEFAULT_MAX_CONCURRENT_DEVICES,
        include_process_metrics: bool = False,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self.sink = MetricSink(
            gauges,
            registry=registry,
            include_process_metrics=include_process_metrics,
        )
        self.devices = DeviceSet()
        self.poller = DevicePoller(
            transport,
            registry=registry,
            fetch_timeout_s=fetch_timeout_s,
            max_concurrent_devices=max_concurrent_devices,
        )
        self.last_sample_count: int = 0

    async def start(self, *, discovery_timeout_s: float) -> int:
        """Run the discovery window and return the number of known devices."""
        return await discover_devices(
            self._transport,
            self.devices,
            self._registry,
            timeout_s=discovery_timeout_s,
        )

    async def poll(self) -> list[MetricSample]:
        """Poll every known device once and return the samples."""
        samples = await self.poller.poll_all(self.devices.snapshot())
        self.last_sample_count = len(samples)
        return samples

    async def poll_and_export(self) -> str:
        """Poll all devices, apply the samples and return the exposition text.

        Gauges of devices or properties that failed this cycle keep their
        previous value.
        """
        samples = await self.poll()
        logger.info(
            "Poll cycle produced %d sample(s) from %d device(s)",
            len(samples),
            len(self.devices),
        )
        return self.sink.apply(samples)

    async def close(self) -> None:
        """Close the transport."""
        logger.info("Shutting down")
        await self._transport.close()
        logger.info("Closed")
