"""
Device set populated from the transport's discovery feed.

Discovery runs for a bounded window at startup.  Every announced device
object is kept in insertion order, including classes the exporter has no
rules for (they simply produce no metrics).  Devices are never removed
while the process runs.

CHANGELOG:
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from exporter.src.models import Device

if TYPE_CHECKING:
    from exporter.src.classes import ClassCode, ClassDecoderRegistry
    from exporter.src.transport import Transport

logger = logging.getLogger(__name__)


class DeviceSet:
    """Ordered, duplicate-free collection of discovered devices."""

    def __init__(self) -> None:
        self._devices: dict[tuple[str, ClassCode], Device] = {}

    def add(self, device: Device) -> bool:
        """Add *device*; return False if it was already known."""
        key = (device.address, device.class_code)
        if key in self._devices:
            return False
        self._devices[key] = device
        return True

    def snapshot(self) -> list[Device]:
        """Return the devices in discovery order."""
        return list(self._devices.values())

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[Device]:
        return iter(self.snapshot())


async def _consume(
    transport: Transport,
    devices: DeviceSet,
    registry: ClassDecoderRegistry,
) -> None:
    async for address, class_code in transport.discover():
        device = Device(address=address, class_code=tuple(class_code))
        if not devices.add(device):
            continue
        if registry.knows(device.class_code):
            logger.info(
                "Discovered group: %s, class: %s at address %s",
                device.group_name,
                device.class_name,
                device.address,
            )
        else:
            logger.info(
                "Discovered unsupported group: %s, class: %s at address %s (no metrics)",
                device.group_name,
                device.class_name,
                device.address,
            )


async def discover_devices(
    transport: Transport,
    devices: DeviceSet,
    registry: ClassDecoderRegistry,
    *,
    timeout_s: float,
) -> int:
    """Populate *devices* from ``transport.discover()`` for up to *timeout_s*.

    The feed may end on its own (time-bounded discovery) or keep running;
    in the latter case it is cancelled when the window closes.

    Returns:
        Number of devices in the set after discovery.
    """
    logger.info("Starting ECHONET Lite discovery (%.1fs window)", timeout_s)
    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(_consume(transport, devices, registry), timeout=timeout_s)
    logger.info("Stopping ECHONET Lite discovery, %d device(s) known", len(devices))
    return len(devices)
