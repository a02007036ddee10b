"""
Async device poller: property fetch, decode and scale for every known device.

For each device the poller looks up the class's rules, reads every coded
multiplier property once, then evaluates the rules in declared order and
turns each decoded reading into :class:`~exporter.src.models.MetricSample`
records.  Designed to be robust:

- A failed fetch (``None``, exception or timeout) skips only that rule.
- A malformed buffer skips only that rule.
- A failed multiplier read falls back to multiplier 1; dependent values
  are still reported.
- Unknown device classes produce no samples.
- No retries: the next poll cycle tries again.

Devices are polled concurrently up to ``max_concurrent_devices``; the
returned samples are always ordered by device (discovery order), then by
rule.

CHANGELOG:
- 2026-10-16: Bound concurrent device polls with a semaphore
- 2026-10-15: Fetch each coded multiplier once per device per cycle
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from exporter.src import codec
from exporter.src.classes import DEFAULT_REGISTRY, ClassDecoderRegistry, MetricRule
from exporter.src.models import Device, MetricSample
from exporter.src.scaling import CodedMultiplier, resolve

if TYPE_CHECKING:
    from exporter.src.transport import Transport

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_FETCH_TIMEOUT_S: float = 5.0
"""Upper bound for a single property read."""

DEFAULT_MAX_CONCURRENT_DEVICES: int = 4
"""Devices polled at the same time."""


class DevicePoller:
    """Polls devices through a transport and builds metric samples.

    Args:
        transport: Property fetch primitive (see :class:`Transport`).
        registry: Class rule table; defaults to the built-in one.
        fetch_timeout_s: Timeout per property read.  ``None`` leaves
            timeouts to the transport.
        max_concurrent_devices: Upper bound for devices polled at once.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        registry: ClassDecoderRegistry = DEFAULT_REGISTRY,
        fetch_timeout_s: float | None = DEFAULT_FETCH_TIMEOUT_S,
        max_concurrent_devices: int = DEFAULT_MAX_CONCURRENT_DEVICES,
    ) -> None:
        if max_concurrent_devices < 1:
            raise ValueError("max_concurrent_devices must be >= 1")
        self._transport = transport
        self._registry = registry
        self._fetch_timeout_s = fetch_timeout_s
        self._max_concurrent_devices = max_concurrent_devices

    @property
    def registry(self) -> ClassDecoderRegistry:
        return self._registry

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def poll_all(self, devices: Iterable[Device]) -> list[MetricSample]:
        """Poll every device and return all samples of this cycle.

        Args:
            devices: Devices in discovery order.

        Returns:
            Samples ordered by device, then by rule.  Never raises for
            device or data errors.
        """
        semaphore = asyncio.Semaphore(self._max_concurrent_devices)

        async def _bounded(device: Device) -> list[MetricSample]:
            async with semaphore:
                return await self._poll_device_safely(device)

        per_device = await asyncio.gather(*(_bounded(d) for d in devices))
        return [sample for samples in per_device for sample in samples]

    async def poll_device(self, device: Device) -> list[MetricSample]:
        """Evaluate every rule of *device*'s class.

        Multiplier properties are read first (once each) and reused by all
        rules that reference them.
        """
        rules = self._registry.rules_for(device.group, device.cls)
        if not rules:
            logger.debug(
                "No rules for group: %s, class: %s at %s, skipping",
                device.group_name,
                device.class_name,
                device.address,
            )
            return []

        logger.info(
            "Collecting metrics from [%s] - group: %s, class: %s",
            device.address,
            device.group_name,
            device.class_name,
        )

        coded_lookup = await self._resolve_multipliers(device, rules)

        samples: list[MetricSample] = []
        for rule in rules:
            buffer = await self._fetch(device, rule.epc)
            if buffer is None:
                continue
            samples.extend(self._evaluate(device, rule, buffer, coded_lookup))
        return samples

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    async def _poll_device_safely(self, device: Device) -> list[MetricSample]:
        try:
            return await self.poll_device(device)
        except Exception:
            logger.warning(
                "Unexpected error while polling %s (%s)",
                device.address,
                device.class_name,
                exc_info=True,
            )
            return []

    async def _resolve_multipliers(
        self,
        device: Device,
        rules: Iterable[MetricRule],
    ) -> dict[int, int | None]:
        """Read every distinct coded multiplier property of *rules*.

        Returns:
            Mapping of multiplier EPC to its unit code, or ``None`` when the
            read failed or the buffer was malformed (multiplier 1).
        """
        lookup: dict[int, int | None] = {}
        for rule in rules:
            if not isinstance(rule.scale, CodedMultiplier):
                continue
            epc = rule.scale.epc
            if epc in lookup:
                continue

            buffer = await self._fetch(device, epc)
            if buffer is None or not codec.is_well_formed(buffer, codec.UINT8):
                logger.warning(
                    "Unit property 0x%02X unavailable for %s, using multiplier 1",
                    epc,
                    device.address,
                )
                lookup[epc] = None
                continue
            lookup[epc] = codec.decode(buffer, codec.UINT8)
        return lookup

    async def _fetch(self, device: Device, epc: int) -> bytes | None:
        """Read one property; ``None`` on any transport failure or timeout."""
        try:
            call = self._transport.fetch_property(device.address, device.class_code, epc)
            if self._fetch_timeout_s is None:
                result = await call
            else:
                result = await asyncio.wait_for(call, timeout=self._fetch_timeout_s)
        except TimeoutError:
            logger.warning(
                "Timed out reading EPC 0x%02X from %s after %.1fs",
                epc,
                device.address,
                self._fetch_timeout_s,
            )
            return None
        except Exception:
            logger.warning(
                "Failed to read EPC 0x%02X from %s",
                epc,
                device.address,
                exc_info=True,
            )
            return None

        if result is None:
            logger.warning("No data for EPC 0x%02X from %s", epc, device.address)
            return None
        return bytes(result)

    def _evaluate(
        self,
        device: Device,
        rule: MetricRule,
        buffer: bytes,
        coded_lookup: dict[int, int | None],
    ) -> list[MetricSample]:
        """Decode and scale one rule's buffer into zero or more samples."""
        if rule.encoding.array:
            samples = []
            for index, raw in enumerate(codec.decode_array(buffer, rule.encoding)):
                if raw is None:
                    continue
                samples.append(
                    self._sample(
                        device,
                        rule,
                        _scaled(rule, raw, coded_lookup),
                        circuit=index + 1,
                    )
                )
            return samples

        if not codec.is_well_formed(buffer, rule.encoding):
            logger.warning(
                "Skipping %s for %s: malformed EPC 0x%02X buffer %s",
                rule.metric,
                device.address,
                rule.epc,
                buffer.hex(),
            )
            return []

        raw = codec.decode(buffer, rule.encoding)
        if raw in rule.unmeasurable:
            logger.debug(
                "Skipping %s for %s: device reports unmeasurable (0x%X)",
                rule.metric,
                device.address,
                raw,
            )
            return []

        return [
            self._sample(
                device,
                rule,
                _scaled(rule, raw, coded_lookup),
                location=rule.location,
            )
        ]

    @staticmethod
    def _sample(
        device: Device,
        rule: MetricRule,
        value: float,
        *,
        circuit: int | None = None,
        location: str | None = None,
    ) -> MetricSample:
        return MetricSample(
            metric=rule.metric,
            address=device.address,
            group=device.group_name,
            class_name=device.class_name,
            circuit=circuit,
            location=location,
            value=value,
        )


def _scaled(rule: MetricRule, raw: int, coded_lookup: dict[int, int | None]) -> float:
    value = resolve(raw, rule.scale, coded_lookup)
    if rule.factor != 1:
        value *= rule.factor
    return value
