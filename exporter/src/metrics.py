"""
Gauge table and metric sink backed by a prometheus_client registry.

:data:`GAUGES` declares every exported gauge with its help text and label
shape.  :class:`MetricSink` registers them in a private
``CollectorRegistry``, cross-checks them against the class rule table at
construction, and applies each poll cycle's samples as last-value-wins
gauge sets.

The rule table and the gauge table must agree exactly: a rule writing to an
undeclared gauge, a gauge with a different label shape, or a gauge no rule
writes to is a :class:`~exporter.src.errors.ConfigurationError` raised
before the first poll.

CHANGELOG:
- 2026-10-16: Guard apply and snapshot with one lock
- 2026-10-15: Validate gauge table against class rules at startup
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from prometheus_client import (
    CollectorRegistry,
    Gauge,
    generate_latest,
    write_to_textfile,
)
from prometheus_client.platform_collector import PlatformCollector
from prometheus_client.process_collector import ProcessCollector

from exporter.src.classes import (
    DEFAULT_REGISTRY,
    LABEL_CIRCUIT,
    LABEL_LOCATION,
    LABEL_NONE,
    ClassDecoderRegistry,
)
from exporter.src.errors import ConfigurationError
from exporter.src.models import MetricSample

logger = logging.getLogger(__name__)

BASE_LABELS: tuple[str, ...] = ("address", "echonet_group", "echonet_class")

_EXTRA_LABELS: dict[str, tuple[str, ...]] = {
    LABEL_NONE: (),
    LABEL_CIRCUIT: ("circuit_id",),
    LABEL_LOCATION: ("location",),
}


@dataclass(frozen=True, slots=True)
class GaugeDef:
    """Declaration of one exported gauge.

    Attributes:
        name: Metric name.
        help: Help text shown in the exposition.
        label_kind: One of ``"none"``, ``"circuit"``, ``"location"``.
    """

    name: str
    help: str
    label_kind: str = LABEL_NONE

    @property
    def label_names(self) -> tuple[str, ...]:
        return BASE_LABELS + _EXTRA_LABELS[self.label_kind]


GAUGES: tuple[GaugeDef, ...] = (
    # Distribution board metering
    GaugeDef("power_total_in_kwh", "cumulative energy bought in kWh"),
    GaugeDef("power_total_out_kwh", "cumulative energy sold in kWh"),
    GaugeDef("total_power_watts", "total power in watts"),
    GaugeDef(
        "circuit_power_total_kwh",
        "circuit cumulative energy in kWh",
        LABEL_CIRCUIT,
    ),
    GaugeDef("circuit_power_watts", "circuit power in watts", LABEL_CIRCUIT),
    # Solar generation
    GaugeDef("power_generating_watts", "solar generation in watts"),
    GaugeDef("power_generated_kwh", "cumulative solar generation in kWh"),
    GaugeDef("power_sold_kwh", "cumulative solar energy sold in kWh"),
    # Water
    GaugeDef("water_consumed_liters", "cumulative water consumption in liters"),
    GaugeDef("water_heater_temperature_celsius", "water heater temperature in celsius"),
    GaugeDef(
        "water_heater_tank_capacity_liters",
        "water heater tank capacity in liters",
    ),
    GaugeDef("water_heater_available_liters", "hot water remaining in liters"),
    GaugeDef("water_heater_used_liters", "hot water used in liters"),
    # Climate
    GaugeDef("temperature_celsius", "temperature in celsius", LABEL_LOCATION),
)
"""Every gauge the exporter publishes."""


# ---------------------------------------------------------------------------
# Startup consistency check
# ---------------------------------------------------------------------------


def validate_tables(
    gauges: Iterable[GaugeDef],
    registry: ClassDecoderRegistry,
) -> None:
    """Cross-check the gauge table against the class rule table.

    Raises:
        ConfigurationError: On duplicate gauge names, rules without a
            gauge, label-shape mismatches, or gauges no rule writes.
    """
    by_name: dict[str, GaugeDef] = {}
    for gauge in gauges:
        if gauge.name in by_name:
            raise ConfigurationError(f"Gauge '{gauge.name}' is declared twice")
        if gauge.label_kind not in _EXTRA_LABELS:
            raise ConfigurationError(
                f"Gauge '{gauge.name}' has unknown label kind '{gauge.label_kind}'"
            )
        by_name[gauge.name] = gauge

    used: set[str] = set()
    for rule in registry.all_rules():
        gauge = by_name.get(rule.metric)
        if gauge is None:
            raise ConfigurationError(
                f"Rule for EPC 0x{rule.epc:02X} writes '{rule.metric}', "
                "which has no registered gauge"
            )
        if gauge.label_kind != rule.label_kind:
            raise ConfigurationError(
                f"Rule for EPC 0x{rule.epc:02X} produces '{rule.label_kind}' "
                f"labels but gauge '{gauge.name}' expects '{gauge.label_kind}'"
            )
        used.add(rule.metric)

    unused = sorted(set(by_name) - used)
    if unused:
        raise ConfigurationError(
            f"Gauges with no producing rule: {', '.join(unused)}"
        )


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------


class MetricSink:
    """Applies metric samples to labelled gauges and renders the exposition.

    Args:
        gauges: Gauge declarations; defaults to :data:`GAUGES`.
        registry: Class rule table the gauges are validated against.
        include_process_metrics: Also register prometheus_client's process
            and platform collectors.

    Raises:
        ConfigurationError: If the gauge and rule tables disagree.
    """

    def __init__(
        self,
        gauges: Iterable[GaugeDef] = GAUGES,
        *,
        registry: ClassDecoderRegistry = DEFAULT_REGISTRY,
        include_process_metrics: bool = False,
    ) -> None:
        gauges = tuple(gauges)
        validate_tables(gauges, registry)

        self._lock = threading.Lock()
        self._registry = CollectorRegistry()
        self._gauges: dict[str, tuple[GaugeDef, Gauge]] = {}
        for gauge_def in gauges:
            gauge = Gauge(
                gauge_def.name,
                gauge_def.help,
                labelnames=gauge_def.label_names,
                registry=self._registry,
            )
            self._gauges[gauge_def.name] = (gauge_def, gauge)

        if include_process_metrics:
            ProcessCollector(registry=self._registry)
            PlatformCollector(registry=self._registry)

        logger.info("Registered %d gauge(s)", len(self._gauges))

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def apply(self, samples: Iterable[MetricSample]) -> str:
        """Set one gauge value per sample and return the exposition text.

        Raises:
            ConfigurationError: If a sample names a gauge that does not exist.
        """
        with self._lock:
            for sample in samples:
                self._set(sample)
            return self._render()

    def snapshot(self) -> str:
        """Return the exposition text without applying anything."""
        with self._lock:
            return self._render()

    def write_textfile(self, path: str) -> None:
        """Atomically write the exposition to *path* (textfile collector format)."""
        with self._lock:
            write_to_textfile(path, self._registry)

    def _set(self, sample: MetricSample) -> None:
        entry = self._gauges.get(sample.metric)
        if entry is None:
            raise ConfigurationError(
                f"No gauge registered for metric '{sample.metric}'"
            )
        gauge_def, gauge = entry

        labels = {
            "address": sample.address,
            "echonet_group": sample.group,
            "echonet_class": sample.class_name,
        }
        if gauge_def.label_kind == LABEL_CIRCUIT:
            labels["circuit_id"] = str(sample.circuit)
        elif gauge_def.label_kind == LABEL_LOCATION:
            labels["location"] = sample.location or ""
        gauge.labels(**labels).set(sample.value)

    def _render(self) -> str:
        return generate_latest(self._registry).decode("utf-8")
