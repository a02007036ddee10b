"""
Tests for the gauge table and the metric sink.

Verifies the startup cross-check between rules and gauges, label shapes per
label kind, last-value-wins semantics, loud failure on unknown metrics, and
the exposition/textfile output.

CHANGELOG:
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest
from exporter.src.classes import (
    DEFAULT_REGISTRY,
    LABEL_CIRCUIT,
    LABEL_LOCATION,
    ClassDecoderRegistry,
    MetricRule,
)
from exporter.src.codec import UINT16, UINT32
from exporter.src.errors import ConfigurationError
from exporter.src.metrics import GAUGES, GaugeDef, MetricSink, validate_tables
from exporter.src.models import MetricSample

_GROUP = "Housing/facility-related device"
_CLASS = "Power distribution board metering"


def _sample(metric: str, value: float, **kwargs: object) -> MetricSample:
    return MetricSample(
        metric=metric,
        address=kwargs.pop("address", "192.168.1.10"),  # type: ignore[arg-type]
        group=_GROUP,
        class_name=_CLASS,
        value=value,
        **kwargs,  # type: ignore[arg-type]
    )


# ===========================================================================
# Startup validation
# ===========================================================================


class TestValidateTables:
    """Rule table and gauge table must match exactly."""

    def test_builtin_tables_agree(self) -> None:
        validate_tables(GAUGES, DEFAULT_REGISTRY)

    def test_rule_without_gauge_is_fatal(self) -> None:
        gauges = [g for g in GAUGES if g.name != "power_sold_kwh"]
        with pytest.raises(ConfigurationError, match="power_sold_kwh"):
            validate_tables(gauges, DEFAULT_REGISTRY)

    def test_gauge_without_rule_is_fatal(self) -> None:
        gauges = [*GAUGES, GaugeDef("orphan_gauge", "nobody writes this")]
        with pytest.raises(ConfigurationError, match="orphan_gauge"):
            validate_tables(gauges, DEFAULT_REGISTRY)

    def test_duplicate_gauge_is_fatal(self) -> None:
        gauges = [*GAUGES, GaugeDef("total_power_watts", "again")]
        with pytest.raises(ConfigurationError, match="declared twice"):
            validate_tables(gauges, DEFAULT_REGISTRY)

    def test_label_shape_mismatch_is_fatal(self) -> None:
        registry = ClassDecoderRegistry(
            {(0x02, 0x87): (MetricRule(0xB7, UINT32.as_array(), "circuit_w"),)}
        )
        with pytest.raises(ConfigurationError, match="expects 'none'"):
            validate_tables([GaugeDef("circuit_w", "help")], registry)

    def test_sink_construction_validates(self) -> None:
        registry = ClassDecoderRegistry(
            {(0x02, 0x79): (MetricRule(0xE0, UINT16, "unknown_metric"),)}
        )
        with pytest.raises(ConfigurationError):
            MetricSink(GAUGES, registry=registry)


class TestGaugeDef:
    def test_label_names_per_kind(self) -> None:
        assert GaugeDef("a", "h").label_names == (
            "address",
            "echonet_group",
            "echonet_class",
        )
        assert GaugeDef("a", "h", LABEL_CIRCUIT).label_names[-1] == "circuit_id"
        assert GaugeDef("a", "h", LABEL_LOCATION).label_names[-1] == "location"


# ===========================================================================
# Apply
# ===========================================================================


class TestApply:
    """Samples set labelled gauges, last value wins."""

    def test_plain_sample_exposition(self) -> None:
        sink = MetricSink()
        text = sink.apply([_sample("power_total_in_kwh", 5000.0)])
        assert (
            'power_total_in_kwh{address="192.168.1.10",'
            f'echonet_class="{_CLASS}",echonet_group="{_GROUP}"}} 5000.0'
        ) in text

    def test_circuit_label(self) -> None:
        sink = MetricSink()
        text = sink.apply([_sample("circuit_power_watts", 300.0, circuit=2)])
        assert 'circuit_id="2"' in text
        assert "300.0" in text

    def test_location_label(self) -> None:
        sink = MetricSink()
        text = sink.apply(
            [
                _sample("temperature_celsius", 22.0, location="indoor"),
                _sample("temperature_celsius", -3.0, location="outdoor"),
            ]
        )
        assert 'location="indoor"} 22.0' in text
        assert 'location="outdoor"} -3.0' in text

    def test_same_identity_overwrites(self) -> None:
        sink = MetricSink()
        sink.apply([_sample("total_power_watts", 100.0)])
        text = sink.apply(
            [_sample("total_power_watts", 200.0), _sample("total_power_watts", 300.0)]
        )
        lines = [ln for ln in text.splitlines() if ln.startswith("total_power_watts{")]
        assert len(lines) == 1
        assert lines[0].endswith(" 300.0")

    def test_failed_gauge_keeps_previous_value(self) -> None:
        sink = MetricSink()
        sink.apply(
            [
                _sample("total_power_watts", 100.0),
                _sample("power_total_in_kwh", 10.0),
            ]
        )
        text = sink.apply([_sample("power_total_in_kwh", 11.0)])
        assert "total_power_watts{" in text
        assert " 100.0" in text
        assert " 11.0" in text

    def test_unknown_metric_fails_loudly(self) -> None:
        sink = MetricSink()
        with pytest.raises(ConfigurationError, match="no_such_metric"):
            sink.apply([_sample("no_such_metric", 1.0)])

    def test_snapshot_matches_last_apply(self) -> None:
        sink = MetricSink()
        text = sink.apply([_sample("total_power_watts", 42.0)])
        assert sink.snapshot() == text

    def test_sinks_do_not_share_registries(self) -> None:
        first = MetricSink()
        second = MetricSink()
        first.apply([_sample("total_power_watts", 42.0)])
        assert "total_power_watts{" not in second.snapshot()

    def test_process_metrics_optional(self) -> None:
        assert "process_" not in MetricSink().snapshot()
        text = MetricSink(include_process_metrics=True).snapshot()
        assert "python_info" in text


class TestTextfile:
    def test_write_textfile(self, tmp_path: Path) -> None:
        sink = MetricSink()
        sink.apply([_sample("power_sold_kwh", 2.5)])
        path = tmp_path / "echonet.prom"

        sink.write_textfile(str(path))

        content = path.read_text()
        assert "# HELP power_sold_kwh" in content
        assert " 2.5" in content
