"""
ECHONET Lite device class rule table -- single source of truth.

Maps a ``(group code, class code)`` pair to the ordered list of
:class:`MetricRule` entries that say which property codes (EPCs) to read
for that device type, how to decode and scale them, and which metric and
label shape each one produces.

Adding a device class means adding one rule list to :data:`CLASS_RULES`;
the poller has no per-class control flow.

References:
    - ECHONET Lite Specification, Appendix: Detailed Requirements for
      ECHONET Device Objects (Release Q)

CHANGELOG:
- 2026-10-16: Reject duplicate metric identities within a class at startup
- 2026-10-15: Add electric water heater and home air conditioner classes
- 2026-10-13: Add solar generation and water flow meter classes
- 2026-10-12: Initial creation with distribution board metering

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from exporter.src.codec import INT8, INT32, UINT8, UINT16, UINT32, PropertyEncoding
from exporter.src.scaling import (
    ENERGY_UNIT_TABLE,
    NO_SCALE,
    WATER_UNIT_TABLE,
    CodedMultiplier,
    FixedMultiplier,
    ScaleRule,
)

ClassCode = tuple[int, int]
"""``(group code, class code)`` pair, e.g. ``(0x02, 0x87)``."""

LABEL_NONE = "none"
LABEL_CIRCUIT = "circuit"
LABEL_LOCATION = "location"


# ---------------------------------------------------------------------------
# Data definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MetricRule:
    """One property-to-metric extraction rule.

    Attributes:
        epc: Property code to read.
        encoding: How the property's bytes are decoded.  Array encodings
            expand into one sample per circuit.
        metric: Gauge name the value is reported under.
        scale: Scale rule applied to the decoded integer.
        location: Location label value (e.g. ``"indoor"``); mutually
            exclusive with array encodings.
        factor: Extra multiplier applied after scaling (unit conversion).
        unmeasurable: Raw scalar values the device uses for "cannot
            measure"; such readings produce no sample.
        description: Free-text description of the property.
    """

    epc: int
    encoding: PropertyEncoding
    metric: str
    scale: ScaleRule = NO_SCALE
    location: str | None = None
    factor: float = 1.0
    unmeasurable: frozenset[int] = field(default_factory=frozenset)
    description: str = ""

    def __post_init__(self) -> None:  # noqa: D105
        if self.encoding.array and self.location is not None:
            msg = (
                f"Rule '{self.metric}' (EPC 0x{self.epc:02X}): "
                "array rules cannot carry a location"
            )
            raise ValueError(msg)

    @property
    def label_kind(self) -> str:
        """Label shape of the samples this rule produces."""
        if self.encoding.array:
            return LABEL_CIRCUIT
        if self.location is not None:
            return LABEL_LOCATION
        return LABEL_NONE

    @property
    def identity(self) -> tuple[str, str | None, bool]:
        """Key that must be unique among the rules of one class."""
        return (self.metric, self.location, self.encoding.array)


# ---------------------------------------------------------------------------
# Power distribution board metering (0x02, 0x87)
# ---------------------------------------------------------------------------

DISTRIBUTION_BOARD: ClassCode = (0x02, 0x87)

_ENERGY_UNIT = CodedMultiplier(epc=0xC2, table=ENERGY_UNIT_TABLE)

_DISTRIBUTION_BOARD_RULES: tuple[MetricRule, ...] = (
    MetricRule(
        epc=0xC0,
        encoding=UINT32,
        metric="power_total_in_kwh",
        scale=_ENERGY_UNIT,
        description="Measured cumulative electric energy, normal direction",
    ),
    MetricRule(
        epc=0xC1,
        encoding=UINT32,
        metric="power_total_out_kwh",
        scale=_ENERGY_UNIT,
        description="Measured cumulative electric energy, reverse direction",
    ),
    MetricRule(
        epc=0xC6,
        encoding=INT32,
        metric="total_power_watts",
        description="Measured instantaneous electric power",
    ),
    MetricRule(
        epc=0xB3,
        encoding=UINT32.as_array(),
        metric="circuit_power_total_kwh",
        scale=_ENERGY_UNIT,
        description="Measured cumulative electric energy list (simplex)",
    ),
    MetricRule(
        epc=0xB7,
        encoding=INT32.as_array(),
        metric="circuit_power_watts",
        description="Measured instantaneous power list (simplex)",
    ),
)

# ---------------------------------------------------------------------------
# Household solar power generation (0x02, 0x79)
# ---------------------------------------------------------------------------

SOLAR_GENERATION: ClassCode = (0x02, 0x79)

_SOLAR_GENERATION_RULES: tuple[MetricRule, ...] = (
    MetricRule(
        epc=0xE0,
        encoding=UINT16,
        metric="power_generating_watts",
        description="Measured instantaneous amount of electricity generated",
    ),
    MetricRule(
        epc=0xE1,
        encoding=UINT32,
        metric="power_generated_kwh",
        scale=FixedMultiplier(0.001),
        description="Measured cumulative amount of electricity generated",
    ),
    MetricRule(
        epc=0xE3,
        encoding=UINT32,
        metric="power_sold_kwh",
        scale=FixedMultiplier(0.001),
        description="Measured cumulative amount of electricity sold",
    ),
)

# ---------------------------------------------------------------------------
# Water flow meter (0x02, 0x81)
# ---------------------------------------------------------------------------

WATER_FLOW_METER: ClassCode = (0x02, 0x81)

_WATER_FLOW_METER_RULES: tuple[MetricRule, ...] = (
    MetricRule(
        epc=0xE0,
        encoding=UINT32,
        metric="water_consumed_liters",
        scale=CodedMultiplier(epc=0xE1, table=WATER_UNIT_TABLE),
        factor=1000.0,  # m3 -> L
        description="Measured cumulative amount of flowing water",
    ),
)

# ---------------------------------------------------------------------------
# Electric water heater (0x02, 0x6B)
# ---------------------------------------------------------------------------

ELECTRIC_WATER_HEATER: ClassCode = (0x02, 0x6B)

_ELECTRIC_WATER_HEATER_RULES: tuple[MetricRule, ...] = (
    MetricRule(
        epc=0xD1,
        encoding=UINT8,
        metric="water_heater_temperature_celsius",
        description="Hot water temperature setting",
    ),
    MetricRule(
        epc=0xE2,
        encoding=UINT16,
        metric="water_heater_tank_capacity_liters",
        description="Tank capacity",
    ),
    MetricRule(
        epc=0xE1,
        encoding=UINT16,
        metric="water_heater_available_liters",
        description="Measured amount of hot water remaining in tank",
    ),
    MetricRule(
        epc=0xE4,
        encoding=UINT16,
        metric="water_heater_used_liters",
        description="Measured amount of hot water used",
    ),
)

# ---------------------------------------------------------------------------
# Home air conditioner (0x01, 0x30)
# ---------------------------------------------------------------------------

HOME_AIR_CONDITIONER: ClassCode = (0x01, 0x30)

_TEMPERATURE_UNMEASURABLE = frozenset({0x7E})

_HOME_AIR_CONDITIONER_RULES: tuple[MetricRule, ...] = (
    MetricRule(
        epc=0xBB,
        encoding=INT8,
        metric="temperature_celsius",
        location="indoor",
        unmeasurable=_TEMPERATURE_UNMEASURABLE,
        description="Measured value of room temperature",
    ),
    MetricRule(
        epc=0xBE,
        encoding=INT8,
        metric="temperature_celsius",
        location="outdoor",
        unmeasurable=_TEMPERATURE_UNMEASURABLE,
        description="Measured outdoor air temperature",
    ),
)

# ---------------------------------------------------------------------------
# Display names
# ---------------------------------------------------------------------------

GROUP_NAMES: Mapping[int, str] = MappingProxyType(
    {
        0x00: "Sensor-related device",
        0x01: "Air conditioner-related device",
        0x02: "Housing/facility-related device",
        0x03: "Cooking/housework-related device",
        0x04: "Health-related device",
        0x05: "Management/control-related device",
        0x06: "AV-related device",
        0x0E: "Profile",
    }
)

CLASS_NAMES: Mapping[ClassCode, str] = MappingProxyType(
    {
        HOME_AIR_CONDITIONER: "Home air conditioner",
        ELECTRIC_WATER_HEATER: "Electric water heater",
        SOLAR_GENERATION: "Household solar power generation",
        WATER_FLOW_METER: "Water flow meter",
        DISTRIBUTION_BOARD: "Power distribution board metering",
        (0x02, 0x88): "Low-voltage smart electric energy meter",
        (0x02, 0x7D): "Storage battery",
        (0x0E, 0xF0): "Node profile",
    }
)


def group_name(group: int) -> str:
    """Return the display name of an ECHONET group code."""
    return GROUP_NAMES.get(group, f"0x{group:02X}")


def class_name(class_code: ClassCode) -> str:
    """Return the display name of an ECHONET ``(group, class)`` pair."""
    group, cls = class_code
    return CLASS_NAMES.get(class_code, f"0x{group:02X}{cls:02X}")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ClassDecoderRegistry:
    """Immutable lookup from device class to its ordered metric rules.

    The table is validated on construction: two rules of the same class
    that would write the same gauge series are rejected.

    Args:
        rules: Mapping of ``(group, class)`` to the class's rule sequence.

    Raises:
        ValueError: If a class declares the same metric identity twice.
    """

    def __init__(self, rules: Mapping[ClassCode, tuple[MetricRule, ...]]) -> None:
        for code, class_rules in rules.items():
            seen: set[tuple[str, str | None, bool]] = set()
            for rule in class_rules:
                if rule.identity in seen:
                    msg = (
                        f"Class {class_name(code)}: metric '{rule.metric}' is "
                        f"declared more than once (EPC 0x{rule.epc:02X})"
                    )
                    raise ValueError(msg)
                seen.add(rule.identity)
        self._rules: Mapping[ClassCode, tuple[MetricRule, ...]] = MappingProxyType(
            {code: tuple(class_rules) for code, class_rules in rules.items()}
        )

    def rules_for(self, group: int, cls: int) -> tuple[MetricRule, ...]:
        """Return the ordered rules for a class, or ``()`` if it is unknown."""
        return self._rules.get((group, cls), ())

    def knows(self, class_code: ClassCode) -> bool:
        """Return True if *class_code* has at least one rule."""
        return bool(self._rules.get(class_code))

    def all_rules(self) -> list[MetricRule]:
        """Every rule of every class, in table order."""
        return [rule for class_rules in self._rules.values() for rule in class_rules]

    def class_codes(self) -> list[ClassCode]:
        return list(self._rules)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

CLASS_RULES: Mapping[ClassCode, tuple[MetricRule, ...]] = MappingProxyType(
    {
        DISTRIBUTION_BOARD: _DISTRIBUTION_BOARD_RULES,
        SOLAR_GENERATION: _SOLAR_GENERATION_RULES,
        WATER_FLOW_METER: _WATER_FLOW_METER_RULES,
        ELECTRIC_WATER_HEATER: _ELECTRIC_WATER_HEATER_RULES,
        HOME_AIR_CONDITIONER: _HOME_AIR_CONDITIONER_RULES,
    }
)
"""Built-in rule lists, keyed by ``(group, class)``."""

DEFAULT_REGISTRY = ClassDecoderRegistry(CLASS_RULES)
"""Registry over :data:`CLASS_RULES`, validated at import time."""
