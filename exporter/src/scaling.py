"""
Scale rules and unit-multiplier tables for decoded property values.

A decoded property integer is turned into an engineering value by a
:data:`ScaleRule`:

- :data:`NO_SCALE` -- the raw integer is the value.
- :class:`FixedMultiplier` -- a constant decimal multiplier declared in the
  class rule table (e.g. 0.001 kWh for solar cumulative energy).
- :class:`CodedMultiplier` -- the multiplier is itself a device property
  transmitted as a small code that is looked up in a unit table.  The
  multiplier property must be read before any value using it is final.

Every multiplier ``m`` is applied with the same law::

    m < 1   ->  raw / (1 / m)
    m >= 1  ->  raw / m

CHANGELOG:
- 2026-10-13: Separate water volume unit table from energy unit table
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

logger = logging.getLogger(__name__)

DEFAULT_MULTIPLIER: float = 1.0
"""Multiplier used for undefined codes and failed multiplier reads."""


# ---------------------------------------------------------------------------
# Unit tables
# ---------------------------------------------------------------------------

ENERGY_UNIT_TABLE: Mapping[int, float] = MappingProxyType(
    {
        0x00: 1.0,
        0x01: 0.1,
        0x02: 0.01,
        0x03: 0.001,
        0x04: 0.0001,
        0x0A: 10.0,
        0x0B: 100.0,
        0x0C: 1000.0,
        0x0D: 10000.0,
    }
)
"""Unit for cumulative amounts of electric energy (kWh), EPC 0xC2 / 0xE1."""

WATER_UNIT_TABLE: Mapping[int, float] = MappingProxyType(
    {
        0x00: 1.0,
        0x01: 0.1,
        0x02: 0.01,
        0x03: 0.001,
        0x04: 0.0001,
        0x05: 0.00001,
        0x06: 0.000001,
    }
)
"""Unit for cumulative amounts of flowing water (m3), water flow meter EPC 0xE1."""


# ---------------------------------------------------------------------------
# Scale rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NoScale:
    """The raw integer is reported as-is."""


@dataclass(frozen=True, slots=True)
class FixedMultiplier:
    """A constant multiplier declared in the rule table."""

    multiplier: float

    def __post_init__(self) -> None:  # noqa: D105
        if self.multiplier <= 0:
            msg = f"FixedMultiplier must be positive, got {self.multiplier}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class CodedMultiplier:
    """A multiplier read from another property and looked up in *table*.

    Attributes:
        epc: Property code holding the unit code (e.g. 0xC2).
        table: Unit code to decimal multiplier mapping.
    """

    epc: int
    table: Mapping[int, float] = field(hash=False)

    def multiplier_for(self, code: int | None) -> float:
        """Return the multiplier for *code*, falling back to 1."""
        if code is None:
            return DEFAULT_MULTIPLIER
        multiplier = self.table.get(code)
        if multiplier is None:
            logger.warning(
                "Unit code 0x%02X (EPC 0x%02X) is undefined, using multiplier 1",
                code,
                self.epc,
            )
            return DEFAULT_MULTIPLIER
        return multiplier


ScaleRule = NoScale | FixedMultiplier | CodedMultiplier

NO_SCALE = NoScale()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def apply_multiplier(raw: int, multiplier: float) -> float:
    """Apply *multiplier* to *raw* using the two-branch scaling law.

    Sub-unit multipliers divide by their inverse so that ``0.001`` maps a
    raw ``12345`` to exactly ``12.345``.
    """
    if multiplier < 1:
        return raw / (1 / multiplier)
    return raw / multiplier


def resolve(
    raw: int,
    rule: ScaleRule,
    coded_lookup: Mapping[int, int | None] | None = None,
) -> float:
    """Turn a decoded raw integer into a scaled value.

    Args:
        raw: Integer produced by the codec.
        rule: The scale rule declared for the property.
        coded_lookup: Unit codes already read for this device in this
            cycle, keyed by the multiplier property code.  A missing key or
            a ``None`` value (failed read) means multiplier 1.

    Returns:
        The scaled value as a float.
    """
    if isinstance(rule, NoScale):
        return float(raw)
    if isinstance(rule, FixedMultiplier):
        return apply_multiplier(raw, rule.multiplier)
    if isinstance(rule, CodedMultiplier):
        code = (coded_lookup or {}).get(rule.epc)
        return apply_multiplier(raw, rule.multiplier_for(code))
    msg = f"Unsupported scale rule: {rule!r}"
    raise TypeError(msg)
