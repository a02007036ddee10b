"""
Data models for discovered devices and decoded metric samples.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from exporter.src.classes import ClassCode, class_name, group_name


@dataclass(frozen=True, slots=True)
class Device:
    """A device object discovered on the network.

    Identity is the ``(address, class_code)`` pair; one node announcing
    several device objects yields several devices.

    Attributes:
        address: Transport-level endpoint identifier (usually an IP address).
        class_code: ``(group code, class code)`` pair.
    """

    address: str
    class_code: ClassCode

    @property
    def group(self) -> int:
        return self.class_code[0]

    @property
    def cls(self) -> int:
        return self.class_code[1]

    @property
    def group_name(self) -> str:
        return group_name(self.group)

    @property
    def class_name(self) -> str:
        return class_name(self.class_code)


class MetricSample(BaseModel):
    """A single decoded reading ready to be written to a gauge.

    Samples are produced fresh each poll cycle and never mutated.  The
    ``(metric, address, circuit, location)`` tuple is the series identity:
    two samples with the same identity overwrite each other in the sink.

    Attributes:
        metric: Gauge name.
        address: Device address.
        group: Display name of the device group.
        class_name: Display name of the device class.
        circuit: 1-based circuit index for array properties.
        location: Location tag (e.g. ``"indoor"``) for located properties.
        value: Scaled value in the metric's unit.
    """

    model_config = ConfigDict(frozen=True)

    metric: str
    address: str
    group: str
    class_name: str
    circuit: int | None = None
    location: str | None = None
    value: float

    @property
    def identity(self) -> tuple[str, str, int | None, str | None]:
        return (self.metric, self.address, self.circuit, self.location)
