"""
Unit tests for the transport loader.

Tests verify:
- A "module:factory" reference is imported and the factory called with settings.
- Malformed references, missing modules, missing or non-callable attributes
  and failing factories raise TransportLoadError.

CHANGELOG:
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

import sys
import types

import pytest
from exporter.src.errors import TransportError, TransportLoadError
from exporter.src.transport import load_transport


@pytest.fixture()
def transport_module(monkeypatch: pytest.MonkeyPatch, fake_transport):
    """Register an importable module exposing transport factories."""
    module = types.ModuleType("fake_echonet_transport")
    received: list[object] = []

    def create(settings: object) -> object:
        received.append(settings)
        return fake_transport()

    def broken(settings: object) -> object:
        raise OSError("cannot bind multicast socket")

    module.create = create  # type: ignore[attr-defined]
    module.broken = broken  # type: ignore[attr-defined]
    module.not_callable = 42  # type: ignore[attr-defined]
    module.received = received  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "fake_echonet_transport", module)
    return module


class TestLoadTransport:
    """load_transport resolves and calls the factory."""

    def test_factory_called_with_settings(self, transport_module) -> None:
        settings = object()

        transport = load_transport("fake_echonet_transport:create", settings)

        assert transport_module.received == [settings]
        assert hasattr(transport, "fetch_property")

    @pytest.mark.parametrize(
        "reference",
        ["fake_echonet_transport", ":create", "fake_echonet_transport:", ""],
    )
    def test_malformed_reference(self, reference: str) -> None:
        with pytest.raises(TransportLoadError, match="must look like"):
            load_transport(reference)

    def test_missing_module(self) -> None:
        with pytest.raises(TransportLoadError, match="Could not import"):
            load_transport("no_such_transport_module_xyz:create")

    @pytest.mark.parametrize("attr", ["missing", "not_callable"])
    def test_missing_or_non_callable_factory(self, transport_module, attr: str) -> None:
        with pytest.raises(TransportLoadError, match="callable transport factory"):
            load_transport(f"fake_echonet_transport:{attr}")

    def test_failing_factory(self, transport_module) -> None:
        with pytest.raises(TransportLoadError, match="cannot bind") as exc_info:
            load_transport("fake_echonet_transport:broken")
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_load_error_is_transport_error(self) -> None:
        assert issubclass(TransportLoadError, TransportError)
