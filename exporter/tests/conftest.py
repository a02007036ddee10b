"""
Shared test fixtures for exporter tests.

Provides environment variable fixtures for ExporterSettings configuration
tests and an in-memory transport that serves canned property buffers.
All exporter env vars are cleaned before each test to ensure isolation.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

# All ExporterSettings environment variable names, used for cleanup.
_ALL_EXPORTER_ENV_VARS = (
    "ECHONET_TRANSPORT",
    "ECHONET_NETIF",
    "DISCOVERY_TIMEOUT_S",
    "POLL_INTERVAL_S",
    "FETCH_TIMEOUT_S",
    "MAX_CONCURRENT_DEVICES",
    "TEXTFILE_PATH",
    "HEALTH_PATH",
    "INCLUDE_PROCESS_METRICS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_exporter_env(monkeypatch: pytest.MonkeyPatch, tmp_path: str) -> None:
    """Remove all exporter env vars and isolate from .env files before each test."""
    for var in _ALL_EXPORTER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required and optional environment variables for ExporterSettings."""
    env = {
        "ECHONET_TRANSPORT": "mytransport.udp:create",
        "ECHONET_NETIF": "10.255.1.139",
        "DISCOVERY_TIMEOUT_S": "7.5",
        "POLL_INTERVAL_S": "15",
        "FETCH_TIMEOUT_S": "2.0",
        "MAX_CONCURRENT_DEVICES": "8",
        "TEXTFILE_PATH": "/var/lib/node_exporter/echonet.prom",
        "HEALTH_PATH": "/data/health.json",
        "INCLUDE_PROCESS_METRICS": "true",
        "LOG_LEVEL": "debug",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {"ECHONET_TRANSPORT": "mytransport.udp:create"}
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


# ---------------------------------------------------------------------------
# In-memory transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """Transport double serving canned buffers keyed by ``(address, epc)``.

    A response may be ``bytes``, ``None`` (device returned nothing) or an
    exception instance, which is raised from ``fetch_property``.
    """

    def __init__(
        self,
        responses: dict[tuple[str, int], object] | None = None,
        announcements: list[tuple[str, tuple[int, int]]] | None = None,
        *,
        fetch_delay_s: float = 0.0,
        endless_discovery: bool = False,
    ) -> None:
        self.responses = responses or {}
        self.announcements = announcements or []
        self.fetch_delay_s = fetch_delay_s
        self.endless_discovery = endless_discovery
        self.calls: list[tuple[str, tuple[int, int], int]] = []
        self.closed = False

    async def discover(self) -> AsyncIterator[tuple[str, tuple[int, int]]]:
        for announcement in self.announcements:
            yield announcement
        while self.endless_discovery:
            await asyncio.sleep(0.01)

    async def fetch_property(
        self, address: str, class_code: tuple[int, int], epc: int
    ) -> bytes | None:
        self.calls.append((address, class_code, epc))
        if self.fetch_delay_s:
            await asyncio.sleep(self.fetch_delay_s)
        response = self.responses.get((address, epc))
        if isinstance(response, Exception):
            raise response
        return response  # type: ignore[return-value]

    async def close(self) -> None:
        self.closed = True

    def epcs_fetched(self, address: str) -> list[int]:
        return [epc for addr, _, epc in self.calls if addr == address]


@pytest.fixture()
def fake_transport() -> type[FakeTransport]:
    """Return the FakeTransport class so tests can build instances."""
    return FakeTransport
