"""
Device transport interface and loader.

The exporter does not speak ECHONET Lite framing itself.  A transport
implementation (UDP/multicast, a vendor gateway, a replay file, ...) is
plugged in through the :class:`Transport` protocol and selected at startup
with a ``"package.module:factory"`` reference.

CHANGELOG:
- 2026-10-15: Add load_transport for module:factory references
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from exporter.src.classes import ClassCode
from exporter.src.errors import TransportLoadError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def discover(self) -> AsyncIterator[tuple[str, ClassCode]]:
        """Yield ``(address, (group, class))`` pairs as devices announce themselves."""

    async def fetch_property(
        self,
        address: str,
        class_code: ClassCode,
        epc: int,
    ) -> bytes | None:
        """Read one property; return its raw bytes, or None when unavailable."""

    async def close(self) -> None:
        """Release sockets and other resources."""


def load_transport(reference: str, settings: Any = None) -> Transport:
    """Build a transport from a ``"module:factory"`` reference.

    The factory is called with the exporter settings as its only argument
    so it can read its own options (e.g. ``echonet_netif``).

    Raises:
        TransportLoadError: If the reference is malformed, the module or
            attribute cannot be found, or the factory raises.
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise TransportLoadError(
            "Transport reference must look like 'package.module:factory', "
            f"got '{reference}'"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise TransportLoadError(
            f"Could not import transport module '{module_name}': {exc}"
        ) from exc

    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise TransportLoadError(
            f"'{reference}' does not name a callable transport factory"
        )

    try:
        transport = factory(settings)
    except Exception as exc:
        raise TransportLoadError(
            f"Transport factory '{reference}' failed: {exc}"
        ) from exc

    logger.info("Loaded transport %s from %s", type(transport).__name__, reference)
    return transport
