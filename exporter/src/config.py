"""
Exporter configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded interface addresses.

CHANGELOG:
- 2026-10-16: Add textfile, health and process metrics options
- 2026-10-12: Initial creation

TODO:
- None
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class ExporterSettings(BaseSettings):
    """ECHONET Lite exporter configuration.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        echonet_transport: ``"package.module:factory"`` reference of the
            device transport.  The factory receives this settings object.
        echonet_netif: Local interface address handed to the transport.
        discovery_timeout_s: Length of the discovery window at startup.
        poll_interval_s: Seconds between poll cycles.
        fetch_timeout_s: Timeout for one property read.
        max_concurrent_devices: Devices polled at the same time.
        textfile_path: When set, the exposition is written atomically to
            this path after every cycle (node_exporter textfile format).
        health_path: When set, a JSON health file is written here.
        include_process_metrics: Export process and platform collectors.
        log_level: Root logger level name.
    """

    echonet_transport: str
    echonet_netif: str = ""
    discovery_timeout_s: float = 5.0
    poll_interval_s: int = 30
    fetch_timeout_s: float = 5.0
    max_concurrent_devices: int = 4
    textfile_path: str = ""
    health_path: str = ""
    include_process_metrics: bool = False
    log_level: str = "INFO"

    @field_validator("echonet_transport")
    @classmethod
    def transport_must_be_reference(cls, v: str) -> str:
        """Validate the transport is a ``module:factory`` reference."""
        module_name, sep, attr = v.partition(":")
        if not sep or not module_name.strip() or not attr.strip():
            raise ValueError(
                "ECHONET_TRANSPORT must look like 'package.module:factory' "
                f"(got: '{v}')"
            )
        return v.strip()

    @field_validator("discovery_timeout_s", "fetch_timeout_s")
    @classmethod
    def timeouts_must_be_positive(cls, v: float) -> float:
        """Validate discovery and fetch timeouts are positive."""
        if v <= 0:
            raise ValueError("Timeouts must be > 0")
        return v

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        """Validate poll interval is at least one second."""
        if v < 1:
            raise ValueError("POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("max_concurrent_devices")
    @classmethod
    def max_concurrent_devices_must_be_valid(cls, v: int) -> int:
        """Validate concurrency is between 1 and 64."""
        if v < 1 or v > 64:
            raise ValueError("MAX_CONCURRENT_DEVICES must be >= 1 and <= 64")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate the log level is a standard logging level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a logging level name (got: '{v}')")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
