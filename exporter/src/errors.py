"""
Domain-specific errors for the ECHONET Lite exporter.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""


class ExporterError(Exception):
    """Base error for the exporter."""


class ConfigurationError(ExporterError):
    """Raised when the class rule table and the gauge table disagree.

    This is a programming/configuration error detected at startup and must
    stop the process before any metric is served.
    """


class TransportError(ExporterError):
    """Base transport error."""


class TransportLoadError(TransportError):
    """Raised when the configured transport factory cannot be imported or built."""
