"""
ECHONET Lite metrics exporter package.

Discovers ECHONET Lite devices through a pluggable transport, decodes their
energy, water and climate properties, and republishes the readings as
labelled Prometheus gauges.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""
