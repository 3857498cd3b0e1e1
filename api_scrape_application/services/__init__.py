"""Process-wide services: log fan-out, record store access and telemetry."""
