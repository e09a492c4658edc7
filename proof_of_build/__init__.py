"""Pipeline orchestrator turning uploaded build artifacts into narrated scripts and audio."""

__version__ = "0.1.0"
