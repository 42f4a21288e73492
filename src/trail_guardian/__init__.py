"""Trail Guardian - altitude fusion, motion telemetry and trail difficulty scoring."""

__version_date__ = "2026-10-18"
