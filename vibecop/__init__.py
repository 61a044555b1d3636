"""Telemetry building blocks and a terminal dashboard for the vibecop permission daemon."""

__version__ = "0.1.0"