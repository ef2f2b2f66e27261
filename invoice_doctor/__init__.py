"""Settings-driven cleanup for tabular invoice exports."""

__version__ = "0.3.0"
