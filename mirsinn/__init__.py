"""Mir Sinn daily question pipeline."""

__version__ = "0.1.0"
