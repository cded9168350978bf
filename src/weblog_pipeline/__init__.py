"""Incremental web access-log ingestion and analytics."""

__version__ = "0.1.0"
