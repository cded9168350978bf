"""HTTP API for aggregated statistics."""

from .app import create_app

__all__ = ["create_app"]
