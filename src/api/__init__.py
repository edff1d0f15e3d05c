"""HTTP API for claim ingestion and retrieval."""

from .app import app, create_app

__all__ = ["app", "create_app"]
