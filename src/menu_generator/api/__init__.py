"""HTTP boundary for menu extraction and export."""

from .app import create_app

__all__ = ["create_app"]
