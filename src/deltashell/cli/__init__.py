"""Command line interface for deltashell."""

from .app import app

__all__ = ["app"]
