"""Command line interface for plantag."""

from .main import app, run

__all__ = ["app", "run"]
