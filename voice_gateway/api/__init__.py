"""HTTP surface of the voice gateway."""

from .app import create_app

__all__ = ["create_app"]
