"""HTTP surface."""

from .main import create_app, start_server

__all__ = ["create_app", "start_server"]
