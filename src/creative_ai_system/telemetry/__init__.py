"""Telemetry module: structured logging."""

from .logger import RequestContext, SecretRedactor, get_logger, setup_logging

__all__ = ["RequestContext", "SecretRedactor", "get_logger", "setup_logging"]
