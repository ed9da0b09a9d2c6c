"""Structured logging configuration with correlation IDs and credential redaction."""

import logging
import re
import sys
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

import orjson
import structlog
from structlog.processors import CallsiteParameter

from creative_ai_system.config import get_settings

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")
organization_id_var: ContextVar[str] = ContextVar("organization_id", default="")


class SecretRedactor:
    """Redact provider credentials from log values."""

    # Download URIs for finished video jobs carry the API key as a query param
    KEY_PARAM_PATTERN = re.compile(r"([?&](?:key|token|api_key)=)[^&\s\"']+", re.IGNORECASE)
    FAL_KEY_PATTERN = re.compile(r"\bKey\s+[\w:-]{16,}")
    BEARER_PATTERN = re.compile(r"\bBearer\s+[\w.-]{16,}")
    GOOGLE_KEY_PATTERN = re.compile(r"\bAIza[\w-]{30,}\b")

    @classmethod
    def redact(cls, value: Any) -> Any:
        """Redact secrets from value."""
        if not isinstance(value, str):
            return value

        value = cls.KEY_PARAM_PATTERN.sub(r"\1[REDACTED]", value)
        value = cls.FAL_KEY_PATTERN.sub("Key [REDACTED]", value)
        value = cls.BEARER_PATTERN.sub("Bearer [REDACTED]", value)
        value = cls.GOOGLE_KEY_PATTERN.sub("[API_KEY_REDACTED]", value)

        return value


def add_context_vars(logger, method_name, event_dict):
    """Add context variables to log events."""
    if request_id := request_id_var.get():
        event_dict["request_id"] = request_id
    if user_id := user_id_var.get():
        event_dict["user_id"] = user_id
    if organization_id := organization_id_var.get():
        event_dict["organization_id"] = organization_id
    return event_dict


def redact_sensitive_data(logger, method_name, event_dict):
    """Redact credentials from logs."""
    for key, value in event_dict.items():
        if key in ("timestamp", "level", "logger", "request_id"):
            continue
        if isinstance(value, str):
            event_dict[key] = SecretRedactor.redact(value)
        elif isinstance(value, dict):
            event_dict[key] = {k: SecretRedactor.redact(v) for k, v in value.items()}

    return event_dict


def setup_logging(
    level: str | None = None,
    format: str | None = None,
) -> None:
    """Configure structured logging."""
    settings = get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context_vars,
        redact_sensitive_data,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.extend(
            [
                structlog.processors.CallsiteParameterAdder(
                    parameters=[
                        CallsiteParameter.FILENAME,
                        CallsiteParameter.FUNC_NAME,
                        CallsiteParameter.LINENO,
                    ]
                ),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(serializer=lambda obj, **kw: orjson.dumps(obj, default=str).decode()),
            ]
        )
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class RequestContext:
    """Context manager for request-scoped logging."""

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | None = None,
        organization_id: str | None = None,
    ):
        """Initialize request context."""
        self.request_id = request_id or str(uuid4())
        self.user_id = user_id
        self.organization_id = organization_id
        self.tokens = []

    def __enter__(self):
        """Enter context."""
        self.tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.user_id:
            self.tokens.append((user_id_var, user_id_var.set(self.user_id)))
        if self.organization_id:
            self.tokens.append((organization_id_var, organization_id_var.set(self.organization_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context."""
        for var, token in reversed(self.tokens):
            var.reset(token)
        self.tokens.clear()
        return False
