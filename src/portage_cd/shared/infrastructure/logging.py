"""
Structured logging configuration using structlog.

Provides consistent, structured logging across all modules. Log output goes
to stderr, stdout is reserved for tool output.
"""

import logging
import re
import sys
from typing import Any

import structlog

from portage_cd.shared.infrastructure.config import settings

_REDACTIONS = {
    r"Bearer\s+\S+": "Bearer [TOKEN_REDACTED]",
    r"Basic\s+\S+": "Basic [TOKEN_REDACTED]",
    r"(api[_-]?key|token|password|secret)['\"]?\s*[:=]\s*['\"]?([^'\"\s]+)": r"\1=[REDACTED]",
}


def privacy_redactor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Redact credentials from log events.

    Webhook authorization values and registry tokens can end up in command
    lines and headers, so every string value is scrubbed before rendering.
    """
    if not getattr(settings, "log_redaction_enabled", True):
        return event_dict

    def redact_string(text: str) -> str:
        for pattern, replacement in _REDACTIONS.items():
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
        return text

    def redact(value: Any) -> Any:
        if isinstance(value, str):
            return redact_string(value)
        if isinstance(value, dict):
            return {k: redact(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [redact(v) for v in value]
        return value

    return {k: redact(v) for k, v in event_dict.items()}


def configure_logging(stream: Any = None, level: str | None = None) -> None:
    """
    Configure structlog for the application.

    Sets up:
    - Pretty console output for development
    - JSON output for production
    - Log level from settings (or the explicit ``level`` override)
    """
    stream = stream if stream is not None else sys.stderr

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        privacy_redactor,
    ]

    if settings.is_development:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=stream.isatty() if hasattr(stream, "isatty") else False),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, (level or settings.log_level).upper()),
        force=True,
    )


def is_debug_enabled() -> bool:
    """True when the root logger would emit DEBUG records."""
    return logging.getLogger().isEnabledFor(logging.DEBUG)


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("bundle_create", bundle="artifacts/bundle.tar.gz")
    """
    return structlog.get_logger(name)
