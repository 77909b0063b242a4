"""Structured TSKV (key=value) logging for the webhook delivery service."""
from __future__ import annotations

import logging
import sys

import structlog

# Keys whose values must never reach the log stream.
REDACTED_KEYS = frozenset({"secret", "signature", "authorization"})
REDACTED_VALUE = "***"


def _sanitize_string(value: str) -> str:
    """Escape control characters so the log entry stays on a single line."""
    return (
        value.replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def redact_secrets_processor(logger, method_name, event_dict):
    """Mask destination secrets and signatures if a caller passes them in."""
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = REDACTED_VALUE
    return event_dict


def replace_newlines_processor(logger, method_name, event_dict):
    """
    Replace newlines in string values with \\n.

    Must run after format_exc_info so formatted tracebacks are flattened too.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _sanitize_string(value)
        elif isinstance(value, (list, tuple)):
            event_dict[key] = [
                _sanitize_string(item) if isinstance(item, str) else item
                for item in value
            ]
        elif isinstance(value, dict):
            event_dict[key] = {
                k: _sanitize_string(v) if isinstance(v, str) else v
                for k, v in value.items()
            }
    return event_dict


class SingleLineFormatter(logging.Formatter):
    """Formatter that ensures output is always on a single line."""

    def format(self, record):
        message = super().format(record)
        return message.replace("\n", "\\n").replace("\r", "\\r")


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog for TSKV output suitable for Grafana/Loki/Alloy."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(SingleLineFormatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # aiohttp access and client logs go through the root handler
    for name in ("aiohttp.access", "aiohttp.client"):
        aiohttp_logger = logging.getLogger(name)
        aiohttp_logger.setLevel(level)
        aiohttp_logger.propagate = True
        aiohttp_logger.handlers = []

    # Format: timestamp=... level=info logger=webhook_delivery.services.retry event='webhook_run exhausted' destination_id=...
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets_processor,
            replace_newlines_processor,
            structlog.processors.KeyValueRenderer(
                key_order=["timestamp", "level", "logger", "event", "message"],
                drop_missing=True,
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
