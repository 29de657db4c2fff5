"""Structured logging configuration.

Purpose: JSON logs with a trace id per availability query, so a booking
screen's date change can be followed from fetch to annotated slots.

Pattern: structlog with standard library integration.
"""
import logging
import sys
import uuid

import structlog

from clinic_slots import config


def setup_structured_logging(log_level: str = config.LOG_LEVEL):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper())
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get logger instance with structured logging.

    Args:
        name: Logger name (usually __name__)

    Returns:
        structlog logger
    """
    return structlog.get_logger(name)


def generate_trace_id() -> str:
    """Generate a unique id for one availability query."""
    return f"trc-{uuid.uuid4().hex[:12]}"


class TraceIDMiddleware:
    """WSGI middleware that stamps each response with an X-Trace-ID header."""

    def __init__(self, app):
        self.app = app

    def __call__(self, environ, start_response):
        trace_id = environ.get("HTTP_X_TRACE_ID") or generate_trace_id()
        environ["TRACE_ID"] = trace_id

        def start_response_with_trace(status, headers, exc_info=None):
            headers.append(("X-Trace-ID", trace_id))
            return start_response(status, headers, exc_info)

        return self.app(environ, start_response_with_trace)
