"""Logging configuration.

stdlib logging carries the records, structlog shapes them.
"""
import logging
import sys

import structlog


def setup_stdlib_logging(level):
    """Route all records to stdout at the configured level."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    root_logger.addHandler(console_handler)

    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)


def setup_structlog(json_output=False):
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.contextvars.merge_contextvars,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(app):
    """Configure all logging for the application."""
    setup_stdlib_logging(app.config.get('LOG_LEVEL', 'INFO'))
    setup_structlog(json_output=app.config.get('LOG_JSON', False))


def bind_caller(user_id, role):
    """Attach the caller identity to every log event of the current request."""
    structlog.contextvars.bind_contextvars(caller_id=user_id, caller_role=role)


def clear_context():
    structlog.contextvars.clear_contextvars()
