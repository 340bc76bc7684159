"""
Structured Logging Setup

DESIGN DECISION: Every component logs through structlog as JSON lines
(ISO timestamp, level, logger name), routed through stdlib logging.
Nothing is configured at import time; the application calls
`configure_logging` once at startup (see `create_app_components`).
"""

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger at the given level."""
    log_level = getattr(logging, level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=log_level)
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(log_level)
