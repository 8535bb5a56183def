"""
Structured logging setup.

All modules log through ``structlog.get_logger(__name__)``; this module only
decides how those events are rendered.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        json: Render events as JSON lines instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def log_step(
    step_name: str,
    ms: float,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a pipeline step with timing.

    Args:
        step_name: Name of the step (e.g., "retrieve_context", "ingest_summary")
        ms: Duration in milliseconds
        extra: Optional extra fields to log
    """
    fields = {"step": step_name, "duration_ms": round(ms, 2)}
    if extra:
        fields.update(extra)
    structlog.get_logger(__name__).info("step_executed", **fields)
