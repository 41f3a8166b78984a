"""Unified logging configuration for the workflow service.

Named loggers write to ``LOG_DIR/<name>.log`` and to the console. Run-scoped
code wraps a logger in ``RunLoggerAdapter`` so every line carries the run id.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, MutableMapping, Tuple

# Log directory: configurable via LOG_DIR env var for Docker
LOG_DIR = Path(os.getenv("LOG_DIR", str(Path(__file__).parent.parent / "logs")))
LOG_DIR.mkdir(exist_ok=True)

LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

# Prevent duplicate handlers
_configured_loggers: set[str] = set()


def setup_logger(name: str, filename: str) -> logging.Logger:
    """Attach file + console handlers to a named logger (idempotent).

    Args:
        name: Logger name (e.g., 'sse', 'worker', 'api')
        filename: Log file name under LOG_DIR (e.g., 'sse.log')
    """
    if name in _configured_loggers:
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL)
    logger.propagate = False

    fh = logging.FileHandler(LOG_DIR / filename, encoding="utf-8")
    fh.setLevel(LOG_LEVEL)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
    ))

    sh = logging.StreamHandler()
    sh.setLevel(LOG_LEVEL)
    sh.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(message)s"))

    logger.addHandler(fh)
    logger.addHandler(sh)

    _configured_loggers.add(name)
    return logger


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with ``[run <id>]``."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[run {self.extra['run_id']}] {msg}", kwargs


def run_logger(logger: logging.Logger, run_id: str) -> RunLoggerAdapter:
    return RunLoggerAdapter(logger, {"run_id": run_id or "-"})


def get_sse_logger() -> logging.Logger:
    """Logger for the event bus and SSE endpoints (FastAPI side)."""
    return setup_logger("sse", "sse.log")


def get_worker_logger() -> logging.Logger:
    """Logger for Temporal activities and worker-side event pushes."""
    return setup_logger("worker", "worker.log")


def get_api_logger() -> logging.Logger:
    """Logger for API requests."""
    return setup_logger("api", "api.log")
