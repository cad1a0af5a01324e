"""
Logging setup for the scriptcast API.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries whose INFO output drowns the pipeline logs
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "multipart")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ...)
        log_file: Optional path of a log file, written alongside stdout
        format_string: Custom format for log records
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class JobLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the job it belongs to."""

    def __init__(self, logger: logging.Logger, job_id: str):
        super().__init__(logger, {"job_id": job_id})

    def process(self, msg, kwargs):
        return f"[Job {self.extra['job_id']}] {msg}", kwargs


def get_job_logger(name: str, job_id: str) -> JobLoggerAdapter:
    """Logger for messages about a single job (pipeline stages, failures)."""
    return JobLoggerAdapter(logging.getLogger(name), job_id)
