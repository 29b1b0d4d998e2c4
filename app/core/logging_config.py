"""
Structured logging configuration for the API and worker processes.

Every process (API, scraper, matcher, tailor, celery beat) calls setup_logging()
once at boot. Worker log lines carry the campaign/job identifiers needed to
replay a failed item by hand.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from pythonjsonlogger import jsonlogger


class PipelineJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps every record with the emitting process role.
    """

    def __init__(self, *args, worker_role: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.worker_role = worker_role

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['pid'] = os.getpid()

        if self.worker_role:
            log_record['worker_role'] = self.worker_role

        # Add line number for errors/warnings
        if record.levelno >= logging.WARNING:
            log_record['line'] = record.lineno
            log_record['pathname'] = record.pathname


def setup_logging(log_level: str = "INFO", json_logs: bool = True, worker_role: Optional[str] = None) -> None:
    """
    Configure structured logging for the current process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to use JSON formatting (True for production, False for development)
        worker_role: Optional role name (scraper, matcher, tailor, api) added to each record
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)

    if json_logs:
        formatter = PipelineJsonFormatter(
            '%(timestamp)s %(level)s %(logger)s %(module)s %(funcName)s %(message)s',
            worker_role=worker_role,
        )
    else:
        prefix = f"[{worker_role}] " if worker_role else ""
        formatter = logging.Formatter(
            prefix + '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler.setFormatter(formatter)

    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.addHandler(console_handler)

    # Set specific log levels for noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("kombu").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)
