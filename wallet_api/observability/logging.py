"""
Structured logging for the wallet server
Every record is one JSON object on stdout (and optionally a log file),
stamped with the current request id and, inside a ledger unit of work,
the operation name and the user whose balances it touches
"""
import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Optional
from contextvars import ContextVar
import uuid

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
ledger_context_var: ContextVar[Optional[Dict[str, str]]] = ContextVar('ledger_context', default=None)

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

# Chatty at INFO; only their warnings belong in the wallet log
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        ledger_context = ledger_context_var.get()
        if ledger_context:
            log_data.update(ledger_context)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith('_'):
                log_data[key] = value

        # Decimal balances and datetimes in extras render through str()
        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Setup structured logging

    Args:
        level: Logging level (INFO, DEBUG, WARNING, ERROR)
        log_file: Optional path to log file. If None, logs only go to stdout.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    formatter = StructuredFormatter()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root_logger.level))

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance"""
    return logging.getLogger(name)


def set_request_id(request_id: Optional[str]):
    request_id_var.set(request_id)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def generate_request_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def ledger_context(operation: str, user_id: Optional[str] = None):
    """
    Tag every record logged inside the block with the ledger operation

    Args:
        operation: Ledger operation name (fund, swap, send, manual_<type>)
        user_id: Wallet user the operation acts on, if any
    """
    fields = {"operation": operation}
    if user_id:
        fields["user_id"] = user_id
    token = ledger_context_var.set(fields)
    try:
        yield fields
    finally:
        ledger_context_var.reset(token)


class RequestLogger:
    """Logger bound to one request id"""

    def __init__(self, request_id: str, logger: logging.Logger):
        self.request_id = request_id
        self.logger = logger

    def log(self, level: int, message: str, **extra_fields):
        self.logger.log(level, message, extra=extra_fields)

    def debug(self, message: str, **extra_fields):
        self.log(logging.DEBUG, message, **extra_fields)

    def error(self, message: str, **extra_fields):
        self.log(logging.ERROR, message, **extra_fields)
