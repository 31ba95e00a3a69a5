"""
Structured logging configuration with trace IDs
"""
import logging
import uuid
from typing import Any, Dict
from pythonjsonlogger.json import JsonFormatter
import contextvars

from showtime_booking.core.clock import utcnow
from showtime_booking.core.config import settings

# Context variable to store trace ID across async calls
trace_id_var = contextvars.ContextVar('trace_id', default=None)

# Fields passed through ``extra=`` that are copied onto the JSON record
CONTEXT_FIELDS = ('user_id', 'show_id', 'booking_id', 'seat_numbers', 'outcome', 'duration_ms')


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with trace ID and additional fields"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = utcnow().isoformat()
        log_record['level'] = record.levelname

        trace_id = trace_id_var.get()
        if trace_id:
            log_record['trace_id'] = trace_id

        log_record['service'] = 'showtime-booking'
        log_record['environment'] = settings.ENVIRONMENT

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)


def setup_logging(level: str = None, json_logs: bool = None, log_file: str = None) -> logging.Logger:
    """Configure structured JSON logging (plain text when LOG_JSON is off)"""
    level = level or settings.LOG_LEVEL
    json_logs = settings.LOG_JSON if json_logs is None else json_logs
    log_file = settings.LOG_FILE if log_file is None else log_file

    if json_logs:
        formatter = CustomJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
    else:
        formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # Reduce noise from libraries
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('stripe').setLevel(logging.WARNING)

    return root_logger


def set_trace_id(trace_id: str):
    """Set trace ID for current context"""
    trace_id_var.set(trace_id)


def generate_trace_id() -> str:
    """Generate a new trace ID"""
    return str(uuid.uuid4())
