"""
Logging utilities for the request validator.

Request bodies routinely carry credentials (the classic case being a
``password`` field validated with ``min:8``), so anything derived from a body
goes through ``redact_sensitive_data`` before it reaches a log record.

Example:
    from request_validator.utils.logging_utils import redact_sensitive_data
    safe = redact_sensitive_data({'password': 'abc', 'user': 'bob'})
    # safe == {'password': '***REDACTED***', 'user': 'bob'}
"""

import logging
import json
from datetime import datetime, timezone

SENSITIVE_KEYS = {
    'password', 'password_confirmation', 'api_key', 'token', 'secret',
    'access_token', 'refresh_token', 'key', 'db_password',
}

REDACTED = '***REDACTED***'

# Attributes present on every LogRecord; anything else came in through ``extra=``.
_RESERVED_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}

def redact_sensitive_data(obj):
    """
    Recursively redacts sensitive fields in dicts/lists.
    Keys matched (case-insensitive): see SENSITIVE_KEYS.
    """
    if isinstance(obj, dict):
        return {
            k: (REDACTED if str(k).lower() in SENSITIVE_KEYS else redact_sensitive_data(v))
            for k, v in obj.items()
        }
    elif isinstance(obj, list):
        return [redact_sensitive_data(i) for i in obj]
    else:
        return obj

class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON with standard fields.
    """
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_record:
                log_record[key] = redact_sensitive_data(value)
        return json.dumps(log_record, default=str)

def setup_json_logging(level=logging.INFO, output='stdout', file_path=None):
    """
    Set up structured JSON logging for the app.
    Args:
        level: Logging level (default: INFO)
        output: 'stdout' or 'file'
        file_path: Path to log file if output is 'file'
    """
    logger = logging.getLogger()
    logger.setLevel(level)
    # Remove existing handlers
    for h in list(logger.handlers):
        logger.removeHandler(h)
    if output == 'file' and file_path:
        handler = logging.FileHandler(file_path)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    return logger
