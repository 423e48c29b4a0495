"""
Logging setup shared by the web app, the RQ worker and the maintenance CLI.

Level and format default to LOG_LEVEL / LOG_FORMAT from leadgen.config
("text" or "json"). Records may carry run context through `extra=`
(run_id, stage, lead); both formats include it so every line of one run can
be grepped together.
"""
import json
import logging
import sys
from datetime import datetime, timezone

from leadgen import config

CONTEXT_FIELDS = ('run_id', 'stage', 'lead')

TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'


def _context(record):
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


class TextFormatter(logging.Formatter):
    """Human-readable lines with run context appended as key=value pairs."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    def formatMessage(self, record):
        line = super().formatMessage(record)
        context = _context(record)
        if not context:
            return line
        return line + ' [' + ' '.join(f'{k}={v}' for k, v in context.items()) + ']'


# Client libraries that are chatty at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'botocore',
    'boto3',
    'openai',
    'httpx',
    'gspread',
    'google',
    'rq.worker',
]


def _resolve_level(name):
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(app=None, level=None, fmt=None):
    """
    Install one stderr handler on the root logger. Safe to call repeatedly.

    Args:
        app:   Flask app whose logger should follow the same level
        level: level name overriding LOG_LEVEL (e.g. 'DEBUG' from --verbose)
        fmt:   'text' or 'json', overriding LOG_FORMAT
    """
    resolved = _resolve_level(level or config.LOG_LEVEL or 'INFO')
    fmt = (fmt or config.LOG_FORMAT or 'text').lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(JSONFormatter() if fmt == 'json' else TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolved)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(resolved)
