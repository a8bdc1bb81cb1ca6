"""Single-line JSON logging for the function runtime."""
import os
import json
import logging
from datetime import datetime, timezone


EXTRA_FIELDS = ('action', 'request_id', 'status', 'user_id')

_configured = False


class JSONFormatter(logging.Formatter):
    """Emits each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'ts': datetime.now(timezone.utc).isoformat(timespec='milliseconds'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging() -> None:
    """Install the JSON formatter on the root logger once per container."""
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    # Function runtimes pre-install a plain handler; replace it
    root.handlers = [handler]

    _configured = True
