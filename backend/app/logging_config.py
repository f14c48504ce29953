"""
Logging configuration.

- Development: human-readable single-line format
- Production: JSON lines (log aggregator compatible)
- Level: LOG_LEVEL setting, DEBUG in development and INFO otherwise
"""
import json
import logging
import sys
from datetime import datetime, timezone

from app.config import Settings

_EXTRA_FIELDS = ("method", "path", "status", "sprint_draft_id", "project_id", "package_id", "task_id")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%H:%M:%S")
        extras = " ".join(
            f"{key}={getattr(record, key)}" for key in _EXTRA_FIELDS if getattr(record, key, None) is not None
        )
        line = f"{ts} {record.levelname:<8} {record.name}: {record.getMessage()}"
        if extras:
            line = f"{line} [{extras}]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(settings: Settings) -> None:
    is_production = settings.app_env.lower() == "production"
    level_name = settings.log_level.upper() or ("INFO" if is_production else "DEBUG")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_production else ReadableFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # SQL echo and HTTP client chatter stay quiet unless explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
