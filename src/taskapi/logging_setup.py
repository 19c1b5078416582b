from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
        "process", "message", "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Structured extras passed as logger.info("event", extra={...})
        for k, v in record.__dict__.items():
            if k in _RECORD_ATTRS:
                continue
            payload[k] = v

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# PUBLIC_INTERFACE
def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """
    Configure the root logger to emit one JSON object per line on stderr and,
    when `log_dir` is given, to a rotating `taskapi.jsonl` file in it.
    """
    level = level.upper()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()  # avoids duplicate handlers during reload

    fmt = JsonFormatter()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / "taskapi.jsonl",
            maxBytes=10_000_000,  # 10MB
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    # Access logging is done by AccessLogMiddleware
    logging.getLogger("uvicorn.access").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.error").setLevel(level)
