from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

# Attributes copied from ``extra=`` onto JSON log lines when present.
CONTEXT_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "platform",
    "channel",
    "strategy",
    "bundle_id",
    "update_status",
    "update_bundle_id",
    "event_type",
)

# Our own middleware writes access lines.
_SILENCED_LOGGERS = ("uvicorn.access",)

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update({name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(*, log_level: str, app_env: str) -> None:
    """Install a single root handler: JSON lines in production, text elsewhere."""
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if app_env.lower() == "production" else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO))
    for name in _SILENCED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
