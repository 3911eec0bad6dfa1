import json
import logging
import time

from flask import g, has_request_context, request

QUIET_PATHS = ("/healthz", "/metrics")

# LogRecord attributes copied from ``extra={...}`` when present
CONTEXT_FIELDS = ("upload_id", "stage")


class QuietPathFilter(logging.Filter):
    """Drops records emitted while serving probes and metric scrapes."""

    def filter(self, record):
        return not (has_request_context() and request.path in QUIET_PATHS)


class JsonRequestFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if has_request_context():
            entry.update(_request_fields())

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _request_fields():
    fields = {
        "method": request.method,
        "path": request.path,
        "remote_addr": request.remote_addr,
        "request_id": request.headers.get("X-Request-ID"),
    }
    user = g.get("current_user")
    if user:
        fields["user_id"] = user.get("userId")
    return fields


def setup_logging(app=None):
    level_name = app.config.get("LOG_LEVEL", "INFO") if app is not None else "INFO"
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(JsonRequestFormatter())
    handler.addFilter(QuietPathFilter())

    root = logging.getLogger()
    root.setLevel(level)
    # a reload would otherwise stack handlers
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)

    if app is not None:
        app.logger.handlers = [handler]
        app.logger.setLevel(level)
        app.logger.propagate = False
    return handler
