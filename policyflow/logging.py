# policyflow/logging.py
"""
Structured logging for PolicyFlow.

Every line is one JSON object: timestamp, level, logger, event name, plus
the keyword fields passed at the call site. Pipelines log raw LLM text
previews, so string fields are clipped to MAX_FIELD_CHARS.

Usage:
    from policyflow.logging import get_logger
    logger = get_logger(__name__)
    logger.info("policy_generated", workflow_steps=6, checklist_items=9)

    case_log = logger.bind(policy_id=policy_id)
    case_log.warning("rules_fetch_failed", error=str(exc))
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE_NAME = "policyflow"
MAX_FIELD_CHARS = 2000

# Third-party loggers kept at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "openai", "anthropic")


def clip(value: Any, limit: int = MAX_FIELD_CHARS) -> Any:
    if isinstance(value, str) and len(value) > limit:
        return value[:limit] + f"...[{len(value) - limit} more chars]"
    return value


class StructuredLogFormatter(logging.Formatter):
    """Render a record and its structured fields as one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        fields = getattr(record, "structured_data", None) or {}
        entry.update({key: clip(value) for key, value in fields.items()})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.filename}:{record.lineno} in {record.funcName}"

        return json.dumps(entry, default=str)


class StructuredLogger:
    """
    Logger taking an event name plus keyword fields.

    bind() returns a logger that adds fixed context (a policy id, a
    document handle) to every event.
    """

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self._logger = logging.getLogger(name)
        self._context = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context) -> "StructuredLogger":
        return StructuredLogger(self.name, {**self._context, **context})

    def _log(self, level: int, event: str, exc_info: bool = False, **fields):
        if not self._logger.isEnabledFor(level):
            return
        data = {**self._context, **fields}
        self._logger.log(level, event, exc_info=exc_info, extra={"structured_data": data})

    def debug(self, event: str, **fields):
        self._log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields):
        self._log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields):
        self._log(logging.WARNING, event, **fields)

    def error(self, event: str, exc_info: bool = False, **fields):
        self._log(logging.ERROR, event, exc_info=exc_info, **fields)

    def exception(self, event: str, **fields):
        """Error event with the active traceback attached."""
        self._log(logging.ERROR, event, exc_info=True, **fields)


_configured = False


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_file: Optional[str] = None,
):
    """
    Install root handlers once per process.

    Args:
        level: Root log level name
        json_output: JSON lines (True) or plain text for local runs
        log_file: Also append JSON lines to this file
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        StructuredLogFormatter() if json_output
        else logging.Formatter("%(asctime)s %(levelname)-7s %(name)s %(message)s")
    )
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredLogFormatter())
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for a module; configures logging from settings on first use."""
    if not _configured:
        from .settings import settings
        configure_logging(
            level=settings.log_level,
            json_output=settings.log_json,
            log_file=settings.log_file,
        )
    return StructuredLogger(name)


def get_api_logger() -> StructuredLogger:
    return get_logger("policyflow.api")
