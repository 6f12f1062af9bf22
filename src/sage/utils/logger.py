"""
Structured logging for Sage.

Components never write to a fixed log location on their own. Each one takes
an optional ``sink`` and falls back to ``NullSink``, so nothing is logged
unless the application injects a configured ``StructuredSink``.

When configured, logs are organized in date-stamped folders with separate
files for each log level:
  logs/YYYY-MM-DD/debug.log
  logs/YYYY-MM-DD/info.log
  logs/YYYY-MM-DD/warning.log
  logs/YYYY-MM-DD/error.log
"""

import json
import logging
import traceback
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class LogSink(ABC):
    """Destination for structured component events."""

    @abstractmethod
    def event(self, level: str, component: str, message: str, **data: Any) -> None:
        """Record one event with arbitrary structured fields."""
        pass

    def debug(self, component: str, message: str, **data: Any) -> None:
        self.event("debug", component, message, **data)

    def info(self, component: str, message: str, **data: Any) -> None:
        self.event("info", component, message, **data)

    def warning(self, component: str, message: str, **data: Any) -> None:
        self.event("warning", component, f"WARNING: {message}", **data)

    def error(
        self,
        component: str,
        message: str,
        exception: Optional[BaseException] = None,
        **data: Any,
    ) -> None:
        details = message
        if exception is not None:
            tb_str = "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            )
            details = f"{message}\n{tb_str}"
            data.setdefault("error", str(exception))
        self.event("error", component, f"ERROR: {details}", **data)


class NullSink(LogSink):
    """Sink that drops every event. Default for all components."""

    def event(self, level: str, component: str, message: str, **data: Any) -> None:
        return None


class _ComponentDefault(logging.Filter):
    """Give records from plain module loggers a component name."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "component"):
            record.component = "SYSTEM"
        return True


class StructuredSink(LogSink):
    """Sink that forwards events to the stdlib ``sage`` logger."""

    def __init__(self, logger_name: str = "sage"):
        self.logger = logging.getLogger(logger_name)
        self.json_mode = False
        self.log_dir: Optional[Path] = None

    def _get_default_log_dir(self) -> Path:
        """Get the default log directory path with today's date."""
        today = datetime.now().strftime("%Y-%m-%d")
        return Path("logs") / today

    def configure(
        self,
        level: str = "INFO",
        log_dir: Optional[str] = None,
        json_mode: bool = False,
        enable_logging: bool = True,
    ) -> "StructuredSink":
        """
        Configure logging output.

        Args:
            level: DEBUG, INFO, WARNING, ERROR (minimum level to log)
            log_dir: Optional directory for logs (default: logs/YYYY-MM-DD/)
            json_mode: Use JSON format for structured parsing
            enable_logging: Enable file logging (default: True)

        Returns:
            self, for chaining
        """
        if not enable_logging:
            return self

        self.json_mode = json_mode
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()
        self.logger.setLevel(logging.DEBUG)

        self.log_dir = Path(log_dir) if log_dir else self._get_default_log_dir()
        self.log_dir.mkdir(parents=True, exist_ok=True)

        if json_mode:
            formatter: logging.Formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                "%(asctime)s [%(component)-8s] %(message)s",
                datefmt="%H:%M:%S",
            )

        min_level = getattr(logging, level.upper(), logging.INFO)

        log_levels = [
            (logging.DEBUG, "debug.log"),
            (logging.INFO, "info.log"),
            (logging.WARNING, "warning.log"),
            (logging.ERROR, "error.log"),
        ]

        for log_level, filename in log_levels:
            if log_level >= min_level:
                handler = logging.FileHandler(self.log_dir / filename, mode="a", encoding="utf-8")
                handler.setLevel(log_level)
                handler.setFormatter(formatter)
                handler.addFilter(_ComponentDefault())
                # Exact level only, so each file holds one level
                handler.addFilter(lambda record, level=log_level: record.levelno == level)
                self.logger.addHandler(handler)

        return self

    def get_log_directory(self) -> Optional[Path]:
        """Get the current log directory path."""
        return self.log_dir

    def event(self, level: str, component: str, message: str, **data: Any) -> None:
        extra = {"component": component.upper(), **data}
        getattr(self.logger, level)(message, extra=extra)


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for machine parsing."""

    _RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "exc_info", "exc_text", "stack_info",
        "lineno", "funcName", "created", "msecs", "relativeCreated",
        "thread", "threadName", "processName", "process", "message",
        "component", "asctime", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", "SYSTEM"),
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k not in self._RESERVED:
                data[k] = v
        return json.dumps(data, default=str)


def get_sink(config) -> LogSink:
    """
    Build the sink described by a ``Config``.

    Returns a ``NullSink`` unless logging is enabled.
    """
    if not getattr(config, "enable_logging", False):
        return NullSink()
    return StructuredSink().configure(
        level=config.log_level,
        log_dir=config.log_dir,
        json_mode=config.log_json,
    )
