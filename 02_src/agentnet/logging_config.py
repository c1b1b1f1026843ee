"""Structured logging for agent processes."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path

from .paths import DEFAULT_LOG_PATH

# Broker and SDK loggers that are noisy at INFO
QUIET_LOGGERS = ("nats", "redis", "kombu", "amqp", "httpx", "httpcore", "anthropic", "openai")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(agent)s] %(name)s: %(message)s"


class AgentFilter(logging.Filter):
    """Stamps every record with the network of the agent that emitted it."""

    def __init__(self, agent: str = "-"):
        super().__init__()
        self.agent = agent

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "agent"):
            record.agent = self.agent
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "agent": getattr(record, "agent", "-"),
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Session, topic etc. passed via extra={"context": {...}}
        if hasattr(record, "context"):
            log_data["context"] = record.context

        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    agent: str | None = None,
) -> None:
    """
    Configure console and rotating-file logging for one agent process.

    Args:
        log_level: Root level. Defaults to LOG_LEVEL or INFO.
        log_file: Log file path. Defaults to LOG_FILE or logs/agentnet.log.
        agent: Network stamped on every record. Defaults to
               AGENTNET_NAMESPACE.AGENTNET_NAME when both are set.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE", str(DEFAULT_LOG_PATH))
    if agent is None and os.getenv("AGENTNET_NAMESPACE") and os.getenv("AGENTNET_NAME"):
        agent = f"{os.environ['AGENTNET_NAMESPACE']}.{os.environ['AGENTNET_NAME']}"
    console_format = "text" if os.getenv("LOG_FORMAT", "json").lower() == "text" else "json"

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "agent": {"()": AgentFilter, "agent": agent or "-"},
            },
            "formatters": {
                "json": {"()": JSONFormatter},
                "text": {"format": TEXT_FORMAT},
            },
            "handlers": {
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": log_file,
                    "maxBytes": 10 * 1024 * 1024,
                    "backupCount": 5,
                    "formatter": "json",
                    "filters": ["agent"],
                    "encoding": "utf-8",
                },
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": console_format,
                    "filters": ["agent"],
                    "stream": "ext://sys.stdout",
                },
            },
            "loggers": {
                name: {"level": "WARNING"} for name in QUIET_LOGGERS
            },
            "root": {
                "level": log_level,
                "handlers": ["file", "console"],
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with __name__."""
    return logging.getLogger(name)
