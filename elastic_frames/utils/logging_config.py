"""
Logging configuration for elastic-frames.

Logs go to stderr: stdout carries the MCP stdio protocol.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from elastic_frames.config.environments import get_environment_config


class StructuredFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: Optional[str] = None, structured: Optional[bool] = None) -> None:
    """
    Configure the root logger once for the process.

    Args:
        level: Log level name (defaults to LOG_LEVEL from config)
        structured: Emit JSON lines (defaults to LOG_JSON from config)
    """
    config = get_environment_config()["logging"]
    level = (level or config["level"]).upper()
    structured = config["json"] if structured is None else structured

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root_logger.addHandler(handler)

    # Reduce noise from the client stack
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging initialized at %s", level)
