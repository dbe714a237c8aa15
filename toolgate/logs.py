"""
Structured JSON logging.

Logs go to stdout, one JSON object per line, so a cluster logging agent can
index the fields. Structured data is attached with
`logger.info("msg", extra={"auth_data": {...}})` and merged into the line:

    {"timestamp": "2026-02-06 10:30:00,000", "level": "WARNING",
     "logger": "toolgate.authorization", "message": "Tool authorization denied",
     "subject": "alice", "tool": "update", "decision": "denied",
     "reason": "policy_denied", "policy": "RequireManager"}
"""

import json
import logging
import sys


class JSONLogFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "auth_data"):
            log_entry.update(record.auth_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter())

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=[handler],
    )
