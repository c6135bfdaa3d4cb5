"""
Logging configuration for the Holder Scan agent.

Supports two formats:
- ``text`` (default): human-readable log lines
- ``json``: structured JSON for log aggregation (ELK, Datadog, etc.)

Settings via env vars:
- ``LOG_LEVEL``: DEBUG / INFO / WARNING / ERROR (default: INFO)
- ``LOG_FORMAT``: text / json (default: text)

Every record carries the ``run_id`` of the analysis run that emitted it so
interleaved batches of concurrent wallets can be told apart.
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
import uuid
from contextvars import ContextVar

from config import LOG_FORMAT, LOG_LEVEL

# Context var holding the correlation ID of the current analysis run
run_id_ctx: ContextVar[str] = ContextVar("run_id", default="-")


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "run_id": run_id_ctx.get("-"),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json_mod.dumps(entry, default=str)


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure the root logger from env settings (or explicit overrides)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)

    if (fmt or LOG_FORMAT) == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s (%(run_id)s) %(message)s",
                defaults={"run_id": "-"},
            )
        )

    handler.addFilter(_RunIdFilter())

    root.addHandler(handler)

    # httpx logs every request at INFO; that drowns out the scan itself
    logging.getLogger("httpx").setLevel(logging.WARNING)


class _RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_ctx.get("-")  # type: ignore[attr-defined]
        return True


def generate_run_id() -> str:
    """Create a short unique run ID."""
    return uuid.uuid4().hex[:12]
