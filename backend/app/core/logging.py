# app/core/logging.py
from __future__ import annotations

import logging
import sys

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):
    """
    `2026-01-01 10:00:00 INFO app.services.x promoter_assigned event_id=... promoter_id=...`
    """

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return base
        rendered = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
        return f"{base} {rendered}"


def resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName((level or "INFO").strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str | int | None = "INFO") -> None:
    """
    Install one stream handler on the `app` logger tree.
    Safe to call more than once (create_application runs per test app).
    """
    root = logging.getLogger("app")
    root.setLevel(resolve_level(level))

    for h in root.handlers:
        if getattr(h, "_app_handler", False):
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(KeyValueFormatter())
    handler._app_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
