"""Logging bootstrap for the check-in controller."""
from __future__ import annotations

from logging.config import dictConfig
from pathlib import Path
from typing import Optional

RUNTIME_LOG_NAME = "checkin-runtime.log"

# Per-request chatter from the HTTP stack.
QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str = "INFO", log_dir: Optional[Path] = None, retention_days: int = 14) -> None:
    """Console output for the operator, a detailed daily file for support."""

    if log_dir is None:
        log_dir = Path(__file__).resolve().parents[2] / "logs"
    log_dir = Path(log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    level = level.upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%H:%M:%S",
                },
                "detailed": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "level": level,
                },
                "runtime_file": {
                    "class": "logging.handlers.TimedRotatingFileHandler",
                    "formatter": "detailed",
                    "level": level,
                    "filename": str(log_dir / RUNTIME_LOG_NAME),
                    "when": "midnight",
                    "backupCount": max(int(retention_days), 1),
                    "utc": True,
                    "delay": True,
                    "encoding": "utf-8",
                },
            },
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"level": level, "handlers": ["console", "runtime_file"]},
        }
    )


def mask_phone(phone: Optional[str]) -> str:
    """Mask all but the last four digits of a phone number for log output."""

    if not phone:
        return "<empty>"
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]


__all__ = ["configure_logging", "mask_phone"]
