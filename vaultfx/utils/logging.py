"""Centralized logging configuration for vaultfx.

Provides:
- File logging with timestamps (the terminal belongs to the TUI)
- Redaction of secrets before any record reaches a handler
- Retention of the most recent log files only
- A logger factory for the different application areas
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path

LOG_PREFIX = "vaultfx-"
LOG_SUFFIX = ".log"
MAX_LOG_FILES = 5

# (pattern, replacement) pairs applied in order
_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"BW_SESSION=\S+"), "BW_SESSION=[REDACTED]"),
    (re.compile(r"\b[a-zA-Z0-9+/]{32,}={0,2}"), "[REDACTED]"),
    (re.compile(r"(?i)password\s*[:=]\s*\S+"), "password=[REDACTED]"),
    (re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4,7}\b"), "[REDACTED]"),
    (re.compile(r"(?i)\b(cvv|cvc)\s*[:=]\s*\d{3,4}\b"), "[REDACTED]"),
    (re.compile(r"\b\d{6}\b"), "[REDACTED]"),
]


def sanitize_message(message: str) -> str:
    """Strip session tokens, passwords, OTP codes and card data from text."""
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    return message


class SanitizingFilter(logging.Filter):
    """Filter that rewrites every record's message through sanitize_message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = sanitize_message(record.getMessage())
        record.args = None
        return True


class FileFormatter(logging.Formatter):
    """Formatter for file output with full timestamps and the logger area."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        line = f"{timestamp} [{record.name}] {record.levelname}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _cleanup_old_logs(log_dir: Path, keep: int) -> None:
    """Delete all but the ``keep`` newest log files."""
    logs = sorted(
        (p for p in log_dir.glob(f"{LOG_PREFIX}*{LOG_SUFFIX}") if p.is_file()),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for path in logs[keep:]:
        try:
            path.unlink()
        except OSError:
            pass  # Best effort; a stale log is harmless


def setup_logging(log_dir: Path, level: str = "INFO") -> Path:
    """Initialize file logging for the application.

    Args:
        log_dir: Directory for log files (created with owner-only access).
        level: Minimum level name for the log file.

    Returns:
        Path to the new log file.

    Raises:
        OSError: If the directory or file cannot be created.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    if os.name != "nt":
        os.chmod(log_dir, 0o700)

    # Keep room for the file created below
    _cleanup_old_logs(log_dir, MAX_LOG_FILES - 1)

    log_path = log_dir / datetime.now().strftime(f"{LOG_PREFIX}%Y-%m-%d-%H-%M-%S{LOG_SUFFIX}")
    handler = logging.FileHandler(log_path, encoding="utf-8")
    if os.name != "nt":
        os.chmod(log_path, 0o600)
    handler.setFormatter(FileFormatter())
    handler.addFilter(SanitizingFilter())

    root = get_logger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.addHandler(handler)
    root.propagate = False

    root.info("Logging initialized. Log file: %s", log_path)
    return log_path


def get_logger(area: str | None = None) -> logging.Logger:
    """Get a logger for an application area.

    Args:
        area: Area name (e.g. "cli", "cache", "orchestrator"). None returns
            the package root logger.

    Example:
        logger = get_logger("cache")
        logger.info("Loaded 12 items from cache")
    """
    return logging.getLogger(f"vaultfx.{area}" if area else "vaultfx")
