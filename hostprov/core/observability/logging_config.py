"""
Logging for hostprov runs.

``setup_logging`` installs a stderr handler on the root logger, and a file
handler when HOSTPROV_LOG_FILE is set, so step progress and child-process
errors end up in one place. The CLI picks the level from its flags, falling
back to HOSTPROV_LOG_LEVEL and then WARNING.

Each handler carries a RedactingFilter: a bearer token that leaks into an
exception message or a child's stderr is masked before it is written.
"""

from __future__ import annotations

import logging
import re
import sys

# Console: bare messages at WARNING, a timestamp per line at INFO, and
# logger name plus line number at DEBUG.
_FMT_PLAIN = "%(message)s"
_FMT_TIMESTAMPED = "[%(asctime)s] %(message)s"
_FMT_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"

_DATEFMT_LONG = "%Y-%m-%d %H:%M:%S"
_DATEFMT_SHORT = "%H:%M:%S"

_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9\-\._~\+\/]+=*", re.I)
_TOKEN_RE = re.compile(r"\b(token|password|secret)\s*[:=]\s*([^\s]+)", re.I)


def redact(text: str) -> str:
    """Mask bearer tokens and ``token=...`` pairs in a string."""
    out = _BEARER_RE.sub("Bearer <REDACTED>", text)
    return _TOKEN_RE.sub(r"\1=<REDACTED>", out)


class RedactingFilter(logging.Filter):
    """Rewrite each record's rendered message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def _console_format(level: int) -> tuple[str, str | None]:
    if level <= logging.DEBUG:
        return _FMT_DETAILED, _DATEFMT_SHORT
    if level <= logging.INFO:
        return _FMT_TIMESTAMPED, _DATEFMT_LONG
    return _FMT_PLAIN, None


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root logger's handlers with hostprov's.

    Args:
        level: Console level name; unknown names mean WARNING.
        log_file: Also append detailed records to this file.
        log_file_level: Level for the file; defaults to ``level``.
    """
    console_level = _parse_level(level)
    redactor = RedactingFilter()

    root = logging.getLogger()
    root.handlers.clear()

    fmt, datefmt = _console_format(console_level)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    console.addFilter(redactor)
    root.addHandler(console)

    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)

        to_file = logging.FileHandler(log_file, encoding="utf-8")
        to_file.setLevel(file_level)
        to_file.setFormatter(logging.Formatter(_FMT_DETAILED, datefmt=_DATEFMT_LONG))
        to_file.addFilter(redactor)
        root.addHandler(to_file)

    # The root passes everything either handler wants.
    root.setLevel(root_level)
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
