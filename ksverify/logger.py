"""Logging setup: file or stderr, ISO 8601 timestamps, secrets masked."""

import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

MASK = "********"

_TRACEBACK_FORMATTER = logging.Formatter()


class UtcFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        ms = getattr(record, "msecs", 0)
        return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{int(ms):03d}Z"


class SecretMaskingFilter(logging.Filter):
    """Replace every registered secret in the rendered message and traceback with MASK."""

    # Shorter secrets are only masked as standalone tokens, not inside other words.
    MIN_SUBSTRING_LENGTH = 4

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        # Longest first so a secret containing another is masked whole.
        ordered = sorted({s for s in secrets if s}, key=len, reverse=True)
        parts = []
        for secret in ordered:
            if len(secret) < self.MIN_SUBSTRING_LENGTH:
                parts.append(r"(?<!\w)" + re.escape(secret) + r"(?!\w)")
            else:
                parts.append(re.escape(secret))
        self.pattern = re.compile("|".join(parts)) if parts else None

    def mask(self, text: str) -> str:
        if self.pattern is None or not text:
            return text
        return self.pattern.sub(MASK, text)

    def filter(self, record: logging.LogRecord) -> bool:
        if self.pattern is None:
            return True
        message = record.getMessage()
        masked = self.mask(message)
        if masked != message:
            record.msg = masked
            record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = _TRACEBACK_FORMATTER.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.mask(record.exc_text)
        if record.stack_info:
            record.stack_info = self.mask(record.stack_info)
        return True


def setup_logging(log_file: str | None = None, secrets: Iterable[str] = ()) -> logging.Logger:
    """
    Configure the ksverify logger.
    If log_file is set, append to file; otherwise log to stderr.
    Format: timestamp (ISO 8601 with ms), level, message.
    """
    root = logging.getLogger("ksverify")
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(UtcFormatter("%(asctime)s %(levelname)s %(message)s"))
    handler.addFilter(SecretMaskingFilter(secrets))
    root.addHandler(handler)

    return root
