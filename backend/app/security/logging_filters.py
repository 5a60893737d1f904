"""Logging filters that scrub bearer credentials from log records."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Authorization: Bearer\s+[\w\.-]+|access_token\"\s*:\s*\"[^\"]+\"|[?&]token=[\w\.-]+)",
    re.IGNORECASE,
)


class SensitiveFilter(logging.Filter):
    """Replace bearer tokens in log messages with a redaction marker."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _SENSITIVE_PATTERN.sub("**REDACTED**", record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                _SENSITIVE_PATTERN.sub("**REDACTED**", arg)
                if isinstance(arg, str)
                else arg
                for arg in record.args
            )
        return True


__all__ = ["SensitiveFilter"]
