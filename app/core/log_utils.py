# app/core/log_utils.py
"""
Logging helpers.

Every record emitted by the app passes through RedactingFilter, so
identity fields (email, uid, tokens...) never reach the log output in
clear text, even when a caller logs a whole payload dict.

Explicit messages should still mask identities themselves:

    logger.info("Login by %s", mask_email(user.email))
"""

import logging
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset(
    {"email", "uid", "user_id", "password", "token", "secret", "key"}
)


def redact(data: Any) -> Any:
    """
    Return a copy of `data` with sensitive keys replaced by [REDACTED].

    Dicts are walked recursively, lists/tuples element-wise.
    Anything else is returned untouched.
    """
    if isinstance(data, dict):
        cleaned: dict[Any, Any] = {}
        for k, v in data.items():
            if isinstance(k, str) and k.lower() in SENSITIVE_KEYS and v:
                cleaned[k] = REDACTED
            else:
                cleaned[k] = redact(v)
        return cleaned
    if isinstance(data, (list, tuple)):
        return type(data)(redact(v) for v in data)
    return data


def mask_email(email: str | None) -> str:
    """budi@example.com -> b**i@example.com"""
    if not email:
        return "[NO EMAIL]"
    username, _, domain = email.partition("@")
    if not username or not domain:
        return email

    if len(username) > 2:
        username = username[0] + "*" * (len(username) - 2) + username[-1]
    return f"{username}@{domain}"


def mask_uid(uid: Any) -> str:
    """Keep the first and last 4 characters of an identifier."""
    value = str(uid) if uid is not None else ""
    if len(value) < 8:
        return "[INVALID UID]"
    return f"{value[:4]}...{value[-4:]}"


class RedactingFilter(logging.Filter):
    """Scrub dict arguments of every log record before formatting."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = redact(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(redact(a) for a in record.args)
        return True


def configure_logging(level: str = "INFO") -> None:
    """
    Basic stdout logging with redaction on the root handlers.
    Safe to call more than once.
    """
    logging.basicConfig(level=level.upper())
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(RedactingFilter())
