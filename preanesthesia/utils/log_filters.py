"""Logging filters keeping session tokens out of log output."""

import logging
import re

_SESSION_PATH = re.compile(r"(/sessions/)[^/?#\s\"]+")
REDACTED = "<redacted>"


def redact_session_tokens(text: str) -> str:
    """Replace the token segment of any ``/sessions/<token>`` path."""
    return _SESSION_PATH.sub(r"\1" + REDACTED, text)


class SessionTokenFilter(logging.Filter):
    """Rewrites records so request paths never carry a live session token.

    Access log records keep the path in ``args``; both the message template
    and its string arguments are redacted.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_session_tokens(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_session_tokens(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        elif isinstance(record.args, dict):
            record.args = {
                key: redact_session_tokens(value) if isinstance(value, str) else value
                for key, value in record.args.items()
            }
        return True


def install_session_token_filter(*logger_names: str) -> None:
    """Attach the filter to the given loggers, once each."""
    for name in logger_names:
        logger = logging.getLogger(name)
        if not any(isinstance(f, SessionTokenFilter) for f in logger.filters):
            logger.addFilter(SessionTokenFilter())
