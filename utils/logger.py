"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


SENSITIVE_FIELDS = {
    'password', 'secret', 'token', 'authorization', 'access_token',
    'refresh_token', 'accesstoken', 'refreshtoken'
}


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove credentials from a dict before it is passed as log ``extra``.

    Tokens keep their first 8 characters so a log line can still be matched
    to a client report; passwords and secrets are fully redacted.
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        lowered = key.lower()
        if any(sensitive in lowered for sensitive in SENSITIVE_FIELDS):
            if isinstance(value, str):
                if 'token' in lowered and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def token_fingerprint(token: str | None) -> str:
    """Short, log-safe reference to a bearer or refresh token."""
    if not token:
        return "<empty>"
    return f"{token[:8]}..." if len(token) > 8 else "***"
