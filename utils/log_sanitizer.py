"""Log sanitizer - removes push credentials from log messages.

Push services echo the subscription endpoint (which is itself a bearer
capability) and sometimes the VAPID header in error bodies. None of that
should reach the log files.
"""

import re
from typing import Union

# Patterns to detect and redact sensitive data
SENSITIVE_PATTERNS = [
    # Push endpoints - keep the push service host, drop the per-device path
    (r'(https://[A-Za-z0-9.-]+)/[^\s"\'<>]+', r'\1/[ENDPOINT]'),

    # VAPID authorization header: "vapid t=<jwt>, k=<key>"
    (r'vapid\s+t=[^\s,]+,\s*k=[^\s,"\']+', 'vapid [REDACTED]'),

    # JWT tokens (three base64 segments separated by dots)
    (r'eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+', '[JWT_TOKEN]'),

    # Subscription keys in key=value / JSON form
    (r'(p256dh|auth|private_key|vapid_private_key)["\s:=]+[^\s,}"\']{8,}', r'\1=[REDACTED]'),

    # Bearer tokens
    (r'(Bearer|Basic|WebPush)\s+[A-Za-z0-9\-_\.]+', r'\1 [REDACTED]'),

    # Email addresses (VAPID subject)
    (r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b', '[EMAIL]'),

    # Generic long base64url strings that look like keys (40+ chars)
    (r'\b[A-Za-z0-9\-_]{40,}\b', '[LONG_TOKEN]'),
]

# Compiled patterns for efficiency
_COMPILED_PATTERNS = [(re.compile(p, re.IGNORECASE), r) for p, r in SENSITIVE_PATTERNS]


def sanitize_log(text: str) -> str:
    """Remove push credentials from text for safe logging.

    Args:
        text: The text to sanitize

    Returns:
        Sanitized text with sensitive data replaced by placeholders
    """
    if not text:
        return text

    result = text
    for pattern, replacement in _COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


def sanitize_for_log(value: Union[str, bytes, None], max_length: int = 200) -> str:
    """Sanitize and truncate a value for logging.

    Args:
        value: The value to sanitize (string or bytes)
        max_length: Maximum length of returned string

    Returns:
        Sanitized, truncated string safe for logging
    """
    if value is None:
        return "<None>"

    if isinstance(value, bytes):
        text = value.decode('utf-8', errors='replace')
    else:
        text = str(value)

    sanitized = sanitize_log(text)

    if len(sanitized) > max_length:
        return sanitized[:max_length] + f"... [{len(text)} chars total]"

    return sanitized
