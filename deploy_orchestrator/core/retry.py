"""Retry classification for deployment errors.

Classification looks at what an error says and what kind of error it is,
never at provider SDK types. Anything not recognised as transient is
treated as permanent.
"""

import asyncio
import re

import httpx

from deploy_orchestrator.core.exceptions import ProviderError


def _codes(*codes: int) -> re.Pattern[str]:
    # A status code standing on its own, not part of a path, host or number
    alternatives = "|".join(str(code) for code in codes)
    return re.compile(rf"(?<![\w/.-])(?:{alternatives})(?![\w/-])")


# Checked first: these win over any transient-looking wording
PERMANENT_PATTERNS = (
    "unauthorized",
    "forbidden",
    "invalid token",
    "not authorized",
    "invalid",
    "malformed",
    "bad request",
    "not found",
)
PERMANENT_CODES = _codes(400, 401, 403, 404, 422)

TRANSIENT_PATTERNS = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "reset",
    "rate limit",
    "temporar",
    "unavailable",
)
TRANSIENT_CODES = _codes(502, 503, 504)

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

TRANSIENT_KINDS: tuple[type[BaseException], ...] = (
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    httpx.TimeoutException,
    httpx.NetworkError,
)


def classify(error: BaseException | str) -> bool:
    """Return True if ``error`` is worth retrying."""
    if isinstance(error, BaseException):
        if isinstance(error, ProviderError) and error.status_code is not None:
            if error.status_code in TRANSIENT_STATUS_CODES:
                return True
            if 400 <= error.status_code < 500:
                return False
        # Provider clients wrap transport failures; the cause keeps the kind
        if isinstance(error, TRANSIENT_KINDS) or isinstance(error.__cause__, TRANSIENT_KINDS):
            return True
        message = str(error)
    else:
        message = error

    text = message.lower()
    if PERMANENT_CODES.search(text) or any(pattern in text for pattern in PERMANENT_PATTERNS):
        return False
    return bool(TRANSIENT_CODES.search(text)) or any(pattern in text for pattern in TRANSIENT_PATTERNS)


class RetryPolicy:
    """Bounded retry budget around ``classify``."""

    def __init__(self, max_retries: int):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries

    def has_budget(self, attempt: int) -> bool:
        return attempt < self.max_retries

    def should_retry(self, error: BaseException | str, attempt: int, retryable: bool | None = None) -> bool:
        """Decide whether attempt number ``attempt`` may be followed by another.

        ``retryable`` overrides classification when the caller already knows
        the answer (e.g. a build that ran out of time).
        """
        if retryable is None:
            retryable = classify(error)
        return retryable and self.has_budget(attempt)
