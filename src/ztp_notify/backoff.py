"""Capped exponential backoff for reconnect attempts."""

from __future__ import annotations

from dataclasses import dataclass

# Exponents past this point are always above any sane ceiling
_MAX_EXPONENT = 64


@dataclass(frozen=True)
class BackoffPolicy:
    """Reconnect delay policy.

    delay(n) = min(base_delay * backoff ** n, max_delay), where n is the
    number of retries already scheduled since the last successful open.

    Attributes:
        base_delay: Delay before the first retry, in seconds
        max_delay: Ceiling for any single delay, in seconds
        backoff: Growth factor per consecutive failure
        max_attempts: Retries allowed before giving up (None = unlimited)
    """

    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff: float = 2.0
    max_attempts: int | None = 10

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1")
        if self.max_attempts is not None and self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0 or None")

    def delay(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (0-based)."""
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        exponent = min(attempt, _MAX_EXPONENT)
        return min(self.base_delay * self.backoff**exponent, self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        """True once ``attempt`` retries have used up the budget."""
        return self.max_attempts is not None and attempt >= self.max_attempts
