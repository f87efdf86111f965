"""Retry schedule for photos whose analysis failed."""

from dataclasses import dataclass
from datetime import datetime, timedelta

BACKOFF_TABLE_SECONDS = (0, 1, 3, 8, 20, 45)
MAX_ATTEMPTS = 5


def delay_seconds(attempts: int) -> int:
    """Return the retry delay for a given attempt count."""
    index = min(max(attempts, 0), len(BACKOFF_TABLE_SECONDS) - 1)
    return BACKOFF_TABLE_SECONDS[index]


@dataclass(frozen=True)
class RetryDecision:
    """What to persist after a failed attempt."""

    terminal: bool
    next_attempt_at: datetime | None


def decide_retry(
    attempts: int, now: datetime, max_attempts: int = MAX_ATTEMPTS
) -> RetryDecision:
    """Schedule the next attempt, or give up once the ceiling is reached."""
    if attempts >= max_attempts:
        return RetryDecision(terminal=True, next_attempt_at=None)
    return RetryDecision(
        terminal=False,
        next_attempt_at=now + timedelta(seconds=delay_seconds(attempts)),
    )
