# Retry policy shared by the payout and notification outboxes

from datetime import datetime, timedelta
from typing import Optional

from config.app_config import TASK_MAX_ATTEMPTS, TASK_RETRY_BACKOFF_SECONDS


def next_attempt_at(attempts: int, now: Optional[datetime] = None) -> datetime:
    """Exponential backoff: base, 2x base, 4x base, ..."""
    now = now or datetime.utcnow()
    delay = TASK_RETRY_BACKOFF_SECONDS * (2 ** max(attempts - 1, 0))
    return now + timedelta(seconds=delay)


def attempts_exhausted(attempts: int) -> bool:
    return attempts >= TASK_MAX_ATTEMPTS
