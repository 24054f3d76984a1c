# Conflict-safe insert helpers
# Check-then-insert races are resolved by the unique constraints: the insert
# runs inside a savepoint and a conflict is answered with the winner's row.

from typing import Callable, Optional, Tuple, TypeVar
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

T = TypeVar("T")


def insert_or_fetch(db: Session, instance: T, lookup: Callable[[], Optional[T]]) -> Tuple[T, bool]:
    """
    Insert `instance`, or return the row a concurrent writer inserted first.

    Args:
        db: Session with an open transaction (left open)
        instance: New ORM object to insert
        lookup: Re-reads the conflicting row after a unique violation

    Returns:
        (row, created)
    """
    try:
        with db.begin_nested():
            db.add(instance)
            db.flush()
        return instance, True
    except IntegrityError:
        existing = lookup()
        if existing is None:
            # Not a uniqueness conflict we know how to resolve
            raise
        return existing, False
