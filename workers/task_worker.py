"""
Outbox task worker

Drains due payout tasks and pending outbound messages. Every task runs in its
own session so one failure never affects another task or a committed record.
"""
import logging
from typing import Callable, Dict
from sqlalchemy.orm import Session

from config.app_config import TASK_BATCH_SIZE
from core.exceptions import PayoutTaskFailure
from database.config import SessionLocal
from services.notification_service import NotificationService
from services.payout_service import PayoutService

logger = logging.getLogger(__name__)


def process_payout_tasks(session_factory: Callable[[], Session] = SessionLocal,
                         limit: int = TASK_BATCH_SIZE) -> Dict[str, int]:
    """Run every due payout task once."""
    db = session_factory()
    try:
        task_ids = PayoutService(db).due_task_ids(limit)
    finally:
        db.close()

    results = {"paid": 0, "skipped": 0, "failed": 0}
    for task_id in task_ids:
        db = session_factory()
        try:
            service = PayoutService(db)
            try:
                paid = service.run_payout_task(task_id)
                results["paid" if paid else "skipped"] += 1
            except PayoutTaskFailure as e:
                results["failed"] += 1
                service.record_failure(task_id, e.reason)
        except Exception as e:
            db.rollback()
            results["failed"] += 1
            logger.error(f"Unexpected error running payout task {task_id}: {e}", exc_info=True)
        finally:
            db.close()
    return results


def deliver_pending_messages(session_factory: Callable[[], Session] = SessionLocal,
                             limit: int = TASK_BATCH_SIZE) -> Dict[str, int]:
    """Attempt delivery of every due outbound message once."""
    db = session_factory()
    results = {"sent": 0, "failed": 0}
    try:
        service = NotificationService(db)
        for message in service.pending_messages(limit):
            message_id = message.id
            try:
                if service.deliver(message):
                    results["sent"] += 1
                else:
                    results["failed"] += 1
            except Exception as e:
                db.rollback()
                results["failed"] += 1
                logger.error(f"Unexpected error delivering message {message_id}: {e}", exc_info=True)
    finally:
        db.close()
    return results


def run_task_cycle(session_factory: Callable[[], Session] = SessionLocal) -> Dict[str, Dict[str, int]]:
    """One pass over both outboxes."""
    payouts = process_payout_tasks(session_factory)
    messages = deliver_pending_messages(session_factory)
    if any(payouts.values()) or any(messages.values()):
        logger.info(f"Task cycle complete: payouts={payouts} messages={messages}")
    return {"payouts": payouts, "messages": messages}
