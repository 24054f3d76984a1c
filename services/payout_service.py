# Payout Service
# Schedules one payout task per unpaid order and executes those tasks.
# An order only becomes paid when its task's disbursement succeeds.

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, List
from datetime import datetime
import logging

from core.exceptions import PayoutTaskFailure
from core.merchant_api import MerchantApiError, MerchantApiService, get_merchant_api
from core.retry import next_attempt_at, attempts_exhausted
from database.affiliate_models import Affiliate, Order, PayoutStatusDB, PayoutTask, TaskStatusDB
from database.utils import insert_or_fetch

logger = logging.getLogger(__name__)


class PayoutService:
    def __init__(self, db: Session, merchant_api: Optional[MerchantApiService] = None):
        self.db = db
        self.merchant_api = merchant_api or get_merchant_api()

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def payout(self, affiliate: Affiliate) -> int:
        """
        Pay out all of an affiliate's unpaid orders.

        Schedules one task per order; an order whose task is already pending
        or completed is skipped. Returns without waiting for disbursement.

        Returns:
            Number of tasks scheduled by this call
        """
        unpaid_orders = self.db.query(Order).filter(
            Order.affiliate_id == affiliate.id,
            Order.payout_status == PayoutStatusDB.UNPAID
        ).order_by(Order.created_at).all()
        order_ids = [(order.id, order.commission_owed) for order in unpaid_orders]

        scheduled = 0
        for order_id, amount in order_ids:
            try:
                if self._schedule(order_id, amount):
                    scheduled += 1
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to schedule payout for order {order_id}: {e}", exc_info=True)

        logger.info(f"Scheduled {scheduled} payout task(s) for affiliate {affiliate.id} "
                    f"({len(order_ids)} unpaid order(s))")
        return scheduled

    def _schedule(self, order_id: str, amount) -> bool:
        task, created = insert_or_fetch(
            self.db,
            PayoutTask(
                order_id=order_id,
                amount=amount,
                status=TaskStatusDB.PENDING,
                next_attempt_at=datetime.utcnow(),
            ),
            lambda: self._find_task_for_order(order_id),
        )
        if not created:
            if task.status != TaskStatusDB.FAILED:
                # Already in flight (or done)
                self.db.rollback()
                return False
            task.status = TaskStatusDB.PENDING
            task.attempts = 0
            task.last_error = None
            task.next_attempt_at = datetime.utcnow()
            logger.info(f"Re-armed failed payout task {task.id} for order {order_id}")
        self.db.commit()
        return True

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def due_task_ids(self, limit: int, now: Optional[datetime] = None) -> List[str]:
        now = now or datetime.utcnow()
        rows = self.db.query(PayoutTask.id).filter(
            PayoutTask.status == TaskStatusDB.PENDING,
            PayoutTask.next_attempt_at <= now
        ).order_by(PayoutTask.next_attempt_at).limit(limit).all()
        return [row.id for row in rows]

    def run_payout_task(self, task_id: str) -> bool:
        """
        Disburse one order's commission.

        Safe to run more than once: an order that is already paid is not
        paid again.

        Returns:
            True if money was sent by this run

        Raises:
            PayoutTaskFailure: the disbursement failed; the order stays unpaid
        """
        task = self.db.query(PayoutTask).filter(PayoutTask.id == task_id).with_for_update().first()
        if task is None:
            logger.warning(f"Payout task {task_id} not found")
            return False

        order = self.db.query(Order).filter(Order.id == task.order_id).with_for_update().first()
        order_id = order.id
        if order.payout_status == PayoutStatusDB.PAID:
            if task.status != TaskStatusDB.COMPLETED:
                task.status = TaskStatusDB.COMPLETED
                task.completed_at = task.completed_at or datetime.utcnow()
            self.db.commit()
            logger.info(f"Order {order_id} already paid, payout task {task_id} is a no-op")
            return False

        affiliate = order.affiliate
        if affiliate is None:
            self.db.rollback()
            raise PayoutTaskFailure(order_id, "order has no affiliate")

        try:
            self.merchant_api.send_payout(affiliate.user.email, order.commission_owed, reference=order_id)
        except MerchantApiError as e:
            self.db.rollback()
            raise PayoutTaskFailure(order_id, str(e)) from e

        now = datetime.utcnow()
        order.payout_status = PayoutStatusDB.PAID
        order.paid_at = now
        task.status = TaskStatusDB.COMPLETED
        task.attempts += 1
        task.completed_at = now
        task.last_error = None
        self.db.commit()
        logger.info(f"Paid {order.commission_owed} to affiliate {affiliate.id} for order {order_id}")
        return True

    def record_failure(self, task_id: str, error: str) -> PayoutTask:
        """Count a failed attempt and schedule the retry (or give up)."""
        task = self.db.query(PayoutTask).filter(PayoutTask.id == task_id).first()
        task.attempts += 1
        task.last_error = error
        if attempts_exhausted(task.attempts):
            task.status = TaskStatusDB.FAILED
            logger.error(f"Payout task {task.id} for order {task.order_id} failed permanently "
                         f"after {task.attempts} attempts: {error}")
        else:
            task.next_attempt_at = next_attempt_at(task.attempts)
            logger.warning(f"Payout task {task.id} for order {task.order_id} failed "
                           f"(attempt {task.attempts}), retrying at {task.next_attempt_at}: {error}")
        self.db.commit()
        return task

    def _find_task_for_order(self, order_id: str) -> Optional[PayoutTask]:
        return self.db.query(PayoutTask).filter(PayoutTask.order_id == order_id).first()
