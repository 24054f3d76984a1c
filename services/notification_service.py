# Notification Service for the Affiliate Service
# Messages are queued in the outbound_messages table after the transaction
# that produced them has committed, then delivered by the task worker.

from sqlalchemy.orm import Session
from typing import Optional, List
from datetime import datetime
from enum import Enum
import logging

from core.email_sender import EmailSender, get_email_sender
from core.exceptions import NotificationDeliveryFailure
from core.retry import next_attempt_at, attempts_exhausted
from database.affiliate_models import Affiliate, OutboundMessage, MessageStatusDB

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    AFFILIATE_CREATED = "affiliate_created"


class NotificationService:
    """
    Queues and delivers outbound email.
    Queueing commits its own transaction; callers must have committed
    the records the message describes first.
    """

    def __init__(self, db: Session, sender: Optional[EmailSender] = None):
        self.db = db
        self.sender = sender

    def queue(
        self,
        recipient_email: str,
        type: NotificationType,
        subject: str,
        body: str,
        affiliate_id: Optional[str] = None,
    ) -> OutboundMessage:
        """
        Queue a message for delivery.

        Returns:
            The committed OutboundMessage
        """
        message = OutboundMessage(
            recipient_email=recipient_email,
            message_type=type.value,
            subject=subject,
            body=body,
            affiliate_id=affiliate_id,
            status=MessageStatusDB.PENDING,
            next_attempt_at=datetime.utcnow(),
        )
        self.db.add(message)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return message

    def queue_affiliate_created(self, affiliate: Affiliate) -> OutboundMessage:
        """Tell a newly registered affiliate their discount code."""
        merchant_name = affiliate.merchant.display_name
        return self.queue(
            recipient_email=affiliate.user.email,
            type=NotificationType.AFFILIATE_CREATED,
            subject=f"You're now an affiliate of {merchant_name}",
            body=(
                f"Hi {affiliate.user.name or 'there'},\n\n"
                f"{merchant_name} has registered you as an affiliate.\n"
                f"Share your discount code {affiliate.discount_code} to earn "
                f"{affiliate.commission_rate * 100:.2f}% commission on every order.\n"
            ),
            affiliate_id=affiliate.id,
        )

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def pending_messages(self, limit: int, now: Optional[datetime] = None) -> List[OutboundMessage]:
        now = now or datetime.utcnow()
        return self.db.query(OutboundMessage).filter(
            OutboundMessage.status == MessageStatusDB.PENDING,
            OutboundMessage.next_attempt_at <= now
        ).order_by(OutboundMessage.next_attempt_at).limit(limit).all()

    def deliver(self, message: OutboundMessage) -> bool:
        """
        Attempt delivery of one message and record the outcome.
        Commits; a failure never touches the records the message describes.

        Returns:
            True if the message was sent
        """
        sender = self.sender or get_email_sender()
        message.attempts += 1
        try:
            sender.send_email(message.recipient_email, message.subject, message.body)
        except NotificationDeliveryFailure as e:
            message.last_error = e.reason
            if attempts_exhausted(message.attempts):
                message.status = MessageStatusDB.FAILED
                logger.error(
                    f"Giving up on message {message.id} to {message.recipient_email} "
                    f"after {message.attempts} attempts: {e.reason}"
                )
            else:
                message.next_attempt_at = next_attempt_at(message.attempts)
                logger.warning(f"Delivery of message {message.id} failed (attempt {message.attempts}): {e.reason}")
            self.db.commit()
            return False

        message.status = MessageStatusDB.SENT
        message.sent_at = datetime.utcnow()
        message.last_error = None
        self.db.commit()
        logger.info(f"Sent {message.message_type} message {message.id} to {message.recipient_email}")
        return True
