"""
Tests for the outbound message queue and its delivery worker.
"""
from datetime import datetime, timedelta
from decimal import Decimal

from database.affiliate_models import MessageStatusDB, OutboundMessage
from services.affiliate_service import AffiliateService
from services.notification_service import NotificationService, NotificationType
from workers.task_worker import deliver_pending_messages, run_task_cycle


def _queue(db, recipient="partner@example.com"):
    return NotificationService(db).queue(
        recipient_email=recipient,
        type=NotificationType.AFFILIATE_CREATED,
        subject="Welcome",
        body="Your code is CODE0001",
    )


class TestDelivery:

    def test_deliver_marks_sent(self, db, email_sender):
        message = _queue(db)

        assert NotificationService(db).deliver(message) is True

        assert message.status == MessageStatusDB.SENT
        assert message.attempts == 1
        assert message.sent_at is not None
        assert email_sender.sent == [
            {"to": "partner@example.com", "subject": "Welcome", "body": "Your code is CODE0001"}
        ]

    def test_failed_delivery_is_retried_later(self, db, email_sender):
        email_sender.fail = True
        message = _queue(db)

        assert NotificationService(db).deliver(message) is False

        assert message.status == MessageStatusDB.PENDING
        assert message.attempts == 1
        assert message.last_error == "smtp down"
        assert message.next_attempt_at > datetime.utcnow()
        assert NotificationService(db).pending_messages(limit=10) == []

    def test_gives_up_after_max_attempts(self, db, email_sender, monkeypatch):
        monkeypatch.setattr("services.notification_service.attempts_exhausted", lambda attempts: attempts >= 1)
        email_sender.fail = True
        message = _queue(db)

        NotificationService(db).deliver(message)

        assert message.status == MessageStatusDB.FAILED

    def test_pending_messages_only_returns_due(self, db):
        due = _queue(db, "due@example.com")
        later = _queue(db, "later@example.com")
        later.next_attempt_at = datetime.utcnow() + timedelta(hours=1)
        db.commit()

        pending = NotificationService(db).pending_messages(limit=10)

        assert [m.id for m in pending] == [due.id]


class TestDeliveryWorker:

    def test_registration_message_is_delivered(self, db, merchant, session_factory, email_sender):
        affiliate = AffiliateService(db).register_explicit(
            merchant, "partner@example.com", "Pat", Decimal("0.15")
        )
        code = affiliate.discount_code
        db.commit()

        results = deliver_pending_messages(session_factory)

        assert results == {"sent": 1, "failed": 0}
        assert len(email_sender.sent) == 1
        assert email_sender.sent[0]["to"] == "partner@example.com"
        assert code in email_sender.sent[0]["body"]
        assert "15.00%" in email_sender.sent[0]["body"]

    def test_failure_does_not_touch_affiliate(self, db, merchant, session_factory, email_sender):
        email_sender.fail = True
        affiliate = AffiliateService(db).register_explicit(
            merchant, "partner@example.com", "Pat", Decimal("0.1")
        )
        affiliate_id = affiliate.id
        db.commit()

        results = run_task_cycle(session_factory)

        assert results["messages"] == {"sent": 0, "failed": 1}
        assert results["payouts"] == {"paid": 0, "skipped": 0, "failed": 0}
        db.expire_all()
        message = db.query(OutboundMessage).one()
        assert message.affiliate_id == affiliate_id
        assert message.status == MessageStatusDB.PENDING
