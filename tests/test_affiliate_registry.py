"""
Tests for AffiliateService: organic resolution and merchant-initiated registration.
"""
from decimal import Decimal

import pytest

from core.exceptions import (
    AffiliateNotFound,
    DiscountCodeError,
    EmailAlreadyAffiliate,
    EmailAlreadyMerchant,
)
from database.models import User, UserType
from database.affiliate_models import Affiliate, OutboundMessage, MessageStatusDB
from services.affiliate_service import AffiliateService
from services.merchant_service import MerchantService
from services.notification_service import NotificationService


class TestRegisterExplicit:

    def test_creates_affiliate_and_queues_discount_code(self, db, merchant, fake_api):
        affiliate = AffiliateService(db).register_explicit(
            merchant, "partner@example.com", "Pat Partner", Decimal("0.15")
        )

        assert affiliate.merchant_id == merchant.id
        assert affiliate.commission_rate == Decimal("0.15")
        assert affiliate.discount_code == fake_api.issued_codes[0]
        assert affiliate.user.email == "partner@example.com"
        assert affiliate.user.user_type == UserType.AFFILIATE
        # Not the merchant's own user
        assert affiliate.user_id != merchant.user_id

        message = db.query(OutboundMessage).one()
        assert message.recipient_email == "partner@example.com"
        assert message.status == MessageStatusDB.PENDING
        assert affiliate.discount_code in message.body

    def test_merchant_email_is_rejected_without_side_effects(self, db, merchant, fake_api):
        with pytest.raises(EmailAlreadyMerchant):
            AffiliateService(db).register_explicit(
                merchant, "owner@shop.example.com", "Owner", Decimal("0.1")
            )

        assert db.query(Affiliate).count() == 0
        assert db.query(User).count() == 1
        assert db.query(OutboundMessage).count() == 0
        assert fake_api.issued_codes == []

    def test_existing_affiliate_email_is_rejected(self, db, merchant):
        service = AffiliateService(db)
        service.register_explicit(merchant, "partner@example.com", "Pat", Decimal("0.1"))

        with pytest.raises(EmailAlreadyAffiliate):
            service.register_explicit(merchant, "partner@example.com", "Pat again", Decimal("0.2"))

        assert db.query(Affiliate).count() == 1
        assert db.query(OutboundMessage).count() == 1

    def test_discount_code_failure_persists_nothing(self, db, merchant, fake_api):
        fake_api.fail_discount_codes = True

        with pytest.raises(DiscountCodeError):
            AffiliateService(db).register_explicit(merchant, "partner@example.com", "Pat", Decimal("0.1"))

        assert db.query(Affiliate).count() == 0
        assert db.query(User).filter(User.email == "partner@example.com").first() is None

    def test_notification_failure_keeps_affiliate(self, db, merchant, monkeypatch, caplog):
        def broken_queue(self, affiliate):
            raise RuntimeError("outbox unavailable")

        monkeypatch.setattr(NotificationService, "queue_affiliate_created", broken_queue)

        affiliate = AffiliateService(db).register_explicit(
            merchant, "partner@example.com", "Pat", Decimal("0.1")
        )

        db.expire_all()
        assert db.get(Affiliate, affiliate.id) is not None
        assert db.query(OutboundMessage).count() == 0
        assert "Failed to queue affiliate notification" in caplog.text


class TestResolveOrCreate:

    def test_existing_affiliate_user_joins_another_merchant(self, db, merchant):
        other = MerchantService(db).register(
            domain="other.example.com", name="Other", email="owner@other.example.com", api_key="other-secret-key"
        )
        service = AffiliateService(db)

        first = service.resolve_or_create(merchant, "fan@example.com", "Fan", "A1", Decimal("0.1"))
        second = service.resolve_or_create(other, "fan@example.com", "Fan", "B1", Decimal("0.2"))
        db.commit()

        assert first.id != second.id
        assert first.user_id == second.user_id
        assert db.query(User).filter(User.email == "fan@example.com").count() == 1

    def test_does_not_overwrite_existing_affiliate(self, db, merchant):
        service = AffiliateService(db)
        first = service.resolve_or_create(merchant, "fan@example.com", "Fan", "ORIGINAL", Decimal("0.1"))
        db.commit()

        again = service.resolve_or_create(merchant, "fan@example.com", "Fan", "NEWER", Decimal("0.5"))

        assert again.id == first.id
        assert again.discount_code == "ORIGINAL"
        assert again.commission_rate == Decimal("0.1")

    def test_does_not_notify(self, db, merchant):
        AffiliateService(db).resolve_or_create(merchant, "fan@example.com", "Fan", "A1", Decimal("0.1"))
        db.commit()
        assert db.query(OutboundMessage).count() == 0

    def test_merchant_identity_is_rejected(self, db, merchant):
        with pytest.raises(EmailAlreadyMerchant):
            AffiliateService(db).resolve_or_create(
                merchant, "owner@shop.example.com", "Owner", "X", Decimal("0.1")
            )


class TestCommissionRateUpdate:

    def test_update_rate(self, db, merchant):
        service = AffiliateService(db)
        affiliate = service.register_explicit(merchant, "partner@example.com", "Pat", Decimal("0.1"))

        updated = service.update_commission_rate(merchant, affiliate.id, Decimal("0.3"))

        assert updated.commission_rate == Decimal("0.3")

    def test_other_merchants_affiliate_not_found(self, db, merchant):
        other = MerchantService(db).register(
            domain="other.example.com", name="Other", email="owner@other.example.com", api_key="other-secret-key"
        )
        service = AffiliateService(db)
        affiliate = service.register_explicit(other, "partner@example.com", "Pat", Decimal("0.1"))

        with pytest.raises(AffiliateNotFound):
            service.update_commission_rate(merchant, affiliate.id, Decimal("0.3"))
