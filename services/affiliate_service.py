# Affiliate Registry
# Resolves the (user, merchant) affiliate relationship for organic referrals
# and handles merchant-initiated registrations.

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
from decimal import Decimal
import logging

from core.exceptions import (
    AffiliateNotFound,
    DiscountCodeError,
    EmailAlreadyAffiliate,
    EmailAlreadyMerchant,
)
from core.merchant_api import MerchantApiError, MerchantApiService, get_merchant_api
from database.models import User, UserType
from database.affiliate_models import Affiliate, Merchant
from database.utils import insert_or_fetch
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class AffiliateService:
    def __init__(self, db: Session, merchant_api: Optional[MerchantApiService] = None,
                 notifications: Optional[NotificationService] = None):
        self.db = db
        self.merchant_api = merchant_api or get_merchant_api()
        self.notifications = notifications or NotificationService(db)

    # =========================================================================
    # ORGANIC REFERRALS
    # =========================================================================

    def resolve_or_create(
        self,
        merchant: Merchant,
        email: str,
        name: str,
        discount_code: str,
        commission_rate: Decimal,
    ) -> Affiliate:
        """
        Return the affiliate for this customer and merchant, creating the
        user and affiliate rows on first referral.

        An existing affiliate is returned unchanged: a later referral never
        overwrites its commission rate or discount code. Runs inside the
        caller's transaction and does not commit.

        Raises:
            EmailAlreadyMerchant: the email belongs to a merchant identity
        """
        user = self._get_or_create_affiliate_user(email, name)

        existing = self._find_affiliate(user.id, merchant.id)
        if existing:
            return existing

        affiliate, created = insert_or_fetch(
            self.db,
            Affiliate(
                user_id=user.id,
                merchant_id=merchant.id,
                commission_rate=commission_rate,
                discount_code=discount_code,
            ),
            lambda: self._find_affiliate(user.id, merchant.id),
        )
        if created:
            logger.info(f"Created affiliate {affiliate.id} for {email} at {merchant.domain}")
        return affiliate

    def _get_or_create_affiliate_user(self, email: str, name: str) -> User:
        user = self._find_user(email)
        if user is None:
            user, _ = insert_or_fetch(
                self.db,
                User(email=email, name=name, user_type=UserType.AFFILIATE),
                lambda: self._find_user(email),
            )
        if user.user_type == UserType.MERCHANT:
            raise EmailAlreadyMerchant(email)
        return user

    # =========================================================================
    # MERCHANT-INITIATED REGISTRATION
    # =========================================================================

    def register_explicit(
        self,
        merchant: Merchant,
        email: str,
        name: str,
        commission_rate: Decimal,
    ) -> Affiliate:
        """
        Create a new affiliate for the merchant with the given commission rate
        and send them their discount code.

        The affiliate is committed before the notification is queued; a
        failure to queue is logged and does not undo the registration.

        Raises:
            EmailAlreadyMerchant / EmailAlreadyAffiliate: email already taken
            DiscountCodeError: the discount-code service failed
        """
        self._validate_email(email)

        try:
            discount_code = self.merchant_api.create_discount_code(merchant.id, merchant.domain).get("code")
        except MerchantApiError as e:
            raise DiscountCodeError(f"Could not issue discount code for {merchant.domain}: {e}") from e
        if not discount_code:
            raise DiscountCodeError(f"Discount code service returned no code for {merchant.domain}")

        try:
            user = User(email=email, name=name, user_type=UserType.AFFILIATE)
            self.db.add(user)
            self.db.flush()

            affiliate = Affiliate(
                user_id=user.id,
                merchant_id=merchant.id,
                commission_rate=commission_rate,
                discount_code=discount_code,
            )
            self.db.add(affiliate)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            # A concurrent registration took the email meanwhile
            self._validate_email(email)
            raise
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(affiliate)
        logger.info(f"Registered affiliate {affiliate.id} ({email}) for merchant {merchant.domain}")

        try:
            self.notifications.queue_affiliate_created(affiliate)
        except Exception as e:
            logger.error(f"Failed to queue affiliate notification for {email} (affiliate {affiliate.id}): {e}",
                         exc_info=True)

        return affiliate

    def _validate_email(self, email: str) -> None:
        user = self._find_user(email)
        if user is None:
            return
        if user.user_type == UserType.MERCHANT:
            raise EmailAlreadyMerchant(email)
        raise EmailAlreadyAffiliate(email)

    # =========================================================================
    # MERCHANT ACTIONS
    # =========================================================================

    def get_for_merchant(self, merchant: Merchant, affiliate_id: str) -> Affiliate:
        affiliate = self.db.query(Affiliate).filter(
            Affiliate.id == affiliate_id,
            Affiliate.merchant_id == merchant.id
        ).first()
        if affiliate is None:
            raise AffiliateNotFound(affiliate_id)
        return affiliate

    def update_commission_rate(self, merchant: Merchant, affiliate_id: str, commission_rate: Decimal) -> Affiliate:
        """Change the rate used for future orders. Existing orders keep theirs."""
        affiliate = self.get_for_merchant(merchant, affiliate_id)
        affiliate.commission_rate = commission_rate
        self.db.commit()
        self.db.refresh(affiliate)
        logger.info(f"Affiliate {affiliate.id} commission rate set to {commission_rate}")
        return affiliate

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _find_user(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def _find_affiliate(self, user_id: str, merchant_id: str) -> Optional[Affiliate]:
        return self.db.query(Affiliate).filter(
            Affiliate.user_id == user_id,
            Affiliate.merchant_id == merchant_id
        ).first()
