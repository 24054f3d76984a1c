# Merchant Service
# Registration, profile updates and order statistics for merchants.

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func, case
from typing import Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
import hashlib
import hmac
import logging

from config.app_config import DEFAULT_COMMISSION_RATE, DEFAULT_TURN_CUSTOMERS_INTO_AFFILIATES
from core.exceptions import DomainAlreadyRegistered, EmailAlreadyAffiliate, EmailAlreadyMerchant
from database.models import User, UserType
from database.affiliate_models import Merchant, Order

logger = logging.getLogger(__name__)


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def verify_api_key(api_key: str, api_key_hash: Optional[str]) -> bool:
    if not api_key_hash:
        return False
    return hmac.compare_digest(hash_api_key(api_key), api_key_hash)


class MerchantService:
    def __init__(self, db: Session):
        self.db = db

    def register(self, domain: str, name: str, email: str, api_key: str) -> Merchant:
        """
        Register a new user and associated merchant.

        The default commission rate and auto-affiliate flag are copied from
        configuration onto the merchant and never re-read from it.

        Raises:
            EmailAlreadyMerchant / EmailAlreadyAffiliate: email already taken
            DomainAlreadyRegistered: another merchant owns the domain
        """
        self._validate_new_merchant(domain, email)

        try:
            user = User(
                email=email,
                name=name,
                password_hash=hash_api_key(api_key),
                user_type=UserType.MERCHANT,
            )
            self.db.add(user)
            self.db.flush()

            merchant = Merchant(
                user_id=user.id,
                domain=domain,
                display_name=name,
                default_commission_rate=DEFAULT_COMMISSION_RATE,
                turn_customers_into_affiliates=DEFAULT_TURN_CUSTOMERS_INTO_AFFILIATES,
            )
            self.db.add(merchant)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            self._validate_new_merchant(domain, email)
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(merchant)
        logger.info(f"Registered merchant {merchant.id} for domain {domain}")
        return merchant

    def update_merchant(self, merchant: Merchant, data: Dict[str, Any]) -> Merchant:
        """
        Update the merchant and its user. Only keys present in `data` change:
        domain, name, email, api_key.
        """
        user = merchant.user

        if "email" in data and data["email"] != user.email:
            other = self.db.query(User).filter(User.email == data["email"]).first()
            if other:
                raise EmailAlreadyMerchant(data["email"]) if other.is_merchant else EmailAlreadyAffiliate(data["email"])
            user.email = data["email"]
        if "domain" in data and data["domain"] != merchant.domain:
            if self.db.query(Merchant).filter(Merchant.domain == data["domain"]).first():
                raise DomainAlreadyRegistered(data["domain"])
            merchant.domain = data["domain"]
        if "name" in data:
            user.name = data["name"]
            merchant.display_name = data["name"]
        if "api_key" in data:
            user.password_hash = hash_api_key(data["api_key"])

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(merchant)
        logger.info(f"Updated merchant {merchant.id}")
        return merchant

    def find_merchant_by_email(self, email: str) -> Optional[Merchant]:
        """Find a merchant by their user's email."""
        user = self.db.query(User).filter(
            User.email == email,
            User.user_type == UserType.MERCHANT
        ).first()
        return user.merchant if user else None

    def authenticate(self, email: str, api_key: str) -> Optional[Merchant]:
        merchant = self.find_merchant_by_email(email)
        if merchant is None or not verify_api_key(api_key, merchant.user.password_hash):
            return None
        return merchant

    def get_order_stats(self, merchant: Merchant, from_date: datetime, to_date: datetime) -> Dict[str, Any]:
        """
        Get order statistics for a time range (inclusive).

        Returns:
            count: number of the merchant's orders in range
            commission_owed: commission summed over attributed orders only
            revenue: subtotal summed over all orders in range
        """
        count, commission_owed, revenue = self.db.query(
            func.count(Order.id),
            func.coalesce(
                func.sum(case((Order.affiliate_id.isnot(None), Order.commission_owed), else_=0)),
                0
            ),
            func.coalesce(func.sum(Order.subtotal), 0),
        ).filter(
            Order.merchant_id == merchant.id,
            Order.created_at >= from_date,
            Order.created_at <= to_date
        ).one()

        return {
            "count": count,
            "commission_owed": Decimal(str(commission_owed)).quantize(Decimal("0.01")),
            "revenue": Decimal(str(revenue)).quantize(Decimal("0.01")),
        }

    def _validate_new_merchant(self, domain: str, email: str) -> None:
        user = self.db.query(User).filter(User.email == email).first()
        if user:
            if user.is_merchant:
                raise EmailAlreadyMerchant(email)
            raise EmailAlreadyAffiliate(email)
        if self.db.query(Merchant).filter(Merchant.domain == domain).first():
            raise DomainAlreadyRegistered(domain)
