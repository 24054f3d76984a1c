# Order Ingestion
# Idempotent entry point for storefront order events: dedup on the external
# order id, attribute to the referring affiliate, freeze the commission.

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional, Tuple
from decimal import Decimal, ROUND_HALF_UP
import logging

from core.exceptions import MerchantNotFound
from database.affiliate_models import Affiliate, Merchant, Order, PayoutStatusDB
from services.affiliate_service import AffiliateService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def calculate_commission(subtotal: Decimal, affiliate: Optional[Affiliate]) -> Decimal:
    """
    Commission owed on an order, using the affiliate's current rate.
    Unattributed orders owe nothing.
    """
    if affiliate is None:
        return Decimal("0.00")
    return (subtotal * Decimal(affiliate.commission_rate)).quantize(CENTS, rounding=ROUND_HALF_UP)


class OrderService:
    def __init__(self, db: Session, affiliate_service: Optional[AffiliateService] = None):
        self.db = db
        self.affiliate_service = affiliate_service or AffiliateService(db)

    def process_order(
        self,
        order_id: str,
        subtotal,
        merchant_domain: str,
        discount_code: Optional[str],
        customer_email: str,
        customer_name: str,
    ) -> Tuple[Order, bool]:
        """
        Process an order and log any commissions.

        A repeated order_id is a no-op that returns the stored order. The
        order, and any user or affiliate created for it, are committed
        together or not at all.

        Returns:
            (order, created)

        Raises:
            ValueError: empty order id or negative subtotal
            MerchantNotFound: no merchant owns merchant_domain
            EmailAlreadyMerchant: the customer email is a merchant identity
        """
        if not order_id or not order_id.strip():
            raise ValueError("order_id must not be empty")
        subtotal = Decimal(str(subtotal)).quantize(CENTS, rounding=ROUND_HALF_UP)
        if subtotal < 0:
            raise ValueError("subtotal must not be negative")

        existing = self._find_order(order_id)
        if existing:
            logger.info(f"Order {order_id} already ingested, ignoring duplicate")
            return existing, False

        try:
            merchant = self._find_merchant(merchant_domain)

            affiliate = None
            if merchant.turn_customers_into_affiliates:
                affiliate = self.affiliate_service.resolve_or_create(
                    merchant,
                    customer_email,
                    customer_name,
                    discount_code,
                    merchant.default_commission_rate,
                )

            order = Order(
                id=order_id,
                merchant_id=merchant.id,
                affiliate_id=affiliate.id if affiliate else None,
                subtotal=subtotal,
                commission_owed=calculate_commission(subtotal, affiliate),
                payout_status=PayoutStatusDB.UNPAID,
            )
            self.db.add(order)
            self.db.commit()
        except IntegrityError:
            # Lost the race against a concurrent delivery of the same order
            self.db.rollback()
            existing = self._find_order(order_id)
            if existing is None:
                raise
            logger.info(f"Order {order_id} was ingested concurrently, returning stored order")
            return existing, False
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            f"Ingested order {order.id} for {merchant.domain}: subtotal={order.subtotal} "
            f"affiliate={order.affiliate_id} commission={order.commission_owed}"
        )
        return order, True

    def _find_order(self, order_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def _find_merchant(self, domain: str) -> Merchant:
        merchant = self.db.query(Merchant).filter(Merchant.domain == domain).first()
        if merchant is None:
            raise MerchantNotFound(domain)
        return merchant
