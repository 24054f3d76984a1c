# Services Module for the Affiliate Service
# Contains business logic services

from services.notification_service import NotificationService, NotificationType
from services.affiliate_service import AffiliateService
from services.order_service import OrderService, calculate_commission
from services.merchant_service import MerchantService
from services.payout_service import PayoutService

__all__ = [
    'NotificationService',
    'NotificationType',
    'AffiliateService',
    'OrderService',
    'calculate_commission',
    'MerchantService',
    'PayoutService',
]
