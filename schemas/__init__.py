# Schemas module for the Affiliate Service

from schemas.affiliate import (
    PayoutStatus,
    OrderEvent,
    OrderResponse,
    MerchantRegister,
    MerchantUpdate,
    MerchantResponse,
    MerchantLogin,
    Token,
    OrderStatsResponse,
    AffiliateRegister,
    AffiliateRateUpdate,
    AffiliateResponse,
    PayoutScheduledResponse,
)

__all__ = [
    "PayoutStatus",
    "OrderEvent",
    "OrderResponse",
    "MerchantRegister",
    "MerchantUpdate",
    "MerchantResponse",
    "MerchantLogin",
    "Token",
    "OrderStatsResponse",
    "AffiliateRegister",
    "AffiliateRateUpdate",
    "AffiliateResponse",
    "PayoutScheduledResponse",
]
