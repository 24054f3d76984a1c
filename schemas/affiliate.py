# Pydantic Schemas for the Affiliate Service API

from pydantic import BaseModel, Field, EmailStr, validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ============================================================================
# ENUMS
# ============================================================================

class PayoutStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


# ============================================================================
# ORDER SCHEMAS
# ============================================================================

class OrderEvent(BaseModel):
    """Order notification delivered by a storefront integration."""
    order_id: str = Field(..., min_length=1, max_length=100)
    subtotal_price: Decimal = Field(..., ge=0)
    merchant_domain: str = Field(..., min_length=1)
    discount_code: Optional[str] = None
    customer_email: EmailStr
    customer_name: str = ""

    @validator('order_id')
    def validate_order_id(cls, v):
        if not v.strip():
            raise ValueError('order_id must not be blank')
        return v


class OrderResponse(BaseModel):
    id: str
    merchant_id: str
    affiliate_id: Optional[str]
    subtotal: Decimal
    commission_owed: Decimal
    payout_status: PayoutStatus
    paid_at: Optional[datetime]
    created_at: datetime

    @validator('payout_status', pre=True)
    def unwrap_db_enum(cls, v):
        return getattr(v, "value", v)

    class Config:
        from_attributes = True


# ============================================================================
# MERCHANT SCHEMAS
# ============================================================================

class MerchantRegister(BaseModel):
    domain: str = Field(..., min_length=1, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    api_key: str = Field(..., min_length=8)


class MerchantUpdate(BaseModel):
    domain: Optional[str] = Field(None, min_length=1, max_length=255)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    api_key: Optional[str] = Field(None, min_length=8)


class MerchantResponse(BaseModel):
    id: str
    domain: str
    display_name: str
    default_commission_rate: Decimal
    turn_customers_into_affiliates: bool
    created_at: datetime

    class Config:
        from_attributes = True


class MerchantLogin(BaseModel):
    email: EmailStr
    api_key: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class OrderStatsResponse(BaseModel):
    count: int
    commission_owed: Decimal
    revenue: Decimal


# ============================================================================
# AFFILIATE SCHEMAS
# ============================================================================

class AffiliateRegister(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    commission_rate: Decimal = Field(..., ge=0, le=1, description="Fraction of subtotal, 0.1 = 10%")


class AffiliateRateUpdate(BaseModel):
    commission_rate: Decimal = Field(..., ge=0, le=1)


class AffiliateResponse(BaseModel):
    id: str
    user_id: str
    merchant_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    commission_rate: Decimal
    discount_code: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PayoutScheduledResponse(BaseModel):
    affiliate_id: str
    scheduled: int
