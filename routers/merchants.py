# Merchant API Endpoints
# Registration, affiliate management, payouts and order statistics.

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from datetime import datetime, timezone

from auth.dependencies import create_access_token, get_current_merchant
from core.exceptions import (
    AffiliateNotFound,
    DiscountCodeError,
    DomainAlreadyRegistered,
    EmailAlreadyAffiliate,
    EmailAlreadyMerchant,
)
from database.config import get_db
from database.affiliate_models import Affiliate, Merchant
from schemas.affiliate import (
    AffiliateRateUpdate,
    AffiliateRegister,
    AffiliateResponse,
    MerchantLogin,
    MerchantRegister,
    MerchantResponse,
    MerchantUpdate,
    OrderStatsResponse,
    PayoutScheduledResponse,
    Token,
)
from services.affiliate_service import AffiliateService
from services.merchant_service import MerchantService
from services.payout_service import PayoutService

router = APIRouter(prefix="/api/merchant", tags=["Merchants"])


def _to_naive_utc(value: datetime) -> datetime:
    # Orders store naive UTC timestamps
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _affiliate_to_response(affiliate: Affiliate) -> AffiliateResponse:
    return AffiliateResponse(
        id=affiliate.id,
        user_id=affiliate.user_id,
        merchant_id=affiliate.merchant_id,
        email=affiliate.user.email,
        name=affiliate.user.name,
        commission_rate=affiliate.commission_rate,
        discount_code=affiliate.discount_code,
        created_at=affiliate.created_at,
    )


# ============================================================================
# REGISTRATION & AUTH
# ============================================================================

@router.post("/register", response_model=MerchantResponse, status_code=status.HTTP_201_CREATED)
async def register_merchant(
    data: MerchantRegister,
    db: Session = Depends(get_db)
):
    """Register a merchant and its owning user."""
    try:
        return MerchantService(db).register(
            domain=data.domain,
            name=data.name,
            email=data.email,
            api_key=data.api_key,
        )
    except (EmailAlreadyMerchant, EmailAlreadyAffiliate, DomainAlreadyRegistered) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)


@router.post("/token", response_model=Token)
async def login_merchant(
    data: MerchantLogin,
    db: Session = Depends(get_db)
):
    """Exchange a merchant's email and api key for a bearer token."""
    merchant = MerchantService(db).authenticate(data.email, data.api_key)
    if merchant is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or api key",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Token(access_token=create_access_token(merchant.user.email))


@router.get("/me", response_model=MerchantResponse)
async def get_merchant(
    merchant: Merchant = Depends(get_current_merchant)
):
    return merchant


@router.put("/me", response_model=MerchantResponse)
async def update_merchant(
    data: MerchantUpdate,
    db: Session = Depends(get_db),
    merchant: Merchant = Depends(get_current_merchant)
):
    """Update domain, display name, email or api key."""
    try:
        return MerchantService(db).update_merchant(merchant, data.model_dump(exclude_unset=True, exclude_none=True))
    except (EmailAlreadyMerchant, EmailAlreadyAffiliate, DomainAlreadyRegistered) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)


# ============================================================================
# AFFILIATES
# ============================================================================

@router.post("/affiliates", response_model=AffiliateResponse, status_code=status.HTTP_201_CREATED)
async def register_affiliate(
    data: AffiliateRegister,
    db: Session = Depends(get_db),
    merchant: Merchant = Depends(get_current_merchant)
):
    """Register an affiliate and email them their discount code."""
    try:
        affiliate = AffiliateService(db).register_explicit(
            merchant,
            data.email,
            data.name,
            data.commission_rate,
        )
    except (EmailAlreadyMerchant, EmailAlreadyAffiliate) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except DiscountCodeError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return _affiliate_to_response(affiliate)


@router.patch("/affiliates/{affiliate_id}", response_model=AffiliateResponse)
async def update_affiliate_rate(
    affiliate_id: str,
    data: AffiliateRateUpdate,
    db: Session = Depends(get_db),
    merchant: Merchant = Depends(get_current_merchant)
):
    """Change an affiliate's commission rate for future orders."""
    try:
        affiliate = AffiliateService(db).update_commission_rate(merchant, affiliate_id, data.commission_rate)
    except AffiliateNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return _affiliate_to_response(affiliate)


@router.post("/affiliates/{affiliate_id}/payout", response_model=PayoutScheduledResponse,
             status_code=status.HTTP_202_ACCEPTED)
async def payout_affiliate(
    affiliate_id: str,
    db: Session = Depends(get_db),
    merchant: Merchant = Depends(get_current_merchant)
):
    """Schedule payout of every unpaid order of the affiliate."""
    try:
        affiliate = AffiliateService(db).get_for_merchant(merchant, affiliate_id)
    except AffiliateNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    scheduled = PayoutService(db).payout(affiliate)
    return PayoutScheduledResponse(affiliate_id=affiliate_id, scheduled=scheduled)


# ============================================================================
# STATISTICS
# ============================================================================

@router.get("/order-stats", response_model=OrderStatsResponse)
async def order_stats(
    from_date: datetime = Query(..., alias="from"),
    to_date: datetime = Query(..., alias="to"),
    db: Session = Depends(get_db),
    merchant: Merchant = Depends(get_current_merchant)
):
    """
    Useful order statistics for the merchant API.
    count: orders in range, commission_owed: commission on attributed
    orders, revenue: sum of order subtotals.
    """
    from_date, to_date = _to_naive_utc(from_date), _to_naive_utc(to_date)
    if from_date > to_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="'from' must not be after 'to'")
    return MerchantService(db).get_order_stats(merchant, from_date, to_date)
