# Order Webhook Endpoint
# Storefront integrations deliver order events here, possibly more than once.

from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy.orm import Session

from core.exceptions import EmailAlreadyAffiliate, EmailAlreadyMerchant, MerchantNotFound
from database.config import get_db
from schemas.affiliate import OrderEvent, OrderResponse
from services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.post("/webhook", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def receive_order(
    event: OrderEvent,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Ingest an order event.
    Returns 201 with the new order, or 200 with the stored order when the
    order id was already ingested.
    """
    try:
        order, created = OrderService(db).process_order(
            order_id=event.order_id,
            subtotal=event.subtotal_price,
            merchant_domain=event.merchant_domain,
            discount_code=event.discount_code,
            customer_email=event.customer_email,
            customer_name=event.customer_name,
        )
    except MerchantNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except (EmailAlreadyMerchant, EmailAlreadyAffiliate) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    if not created:
        response.status_code = status.HTTP_200_OK
    return order
