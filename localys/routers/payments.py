import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ..core.dependencies import get_db, get_stripe_service
from ..exceptions import ServiceUnavailableException
from ..schemas.payment import (
    CheckoutResponse,
    CoinCheckoutRequest,
    CoinPackage,
    CoinPurchaseConfirmation,
    ItemCheckoutRequest,
    ItemPurchaseConfirmation,
    ItemPurchaseVerifyRequest,
    WebhookAck,
)
from ..services.payment_service import COIN_PACKAGES, PaymentService
from ..services.stripe_service import StripeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments")

payment_service = PaymentService()


@router.get("/coin-packages", response_model=List[CoinPackage])
async def list_coin_packages():
    """Coin packages available for purchase"""
    return list(COIN_PACKAGES.values())


@router.post("/checkout-item", response_model=CheckoutResponse)
async def checkout_items(
    request: ItemCheckoutRequest,
    db: AsyncSession = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service)
):
    """
    **Start Item Checkout**

    Creates pending orders for the items and a Stripe Checkout session for
    them. An optional shop coupon is applied to every item.

    **Request Body:**
    - **items**: list of `{itemId, itemName, itemPrice, sellerId, buyerId, itemImage?}`
    - **couponCode**: optional coupon code

    **Returns:** the Stripe checkout `url` and `session_id`.
    """
    return await payment_service.create_item_checkout(request, db, stripe)


@router.post("/checkout-coins", response_model=CheckoutResponse)
async def checkout_coins(
    request: CoinCheckoutRequest,
    db: AsyncSession = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service)
):
    """
    **Buy Coins**

    Creates a Stripe Checkout session for a coin package. A coupon assigned to
    the user (such as their welcome coupon) can be applied once.
    """
    return await payment_service.create_coin_checkout(request, db, stripe)


@router.get("/verify-purchase", response_model=CoinPurchaseConfirmation)
async def verify_coin_purchase(
    session_id: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service)
):
    """
    **Confirm Coin Purchase**

    Called from the success page. Credits the coins if the webhook hasn't yet;
    a session is only ever credited once.
    """
    return await payment_service.confirm_coin_purchase(session_id, db, stripe)


@router.post("/verify-item-purchase", response_model=ItemPurchaseConfirmation)
async def verify_item_purchase(
    request: Optional[ItemPurchaseVerifyRequest] = None,
    db: AsyncSession = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service)
):
    """
    **Confirm Item Purchase**

    Called from the success page. Always answers with a confirmation number;
    the orders are included once they are recorded as paid.
    The body is optional.
    """
    session_id = request.session_id if request else None
    return await payment_service.confirm_item_purchase(session_id, db, stripe)


@router.post("/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service)
):
    """
    **Stripe Webhook**

    Receives `checkout.session.completed` events. The raw body is checked
    against the `stripe-signature` header before anything is recorded.
    Other event types are acknowledged and ignored.
    """
    payload = await request.body()
    event = stripe.construct_event(payload, request.headers.get("stripe-signature"))

    try:
        processed = await payment_service.handle_webhook_event(event, db)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Webhook processing failed for event {event.get('id')}: {str(e)}")
        raise ServiceUnavailableException("Failed to record payment")

    return {"received": True, "processed": processed}
