from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ..core.dependencies import get_db
from ..enums import OrderStatus
from ..models import CoinPurchase
from ..schemas.order import (
    BuyerItemPurchaseResponse,
    CoinPurchaseResponse,
    ItemPurchaseResponse,
    OrderCompleteRequest,
    OrderCompleteResponse,
    OrderHistoryResponse,
    OrderPublic,
)
from ..services.order_service import OrderService

router = APIRouter()

order_service = OrderService()


@router.get("/verify", response_model=OrderPublic)
async def verify_order(
    id: Optional[int] = Query(None, description="Order id from the QR code"),
    token: Optional[str] = Query(None, description="Verification token from the QR code"),
    db: AsyncSession = Depends(get_db)
):
    """
    **Verify Pickup QR Code**

    Landing endpoint for a scanned pickup QR code. Checks the token and returns
    the order so the seller can confirm it before handing the item over.

    **Errors:**
    - 400 when `id` or `token` is missing
    - 403 when the token doesn't match the order
    - 404 when the order doesn't exist
    """
    return await order_service.get_order_for_verification(id, token, db)


@router.post("/complete", response_model=OrderCompleteResponse)
async def complete_order(
    request: OrderCompleteRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    **Complete Order**

    Marks a paid order as completed after the seller scanned its QR code.
    A second scan of the same code gets 409.
    """
    order = await order_service.complete_order(request.order_id, request.token, db)
    return {"success": True, "order": order}


@router.get("/history/{user_id}", response_model=OrderHistoryResponse)
async def get_order_history(
    user_id: int,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    """
    **Get Order History**

    Coin purchases and item purchases of a user, newest first. Paid item
    purchases include their pickup verification token.
    """
    skip = (page - 1) * size
    orders, total = await order_service.get_buyer_orders(user_id, db, skip, size)

    return {
        "orders": [
            CoinPurchaseResponse.model_validate(order) if isinstance(order, CoinPurchase)
            else BuyerItemPurchaseResponse.model_validate(order)
            for order in orders
        ],
        "total": total,
    }


@router.get("/sales/{seller_id}", response_model=List[ItemPurchaseResponse])
async def get_seller_sales(
    seller_id: int,
    status: Optional[OrderStatus] = Query(None, description="Only sales in this status"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """
    **Get Seller Sales**

    Item purchases sold by a business owner, optionally filtered by status
    (e.g. `paid` for orders waiting to be picked up).
    """
    skip = (page - 1) * size
    return await order_service.get_seller_sales(seller_id, db, status, skip, size)


@router.get("/{order_id}/qr-url")
async def get_order_qr_url(
    order_id: int,
    buyer_id: int = Query(..., description="Buyer requesting the code"),
    db: AsyncSession = Depends(get_db)
):
    """URL encoded in the pickup QR code of a paid order"""
    url = await order_service.get_verification_url(order_id, buyer_id, db)
    return {"order_id": order_id, "url": url}


@router.get("/{order_id}/qr")
async def get_order_qr(
    order_id: int,
    buyer_id: int = Query(..., description="Buyer requesting the code"),
    db: AsyncSession = Depends(get_db)
):
    """Pickup QR code of a paid order as a PNG image"""
    png = await order_service.get_verification_qr(order_id, buyer_id, db)
    return Response(content=png, media_type="image/png")
