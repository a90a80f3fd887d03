from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Union
from datetime import datetime

from ..enums import OrderStatus


class CoinPurchaseResponse(BaseModel):
    """Schema for coin purchase history entries"""
    kind: Literal["coin_purchase"] = "coin_purchase"
    id: int
    user_id: int
    coins: int
    amount_cents: Optional[int] = None
    stripe_session_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ItemPurchaseResponse(BaseModel):
    """Schema for item purchase history entries"""
    kind: Literal["item_purchase"] = "item_purchase"
    id: int
    item_id: int
    seller_id: int
    buyer_id: int
    item_name: str
    price: float
    original_price: Optional[float] = None
    coupon_code: Optional[str] = None
    discount_percentage: Optional[float] = None
    status: OrderStatus
    purchased_at: datetime

    class Config:
        from_attributes = True


class BuyerItemPurchaseResponse(ItemPurchaseResponse):
    """Buyer's view of an item purchase, including the pickup token once paid"""
    verification_token: Optional[str] = None


OrderResponse = Union[CoinPurchaseResponse, BuyerItemPurchaseResponse]


class OrderHistoryResponse(BaseModel):
    orders: List[OrderResponse] = Field(default_factory=list)
    total: int


class OrderPublic(BaseModel):
    """Fields shown to the seller after scanning a pickup QR code"""
    id: int
    item_name: str
    price: float
    status: OrderStatus
    seller_id: int
    buyer_id: int

    class Config:
        from_attributes = True


class OrderCompleteRequest(BaseModel):
    order_id: Optional[int] = Field(None, alias="orderId")
    token: Optional[str] = None

    model_config = {"populate_by_name": True}


class OrderCompleteResponse(BaseModel):
    success: bool = True
    order: OrderPublic
