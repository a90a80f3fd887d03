from pydantic import BaseModel, Field
from typing import Optional, List

from .order import BuyerItemPurchaseResponse


class CheckoutItem(BaseModel):
    """One line of an item checkout"""
    item_id: Optional[int] = Field(None, alias="itemId")
    item_name: Optional[str] = Field(None, alias="itemName")
    item_price: Optional[float] = Field(None, alias="itemPrice", ge=0)
    seller_id: Optional[int] = Field(None, alias="sellerId")
    buyer_id: Optional[int] = Field(None, alias="buyerId")
    item_image: Optional[str] = Field(None, alias="itemImage")

    model_config = {"populate_by_name": True}


class ItemCheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(default_factory=list)
    coupon_code: Optional[str] = Field(None, alias="couponCode")

    model_config = {"populate_by_name": True}


class CoinCheckoutRequest(BaseModel):
    package_id: str = Field(..., alias="packageId")
    user_id: int = Field(..., alias="userId")
    coupon_code: Optional[str] = Field(None, alias="couponCode")

    model_config = {"populate_by_name": True}


class CheckoutResponse(BaseModel):
    url: str
    session_id: str


class CoinPackage(BaseModel):
    id: str
    coins: int
    price: int   # whole dollars
    description: str


class CoinPurchaseConfirmation(BaseModel):
    success: bool = True
    coins_added: int
    new_balance: Optional[int] = None
    already_processed: bool = False


class ItemPurchaseVerifyRequest(BaseModel):
    session_id: Optional[str] = Field(None, alias="sessionId")

    model_config = {"populate_by_name": True}


class ItemPurchaseConfirmation(BaseModel):
    success: bool = True
    confirmation_number: str
    message: str
    orders: List[BuyerItemPurchaseResponse] = Field(default_factory=list)


class WebhookAck(BaseModel):
    received: bool = True
    processed: bool = False


class BotCheckRequest(BaseModel):
    token: Optional[str] = None


class BotCheckResponse(BaseModel):
    success: bool
    bypassed: bool = False
