from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..enums import OrderStatus
from ..models.base import TimeStampMixin


class CoinPurchase(Base, TimeStampMixin):
    __tablename__ = "coin_purchases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    coins = Column(Integer, nullable=False)
    amount_cents = Column(Integer, nullable=True)
    stripe_session_id = Column(String, nullable=True, unique=True, index=True)   # dedup key

    user = relationship("Profile")


class ItemPurchase(Base, TimeStampMixin):
    __tablename__ = "item_purchases"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    seller_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    item_name = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    original_price = Column(Float, nullable=True)
    coupon_code = Column(String, nullable=True)
    discount_percentage = Column(Float, nullable=True)
    verification_token = Column(String, nullable=True)   # issued when the order becomes paid
    stripe_session_id = Column(String, nullable=True, index=True)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    purchased_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    seller = relationship("Profile", foreign_keys=[seller_id])
    buyer = relationship("Profile", foreign_keys=[buyer_id])

    # At most one row per item per checkout session
    __table_args__ = (
        UniqueConstraint("stripe_session_id", "item_id", name="uq_item_purchase_session_item"),
    )
