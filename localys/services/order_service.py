import logging
from typing import List, Optional, Tuple, Union

from sqlalchemy import and_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ..enums import OrderStatus
from ..exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PreconditionFailedException,
    ServiceUnavailableException,
)
from ..models import CoinPurchase, ItemPurchase
from ..utils.qr import build_verification_url, render_qr_png
from ..utils.verification import generate_token, verify_token

logger = logging.getLogger(__name__)


class OrderService:
    async def get_item_purchase(self, order_id: int, db: AsyncSession) -> ItemPurchase:
        order = await db.get(ItemPurchase, order_id)
        if not order:
            raise NotFoundException("Order not found")
        return order

    def _check_token(self, order_id, token: Optional[str]) -> None:
        if order_id is None or not token:
            raise BadRequestException("Missing orderId or token")

        if not verify_token(str(order_id), token):
            raise ForbiddenException("Invalid verification token")

    async def get_order_for_verification(self, order_id: int, token: str, db: AsyncSession) -> ItemPurchase:
        """
        Lookup behind the QR landing page. Token is checked first, then the
        order is returned whatever its status so the seller can see it.
        """
        self._check_token(order_id, token)
        return await self.get_item_purchase(order_id, db)

    async def complete_order(self, order_id: int, token: str, db: AsyncSession) -> ItemPurchase:
        """
        Move a paid order to completed after a pickup QR scan.

        The token never expires, so replays are stopped by the status check:
        the UPDATE only matches while the row is still ``paid``.
        """
        self._check_token(order_id, token)

        try:
            order = await self.get_item_purchase(order_id, db)

            if order.status == OrderStatus.COMPLETED:
                raise ConflictException("Order already completed")

            if order.status != OrderStatus.PAID:
                raise PreconditionFailedException(
                    f"Order status is '{order.status.value}', expected 'paid'"
                )

            stmt = (
                update(ItemPurchase)
                .where(
                    and_(
                        ItemPurchase.id == order_id,
                        ItemPurchase.status == OrderStatus.PAID
                    )
                )
                .values(status=OrderStatus.COMPLETED)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(stmt)

            if result.rowcount == 0:
                # someone else completed it between the read and the update
                await db.rollback()
                raise ConflictException("Order already completed")

            await db.commit()
            await db.refresh(order)

            logger.info(f"Order {order_id} completed by pickup scan")
            return order

        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Error completing order {order_id}: {str(e)}")
            raise ServiceUnavailableException("Failed to complete order")

    async def get_verification_url(self, order_id: int, buyer_id: int, db: AsyncSession) -> str:
        """QR payload for a buyer's paid order"""
        order = await self.get_item_purchase(order_id, db)

        if order.buyer_id != buyer_id:
            raise ForbiddenException("You can only view QR codes for your own orders")

        if order.status != OrderStatus.PAID:
            raise PreconditionFailedException(
                f"Order status is '{order.status.value}', QR codes are only issued for paid orders"
            )

        token = order.verification_token or generate_token(str(order.id))
        return build_verification_url(order.id, token)

    async def get_verification_qr(self, order_id: int, buyer_id: int, db: AsyncSession) -> bytes:
        url = await self.get_verification_url(order_id, buyer_id, db)
        return render_qr_png(url)

    async def get_buyer_orders(
        self,
        user_id: int,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Union[CoinPurchase, ItemPurchase]], int]:
        """Coin and item purchases of a user, newest first, with the overall count"""
        coin_query = select(CoinPurchase).where(CoinPurchase.user_id == user_id)
        coin_purchases = (await db.execute(coin_query)).scalars().all()

        item_query = select(ItemPurchase).where(ItemPurchase.buyer_id == user_id)
        item_purchases = (await db.execute(item_query)).scalars().all()

        orders = list(coin_purchases) + list(item_purchases)
        orders.sort(key=self._order_timestamp, reverse=True)
        return orders[skip:skip + limit], len(orders)

    async def get_seller_sales(
        self,
        seller_id: int,
        db: AsyncSession,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[ItemPurchase]:
        query = select(ItemPurchase).where(ItemPurchase.seller_id == seller_id)
        if status is not None:
            query = query.where(ItemPurchase.status == status)

        query = query.order_by(ItemPurchase.purchased_at.desc(), ItemPurchase.id.desc()).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _order_timestamp(order):
        if isinstance(order, ItemPurchase):
            return order.purchased_at
        return order.created_at
