import logging
import math
import secrets
import string
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ..core.config import Config
from ..enums import CheckoutType, OrderStatus
from ..exceptions import (
    BadRequestException,
    NotFoundException,
    PaymentNotConfiguredException,
    PreconditionFailedException,
)
from ..models import CoinPurchase, ItemPurchase, Profile
from ..schemas.payment import CoinCheckoutRequest, CoinPackage, ItemCheckoutRequest
from ..services.coupon_service import CouponService, apply_discount
from ..services.stripe_service import StripeService
from ..utils.verification import generate_token

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"

COIN_PACKAGES: Dict[str, CoinPackage] = {
    "starter": CoinPackage(id="starter", coins=1000, price=10, description="Perfect for getting started"),
    "pro": CoinPackage(id="pro", coins=2500, price=20, description="Best value - save 25%"),
    "premium": CoinPackage(id="premium", coins=6000, price=50, description="Maximum coins"),
}

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_confirmation_number() -> str:
    """8 random characters followed by the base36 millisecond clock"""
    random_part = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"{random_part}{_to_base36(int(time.time() * 1000))}"


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


class PaymentService:
    def __init__(self, coupon_service: Optional[CouponService] = None):
        self.coupon_service = coupon_service or CouponService()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_item_checkout(
        self,
        request: ItemCheckoutRequest,
        db: AsyncSession,
        stripe: StripeService
    ) -> Dict[str, Any]:
        """
        Start a card checkout for one or more items.

        Pending purchase rows are written first so the webhook only has to flip
        them to paid. A coupon use is counted in the same transaction and is
        rolled back if Stripe refuses the session.
        """
        if not stripe.is_configured:
            logger.error("STRIPE_SECRET_KEY is not set")
            raise PaymentNotConfiguredException()

        if not request.items:
            raise BadRequestException("Missing required fields")

        for item in request.items:
            if not item.item_id or not item.item_name or item.item_price is None or not item.seller_id or not item.buyer_id:
                logger.warning(f"Checkout rejected, missing fields on item {item.item_id}")
                raise BadRequestException("Missing required fields")

        buyer_ids = {item.buyer_id for item in request.items}
        if len(buyer_ids) > 1:
            raise BadRequestException("All items in a checkout must have the same buyer")
        buyer_id = buyer_ids.pop()

        # one pending row per (session, item)
        item_ids = [item.item_id for item in request.items]
        if len(set(item_ids)) != len(item_ids):
            raise BadRequestException("Each item can only appear once in a checkout")

        coupon, assigned = None, False
        if request.coupon_code:
            coupon, assigned = await self.coupon_service.get_checkout_coupon(
                request.coupon_code, buyer_id, [item.seller_id for item in request.items], db
            )

        try:
            purchases = []
            line_items = []
            for item in request.items:
                price = item.item_price
                purchase = ItemPurchase(
                    item_id=item.item_id,
                    seller_id=item.seller_id,
                    buyer_id=item.buyer_id,
                    item_name=item.item_name,
                    price=price,
                    status=OrderStatus.PENDING,
                )
                if coupon:
                    purchase.price = apply_discount(price, coupon.discount_percentage)
                    purchase.original_price = price
                    purchase.coupon_code = coupon.code
                    purchase.discount_percentage = coupon.discount_percentage

                db.add(purchase)
                purchases.append(purchase)
                line_items.append({
                    "price_data": {
                        "currency": Config.PAYMENT_CURRENCY,
                        "product_data": {
                            "name": item.item_name,
                            "description": "Purchase from local business",
                            "images": [item.item_image] if item.item_image else [],
                        },
                        "unit_amount": to_cents(purchase.price),
                    },
                    "quantity": 1,
                })

            await db.flush()

            if coupon and assigned:
                await self.coupon_service.use_user_coupon(request.coupon_code, buyer_id, db)
            elif coupon:
                await self.coupon_service.redeem_coupon(coupon, db)

            metadata = {
                "checkoutType": CheckoutType.ITEMS.value,
                "buyerId": str(buyer_id),
                "orderIds": ",".join(str(p.id) for p in purchases),
            }
            if len(request.items) == 1:
                only = request.items[0]
                metadata.update({
                    "itemId": str(only.item_id),
                    "itemName": only.item_name,
                    "sellerId": str(only.seller_id),
                    "itemPrice": str(purchases[0].price),
                })
            if coupon:
                metadata["couponCode"] = coupon.code

            base = Config.BASE_URL.rstrip("/")
            session = await stripe.create_checkout_session(
                line_items=line_items,
                metadata=metadata,
                success_url=f"{base}/purchase-success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base}/profile/{request.items[0].seller_id}?canceled=true",
            )

            for purchase in purchases:
                purchase.stripe_session_id = session["id"]

            await db.commit()

        except Exception:
            await db.rollback()
            raise

        logger.info(f"Item checkout {session['id']} created for buyer {buyer_id} ({len(purchases)} items)")
        return {"url": session["url"], "session_id": session["id"]}

    async def create_coin_checkout(
        self,
        request: CoinCheckoutRequest,
        db: AsyncSession,
        stripe: StripeService
    ) -> Dict[str, Any]:
        if not stripe.is_configured:
            logger.error("STRIPE_SECRET_KEY is not set")
            raise PaymentNotConfiguredException()

        package = COIN_PACKAGES.get(request.package_id)
        if not package:
            raise BadRequestException(f"Unknown coin package '{request.package_id}'")

        profile = await db.get(Profile, request.user_id)
        if not profile:
            raise NotFoundException("User not found")

        try:
            price = package.price
            metadata = {
                "checkoutType": CheckoutType.COINS.value,
                "userId": str(request.user_id),
                "coins": str(package.coins),
                "packageId": package.id,
            }

            if request.coupon_code:
                user_coupon = await self.coupon_service.use_user_coupon(request.coupon_code, request.user_id, db)
                discount = math.ceil(package.price * (user_coupon.coupon.discount_percentage / 100))
                price = max(0, package.price - discount)
                metadata["couponCode"] = user_coupon.coupon.code

            base = Config.BASE_URL.rstrip("/")
            session = await stripe.create_checkout_session(
                line_items=[{
                    "price_data": {
                        "currency": Config.PAYMENT_CURRENCY,
                        "product_data": {
                            "name": f"{package.coins} Coins",
                            "description": package.description,
                        },
                        "unit_amount": to_cents(price),
                    },
                    "quantity": 1,
                }],
                metadata=metadata,
                success_url=f"{base}/buy-coins/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base}/buy-coins?canceled=true",
            )
            await db.commit()

        except Exception:
            await db.rollback()
            raise

        return {"url": session["url"], "session_id": session["id"]}

    # ------------------------------------------------------------------
    # Recording payments
    # ------------------------------------------------------------------

    async def credit_coins(
        self,
        session_id: str,
        user_id: int,
        coins: int,
        amount_cents: Optional[int],
        db: AsyncSession
    ) -> Tuple[Optional[int], bool]:
        """
        Credit a coin purchase once per Stripe session.

        The purchase row goes in first; its unique session id makes a duplicate
        delivery fail before the balance moves. Returns (new_balance, already_processed).
        """
        db.add(CoinPurchase(
            user_id=user_id,
            coins=coins,
            amount_cents=amount_cents,
            stripe_session_id=session_id,
        ))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.info(f"Coin purchase already processed for session {session_id}")
            return None, True

        stmt = (
            update(Profile)
            .where(Profile.id == user_id)
            .values(coin_balance=Profile.coin_balance + coins)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:
            await db.rollback()
            raise NotFoundException("User not found")

        await db.commit()

        profile = await db.get(Profile, user_id)
        await db.refresh(profile)
        logger.info(f"Added {coins} coins to user {user_id}. New balance: {profile.coin_balance}")
        return profile.coin_balance, False

    async def mark_items_paid(self, session: Dict[str, Any], db: AsyncSession) -> Tuple[List[ItemPurchase], bool]:
        """
        Move the session's pending item purchases to paid and issue their pickup
        tokens. When checkout rows are missing, the single item in the session
        metadata is recorded directly.

        Returns the purchases and whether this call changed any of them.
        """
        session_id = session["id"]
        purchases = await self._purchases_for_session(session_id, db)

        if not purchases:
            purchase = self._purchase_from_metadata(session)
            if purchase is None:
                logger.error(f"No purchases or item metadata for session {session_id}")
                return [], False

            db.add(purchase)
            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                logger.info(f"Item purchase already recorded for session {session_id}")
                return await self._purchases_for_session(session_id, db), False

            purchase.verification_token = generate_token(str(purchase.id))
            await db.commit()
            await db.refresh(purchase)
            logger.info(f"Item purchase recorded: {purchase.item_name} sold by {purchase.seller_id} to {purchase.buyer_id}")
            return [purchase], True

        changed = 0
        for purchase in purchases:
            stmt = (
                update(ItemPurchase)
                .where(
                    and_(
                        ItemPurchase.id == purchase.id,
                        ItemPurchase.status == OrderStatus.PENDING
                    )
                )
                .values(
                    status=OrderStatus.PAID,
                    verification_token=generate_token(str(purchase.id)),
                    purchased_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(stmt)
            changed += result.rowcount

        await db.commit()
        for purchase in purchases:
            await db.refresh(purchase)

        if changed:
            logger.info(f"Marked {changed} item purchases paid for session {session_id}")
        else:
            logger.info(f"Item purchases already processed for session {session_id}")
        return purchases, changed > 0

    async def _purchases_for_session(self, session_id: str, db: AsyncSession) -> List[ItemPurchase]:
        query = select(ItemPurchase).where(ItemPurchase.stripe_session_id == session_id).order_by(ItemPurchase.id)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _purchase_from_metadata(session: Dict[str, Any]) -> Optional[ItemPurchase]:
        metadata = session.get("metadata") or {}
        if not (metadata.get("itemId") and metadata.get("buyerId") and metadata.get("sellerId")):
            return None

        return ItemPurchase(
            item_id=int(metadata["itemId"]),
            seller_id=int(metadata["sellerId"]),
            buyer_id=int(metadata["buyerId"]),
            item_name=metadata.get("itemName") or "Unknown Item",
            price=float(metadata.get("itemPrice") or 0),
            stripe_session_id=session["id"],
            status=OrderStatus.PAID,
        )

    # ------------------------------------------------------------------
    # Webhook and confirmations
    # ------------------------------------------------------------------

    async def handle_webhook_event(self, event: Dict[str, Any], db: AsyncSession) -> bool:
        """Process a verified Stripe event. Returns True when something was recorded."""
        if event.get("type") != CHECKOUT_COMPLETED:
            return False

        session = event["data"]["object"]
        if session.get("payment_status") != "paid":
            logger.info(f"Checkout session {session.get('id')} not fully paid. Status: {session.get('payment_status')}")
            return False

        metadata = session.get("metadata") or {}

        if metadata.get("coins") and metadata.get("userId"):
            _, already_processed = await self.credit_coins(
                session_id=session["id"],
                user_id=int(metadata["userId"]),
                coins=int(metadata["coins"]),
                amount_cents=session.get("amount_total"),
                db=db,
            )
            return not already_processed

        if metadata.get("checkoutType") == CheckoutType.ITEMS.value or metadata.get("itemId"):
            _, newly_paid = await self.mark_items_paid(session, db)
            return newly_paid

        logger.error(f"Webhook: unrecognized session metadata {metadata}")
        return False

    async def confirm_coin_purchase(self, session_id: str, db: AsyncSession, stripe: StripeService) -> Dict[str, Any]:
        """Success-page fallback for coin purchases, in case the webhook is late"""
        if not session_id:
            raise BadRequestException("Missing session_id")

        session = await stripe.retrieve_checkout_session(session_id)
        if not session:
            raise NotFoundException("Session not found")

        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        coins = int(metadata.get("coins") or 0)
        if not user_id or not coins:
            raise BadRequestException("Missing metadata in session")

        if session.get("payment_status") != "paid":
            raise PreconditionFailedException("Payment has not completed")

        new_balance, already_processed = await self.credit_coins(
            session_id=session_id,
            user_id=int(user_id),
            coins=coins,
            amount_cents=session.get("amount_total"),
            db=db,
        )
        if already_processed:
            profile = await db.get(Profile, int(user_id))
            new_balance = profile.coin_balance if profile else None

        return {
            "success": True,
            "coins_added": coins,
            "new_balance": new_balance,
            "already_processed": already_processed,
        }

    async def confirm_item_purchase(
        self,
        session_id: Optional[str],
        db: AsyncSession,
        stripe: StripeService
    ) -> Dict[str, Any]:
        """
        Success-page confirmation for item purchases.

        Always reports success so the buyer sees a confirmation, even if Stripe
        or the database fails here; the webhook remains the durable record.
        """
        confirmation_number = generate_confirmation_number()
        response = {
            "success": True,
            "confirmation_number": confirmation_number,
            "message": "Order confirmed",
            "orders": [],
        }

        if not session_id:
            return response

        try:
            session = await stripe.retrieve_checkout_session(session_id)
            if not session or not session.get("metadata"):
                return response

            if session.get("payment_status") == "paid":
                purchases, _ = await self.mark_items_paid(session, db)
            else:
                purchases = await self._purchases_for_session(session_id, db)

            response["message"] = "Purchase confirmed"
            response["orders"] = purchases
        except Exception as e:
            logger.error(f"Verification error for session {session_id}: {str(e)}")
            await db.rollback()
            response["message"] = "Order confirmed - will be processed"

        return response
