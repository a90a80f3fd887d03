import hashlib
import hmac

from ..core.config import Config


def _secret() -> bytes:
    return Config.ORDER_VERIFICATION_SECRET.encode()


def generate_token(order_id: str) -> str:
    """
    Pickup token for an order: hex HMAC-SHA256 of the order id.

    The token is derived, never stored as a secret of its own, so it can be
    recomputed from the id at any time. It stays valid for the life of the
    order; completing twice is blocked by the order status instead.
    """
    return hmac.new(_secret(), str(order_id).encode(), hashlib.sha256).hexdigest()


def verify_token(order_id: str, token: str) -> bool:
    if not token:
        return False
    expected = generate_token(order_id)
    # compare bytes so non-ascii input is rejected instead of raising
    return hmac.compare_digest(expected.encode(), str(token).encode("utf-8", "replace"))
