import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import Config
from ..exceptions import (
    InvalidWebhookSignatureException,
    MissingWebhookSignatureException,
    PaymentNotConfiguredException,
    PaymentProviderException,
)

logger = logging.getLogger(__name__)


def _flatten_params(value: Any, prefix: str = "") -> List[tuple]:
    """
    Encode nested dicts/lists the way Stripe's form API expects them,
    e.g. ``line_items[0][price_data][currency]=usd``.
    """
    pairs = []
    if isinstance(value, dict):
        for key, inner in value.items():
            name = f"{prefix}[{key}]" if prefix else str(key)
            pairs.extend(_flatten_params(inner, name))
    elif isinstance(value, (list, tuple)):
        for index, inner in enumerate(value):
            pairs.extend(_flatten_params(inner, f"{prefix}[{index}]"))
    elif value is None:
        pass
    elif isinstance(value, bool):
        pairs.append((prefix, "true" if value else "false"))
    else:
        pairs.append((prefix, str(value)))
    return pairs


def parse_signature_header(header: str) -> Dict[str, List[str]]:
    """Split ``t=123,v1=abc,v1=def`` into {"t": ["123"], "v1": ["abc", "def"]}."""
    parts: Dict[str, List[str]] = {}
    for item in header.split(","):
        key, sep, val = item.strip().partition("=")
        if sep:
            parts.setdefault(key, []).append(val)
    return parts


def compute_signature(payload: bytes, timestamp: str, secret: str) -> str:
    signed_payload = timestamp.encode() + b"." + payload
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


class StripeService:
    """Thin async client for the parts of the Stripe API the checkout uses."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        api_base: Optional[str] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else Config.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else Config.STRIPE_WEBHOOK_SECRET
        self.api_base = api_base or Config.STRIPE_API_BASE

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def _headers(self) -> Dict[str, str]:
        if not self.secret_key:
            logger.error("STRIPE_SECRET_KEY is not set")
            raise PaymentNotConfiguredException()
        return {"Authorization": f"Bearer {self.secret_key}"}

    async def _request(self, method: str, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        headers = self._headers()

        try:
            async with httpx.AsyncClient(timeout=30) as client:
                if method == "GET":
                    response = await client.get(url, headers=headers)
                else:
                    response = await client.post(url, headers=headers, data=_flatten_params(data or {}))
        except httpx.RequestError as e:
            logger.error(f"Network error calling Stripe {path}: {str(e)}")
            raise PaymentProviderException(f"Network error calling Stripe: {str(e)}")

        body = response.json()
        if response.status_code != 200:
            message = body.get("error", {}).get("message", response.text)
            logger.error(f"Stripe {path} failed with {response.status_code}: {message}")
            raise PaymentProviderException(message)

        return body

    async def create_checkout_session(
        self,
        line_items: List[Dict[str, Any]],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """Create a hosted Checkout Session in payment mode. Returns the session object."""
        payload = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        session = await self._request("POST", "/checkout/sessions", payload)
        logger.info(f"Checkout session created: {session.get('id')}")
        return session

    async def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/checkout/sessions/{session_id}")

    def construct_event(self, payload: bytes, signature_header: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook delivery and return the parsed event.

        The header carries a timestamp and one or more v1 signatures, each an
        HMAC-SHA256 of ``"{timestamp}.{payload}"`` under the endpoint secret.
        """
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not set")
            raise PaymentNotConfiguredException()

        if not signature_header:
            raise MissingWebhookSignatureException()

        parts = parse_signature_header(signature_header)
        timestamps = parts.get("t")
        signatures = parts.get("v1", [])
        if not timestamps or not signatures:
            raise InvalidWebhookSignatureException()

        timestamp = timestamps[0]
        try:
            age = time.time() - int(timestamp)
        except ValueError:
            raise InvalidWebhookSignatureException()
        if age > Config.STRIPE_WEBHOOK_TOLERANCE:
            logger.warning(f"Rejected webhook with stale timestamp ({int(age)}s old)")
            raise InvalidWebhookSignatureException()

        expected = compute_signature(payload, timestamp, self.webhook_secret)
        if not any(hmac.compare_digest(expected.encode(), sig.encode("utf-8", "replace")) for sig in signatures):
            raise InvalidWebhookSignatureException()

        try:
            return json.loads(payload)
        except ValueError:
            raise InvalidWebhookSignatureException()
