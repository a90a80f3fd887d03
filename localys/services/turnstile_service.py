import logging
from typing import Optional

import httpx

from ..core.config import Config
from ..exceptions import BadRequestException, ForbiddenException, ServiceUnavailableException

logger = logging.getLogger(__name__)


class TurnstileService:
    """Server-side check of a Cloudflare Turnstile challenge token."""

    def __init__(self, secret_key: Optional[str] = None, verify_url: Optional[str] = None):
        self.secret_key = secret_key if secret_key is not None else Config.TURNSTILE_SECRET_KEY
        self.verify_url = verify_url or Config.TURNSTILE_VERIFY_URL

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        """
        Returns True when the challenge passed (or when no secret is configured,
        which is the development bypass). Raises 403 on a failed challenge.
        """
        if not token:
            raise BadRequestException("No token provided")

        if not self.secret_key:
            logger.warning("TURNSTILE_SECRET_KEY is not set, skipping bot check")
            return True

        payload = {"secret": self.secret_key, "response": token}
        if remote_ip:
            payload["remoteip"] = remote_ip

        try:
            data = await self._siteverify(payload)
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Turnstile verification request failed: {str(e)}")
            raise ServiceUnavailableException("Bot check is unavailable. Please try again later.")

        if not data.get("success"):
            logger.info(f"Turnstile rejected token: {data.get('error-codes')}")
            raise ForbiddenException("Turnstile verification failed")

        return True

    async def _siteverify(self, payload: dict) -> dict:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(self.verify_url, data=payload)
        return response.json()

    @property
    def is_bypassed(self) -> bool:
        return not self.secret_key
