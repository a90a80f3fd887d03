from fastapi import APIRouter, Depends, Request

from ..core.dependencies import get_client_ip, get_turnstile_service
from ..schemas.payment import BotCheckRequest, BotCheckResponse
from ..services.turnstile_service import TurnstileService

router = APIRouter()


@router.post("/verify-turnstile", response_model=BotCheckResponse)
async def verify_turnstile(
    body: BotCheckRequest,
    request: Request,
    turnstile: TurnstileService = Depends(get_turnstile_service)
):
    """
    **Verify Turnstile Token**

    Server-side check of a Cloudflare Turnstile challenge before sign-up or
    checkout. Passes without calling Cloudflare when no secret is configured.

    **Errors:**
    - 400 when no token is sent
    - 403 when Cloudflare rejects the token
    - 500 when Cloudflare can't be reached
    """
    success = await turnstile.verify(body.token, get_client_ip(request))
    return {"success": success, "bypassed": turnstile.is_bypassed}
