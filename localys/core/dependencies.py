from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import AsyncGenerator

from ..caching import MetricsCache
from ..db.database import AsyncSessionLocal
from ..services.stripe_service import StripeService
from ..services.turnstile_service import TurnstileService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Asynchronous dependency that provides a database session for FastAPI routes.

    Yields:
        AsyncSession: An instance of the asynchronous database session.

    Usage:
        Use as a dependency in FastAPI endpoints to access the database session.
        The session is automatically closed after the request is processed.
    """

    async with AsyncSessionLocal() as db:
        yield db


def get_metrics_cache(request: Request) -> MetricsCache:
    """The application-wide business metrics cache."""
    return request.app.state.metrics_cache


def get_stripe_service() -> StripeService:
    return StripeService()


def get_turnstile_service() -> TurnstileService:
    return TurnstileService()


def get_client_ip(request: Request) -> str:
    """Caller IP, preferring the first hop of X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""
