from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """
    Settings class to retrieve environment variables.
    """

    DATABASE_URL: str = "sqlite+aiosqlite:///./localys.db"
    BASE_URL: str = "http://localhost:3000"     # public web app, used in redirect and QR urls
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost",
        "http://localhost:3000",
    ]

    # Pickup verification
    ORDER_VERIFICATION_SECRET: str = "dev-secret-change-in-production"

    # Stripe Configuration
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_WEBHOOK_TOLERANCE: int = 300
    PAYMENT_CURRENCY: str = "usd"

    # Cloudflare Turnstile
    TURNSTILE_SECRET_KEY: Optional[str] = None
    TURNSTILE_VERIFY_URL: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

    # Business metrics cache
    METRICS_CACHE_TTL: int = 300
    METRICS_CACHE_MAX_SIZE: int = 1000

    model_config = SettingsConfigDict(
        env_file='.env',
        extra='ignore',
    )


Config = Settings()
