import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from localys.caching import MetricsCache
from localys.core.config import Config
from localys.db.database import init_db
from localys.exceptions import (
    create_exception_handler,
    InvalidWebhookSignatureException,
    MissingWebhookSignatureException,
    PaymentNotConfiguredException,
    PaymentProviderException,
    unhandled_exception_handler,
)
from localys.routers.bot_check import router as bot_check_router
from localys.routers.businesses import router as businesses_router
from localys.routers.coupons import router as coupons_router
from localys.routers.messages import router as messages_router
from localys.routers.orders import router as orders_router
from localys.routers.payments import router as payments_router
from localys.routers.profiles import router as profiles_router
from localys.routers.search import router as search_router
from localys.routers.social import router as social_router
from localys.routers.videos import router as videos_router

logger = logging.getLogger(__name__)

api_version = "v1"
swagger_docs_url = f"/api/{api_version}/docs"
redoc_docs_url = f"/api/{api_version}/redoc"
openapi_url = f"/api/{api_version}/openapi.json"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=Config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    logger.info("Localys API started")
    yield


app = FastAPI(
    docs_url=swagger_docs_url,
    redoc_url=redoc_docs_url,
    openapi_url=openapi_url,
    title="Localys API",
    description="Local business discovery: short videos, menus, search, social features, messaging, coin promotions and pickup orders.",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.metrics_cache = MetricsCache(
    default_ttl=Config.METRICS_CACHE_TTL,
    max_size=Config.METRICS_CACHE_MAX_SIZE,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE'],
    allow_headers=["*"],
)

# Register endpoints
app.include_router(profiles_router, prefix=f'/api/{api_version}', tags=["Profiles"])
app.include_router(businesses_router, prefix=f'/api/{api_version}', tags=["Businesses"])
app.include_router(videos_router, prefix=f'/api/{api_version}', tags=["Videos & Promotions"])
app.include_router(social_router, prefix=f'/api/{api_version}', tags=["Likes, Bookmarks & Comments"])
app.include_router(messages_router, prefix=f'/api/{api_version}', tags=["Messages"])
app.include_router(search_router, prefix=f'/api/{api_version}', tags=["Search"])
app.include_router(coupons_router, prefix=f'/api/{api_version}', tags=["Coupons"])
app.include_router(orders_router, prefix=f'/api/{api_version}/orders', tags=["Orders"])
app.include_router(payments_router, prefix=f'/api/{api_version}', tags=["Payments"])
app.include_router(bot_check_router, prefix=f'/api/{api_version}', tags=["Bot Check"])


@app.get("/")
async def root():
    return {
        "message": "Localys API",
        "version": "1.0.0",
        "docs": swagger_docs_url,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

# Register custom exceptions

# Payment-related exception handlers
app.add_exception_handler(PaymentNotConfiguredException, create_exception_handler(500, "Payment system not configured"))
app.add_exception_handler(MissingWebhookSignatureException, create_exception_handler(400, "Missing stripe signature"))
app.add_exception_handler(InvalidWebhookSignatureException, create_exception_handler(400, "Invalid signature"))
app.add_exception_handler(PaymentProviderException, create_exception_handler(500, "Payment provider error. Please try again later."))
app.add_exception_handler(Exception, unhandled_exception_handler)
