from contextlib import asynccontextmanager

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import async_session_factory, dispose_engine
from app.errors import MarketplaceError
from app.gateway.memory import MemoryGateway
from app.gateway.sql import sql_change_feed
from app.logging_config import configure_logging
from app.metrics import metrics_endpoint
from app.middleware.logging_middleware import RequestLoggingMiddleware
from app.routers import auth, products, questions, reviews, users
from app.schemas.common import ErrorResponse

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    # Startup: Redis for rate limiting, then the persistence backend
    app.state.redis = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    if settings.gateway_backend == "memory":
        app.state.memory_gateway = MemoryGateway()
    else:
        app.state.change_feed = sql_change_feed(async_session_factory)
    log.info("app_started", gateway_backend=settings.gateway_backend)
    try:
        yield
    finally:
        await app.state.redis.aclose()
        await dispose_engine()


app = FastAPI(title=f"{settings.app_name} API", version="0.1.0", lifespan=lifespan)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("marketplace_error", kind=exc.kind, detail=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.kind, detail=exc.detail).model_dump(),
    )


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(products.router)
app.include_router(reviews.router)
app.include_router(questions.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
