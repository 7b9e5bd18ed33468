# backend/studysphere/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from . import __version__
from .core.config import settings
from .core.metrics import REGISTRY
from .database import init_db
from .errors import register_error_handlers
from .routes.v1 import (
    classroom as classroom_v1,
    payments as payments_v1,
    session_requests as session_requests_v1,
    sessions as sessions_v1,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info("StudySphere API starting up...")
    logger.info(f"Environment: {settings.environment}, payment mode: {settings.payment_mode}")
    if settings.payment_mode != "development" and not settings.gateway_configured:
        logger.warning("Razorpay credentials are missing; gateway calls will fail")

    if settings.database_url.startswith("sqlite") or settings.environment == "development":
        init_db()

    yield

    logger.info("StudySphere API shutting down...")


app = FastAPI(
    title="StudySphere API",
    description="Tutoring sessions, session requests, payments and classrooms",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
# Register unified error envelope handlers
register_error_handlers(app)


api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(sessions_v1.router, prefix="/sessions")
api_v1.include_router(session_requests_v1.router, prefix="/session-requests")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(classroom_v1.router, prefix="/classroom")

app.include_router(api_v1)


@app.get("/health")
async def health_check() -> dict:
    return {"status": "healthy", "paymentMode": settings.payment_mode}


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


__all__ = ["app"]
