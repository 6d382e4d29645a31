from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from contextlib import asynccontextmanager

from storeadmin.config import get_settings
from storeadmin.database import check_db_connection, init_db
from storeadmin.api.account_routes import router as account_router
from storeadmin.metrics import metrics_router, metrics_middleware
from storeadmin.logging_config import setup_logging, log_requests_middleware
from storeadmin.error_handlers import register_error_handlers
from storeadmin.middleware.rate_limit import limiter, rate_limit_handler, SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

settings = get_settings()

setup_logging(
    log_level=settings.log_level,
    log_dir=settings.log_dir,
    app_name="storeadmin-api",
    enable_json=settings.log_json
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown tasks"""
    logger.info("Starting application...")

    if settings.auto_create_tables:
        init_db()
        logger.info("Database tables ensured")

    if settings.mail_transport == "console":
        logger.warning("MAIL_TRANSPORT=console: account e-mails are logged, not delivered")

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title=settings.app_name,
    description="Store administration API: customer account e-mails",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None,
)

cors_origins = settings.cors_origins if settings.cors_origins else (["*"] if settings.debug else [])
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Retry-After"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_middleware(SlowAPIMiddleware)

register_error_handlers(app)

if settings.enable_request_logging:
    app.middleware("http")(log_requests_middleware)

app.include_router(account_router, prefix="/api")
app.include_router(metrics_router)

app.middleware("http")(metrics_middleware)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Store Admin API",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint with database connectivity test"""
    db_connected = check_db_connection()

    logger.debug("Health check performed", extra={"db_connected": db_connected})

    return {
        "status": "healthy" if db_connected else "unhealthy",
        "service": settings.app_name,
        "database": "connected" if db_connected else "disconnected"
    }
