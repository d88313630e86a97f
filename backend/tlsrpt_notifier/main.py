from fastapi import FastAPI
from fastapi.responses import FileResponse
from pathlib import Path
import logging
from contextlib import asynccontextmanager

from tlsrpt_notifier.config import get_settings
from tlsrpt_notifier.api.tls_rpt_routes import router as tls_rpt_router
from tlsrpt_notifier.metrics import metrics_router, metrics_middleware
from tlsrpt_notifier.logging_config import setup_logging, log_requests_middleware
from tlsrpt_notifier.error_handlers import register_error_handlers

STATIC_DIR = Path(__file__).resolve().parent / "static"

settings = get_settings()

setup_logging(
    log_level=settings.log_level,
    log_dir=settings.log_dir,
    app_name="tlsrpt-notifier",
    enable_json=settings.log_json
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown tasks"""
    logger.info("Starting application...")

    if not settings.mail_enabled:
        logger.warning("SMTP_HOST/SMTP_USERNAME not set - alert emails are disabled")
    elif not settings.recipients:
        logger.warning("RECIPIENT not set - alert emails will not be sent")
    else:
        logger.info(
            f"Alert emails go to {len(settings.recipients)} recipient(s) via "
            f"{settings.smtp_host}:{settings.smtp_port}, cooldown {settings.email_cooldown}s"
        )

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title=settings.app_name,
    description="SMTP TLS Reporting (RFC 8460) receiver and alert notifier",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None,
)

# Register error handlers
register_error_handlers(app)

# Add request logging middleware
if settings.enable_request_logging:
    app.middleware("http")(log_requests_middleware)

app.include_router(tls_rpt_router)
app.include_router(metrics_router)

# Add metrics collection middleware
app.middleware("http")(metrics_middleware)


@app.get("/", include_in_schema=False)
async def root():
    """Landing page"""
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "mail": "enabled" if settings.mail_enabled else "disabled"
    }


def run():
    """Console entry point: serve the app with uvicorn"""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
