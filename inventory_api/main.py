"""
Warehouse Inventory API - Main Application

SECURITY FEATURES:
- Conditional API docs (disabled in production by default)
- Logging without tokens or credentials
- Production-hardened configuration
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from inventory_api.api.v1.router import api_router
from inventory_api.config import settings
from inventory_api.database import init_db
from inventory_api.exceptions import InventoryAPIError, create_exception_handlers
from inventory_api.middleware import CorrelationIdMiddleware, CorrelationLogFilter
from inventory_api.tasks.alert_scheduler import start_alert_scheduler, stop_alert_scheduler, scheduler_status
# Import all models to register them with SQLAlchemy metadata before init_db()
from inventory_api.models import User, InventoryItem, InventoryAction, AuditLog  # noqa: F401

VERSION = "1.0.0"

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
for handler in logging.getLogger().handlers:
    handler.addFilter(CorrelationLogFilter())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Warehouse Inventory API...")
    logger.info("Environment: %s", settings.ENVIRONMENT)
    await init_db()
    logger.info("Database initialized successfully")

    if settings.SCHEDULER_ENABLED:
        start_alert_scheduler()
    yield

    stop_alert_scheduler()
    logger.info("Shutting down Warehouse Inventory API...")


# SECURITY: Conditionally enable docs based on settings
docs_url = "/docs" if settings.DOCS_ENABLED else None
redoc_url = "/redoc" if settings.DOCS_ENABLED else None

app = FastAPI(
    title="Warehouse Inventory API",
    description="Stock tracking, low-stock alerts, reporting and bulk operations for warehouse inventory",
    version=VERSION,
    docs_url=docs_url,
    redoc_url=redoc_url,
    lifespan=lifespan,
)

# SECURITY: Restrict origins to the configured frontend
allowed_origins = [settings.FRONTEND_URL]
if not settings.is_production:
    allowed_origins.extend([
        "http://localhost:3000",  # Frontend dev server
        "http://localhost:5173",  # Vite dev server
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID", "X-Correlation-ID"],
)
app.add_middleware(CorrelationIdMiddleware)

handlers = create_exception_handlers(allowed_origins, debug=settings.DEBUG)
app.add_exception_handler(InventoryAPIError, handlers["api"])
app.add_exception_handler(StarletteHTTPException, handlers["http"])
app.add_exception_handler(RequestValidationError, handlers["validation"])
app.add_exception_handler(Exception, handlers["generic"])

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint - API info."""
    response = {
        "name": "Warehouse Inventory API",
        "version": VERSION,
        "health": "/health",
    }
    if settings.DOCS_ENABLED:
        response["docs"] = "/docs"
    return response


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "scheduler": scheduler_status()["is_running"],
    }


# For running with uvicorn directly (development only)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inventory_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
