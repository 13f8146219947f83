"""
Island Eats Dispatch - FastAPI Backend Application
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
import structlog

from app.config import settings
from app.api import admin, auth, customers, driver, geo, messages, orders, pricing, promos, restaurant
from app.api.errors import register_error_handlers
from app.mapping import MappingService
from app.webhooks import payments

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Island Eats Dispatch API", version="1.0.0")
    if getattr(app.state, "mapping", None) is None:
        app.state.mapping = MappingService()
    app.state.mapping.init()
    yield
    await app.state.mapping.close()
    logger.info("Shutting down Island Eats Dispatch API")


# Create FastAPI application
app = FastAPI(
    title="Island Eats Dispatch",
    description="Order lifecycle and dispatch coordination for a local food delivery marketplace",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": "1.0.0"}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from app.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    # Check Redis
    try:
        from app.jobs.celery_app import celery_app
        celery_app.control.ping(timeout=1)
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"failed: {str(e)}"

    # Check mapping
    mapping = getattr(app.state, "mapping", None)
    checks["mapping"] = "ok" if mapping is not None and mapping.is_ready else "not initialized"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(messages.router, prefix="/orders/{order_id}/messages", tags=["Messages"])
app.include_router(restaurant.router, prefix="/restaurant", tags=["Restaurant Portal"])
app.include_router(driver.router, prefix="/driver", tags=["Driver Portal"])
app.include_router(pricing.router, prefix="/pricing", tags=["Pricing"])
app.include_router(promos.router, prefix="/promos", tags=["Promos"])
app.include_router(customers.router, prefix="/customers", tags=["Customers"])
app.include_router(geo.router, prefix="/geo", tags=["Geo"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])

# Include webhook routers
app.include_router(payments.router, prefix="/webhooks/payments", tags=["Webhooks"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
