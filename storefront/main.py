import logging

import sentry_sdk
from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from storefront.api.v1 import auth, cart, orders, payments, products, stock
from storefront.core.config import settings
from storefront.core.error_handlers import register_exception_handlers
from storefront.core.logging_config import configure_logging
from storefront.core.middleware import register_middleware
from storefront.core.rate_limiter import limiter
from storefront.db.session import engine

API_VERSION = "1.0.0"

# --------------------------------------------------
# CONFIGURE LOGGING (FIRST)
# --------------------------------------------------
configure_logging()

# --------------------------------------------------
# INITIALIZE SENTRY (ONLY IN PRODUCTION)
# --------------------------------------------------
if settings.ENVIRONMENT == "production" and settings.SENTRY_DSN:
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            release=API_VERSION,
            traces_sample_rate=0.1,
            integrations=[FastApiIntegration(), SqlalchemyIntegration()],
        )
    except Exception as exc:
        # Orders keep flowing without error tracking
        logging.warning("Sentry initialisation failed: %s", exc)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=API_VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
)
app.state.limiter = limiter

register_middleware(app)
register_exception_handlers(app)

for router, prefix, tag in (
    (auth.router, "auth", "Authentication"),
    (products.router, "products", "Products"),
    (cart.router, "cart", "Cart"),
    (orders.router, "orders", "Orders"),
    (stock.router, "stock", "Stock"),
    (payments.router, "payments", "Payments"),
):
    app.include_router(router, prefix=f"{settings.API_V1_STR}/{prefix}", tags=[tag])


@app.on_event("shutdown")
def dispose_engine():
    engine.dispose()


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": API_VERSION,
    }


@app.get("/health/database")
def database_health_check():
    """Round-trips SELECT 1 and reports connection pool usage."""
    try:
        with engine.connect() as connection:
            connection.exec_driver_sql("SELECT 1")
    except Exception as exc:
        return {"status": "unhealthy", "reason": f"Database connectivity check failed: {exc}"}

    pool = engine.pool
    return {
        "status": "healthy",
        "pool": {
            "class": type(pool).__name__,
            "size": pool.size() if hasattr(pool, "size") else None,
            "checked_out": pool.checkedout() if hasattr(pool, "checkedout") else None,
            "overflow": pool.overflow() if hasattr(pool, "overflow") else None,
        },
    }
