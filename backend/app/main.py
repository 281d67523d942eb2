"""FastAPI application entrypoint.

Configures CORS, includes routers, and exposes a healthcheck endpoint.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .database import init_db  # noqa: E402
from .deps import get_settings  # noqa: E402
from .routers import shopify_oauth as shopify_oauth_router  # noqa: E402  Shopify OAuth flow
from .routers import shops as shops_router  # noqa: E402  Metrics and disconnect
from . import schemas  # noqa: E402

# Import models so Alembic can discover metadata
from . import models  # noqa: F401,E402


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title="Shopify Store Analytics API",
        description="""
        Connect a Shopify store through OAuth and read a rolling 30-day
        analytics summary.

        ## Features

        - **Shopify OAuth**: Authorization-code flow with encrypted token storage
        - **Metrics**: Order count, gross/net revenue, average order value, refunds
        - **Audit trail**: Append-only record of connects, fetches and failures
        """,
        version="1.0.0",
    )

    # Trust X-Forwarded-Proto from the load balancer so redirects keep https
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

    settings = get_settings()

    allowed_origins = settings.cors_origins
    if settings.FRONTEND_URL and settings.FRONTEND_URL.rstrip("/") not in allowed_origins:
        allowed_origins.append(settings.FRONTEND_URL.rstrip("/"))

    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(shopify_oauth_router.router)
    app.include_router(shops_router.router)

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
    )
    def health():
        return schemas.HealthResponse(status="ok")

    @app.on_event("startup")
    async def startup_event():
        """Create tables for SQLite deployments and report missing Shopify config."""
        init_db()
        missing = settings.missing_shopify_config()
        if missing:
            logger.warning("[STARTUP] Shopify integration not configured. Missing: %s", ", ".join(missing))
        else:
            logger.info("[STARTUP] Shopify integration configured (API version %s)", settings.SHOPIFY_API_VERSION)

    return app


app = create_app()
