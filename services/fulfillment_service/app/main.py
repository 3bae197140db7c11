"""FastAPI application for the Fulfillment Service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.logging import configure_logging
from libs.common.middleware import add_request_context_middleware
from services.fulfillment_service.dependencies import require_upstream_credentials
from services.fulfillment_service.routers import admin_router, orders_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    require_upstream_credentials(get_settings())
    yield


def create_app() -> FastAPI:
    """Create and configure the Fulfillment Service FastAPI app."""
    app = FastAPI(
        title="Fulfillment Service",
        version="0.1.0",
        description="Gateway to the upstream fulfillment API: order submission, status sync, on-hold repair.",
        lifespan=lifespan,
    )

    add_request_context_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "fulfillment"}

    app.include_router(orders_router)
    app.include_router(admin_router, prefix="/admin")

    return app


app = create_app()
