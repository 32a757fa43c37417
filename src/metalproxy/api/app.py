"""FastAPI application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from metalproxy.api import routes


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  main.py injects one that starts the scheduler and seeder.
                  Tests omit it and set `app.state.price_service` directly.

    Returns:
        Configured FastAPI application with the JSON API mounted at /api.
    """
    app = FastAPI(
        title="Metal Price Proxy",
        description="Cached metal prices in practical units.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router, prefix="/api")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "metalproxy"}

    return app
