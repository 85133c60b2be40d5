"""Application factory for the FastAPI app.

Centralizes app construction (throttle engine, middleware, handlers, routers)
so tests can build isolated apps with their own settings, store registry and
clock.
"""

from __future__ import annotations

import time
from typing import Callable

from fastapi import FastAPI

from throttle.adapters.store.registry import StoreRegistry
from throttle.api.routes import health_router, quota_router
from throttle.core.config import Settings, settings as default_settings
from throttle.core.exception_handlers import setup_exception_handlers
from throttle.core.logging import configure_logging
from throttle.core.middleware import build_throttle_middleware, request_id_middleware
from throttle.core.openapi import apply_openapi_customizations
from throttle.services.throttle_engine import ThrottleConfig, ThrottleEngine


def create_app(
    app_settings: Settings | None = None,
    *,
    registry: StoreRegistry | None = None,
    clock: Callable[[], float] = time.time,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        registry: Counter store registry; built from the cache settings if omitted.
        clock: Time source for interval bookkeeping.
        configure_logs: Whether to (re)configure the root logger.

    Returns:
        Configured FastAPI app with the throttle engine on ``app.state``.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    app = FastAPI(
        title="Throttle API",
        description=(
            "Fixed-interval request throttling. Every response carries "
            "X-RateLimit-Limit, X-RateLimit-Remaining and X-RateLimit-Reset "
            "headers; requests over the limit are rejected with HTTP 429."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    throttle_config = ThrottleConfig.from_settings(cfg.throttle)
    store_registry = registry or StoreRegistry.from_settings(cfg.cache, clock=clock)
    engine = ThrottleEngine(throttle_config, store_registry, clock=clock)
    app.state.throttle_engine = engine
    app.state.store_registry = store_registry

    # Middleware: the last one added runs first, so request ids are set
    # before the throttle logs anything.
    app.middleware("http")(
        build_throttle_middleware(
            engine,
            cfg.throttle.exempt_paths,
            enabled=cfg.throttle.enabled,
        )
    )
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(quota_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(
        app,
        header_names=throttle_config.headers,
        exempt_paths=cfg.throttle.exempt_paths,
        status_code=throttle_config.status_code,
    )

    return app
