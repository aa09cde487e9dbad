"""FastAPI application wiring for chatdesk.

- Configures logging, optional CORS for the widget origins, Prometheus
  metrics and rate limiting.
- Builds the :class:`~chatdesk.runtime.ChatRuntime` (stores, adapters and
  services) unless one is injected, and runs the session-cache sweeper for the
  lifetime of the app.
- Mounts the chat, operator setup and dashboard routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __version__
from .app_logging import init_logging
from .rate_limit import limiter
from .routers import chat, dashboard, operators
from .runtime import ChatRuntime, build_runtime

load_dotenv()

logger = logging.getLogger(__name__)


def create_app(runtime: ChatRuntime | None = None) -> FastAPI:
    """Return a configured application; ``runtime`` defaults to one built from env."""

    runtime = runtime or build_runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime.start()
        logger.info("chatdesk %s started", __version__)
        try:
            yield
        finally:
            runtime.stop()

    app = FastAPI(title="chatdesk", version=__version__, lifespan=lifespan)
    app.state.runtime = runtime
    init_logging(app)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    origins = list(runtime.settings.cors_origins)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.include_router(chat.router)
    app.include_router(operators.router)
    app.include_router(dashboard.router)

    # Expose Prometheus metrics
    Instrumentator(registry=CollectorRegistry()).instrument(app).expose(
        app, include_in_schema=False, endpoint="/api/metrics"
    )
    return app


app = create_app()
