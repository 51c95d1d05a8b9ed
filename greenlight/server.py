"""FastAPI application wiring the admission layer, background tasks and routes."""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from greenlight import __version__
from greenlight.admission import RateLimitMiddleware
from greenlight.background import BackgroundTaskManager
from greenlight.config import GreenlightConfig, default_config
from greenlight.data import Models
from greenlight.helpers import server_error_response
from greenlight.mailer import Mailer
from greenlight.metrics import MetricsRecorder, default_metrics
from greenlight.rate_limiter import RateLimiterRegistry
from greenlight.routes import router

logger = logging.getLogger(__name__)

LOG_EXTRA_FIELDS = ("request_id", "client", "task", "error")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
        }
        for key in LOG_EXTRA_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["trace"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(config: GreenlightConfig = default_config) -> None:
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    if config.log_format.lower() == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=level, handlers=[handler])
    else:
        logging.basicConfig(level=level)


def create_app(
    config: Optional[GreenlightConfig] = None,
    *,
    limiter: Optional[RateLimiterRegistry] = None,
    tasks: Optional[BackgroundTaskManager] = None,
    mailer: Optional[Mailer] = None,
    models: Optional[Models] = None,
    metrics: MetricsRecorder = default_metrics,
) -> FastAPI:
    """
    Build the API application with its own limiter and task manager.

    Components not passed in are constructed from ``config``. The limiter's
    eviction loop starts with the application lifespan; on shutdown the
    loop is stopped and background tasks get ``shutdown_drain_deadline``
    seconds to finish.
    """
    config = config or default_config
    limiter = limiter or RateLimiterRegistry(
        rate_per_sec=config.limiter_rps,
        burst=config.limiter_burst,
        enabled=config.limiter_enabled,
        eviction_interval=config.limiter_eviction_interval,
        idle_threshold=config.limiter_idle_threshold,
    )
    tasks = tasks or BackgroundTaskManager(metrics=metrics)
    mailer = mailer or Mailer(config)
    models = models or Models()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        # Startup
        limiter.start()
        logger.info("starting server env=%s version=%s", config.env, __version__)
        yield
        # Shutdown
        logger.info("shutting down server")
        await limiter.stop()
        await tasks.shutdown(config.shutdown_drain_deadline)
        logger.info("stopped server")

    app = FastAPI(
        title="Greenlight",
        description="Movie catalog JSON API.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.limiter = limiter
    app.state.tasks = tasks
    app.state.mailer = mailer
    app.state.models = models
    app.state.metrics = metrics

    # Registered innermost first.
    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter,
        tasks=tasks,
        trust_forwarded=config.trust_forwarded_for,
        metrics=metrics,
    )
    if config.cors_trusted_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_trusted_origins,
            allow_methods=["OPTIONS", "PUT", "PATCH", "DELETE"],
            allow_headers=["Authorization", "Content-Type"],
        )

    @app.middleware("http")
    async def recover_panic(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return server_error_response(request, exc)

    @app.middleware("http")
    async def add_request_context(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.time()
        metrics.incr_request()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000
        metrics.record_duration(request_id, duration_ms)
        metrics.record_response(response.status_code)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(router)
    return app


configure_logging(default_config)
app = create_app()

# Run with: python -m greenlight  (or uvicorn greenlight.server:app)
