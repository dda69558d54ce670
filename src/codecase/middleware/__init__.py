"""Middleware registration."""

from fastapi import FastAPI

from codecase.config import Settings
from codecase.middleware.cors import setup_cors
from codecase.middleware.error_handler import setup_error_handlers
from codecase.middleware.logging import setup_logging
from codecase.middleware.rate_limit import RateLimitMiddleware
from codecase.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Logging, JSON error handlers, then rate limit, request id and CORS (outermost)."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
