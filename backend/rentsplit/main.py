import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from rentsplit.api.calculate import router as calculate_router
from rentsplit.api.chat import router as chat_router
from rentsplit.api.share import router as share_router
from rentsplit.core.config import Settings, get_settings
from rentsplit.services.chat_service import ChatService
from rentsplit.services.share_service import ShareStore
from rentsplit.utils.rate_limiter import ApiKeyManager, RateLimiter, RateThrottler

logger = logging.getLogger(__name__)


class TimingMiddleware:
    """Lightweight ASGI middleware, no BaseHTTPMiddleware overhead."""
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        t0 = time.perf_counter()
        status_code = 0

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        await self.app(scope, receive, send_wrapper)
        ms = int((time.perf_counter() - t0) * 1000)
        method = scope.get("method", "?")
        path = scope.get("path", "?")
        logger.info(f"{method} {path} -> {status_code} in {ms}ms")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Rent Splitter API", version="0.1.0")

    # One instance of each per process, shared by all requests
    throttler = RateThrottler(tokens_per_minute=settings.token_budget_per_minute)
    app.state.settings = settings
    app.state.share_store = ShareStore(max_entries=settings.share_store_max_entries)
    app.state.rate_limiter = RateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.chat_service = ChatService(settings, ApiKeyManager.from_settings(settings), throttler)

    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(calculate_router)
    app.include_router(share_router)
    app.include_router(chat_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
