"""FastAPI application factory."""
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import secrets
import time
from uuid import uuid4

from fastapi import FastAPI
from starlette.datastructures import MutableHeaders
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request

from webftp.api.dependencies import get_client_ip
from webftp.api.error_handlers import register_exception_handlers
from webftp.api.router import api_router
from webftp.core.config import AppConfig, get_config
from webftp.core.logging import configure_logging
from webftp.core.metrics import metrics
from webftp.core.request_context import clear_request_id, set_client_ip, set_request_id
from webftp.services.registry import ServiceRegistry

logger = logging.getLogger("webftp")

SESSION_COOKIE = "webftp_session"


class RequestIdMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive=receive)
        path = scope.get("path") or ""
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        set_request_id(request_id)
        set_client_ip(get_client_ip(request))
        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            clear_request_id()

        duration_ms = int((time.perf_counter() - start) * 1000)
        metric_name = f"api.{path}"
        metrics.record(metric_name, ok=status_code < 400, duration_ms=duration_ms)
        overrides = self._metric_threshold_overrides(path)
        if metrics.should_alert(metric_name, **overrides):
            logger.warning("Metric alert for %s (slow or error rate)", metric_name)

    @classmethod
    def _metric_threshold_overrides(cls, path: str) -> dict[str, int]:
        # transfers are bounded by file size, not by the server
        return {
            "/api/files/download": {"avg_ms": 60_000},
            "/api/files/write": {"avg_ms": 10_000},
        }.get(path, {})


class SecurityHeadersMiddleware:
    """Add the configured security headers to every HTTP response."""

    def __init__(self, app, headers: dict[str, str] | None = None):
        self.app = app
        self.headers = dict(headers or {})

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self.headers:
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_wrapper)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build the application; ``config`` defaults to the cached app.json."""

    app_config = config or get_config()
    configure_logging(app_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown of application services."""

        registry = ServiceRegistry(app_config)
        app.state.services = registry

        await registry.startup()
        try:
            yield
        finally:
            await registry.shutdown()

    app = FastAPI(
        title="WebFTP",
        description="Browser based FTP file manager API",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.trusted_proxies = frozenset(app_config.security.trusted_proxies)

    settings = app_config.app_settings
    secret = settings.session_secret
    if not secret:
        logger.warning("No session_secret configured, sessions will not survive a restart")
        secret = secrets.token_urlsafe(32)
    app.add_middleware(
        SessionMiddleware,
        secret_key=secret,
        session_cookie=SESSION_COOKIE,
        max_age=settings.session_lifetime,
        same_site="lax",
        https_only=settings.session_https_only,
    )
    app.add_middleware(SecurityHeadersMiddleware, headers=app_config.security.headers)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)
    register_exception_handlers(app)
    return app
