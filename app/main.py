from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.callback import router as callback_router
from app.api.health import router as health_router
from app.api.home import router as home_router
from app.api.login import router as login_router
from app.api.logout import router as logout_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.pages import status_page
from app.core.config import SETTINGS, Settings
from app.core.logging import setup_logging
from app.db.engine import async_session_factory, lifespan_db
from app.db.redis import lifespan_redis, redis_pool
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.services.login_flow import LoginFlow
from app.services.sweeper import start_sweeper, stop_sweeper
from app.services.wiring import build_login_flow

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one step fails
    async with lifespan_db():
        async with lifespan_redis():
            flow: LoginFlow = app.state.login_flow
            sweeper = start_sweeper(flow, app.state.settings.sweep_interval_sec)
            try:
                yield
            finally:
                await stop_sweeper(sweeper)
                await flow.close()


async def _http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """Browsers get /login for a 401 and an HTML page for other errors.

    API clients (no text/html in Accept) keep FastAPI's JSON body.
    """
    if "text/html" not in request.headers.get("accept", ""):
        return await http_exception_handler(request, exc)
    if exc.status_code == 401:
        return RedirectResponse("/login", status_code=302)
    return status_page(exc.status_code)


def create_app(
    settings: Settings | None = None, flow: LoginFlow | None = None
) -> FastAPI:
    settings = settings or SETTINGS
    if flow is None:
        flow = build_login_flow(
            settings, redis_client=redis_pool, session_factory=async_session_factory
        )

    app = FastAPI(
        title="oauth-signin",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
    )
    app.state.settings = settings
    app.state.login_flow = flow

    app.add_exception_handler(StarletteHTTPException, _http_error_handler)

    # Last added runs first: RequestContext (outermost) -> Metrics -> route
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(metrics_router)
    app.include_router(health_router)
    app.include_router(home_router)
    app.include_router(login_router)
    app.include_router(callback_router)
    app.include_router(logout_router)
    return app


app = create_app()

logger.info(
    "oauth-signin started  env=%s log_level=%s port=%d provider=%s pkce=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.provider_name,
    "on" if SETTINGS.use_pkce else "off",
)
