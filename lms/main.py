from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lms.api.courses import router as courses_router
from lms.api.errors import install_error_handlers
from lms.api.health import router as health_router
from lms.api.metrics_endpoint import router as metrics_router
from lms.api.users import router as users_router
from lms.core.config import SETTINGS
from lms.core.logging import setup_logging
from lms.db.engine import lifespan_db
from lms.db.redis import lifespan_redis
from lms.middleware.metrics import MetricsMiddleware
from lms.middleware.request_context import RequestContextMiddleware
from lms.repos.user_repo import user_repo
from lms.services import auth_service

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


async def bootstrap_admin() -> None:
    if not SETTINGS.bootstrap_admin:
        return
    await auth_service.ensure_admin(
        user_repo,
        SETTINGS.admin_email,  # type: ignore[arg-type]
        SETTINGS.admin_password,  # type: ignore[arg-type]
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one fails
    async with lifespan_db():
        async with lifespan_redis():
            await bootstrap_admin()
            yield


app = FastAPI(
    title="lms-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext (outermost), then Metrics, CORS, route.
# Every request has its ID before metrics are recorded.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

install_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(users_router)
app.include_router(courses_router)

logger.info(
    "lms-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
