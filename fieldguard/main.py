from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from fieldguard.content.registry import SchemaRegistry
from fieldguard.db.init_db import init_db
from fieldguard.db.session import build_engine, build_session_factory
from fieldguard.errors import (
    FieldGuardError,
    InvalidCredential,
    RecordNotFound,
    SchemaNotFound,
    SerializationTimeout,
    StoreUnavailable,
)
from fieldguard.logging_config import configure_app_logging
from fieldguard.permissions.store import SqlPermissionStore
from fieldguard.routers import attribute_permissions, content
from fieldguard.security.auth import RoleResolver
from fieldguard.service import FieldGuard
from fieldguard.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[FieldGuardError], int]] = [
    (InvalidCredential, status.HTTP_401_UNAUTHORIZED),
    (SchemaNotFound, status.HTTP_404_NOT_FOUND),
    (RecordNotFound, status.HTTP_404_NOT_FOUND),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (SerializationTimeout, status.HTTP_504_GATEWAY_TIMEOUT),
]


async def fieldguard_error_handler(request: Request, exc: FieldGuardError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"code": exc.code, "detail": exc.message})


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        cfg = settings or get_settings()
        configure_app_logging(cfg.log_level)
        logger.info("App startup beginning")
        if not cfg.jwt_secret:
            raise RuntimeError("FIELDGUARD_JWT_SECRET is not set; refusing to start without a token signing secret")
        app.state.settings = cfg

        schema = SchemaRegistry.from_yaml(cfg.resolved_schema_config_path())
        logger.info("Loaded content schema: %s", cfg.resolved_schema_config_path())

        engine = build_engine(cfg.resolved_db_url())
        session_factory = build_session_factory(engine)
        await init_db(engine, session_factory)
        logger.info("Database initialized (tables ensured + default roles seeded)")

        guard = FieldGuard(
            schema=schema,
            store=SqlPermissionStore(session_factory),
            roles=RoleResolver(
                session_factory,
                jwt_secret=cfg.jwt_secret,
                jwt_algorithm=cfg.jwt_algorithm,
                bearer_prefix=cfg.bearer_prefix,
            ),
            max_depth=cfg.serialize_max_depth,
            timeout=cfg.serialize_timeout_seconds,
        )
        app.state.guard = guard
        app.state.session_factory = session_factory

        if cfg.reconcile_on_startup:
            report = await guard.reconcile()
            if not report.ok:
                logger.error("Startup reconciliation left %d units unreconciled", len(report.errors))

        yield
        # Shutdown
        await engine.dispose()

    app = FastAPI(lifespan=lifespan)
    app.add_exception_handler(FieldGuardError, fieldguard_error_handler)

    app.include_router(attribute_permissions.router)
    app.include_router(content.router)

    return app


app = create_app()
