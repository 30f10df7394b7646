from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from resource_portal.core.config import settings
from resource_portal.db.session import SessionLocal, create_schema
from resource_portal.middleware.logging import RequestLoggingMiddleware
from resource_portal.middleware.request_context import RequestContextMiddleware
from resource_portal.routers import access, approvals, assignments, audit, auth, catalog, employees, resources
from resource_portal.services.catalog_service import seed_system_catalog

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("portal")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_schema:
        await create_schema()
        logger.info("schema_ready")
    if settings.seed_on_startup:
        async with SessionLocal() as session:
            await seed_system_catalog(session)
            await session.commit()
    yield


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(employees.router)
    app.include_router(catalog.router)
    app.include_router(resources.router)
    app.include_router(assignments.router)
    app.include_router(access.router)
    app.include_router(approvals.router)
    app.include_router(audit.router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()
