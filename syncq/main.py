from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from syncq.config.logging import setup_logging
from syncq.config.settings import settings
from syncq.infra.database import Database, get_database
from syncq.v1.core.exceptions import (
    SyncQException,
    general_exception_handler,
    http_exception_handler,
    syncq_exception_handler,
)
from syncq.v1.healthz import router as health_router
from syncq.v1.jobs.routes import router as jobs_router


def create_app(database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    # Initialize structured logging
    setup_logging()

    if database is None:
        database = get_database(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await database.create_schema()
        yield
        await database.close()

    app = FastAPI(
        title=settings.app_name,
        description="Persistent background job queue with retry and sync scheduling",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )
    app.dependency_overrides[get_database] = lambda: database

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(SyncQException, syncq_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "syncq.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
