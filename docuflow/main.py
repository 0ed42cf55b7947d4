import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

import docuflow.v1.models  # noqa: F401
from docuflow.config.logging import get_logger, setup_logging
from docuflow.config.settings import settings
from docuflow.infra.database import close_database
from docuflow.v1.core.exceptions import (
    DocuFlowException,
    RequestContextMiddleware,
    docuflow_exception_handler,
    general_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from docuflow.v1.core.registries import (
    document_parser_registry,
    job_registry,
    text_extractor_registry,
)
from docuflow.v1.documents.routes import router as documents_router
from docuflow.v1.healthz import router as health_router
from docuflow.v1.infra.jobs.registry_init import register_job_handlers
from docuflow.v1.infra.jobs.routes import router as jobs_router
from docuflow.v1.infra.jobs.worker import get_worker
from docuflow.v1.institutions.routes import router as institutions_router
from docuflow.v1.members.routes import router as members_router
from docuflow.v1.system_config.routes import router as system_config_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Optionally run the job worker inside the API process."""
    worker_task = None
    worker = None
    if settings.run_worker_in_app:
        worker = get_worker(settings)
        worker_task = asyncio.create_task(worker.start())
        logger.info("In-process job worker started", worker_id=worker.worker_id)

    yield

    if worker is not None:
        await worker.stop()
        await worker_task
    await close_database()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    # Initialize structured logging
    setup_logging()
    register_job_handlers()

    app = FastAPI(
        title=settings.app_name,
        description="Document intake with OCR, classification and parsing pipeline",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(DocuFlowException, docuflow_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(documents_router, prefix="/v1")
    app.include_router(institutions_router, prefix="/v1")
    app.include_router(members_router, prefix="/v1")
    app.include_router(jobs_router, prefix="/v1")
    app.include_router(system_config_router, prefix="/v1")

    # Freeze registries in non-development environments to prevent runtime modifications
    if settings.environment != "development":
        text_extractor_registry.freeze()
        document_parser_registry.freeze()
        job_registry.freeze()

    return app


# Create the app instance
app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "docuflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )


if __name__ == "__main__":
    run()
