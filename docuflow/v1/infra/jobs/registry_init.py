"""
Job registry initialization.

Registers the pipeline stage handlers with the global job registry.
"""

import logging

import docuflow.v1.extraction.registry_init  # noqa: F401
from docuflow.config.settings import settings
from docuflow.v1.core.registries import job_registry
from docuflow.v1.infra.jobs.handlers import (
    ExportHandler,
    OcrHandler,
    ParsingHandler,
    ValidationHandler,
)
from docuflow.v1.infra.jobs.models import JobType

logger = logging.getLogger(__name__)


def register_job_handlers() -> None:
    """Register all job handlers with the job registry."""
    if job_registry.is_frozen():
        return

    logger.info("Registering job handlers")

    job_registry.register(JobType.OCR.value, OcrHandler(settings))
    job_registry.register(JobType.PARSING.value, ParsingHandler(settings))
    job_registry.register(JobType.VALIDATION.value, ValidationHandler(settings))
    job_registry.register(JobType.EXPORT.value, ExportHandler(settings))

    logger.info(
        "Job handlers registered", extra={"registered_handlers": job_registry.list()}
    )


# Auto-register handlers when module is imported
register_job_handlers()
