"""
Text extractor and document parser registration.

Registers extractors by mime type and parsers by document type.
"""

import logging

from docuflow.config.settings import settings
from docuflow.v1.core.registries import document_parser_registry, text_extractor_registry
from docuflow.v1.documents.models import DocumentType
from docuflow.v1.extraction.parsers import BankTransferParser, ContributionListParser
from docuflow.v1.extraction.text import (
    ImageTextExtractor,
    PdfTextExtractor,
    PlainTextExtractor,
)

logger = logging.getLogger(__name__)


def register_extractors() -> None:
    """Register text extractors and document parsers."""
    if text_extractor_registry.is_frozen() or document_parser_registry.is_frozen():
        return

    image_extractor = ImageTextExtractor(settings)
    text_extractor_registry.register("application/pdf", PdfTextExtractor(settings))
    text_extractor_registry.register("image/jpeg", image_extractor)
    text_extractor_registry.register("image/png", image_extractor)
    text_extractor_registry.register("text/plain", PlainTextExtractor())

    document_parser_registry.register(
        DocumentType.COMPROBANTE_BANCO.value, BankTransferParser()
    )
    document_parser_registry.register(
        DocumentType.LISTADO_APORTE.value, ContributionListParser()
    )

    logger.info(
        "Extractors registered",
        extra={
            "text_extractors": text_extractor_registry.list(),
            "document_parsers": document_parser_registry.list(),
        },
    )


# Auto-register when module is imported
register_extractors()
