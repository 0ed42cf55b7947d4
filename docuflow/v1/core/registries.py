from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def has(self, name: str) -> bool:
        return name in self._implementations

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Text Extractor Registry - turns a stored file into per-page text
class TextExtractor(Protocol):
    """Protocol for text extractors keyed by mime type."""

    def extract(self, path: Path) -> Any:
        """
        Extract text from the file at ``path``.

        Returns an ``ExtractedText`` with one entry per page, the method used
        (text_layer, ocr or plain) and a confidence score.
        """
        ...


class TextExtractorRegistry(Registry[TextExtractor]):
    """Registry for text extractors (application/pdf, image/png, ...)."""

    def __init__(self):
        super().__init__("TextExtractor")


# Document Parser Registry - regex heuristics per document type
class DocumentParser(Protocol):
    """Protocol for parsers that turn classified text into records."""

    def parse(self, text: str) -> Any:
        """Parse document text into a structured record (dataclass)."""
        ...


class DocumentParserRegistry(Registry[DocumentParser]):
    """Registry for document parsers (LISTADO_APORTE, COMPROBANTE_BANCO)."""

    def __init__(self):
        super().__init__("DocumentParser")


# Job Registry - background processing handlers
class JobHandler(Protocol):
    """Protocol for job handlers that process pipeline stages."""

    payload_model: Any  # pydantic model validating the job payload
    next_stage: str | None

    async def handle(
        self,
        session: Any,  # AsyncSession
        context: Any,  # JobContext with job/document identifiers
        payload: Any,
    ) -> dict[str, Any] | None:
        """
        Handle a background job.

        Args:
            session: Database session for job processing
            context: Identifiers of the job being processed
            payload: Validated payload model instance

        Returns:
            Optional result dictionary to store with the completed job
        """
        ...

    def next_payload(self, payload: Any, result: dict[str, Any]) -> dict[str, Any]:
        """Build the payload for the next pipeline stage."""
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry for background job handlers."""

    def __init__(self):
        super().__init__("Job")


# Global registry instances (singletons)
text_extractor_registry = TextExtractorRegistry()
document_parser_registry = DocumentParserRegistry()
job_registry = JobRegistry()
