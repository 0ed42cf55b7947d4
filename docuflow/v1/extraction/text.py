"""Per-page text extraction: PDF text layer first, Tesseract OCR as fallback.

Extractors are registered by mime type in ``text_extractor_registry`` and
return an :class:`ExtractedText` with one string per page.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pdfplumber
import pytesseract
from pdf2image import convert_from_path
from PIL import Image
from pypdf import PdfReader

from docuflow.config.settings import Settings
from docuflow.v1.documents.models import ExtractionSource

logger = logging.getLogger(__name__)

TEXT_LAYER_CONFIDENCE = 0.95
PLAIN_TEXT_CONFIDENCE = 1.0


class ExtractionError(Exception):
    """Raised when no extraction strategy could read the file."""
    pass


@dataclass
class ExtractedText:
    """Result of text extraction."""
    pages: list[str]
    method: ExtractionSource
    confidence: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def full_text(self) -> str:
        return "\n".join(self.pages)

    @property
    def char_count(self) -> int:
        return sum(len(page.strip()) for page in self.pages)


def tesseract_config(settings: Settings) -> str:
    return f"--psm {settings.ocr_psm} --oem {settings.ocr_oem}"


def ocr_image(image: Image.Image, settings: Settings) -> tuple[str, float | None]:
    """OCR a single image. Returns the text and Tesseract's mean word confidence (0..1)."""
    config = tesseract_config(settings)
    text = pytesseract.image_to_string(image, lang=settings.ocr_language, config=config)
    data = pytesseract.image_to_data(
        image,
        lang=settings.ocr_language,
        config=config,
        output_type=pytesseract.Output.DICT,
    )
    conf_values = [float(c) for c in data.get("conf", []) if float(c) >= 0]
    confidence = sum(conf_values) / len(conf_values) / 100.0 if conf_values else None
    return text, confidence


def _mean(values: list[float | None]) -> float | None:
    present = [v for v in values if v is not None]
    return round(sum(present) / len(present), 4) if present else None


class OcrMixin:
    settings: Settings

    def _configure_tesseract(self) -> None:
        if self.settings.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.settings.tesseract_cmd

    def _ocr_images(self, images: list[Image.Image]) -> ExtractedText:
        self._configure_tesseract()
        pages: list[str] = []
        confidences: list[float | None] = []
        for idx, image in enumerate(images):
            try:
                text, confidence = ocr_image(image, self.settings)
            except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
                raise ExtractionError(f"OCR failed on page {idx + 1}: {e}") from e
            pages.append(text.strip())
            confidences.append(confidence)

        logger.info(
            "OCR completed",
            extra={"pages": len(pages), "chars": sum(len(p) for p in pages)},
        )
        return ExtractedText(
            pages=pages,
            method=ExtractionSource.OCR,
            confidence=_mean(confidences),
            metadata={"language": self.settings.ocr_language},
        )


class PdfTextExtractor(OcrMixin):
    """application/pdf: pdfplumber, then pypdf, then rasterise and OCR."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def extract(self, path: Path) -> ExtractedText:
        pages = self._text_layer(path)
        text_chars = sum(len(page.strip()) for page in pages)

        if text_chars >= self.settings.ocr_min_text_chars:
            return ExtractedText(
                pages=pages,
                method=ExtractionSource.TEXT_LAYER,
                confidence=TEXT_LAYER_CONFIDENCE,
            )

        logger.info(
            "Text layer too short, falling back to OCR",
            extra={"path": str(path), "chars": text_chars},
        )
        try:
            images = convert_from_path(str(path), dpi=self.settings.ocr_dpi)
        except Exception as e:
            raise ExtractionError(f"Could not rasterise PDF: {e}") from e
        if not images:
            raise ExtractionError("PDF has no pages")
        return self._ocr_images(images)

    def _text_layer(self, path: Path) -> list[str]:
        try:
            with pdfplumber.open(path) as pdf:
                return [(page.extract_text() or "").strip() for page in pdf.pages]
        except Exception as e:
            logger.warning(f"pdfplumber extraction failed: {e}, trying pypdf")

        try:
            reader = PdfReader(str(path))
            return [(page.extract_text() or "").strip() for page in reader.pages]
        except Exception as e:
            logger.warning(f"pypdf extraction also failed: {e}")
            return []


class ImageTextExtractor(OcrMixin):
    """image/jpeg and image/png go straight to OCR."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def extract(self, path: Path) -> ExtractedText:
        try:
            with Image.open(path) as image:
                image.load()
                return self._ocr_images([image])
        except OSError as e:
            raise ExtractionError(f"Could not open image: {e}") from e


class PlainTextExtractor:
    """text/plain: UTF-8, one page per form feed."""

    def extract(self, path: Path) -> ExtractedText:
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ExtractionError(f"Could not read file: {e}") from e
        pages = [page.strip() for page in content.split("\f")]
        # Trailing form feed leaves an empty last page
        while len(pages) > 1 and not pages[-1]:
            pages.pop()
        return ExtractedText(
            pages=pages,
            method=ExtractionSource.PLAIN,
            confidence=PLAIN_TEXT_CONFIDENCE,
        )
