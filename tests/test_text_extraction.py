from pathlib import Path

import pytest
from PIL import Image

from docuflow.config.settings import Settings
from docuflow.v1.documents.models import ExtractionSource
from docuflow.v1.extraction import text as text_module
from docuflow.v1.extraction.text import (
    PLAIN_TEXT_CONFIDENCE,
    TEXT_LAYER_CONFIDENCE,
    ExtractedText,
    ExtractionError,
    ImageTextExtractor,
    PdfTextExtractor,
    PlainTextExtractor,
    tesseract_config,
)


@pytest.fixture
def ocr_settings():
    return Settings(ocr_min_text_chars=20, ocr_psm=4, ocr_oem=3)


class TestExtractedText:
    def test_derived_properties(self):
        extracted = ExtractedText(pages=["uno ", " dos"], method=ExtractionSource.PLAIN)

        assert extracted.page_count == 2
        assert extracted.full_text == "uno \n dos"
        assert extracted.char_count == 6


class TestPlainTextExtractor:
    def test_single_page(self, tmp_path: Path):
        path = tmp_path / "note.txt"
        path.write_text("  CBU: 123\nImporte: 10  \n", encoding="utf-8")

        extracted = PlainTextExtractor().extract(path)

        assert extracted.pages == ["CBU: 123\nImporte: 10"]
        assert extracted.method == ExtractionSource.PLAIN
        assert extracted.confidence == PLAIN_TEXT_CONFIDENCE

    def test_form_feed_splits_pages(self, tmp_path: Path):
        path = tmp_path / "pages.txt"
        path.write_text("page one\fpage two\f", encoding="utf-8")

        extracted = PlainTextExtractor().extract(path)

        assert extracted.pages == ["page one", "page two"]

    def test_invalid_utf8_is_replaced(self, tmp_path: Path):
        path = tmp_path / "latin1.txt"
        path.write_bytes("Período".encode("latin-1"))

        extracted = PlainTextExtractor().extract(path)

        assert extracted.pages[0].startswith("Per")
        assert "�" in extracted.pages[0]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ExtractionError):
            PlainTextExtractor().extract(tmp_path / "missing.txt")


class TestPdfTextExtractor:
    def test_text_layer_is_used_when_long_enough(self, ocr_settings, monkeypatch, tmp_path):
        extractor = PdfTextExtractor(ocr_settings)
        monkeypatch.setattr(
            extractor, "_text_layer", lambda path: ["Comprobante de transferencia bancaria"]
        )

        extracted = extractor.extract(tmp_path / "doc.pdf")

        assert extracted.method == ExtractionSource.TEXT_LAYER
        assert extracted.confidence == TEXT_LAYER_CONFIDENCE

    def test_short_text_layer_falls_back_to_ocr(self, ocr_settings, monkeypatch, tmp_path):
        extractor = PdfTextExtractor(ocr_settings)
        monkeypatch.setattr(extractor, "_text_layer", lambda path: ["", "  "])
        monkeypatch.setattr(
            text_module,
            "convert_from_path",
            lambda path, dpi: [Image.new("RGB", (10, 10)), Image.new("RGB", (10, 10))],
        )
        confidences = iter([0.9, 0.7])
        monkeypatch.setattr(
            text_module,
            "ocr_image",
            lambda image, settings: (" scanned text ", next(confidences)),
        )

        extracted = extractor.extract(tmp_path / "scan.pdf")

        assert extracted.method == ExtractionSource.OCR
        assert extracted.pages == ["scanned text", "scanned text"]
        assert extracted.confidence == pytest.approx(0.8)
        assert extracted.metadata == {"language": "spa"}

    def test_rasterise_failure(self, ocr_settings, monkeypatch, tmp_path):
        extractor = PdfTextExtractor(ocr_settings)
        monkeypatch.setattr(extractor, "_text_layer", lambda path: [])

        def broken(path, dpi):
            raise RuntimeError("poppler missing")

        monkeypatch.setattr(text_module, "convert_from_path", broken)

        with pytest.raises(ExtractionError, match="Could not rasterise PDF"):
            extractor.extract(tmp_path / "scan.pdf")

    def test_unreadable_pdf_has_no_text_layer(self, ocr_settings, tmp_path):
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"not a pdf")

        assert PdfTextExtractor(ocr_settings)._text_layer(path) == []


class TestImageTextExtractor:
    def test_png_goes_to_ocr(self, ocr_settings, monkeypatch, tmp_path):
        path = tmp_path / "receipt.png"
        Image.new("RGB", (20, 20), "white").save(path)
        monkeypatch.setattr(text_module, "ocr_image", lambda image, settings: ("CBU 1", None))

        extracted = ImageTextExtractor(ocr_settings).extract(path)

        assert extracted.pages == ["CBU 1"]
        assert extracted.confidence is None

    def test_not_an_image(self, ocr_settings, tmp_path):
        path = tmp_path / "fake.png"
        path.write_bytes(b"plain bytes")

        with pytest.raises(ExtractionError, match="Could not open image"):
            ImageTextExtractor(ocr_settings).extract(path)


def test_tesseract_config(ocr_settings):
    assert tesseract_config(ocr_settings) == "--psm 4 --oem 3"
