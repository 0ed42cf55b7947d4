import asyncio
from uuid import uuid4

import pytest

from docuflow.config.settings import ExportFormat, Settings
from docuflow.v1.documents.models import DocumentType
from docuflow.v1.infra.jobs.handlers import (
    ExportHandler,
    OcrHandler,
    ParsingHandler,
    ValidationHandler,
)
from docuflow.v1.infra.jobs.schemas import (
    ExportPayload,
    OcrPayload,
    ParsingPayload,
    ValidationPayload,
)
from docuflow.v1.infra.jobs.worker import JobWorker, calculate_backoff_seconds


def midpoint(low: float, high: float) -> float:
    return (low + high) / 2


class TestBackoff:
    def test_doubles_per_attempt(self):
        delays = [
            calculate_backoff_seconds(attempt, 60, 86400, 0.15, uniform=midpoint)
            for attempt in (1, 2, 3, 4)
        ]

        assert delays == [60, 120, 240, 480]

    def test_attempt_zero_uses_base(self):
        assert calculate_backoff_seconds(0, 60, 86400, 0.0, uniform=midpoint) == 60

    def test_capped_at_max(self):
        assert calculate_backoff_seconds(30, 60, 600, 0.0, uniform=midpoint) == 600

    def test_jitter_bounds_are_passed_through(self):
        seen = []

        def lowest(low, high):
            seen.append((low, high))
            return low

        delay = calculate_backoff_seconds(2, 60, 86400, 0.25, uniform=lowest)

        assert seen == [(0.75, 1.25)]
        assert delay == pytest.approx(90)

    def test_never_below_one_second(self):
        assert calculate_backoff_seconds(1, 0.1, 10, 0.0, uniform=midpoint) == 1.0

    def test_default_jitter_range(self):
        for _ in range(20):
            delay = calculate_backoff_seconds(1, 60, 86400, 0.15)
            assert 51 <= delay <= 69


class TestWorkerLifecycle:
    async def test_sleep_returns_early_after_stop(self):
        worker = JobWorker(Settings())

        sleeper = asyncio.create_task(worker._sleep(30))
        await asyncio.sleep(0)
        await worker.stop()

        await asyncio.wait_for(sleeper, timeout=1)
        assert worker.running is False

    async def test_sleep_times_out(self):
        worker = JobWorker(Settings())

        await asyncio.wait_for(worker._sleep(0.01), timeout=1)

    def test_worker_ids_are_unique(self):
        settings = Settings()

        assert JobWorker(settings).worker_id != JobWorker(settings).worker_id


class TestStagePayloads:
    def test_stage_chain(self):
        settings = Settings()

        assert OcrHandler(settings).next_stage == "PARSING"
        assert ParsingHandler(settings).next_stage == "VALIDATION"
        assert ValidationHandler(settings).next_stage == "EXPORT"
        assert ExportHandler(settings).next_stage is None

    def test_payloads_carry_the_document_forward(self):
        settings = Settings(export_default_format=ExportFormat.JSON)
        document_id = uuid4()

        ocr = OcrHandler(settings).next_payload(
            OcrPayload(document_id=document_id, sha256="abc"), {}
        )
        parsing = ParsingHandler(settings).next_payload(
            ParsingPayload(document_id=document_id), {"kind": "LISTADO_APORTE"}
        )
        validation = ValidationHandler(settings).next_payload(
            ValidationPayload(document_id=document_id, kind=DocumentType.LISTADO_APORTE), {}
        )
        export = ExportHandler(settings).next_payload(ExportPayload(document_id=document_id), {})

        assert ocr == {"document_id": str(document_id), "sha256": "abc"}
        assert parsing == {"document_id": str(document_id), "kind": "LISTADO_APORTE"}
        assert validation == {"document_id": str(document_id), "format": "JSON"}
        assert export == {}
