from uuid import uuid4

import pytest

from docuflow.config.settings import Settings
from docuflow.v1.core.exceptions import BadRequestError
from docuflow.v1.infra.jobs.models import Job, JobStatus, JobType
from docuflow.v1.infra.jobs.schemas import (
    PAYLOAD_MODELS,
    ExportPayload,
    JobCreate,
    JobListFilters,
    OcrPayload,
)
from docuflow.v1.infra.jobs.service import JobService, clamp


@pytest.fixture
def service():
    return JobService(Settings())


def test_every_job_type_has_a_payload_model():
    assert set(PAYLOAD_MODELS) == set(JobType)
    assert PAYLOAD_MODELS[JobType.OCR] is OcrPayload


def test_validate_payload_normalises_values(service):
    document_id = uuid4()

    payload = service.validate_payload(
        JobType.EXPORT, {"document_id": str(document_id), "format": "JSON"}
    )

    assert payload == {"document_id": str(document_id), "format": "JSON"}


def test_validate_payload_rejects_missing_fields(service):
    with pytest.raises(BadRequestError) as exc_info:
        service.validate_payload(JobType.OCR, {"document_id": str(uuid4())})

    assert exc_info.value.status_code == 400
    assert exc_info.value.details["issues"][0]["loc"] == ("sha256",)


def test_export_format_is_restricted():
    with pytest.raises(ValueError):
        ExportPayload(document_id=uuid4(), format="XML")


@pytest.mark.parametrize("value,expected", [(-3, 0), (0, 0), (7, 7), (10, 10), (99, 10)])
def test_clamp(value, expected):
    assert clamp(value, 0, 10) == expected


def test_job_create_defaults():
    job = JobCreate(type="PARSING", payload={"document_id": str(uuid4())})

    assert job.type == JobType.PARSING
    assert job.priority == 0
    assert job.max_attempts is None
    assert job.dedupe_key is None


def test_list_filters_bounds():
    with pytest.raises(ValueError):
        JobListFilters(limit=0)
    assert JobListFilters(status=["queued", "error"]).status == [
        JobStatus.QUEUED,
        JobStatus.ERROR,
    ]


def test_job_activity_flag():
    assert Job(status=JobStatus.QUEUED.value).is_active()
    assert not Job(status=JobStatus.DONE.value).is_active()
