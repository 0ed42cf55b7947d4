"""API Endpoint Wrappers - Typed API calls"""

import mimetypes
from pathlib import Path
from typing import Any

import httpx

from ..utils.config_manager import config
from .base import APIClient, DocuFlowError

__all__ = ["DocuFlowClient", "DocuFlowError"]


def _params(**kwargs: Any) -> dict[str, Any]:
    return {k: v for k, v in kwargs.items() if v is not None}


class DocuFlowClient:
    """High-level client with typed endpoint methods"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        # Use config values if not provided
        api_config = config.load_config().get("api", {})
        final_base_url = base_url or api_config.get("base_url", "http://localhost:8000")
        final_headers = headers or api_config.get("headers") or {}

        self.api = APIClient(
            base_url=final_base_url,
            timeout=int(api_config.get("timeout", 30)),
            headers={str(k): str(v) for k, v in final_headers.items()},
            transport=transport,
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Detailed API health status"""
        return self.api.get("/healthz")

    # Documents
    def upload_document(
        self,
        file_path: Path,
        member_id: str | None = None,
        institution_id: str | None = None,
    ) -> dict[str, Any]:
        content_type, _ = mimetypes.guess_type(file_path.name)
        return self.api.upload(
            "/documents",
            file_path,
            content_type=content_type,
            data=_params(member_id=member_id, institution_id=institution_id),
        )

    def list_documents(
        self,
        type: str | None = None,
        status: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict[str, Any]:
        params = _params(type=type, status=status, search=search, page=page, page_size=page_size)
        return self.api.get("/documents", params)

    def get_document(self, document_id: str) -> dict[str, Any]:
        return self.api.get(f"/documents/{document_id}")

    def reprocess_document(self, document_id: str) -> dict[str, Any]:
        return self.api.post(f"/documents/{document_id}/reprocess")

    # Jobs
    def list_jobs(
        self,
        status: list[str] | None = None,
        type: str | None = None,
        document_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        params = _params(
            status=status or None, type=type, document_id=document_id, limit=limit, offset=offset
        )
        return self.api.get("/jobs", params)

    def get_job(self, job_id: str) -> dict[str, Any]:
        return self.api.get(f"/jobs/{job_id}")

    def retry_job(self, job_id: str) -> dict[str, Any]:
        return self.api.post(f"/jobs/{job_id}/retry")

    def cancel_job(self, job_id: str) -> dict[str, Any]:
        return self.api.post(f"/jobs/{job_id}/cancel")

    def get_job_stats(self) -> dict[str, Any]:
        return self.api.get("/jobs/stats/overview")

    # Members and institutions
    def list_members(
        self,
        q: str | None = None,
        status: str | None = None,
        institution_id: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict[str, Any]:
        params = _params(
            q=q, status=status, institution_id=institution_id, page=page, page_size=page_size
        )
        return self.api.get("/members", params)

    def list_institutions(
        self, q: str | None = None, page: int = 1, page_size: int = 20
    ) -> dict[str, Any]:
        return self.api.get("/institutions", _params(q=q, page=page, page_size=page_size))
