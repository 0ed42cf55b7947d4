"""Base HTTP Client for the DocuFlow API"""

from pathlib import Path
from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class DocuFlowError(Exception):
    """Base exception for DocuFlow API errors"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class APIClient:
    """HTTP client for the DocuFlow API"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_headers = headers or {}
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=self.default_headers,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Unwrap the response envelope, raising on API errors"""
        if response.status_code == 204 or not response.content:
            if response.status_code >= 400:
                raise DocuFlowError(f"API Error {response.status_code}", response.status_code)
            return {}

        try:
            data = response.json()
        except ValueError:
            console.print(f"[red]Failed to parse response: {response.text}[/red]")
            raise DocuFlowError(
                f"Invalid JSON response: {response.status_code}", response.status_code
            ) from None

        if response.status_code >= 400:
            error = data.get("error") or {}
            error_msg = error.get("message", "Unknown error")
            console.print(Panel(f"[red]{error_msg}[/red]", title="API Error"))
            raise DocuFlowError(
                f"API Error {response.status_code}: {error_msg}", response.status_code
            )

        if "ok" in data:
            if not data.get("ok", False):
                error_msg = (data.get("error") or {}).get("message", "Request failed")
                console.print(Panel(f"[red]{error_msg}[/red]", title="Request Failed"))
                raise DocuFlowError(error_msg, response.status_code)
            return data.get("data") or {}

        return data

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        headers = {**self.default_headers, **(kwargs.pop("headers", None) or {})}
        try:
            response = self.client.request(method, f"/v1{path}", headers=headers, **kwargs)
        except httpx.RequestError as e:
            console.print(f"[red]Connection error: {e}[/red]")
            raise DocuFlowError(f"Connection failed: {e}") from None
        return self._handle_response(response)

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make GET request"""
        return self._request("GET", path, params=params)

    def post(self, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make POST request"""
        return self._request("POST", path, json=json)

    def put(self, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make PUT request"""
        return self._request("PUT", path, json=json)

    def delete(self, path: str) -> dict[str, Any]:
        """Make DELETE request"""
        return self._request("DELETE", path)

    def upload(
        self,
        path: str,
        file_path: Path,
        content_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """POST a multipart form with a single ``file`` part"""
        with open(file_path, "rb") as f:
            files = {"file": (file_path.name, f, content_type or "application/octet-stream")}
            return self._request("POST", path, files=files, data=data or {})
