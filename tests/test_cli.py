"""Tests for CLI commands and the HTTP client"""

from unittest.mock import Mock, patch

import httpx
import pytest
from typer.testing import CliRunner

from docuflow_cli.client.base import DocuFlowError
from docuflow_cli.client.endpoints import DocuFlowClient
from docuflow_cli.commands.config import parse_value
from docuflow_cli.main import app
from docuflow_cli.utils.config_manager import ConfigManager


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_client():
    client = Mock()
    client.__enter__ = Mock(return_value=client)
    client.__exit__ = Mock(return_value=None)
    return client


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(tmp_path / "cli")


def envelope(data, ok=True):
    return {"ok": ok, "data": data, "request_id": "req-1", "timestamp": "2024-03-15T00:00:00Z"}


class TestMainCommands:
    def test_version_flag(self, runner):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "DocuFlow CLI v1.0.0" in result.stdout

    def test_quickstart(self, runner):
        result = runner.invoke(app, ["quickstart"])

        assert result.exit_code == 0
        assert "Quick Start Guide" in result.stdout
        assert "docuflow status" in result.stdout

    @patch("docuflow_cli.main.DocuFlowClient")
    def test_status_healthy(self, mock_client_class, mock_client, runner):
        mock_client.health_check.return_value = {
            "ok": True,
            "version": "1.0.0",
            "environment": "development",
            "database": {"connected": True, "response_time_ms": 1.2},
            "worker": {"active_workers": 1, "queue_depth": 3, "stuck_jobs_count": 0},
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Healthy" in result.stdout
        assert "connected" in result.stdout

    @patch("docuflow_cli.main.DocuFlowClient")
    def test_status_failure(self, mock_client_class, mock_client, runner):
        mock_client.health_check.side_effect = DocuFlowError("Connection failed")
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Connection Failed" in result.stdout


class TestDocumentCommands:
    @patch("docuflow_cli.commands.documents.DocuFlowClient")
    def test_upload(self, mock_client_class, mock_client, runner, tmp_path):
        path = tmp_path / "receipt.txt"
        path.write_text("CBU 123", encoding="utf-8")
        mock_client.upload_document.return_value = {
            "document": {"id": "doc-1", "status": "uploaded", "original_name": "receipt.txt"},
            "job_id": "job-1",
            "deduplicated": False,
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["documents", "upload", str(path), "--member", "m-1"])

        assert result.exit_code == 0
        assert "Document uploaded" in result.stdout
        mock_client.upload_document.assert_called_once_with(
            path, member_id="m-1", institution_id=None
        )

    @patch("docuflow_cli.commands.documents.DocuFlowClient")
    def test_upload_duplicate_warns(self, mock_client_class, mock_client, runner, tmp_path):
        path = tmp_path / "receipt.txt"
        path.write_text("CBU 123", encoding="utf-8")
        mock_client.upload_document.return_value = {
            "document": {"id": "doc-1", "status": "processed"},
            "job_id": None,
            "deduplicated": True,
        }
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["documents", "upload", str(path)])

        assert result.exit_code == 0
        assert "already uploaded" in result.stdout

    def test_upload_missing_file(self, runner, tmp_path):
        result = runner.invoke(app, ["documents", "upload", str(tmp_path / "nope.pdf")])

        assert result.exit_code != 0

    @patch("docuflow_cli.commands.documents.DocuFlowClient")
    def test_list_empty(self, mock_client_class, mock_client, runner):
        mock_client.list_documents.return_value = {"documents": [], "meta": {"total": 0}}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["documents", "list", "--status", "review"])

        assert result.exit_code == 0
        assert "No documents found" in result.stdout
        assert mock_client.list_documents.call_args.kwargs["status"] == "review"

    @patch("docuflow_cli.commands.documents.DocuFlowClient")
    def test_reprocess_conflict(self, mock_client_class, mock_client, runner):
        mock_client.reprocess_document.side_effect = DocuFlowError(
            "API Error 409: Document has queued or processing jobs", 409
        )
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["documents", "reprocess", "doc-1"])

        assert result.exit_code == 1
        assert "Failed to reprocess document" in result.stdout


class TestJobCommands:
    @patch("docuflow_cli.commands.jobs.DocuFlowClient")
    def test_list_passes_repeated_status(self, mock_client_class, mock_client, runner):
        mock_client.list_jobs.return_value = {"jobs": [], "total": 0}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "list", "-s", "queued", "-s", "error"])

        assert result.exit_code == 0
        assert "No jobs found" in result.stdout
        assert mock_client.list_jobs.call_args.kwargs["status"] == ["queued", "error"]

    @patch("docuflow_cli.commands.jobs.DocuFlowClient")
    def test_retry(self, mock_client_class, mock_client, runner):
        mock_client.retry_job.return_value = {"id": "job-9", "status": "queued"}
        mock_client_class.return_value = mock_client

        result = runner.invoke(app, ["jobs", "retry", "job-9"])

        assert result.exit_code == 0
        assert "job-9" in result.stdout


class TestConfigCommands:
    def test_parse_value(self):
        assert parse_value("api.timeout", "15") == 15
        assert parse_value("display.page_size", "50") == 50
        assert parse_value("api.base_url", "https://docuflow.local") == "https://docuflow.local"
        with pytest.raises(ValueError):
            parse_value("api.base_url", "docuflow.local")
        with pytest.raises(ValueError):
            parse_value("api.timeout", "soon")

    def test_set_and_get(self, runner, config_manager):
        with patch("docuflow_cli.commands.config.config", config_manager):
            set_result = runner.invoke(app, ["config", "set", "api.timeout", "45"])
            get_result = runner.invoke(app, ["config", "get", "api.timeout"])

        assert set_result.exit_code == 0
        assert get_result.exit_code == 0
        assert "45" in get_result.stdout
        assert config_manager.get("api.timeout") == 45

    def test_set_rejects_bad_url(self, runner, config_manager):
        with patch("docuflow_cli.commands.config.config", config_manager):
            result = runner.invoke(app, ["config", "set", "api.base_url", "localhost"])

        assert result.exit_code == 1
        assert not config_manager.config_file.exists()

    def test_get_missing_key(self, runner, config_manager):
        with patch("docuflow_cli.commands.config.config", config_manager):
            result = runner.invoke(app, ["config", "get", "api.nope"])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_reset_with_yes(self, runner, config_manager):
        config_manager.set("display.page_size", 5)
        with patch("docuflow_cli.commands.config.config", config_manager):
            result = runner.invoke(app, ["config", "reset", "--yes"])

        assert result.exit_code == 0
        assert config_manager.get("display.page_size") == 20


class TestConfigManager:
    def test_defaults_without_file(self, config_manager):
        assert config_manager.get("display.page_size") == 20
        assert config_manager.get("api.headers") == {}
        assert config_manager.get("missing.key", "x") == "x"

    def test_nested_set_is_persisted_as_yaml(self, config_manager):
        config_manager.set("api.headers.X-User-ID", "ana")

        reloaded = ConfigManager(config_manager.config_dir)
        assert reloaded.get("api.headers") == {"X-User-ID": "ana"}
        assert reloaded.get("api.timeout") == 30

    def test_invalid_yaml_falls_back_to_defaults(self, config_manager):
        config_manager.ensure_config_dir()
        config_manager.config_file.write_text("api: [unclosed", encoding="utf-8")

        assert config_manager.get("api.timeout") == 30


class TestHttpClient:
    def _client(self, handler):
        return DocuFlowClient(
            base_url="http://docuflow.test",
            headers={"X-User-ID": "ana"},
            transport=httpx.MockTransport(handler),
        )

    def test_envelope_is_unwrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/healthz"
            assert request.headers["X-User-ID"] == "ana"
            return httpx.Response(200, json=envelope({"ok": True, "version": "1.0.0"}))

        with self._client(handler) as client:
            assert client.health_check() == {"ok": True, "version": "1.0.0"}

    def test_error_envelope_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404,
                json={"ok": False, "error": {"message": "Document not found", "code": 404}},
            )

        with self._client(handler) as client:
            with pytest.raises(DocuFlowError) as exc_info:
                client.get_document("missing")

        assert exc_info.value.status_code == 404
        assert "Document not found" in str(exc_info.value)

    def test_invalid_json_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with self._client(handler) as client:
            with pytest.raises(DocuFlowError, match="Invalid JSON"):
                client.get_job_stats()

    def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with self._client(handler) as client:
            with pytest.raises(DocuFlowError, match="Connection failed"):
                client.health_check()

    def test_job_filters_become_query_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["status"] = request.url.params.get_list("status")
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=envelope({"jobs": [], "total": 0}))

        with self._client(handler) as client:
            client.list_jobs(status=["queued", "error"], type="OCR", limit=5)

        assert seen["status"] == ["queued", "error"]
        assert seen["params"]["type"] == "OCR"
        assert seen["params"]["limit"] == "5"
        assert "document_id" not in seen["params"]

    def test_upload_sends_multipart_file(self, tmp_path):
        path = tmp_path / "receipt.txt"
        path.write_text("CBU 123", encoding="utf-8")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.read()
            return httpx.Response(201, json=envelope({"document": {"id": "d"}, "job_id": "j"}))

        with self._client(handler) as client:
            result = client.upload_document(path, member_id="m-1")

        assert result["job_id"] == "j"
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'filename="receipt.txt"' in seen["body"]
        assert b"text/plain" in seen["body"]
        assert b'name="member_id"' in seen["body"]
