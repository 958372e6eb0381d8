"""
Unit tests for validation file uploads to Azure Blob Storage
The BlobServiceClient is mocked; no network calls are made
"""
import pytest
from unittest.mock import MagicMock, patch
from azure.core.exceptions import HttpResponseError, ServiceRequestError
from app.services.blob_storage import BlobStorageClient, BlobStorageError, build_validation_blob_path


def make_storage(service_client, **kwargs):
    return BlobStorageClient(
        storage_account_url="https://medlearnsa.blob.core.windows.net",
        container_name="wound-notes",
        path_prefix="validation-files",
        retry_base_seconds=0,
        service_client=service_client,
        **kwargs,
    )


class TestBuildValidationBlobPath:
    """Tests for build_validation_blob_path"""

    def test_layout(self):
        assert build_validation_blob_path("validation-files", "u-1", "note.pdf", timestamp_ms=1700000000000) == \
            "validation-files/u-1/1700000000000-note.pdf"

    def test_prefix_slashes_and_name_separators(self):
        path = build_validation_blob_path("/validation-files/", "u-1", "a/b\\c.pdf", timestamp_ms=1)
        assert path == "validation-files/u-1/1-a_b_c.pdf"


class TestBlobStorageClient:
    """Tests for BlobStorageClient.upload_validation_file"""

    def test_requires_account_or_connection_string(self):
        with pytest.raises(BlobStorageError):
            BlobStorageClient(storage_account_url="", container_name="wound-notes")

    def test_upload_returns_blob_url(self):
        service = MagicMock()
        blob_client = service.get_blob_client.return_value
        blob_client.url = "https://medlearnsa.blob.core.windows.net/wound-notes/validation-files/u-1/1-note.pdf"

        url = make_storage(service).upload_validation_file("u-1", "note.pdf", b"data", "application/pdf")

        assert url == blob_client.url
        kwargs = service.get_blob_client.call_args.kwargs
        assert kwargs["container"] == "wound-notes"
        assert kwargs["blob"].startswith("validation-files/u-1/")
        assert kwargs["blob"].endswith("-note.pdf")
        upload_kwargs = blob_client.upload_blob.call_args.kwargs
        assert upload_kwargs["overwrite"] is True
        assert upload_kwargs["content_settings"].content_type == "application/pdf"

    def test_transient_failure_is_retried(self):
        service = MagicMock()
        blob_client = service.get_blob_client.return_value
        blob_client.url = "https://example/blob"
        blob_client.upload_blob.side_effect = [ServiceRequestError("network down"), None]

        with patch("app.services.blob_storage.time.sleep") as sleep:
            url = make_storage(service).upload_validation_file("u-1", "note.pdf", b"data")

        assert url == "https://example/blob"
        assert blob_client.upload_blob.call_count == 2
        sleep.assert_called_once()

    def test_retries_exhausted(self):
        service = MagicMock()
        service.get_blob_client.return_value.upload_blob.side_effect = ServiceRequestError("network down")

        with patch("app.services.blob_storage.time.sleep"):
            with pytest.raises(BlobStorageError) as exc_info:
                make_storage(service, max_retries=2).upload_validation_file("u-1", "note.pdf", b"data")

        assert exc_info.value.status_code == 502
        assert service.get_blob_client.return_value.upload_blob.call_count == 2

    def test_client_error_is_not_retried(self):
        service = MagicMock()
        error = HttpResponseError(message="forbidden")
        error.status_code = 403
        service.get_blob_client.return_value.upload_blob.side_effect = error

        with pytest.raises(BlobStorageError):
            make_storage(service).upload_validation_file("u-1", "note.pdf", b"data")
        assert service.get_blob_client.return_value.upload_blob.call_count == 1
