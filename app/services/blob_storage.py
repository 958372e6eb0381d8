"""
Azure Blob Storage Client
Uploads submitted clinical-note files for the validator to fetch.
Supports both connection string and Managed Identity authentication
"""
import logging
import time
from typing import Callable, Optional

from azure.storage.blob import BlobServiceClient, ContentSettings
from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ServiceRequestError,
)
from azure.identity import DefaultAzureCredential

from app.services.errors import ValidationServiceError

logger = logging.getLogger(__name__)


class BlobStorageError(ValidationServiceError):
    """Upload or storage configuration failure"""
    def __init__(self, message: str):
        super().__init__(message, status_code=502)


def build_validation_blob_path(prefix: str, user_id: str, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    """<prefix>/<user>/<epoch-ms>-<name>"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    safe_name = file_name.replace("/", "_").replace("\\", "_")
    return f"{prefix.strip('/')}/{user_id}/{timestamp_ms}-{safe_name}"


class BlobStorageClient:
    """
    Azure Blob Storage client for validation file uploads.

    Supports:
    - Connection string authentication (dev/local)
    - Managed Identity / DefaultAzureCredential (prod on Azure)
    - Retry with exponential backoff on transient failures
    """

    def __init__(
        self,
        storage_account_url: str,
        container_name: str,
        connection_string: Optional[str] = None,
        path_prefix: str = "validation-files",
        max_retries: int = 3,
        retry_base_seconds: float = 1.0,
        service_client: Optional[BlobServiceClient] = None,
    ):
        """
        Initialize blob storage client.

        Args:
            storage_account_url: Base URL for storage account (e.g., https://medlearnsa.blob.core.windows.net)
            container_name: Container holding validation uploads
            connection_string: Azure storage connection string (optional, uses DefaultAzureCredential if not provided)
            path_prefix: Folder uploads are written under
            max_retries: Maximum attempts for transient failures
            retry_base_seconds: Base delay in seconds for exponential backoff
            service_client: Pre-built BlobServiceClient (tests pass a mock)
        """
        self.storage_account_url = storage_account_url
        self.container_name = container_name
        self.path_prefix = path_prefix
        self.max_retries = max(1, max_retries)
        self.retry_base_seconds = retry_base_seconds
        self._connection_string = connection_string
        self._blob_service_client = service_client

        if not self.storage_account_url and not self._connection_string and service_client is None:
            raise BlobStorageError(
                "storage_account_url is required. Set STORAGE_ACCOUNT_URL environment variable."
            )

        logger.info(
            f"BlobStorageClient initialized: account_url={self.storage_account_url or '(connection string)'}, "
            f"container={self.container_name}"
        )

    @classmethod
    def from_settings(cls, settings) -> "BlobStorageClient":
        return cls(
            storage_account_url=settings.storage_account_url,
            container_name=settings.validation_files_container,
            connection_string=settings.azure_storage_connection_string,
            path_prefix=settings.validation_files_prefix,
        )

    def _get_blob_service_client(self) -> BlobServiceClient:
        """
        Get or create blob service client with appropriate authentication.
        """
        if self._blob_service_client is None:
            try:
                if self._connection_string:
                    logger.debug("Using connection string authentication")
                    self._blob_service_client = BlobServiceClient.from_connection_string(
                        self._connection_string
                    )
                else:
                    logger.debug("Using DefaultAzureCredential (Managed Identity)")
                    self._blob_service_client = BlobServiceClient(
                        account_url=self.storage_account_url,
                        credential=DefaultAzureCredential(),
                    )
            except Exception as e:
                logger.error(f"Failed to initialize blob service client: {e}", exc_info=True)
                raise BlobStorageError(f"Failed to initialize blob service client: {e}") from e

        return self._blob_service_client

    def _retry_on_transient_failure(self, operation: Callable):
        """
        Retry operation on 5xx and network failures with exponential backoff.

        Raises:
            BlobStorageError: On permanent errors, or once retries are exhausted
        """
        last_exception = None

        for attempt in range(self.max_retries):
            try:
                return operation()
            except HttpResponseError as e:
                status_code = getattr(e, "status_code", None)
                if not status_code or status_code < 500:
                    logger.error(f"Client error ({status_code}): {e}")
                    raise BlobStorageError(f"Client error: {e}") from e
                last_exception = e
            except ServiceRequestError as e:
                last_exception = e
            except AzureError as e:
                logger.error(f"Azure error: {e}")
                raise BlobStorageError(f"Azure error: {e}") from e

            if attempt < self.max_retries - 1:
                wait_time = self.retry_base_seconds * (2 ** attempt)
                logger.warning(
                    f"Transient failure (attempt {attempt + 1}/{self.max_retries}): {last_exception}. "
                    f"Retrying in {wait_time}s..."
                )
                time.sleep(wait_time)

        logger.error(f"Operation failed after {self.max_retries} attempts: {last_exception}")
        raise BlobStorageError(
            f"Operation failed after {self.max_retries} retries: {last_exception}"
        ) from last_exception

    def upload_validation_file(
        self,
        user_id: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Upload a submitted note and return its URL.

        The blob lands at <prefix>/<user>/<epoch-ms>-<name> in the
        validation container.
        """
        blob_path = build_validation_blob_path(self.path_prefix, user_id, file_name)
        logger.info(
            f"Uploading validation file to container '{self.container_name}': "
            f"blob '{blob_path}' ({len(data)} bytes)"
        )

        def _upload() -> str:
            blob_client = self._get_blob_service_client().get_blob_client(
                container=self.container_name, blob=blob_path
            )
            blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type or "application/octet-stream"),
            )
            return blob_client.url

        url = self._retry_on_transient_failure(_upload)
        logger.info(f"Successfully uploaded validation file to blob '{blob_path}'")
        return url
