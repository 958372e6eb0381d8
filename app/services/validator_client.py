"""
Validator Dispatch Client
HTTP clients for sending clinical notes to the external validation workflow.

ValidatorDispatchClient calls the validator directly and is used from trusted
server code. ProxyDispatchClient goes through this service's own
/api/validator/trigger endpoint so untrusted callers never see the validator
URL. Both return the same ValidationResponse shape.
"""
import time
import logging
from typing import Any, Dict, Optional
import httpx

from app.config import Settings
from app.models.validation_dto import ValidationRequest, ValidationResponse
from app.services.errors import (
    NOT_CONFIGURED_MESSAGE,
    DispatchError,
    ValidatorConfigurationError,
)

logger = logging.getLogger(__name__)


def resolve_webhook_url(settings: Settings) -> Optional[str]:
    """Validator endpoint from settings, None when unset or placeholder."""
    return settings.get_validator_webhook_url()


def _build_timeout(connect_timeout: float, read_timeout: float) -> httpx.Timeout:
    # httpx.Timeout requires either a default or all four parameters (connect, read, write, pool)
    return httpx.Timeout(timeout=read_timeout, connect=connect_timeout)


def _payload(request: ValidationRequest) -> Dict[str, Any]:
    return request.model_dump(exclude_none=True)


def parse_dispatch_response(response: httpx.Response) -> ValidationResponse:
    """
    Map a validator response to ValidationResponse.

    JSON bodies fill missing fields with defaults; any other body is wrapped,
    with status taken from the HTTP outcome.
    """
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            return ValidationResponse(
                executionId=str(body.get("executionId") or "unknown"),
                status=str(body.get("status") or "processing"),
                message=str(body.get("message") or "Request accepted"),
            )

    text = response.text.strip() if response.text else ""
    return ValidationResponse(
        executionId="unknown",
        status="processing" if response.is_success else "failed",
        message=text or "Request accepted",
    )


class ValidatorDispatchClient:
    """
    Direct HTTP client for the external validator

    Posts the validation request as JSON and normalizes the acknowledgement.
    Logs request metadata only, never note content.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        connect_timeout: float = 5,
        read_timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the dispatch client

        Args:
            webhook_url: Validator endpoint (None when not configured)
            connect_timeout: Connection timeout in seconds (default: 5s)
            read_timeout: Read timeout in seconds (default: 30s)
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.webhook_url = webhook_url
        self.read_timeout = read_timeout
        self.timeout = _build_timeout(connect_timeout, read_timeout)
        self.transport = transport

        if not self.webhook_url:
            logger.warning("Validator webhook URL not configured - dispatch will fail")

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ValidatorDispatchClient":
        return cls(
            resolve_webhook_url(settings),
            connect_timeout=settings.validator_connect_timeout,
            read_timeout=settings.validator_read_timeout,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    async def dispatch(self, request: ValidationRequest) -> ValidationResponse:
        """
        Send a validation request to the validator

        Raises:
            ValidatorConfigurationError: If no endpoint is configured (no network call is made)
            DispatchError: On non-2xx responses, timeouts and connection failures
        """
        if not self.webhook_url:
            raise ValidatorConfigurationError()

        logger.info(
            f"Validator dispatch request: validation_id={request.validationId}, "
            f"file_type={request.fileType}, state={request.state}, has_file_url={bool(request.fileUrl)}"
        )

        start_time = time.time()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.webhook_url,
                    json=_payload(request),
                    headers={"Accept": "application/json, text/plain"},
                )
        except httpx.TimeoutException as e:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = f"Validator request timeout after {self.read_timeout}s"
            logger.error(f"Validator dispatch timeout: {error_msg}, duration={duration_ms}ms")
            raise DispatchError(error_msg, status_code=504) from e
        except httpx.ConnectError as e:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = "Unable to connect to validation service"
            logger.error(f"Validator dispatch connection error: {error_msg}, duration={duration_ms}ms")
            raise DispatchError(error_msg, status_code=503) from e
        except httpx.RequestError as e:
            duration_ms = int((time.time() - start_time) * 1000)
            error_msg = f"Validator request failed: {str(e)}"
            logger.error(f"Validator dispatch request error: {error_msg}, duration={duration_ms}ms")
            raise DispatchError(error_msg, status_code=503) from e

        duration_ms = int((time.time() - start_time) * 1000)

        if not response.is_success:
            body = response.text[:500] if response.text else ""
            logger.warning(
                f"Validator dispatch failed: status={response.status_code}, "
                f"validation_id={request.validationId}, duration={duration_ms}ms"
            )
            raise DispatchError(
                f"Validator request failed: {response.status_code} {response.reason_phrase}".strip(),
                status_code=response.status_code,
                body=body,
            )

        result = parse_dispatch_response(response)
        logger.info(
            f"Validator dispatch accepted: validation_id={request.validationId}, "
            f"execution_id={result.executionId}, status={result.status}, duration={duration_ms}ms"
        )
        return result


class ProxyDispatchClient:
    """
    Dispatch through the service's own trigger endpoint

    Unwraps the {success, data, error} envelope returned by
    POST /api/validator/trigger.
    """

    def __init__(
        self,
        proxy_url: str,
        access_token: Optional[str] = None,
        connect_timeout: float = 5,
        read_timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.proxy_url = proxy_url
        self.access_token = access_token
        self.timeout = _build_timeout(connect_timeout, read_timeout)
        self.transport = transport

    async def dispatch(self, request: ValidationRequest) -> ValidationResponse:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.proxy_url, json=_payload(request), headers=headers)
        except httpx.TimeoutException as e:
            raise DispatchError("Validation proxy request timed out", status_code=504) from e
        except httpx.RequestError as e:
            raise DispatchError(f"Validation proxy request failed: {str(e)}", status_code=503) from e

        try:
            envelope = response.json()
        except ValueError:
            envelope = {}
        if not isinstance(envelope, dict):
            envelope = {}

        error = envelope.get("error")
        if response.status_code == 503:
            raise ValidatorConfigurationError(error or NOT_CONFIGURED_MESSAGE)
        if not response.is_success or not envelope.get("success"):
            message = error or f"Validation proxy request failed: {response.status_code}"
            logger.warning(f"Validation proxy dispatch failed: status={response.status_code}")
            raise DispatchError(message, status_code=response.status_code if not response.is_success else 502,
                                body=response.text[:500] if response.text else None)

        data = envelope.get("data")
        if not isinstance(data, dict):
            return ValidationResponse()
        return ValidationResponse(
            executionId=str(data.get("executionId") or "unknown"),
            status=str(data.get("status") or "processing"),
            message=str(data.get("message") or "Request accepted"),
        )
