"""
Validator Proxy Routes
Same-origin trigger endpoint so browser clients never see the validator URL
"""
import json
import logging
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from app.auth.dependencies import get_current_user
from app.models.user import User
from app.models.validation_dto import ValidationRequest
from app.routes.validations import get_dispatch_client
from app.services.errors import ValidationServiceError, ValidatorConfigurationError
from app.services.validator_client import ValidatorDispatchClient
from app.utils.phi_masking import mask_phi_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/validator", tags=["Validator"])

INVALID_PAYLOAD_MESSAGE = "Invalid request payload."


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("/trigger")
async def trigger_validation(
    request: Request,
    current_user: User = Depends(get_current_user),
    dispatch_client: ValidatorDispatchClient = Depends(get_dispatch_client)
):
    """
    Forward a dispatch payload to the validator

    Returns {success: true, data: {executionId, status, message}} on success.
    Configuration problems are 503, any other dispatch failure 502.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _failure(status.HTTP_400_BAD_REQUEST, INVALID_PAYLOAD_MESSAGE)

    if not isinstance(body, dict) or not str(body.get("validationId") or "").strip():
        return _failure(status.HTTP_400_BAD_REQUEST, INVALID_PAYLOAD_MESSAGE)

    try:
        validation_request = ValidationRequest.model_validate(body)
    except ValidationError:
        logger.warning(
            f"Validator trigger rejected malformed payload from user {current_user.id}: {mask_phi_dict(body)}"
        )
        return _failure(status.HTTP_400_BAD_REQUEST, INVALID_PAYLOAD_MESSAGE)

    try:
        result = await dispatch_client.dispatch(validation_request)
    except ValidatorConfigurationError as e:
        logger.error("Validator trigger called but the validator endpoint is not configured")
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, e.message)
    except ValidationServiceError as e:
        logger.error(
            f"Validator trigger failed: validation_id={validation_request.validationId}, "
            f"status_code={e.status_code}"
        )
        return _failure(status.HTTP_502_BAD_GATEWAY, e.message)

    return {"success": True, "data": result.model_dump()}
