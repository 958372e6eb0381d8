"""
Validator Webhook Routes
Callback endpoint the external validator posts finished results to
"""
import json
import logging
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from app.models.validation_dto import WebhookPayload
from app.services.db import get_db
from app.services.errors import InvalidStatusTransitionError, ValidationRecordNotFoundError
from app.services.validation_orchestrator import ValidationOrchestrator
from app.utils.phi_masking import describe_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Webhooks"])


def _optional_str(value):
    return None if value is None else str(value)


def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


@router.post("/validator-webhook")
async def validator_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Receive a validation result from the validator

    Body: {validationId, status, resultSummary?, resultDetails?, executionId?}.
    'completed' resolves the record as completed, any other status as failed.
    Repeated deliveries for the same validationId overwrite the result.

    NOTE: Unauthenticated; the validator is addressed by validationId only.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Validator webhook received invalid JSON")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON payload")

    if not isinstance(body, dict):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON payload")

    validation_id = body.get("validationId")
    if validation_id is None or not str(validation_id).strip():
        return _error(status.HTTP_400_BAD_REQUEST, "Missing validationId")

    result_status = body.get("status")
    if result_status is None or not str(result_status).strip():
        return _error(status.HTTP_400_BAD_REQUEST, "Missing status")

    payload = WebhookPayload(
        validationId=str(validation_id).strip(),
        status=str(result_status).strip(),
        resultSummary=_optional_str(body.get("resultSummary")),
        resultDetails=body.get("resultDetails"),
        executionId=_optional_str(body.get("executionId")),
    )

    logger.info(
        f"Validator webhook received: validation_id={payload.validationId}, "
        f"status={payload.status}, execution_id={payload.executionId}, "
        f"result_details={describe_payload(payload.resultDetails)}"
    )

    try:
        record = ValidationOrchestrator(db).resolve_webhook(payload)
    except ValidationRecordNotFoundError as e:
        return _error(status.HTTP_404_NOT_FOUND, e.message)
    except InvalidStatusTransitionError as e:
        return _error(status.HTTP_409_CONFLICT, e.message)
    except Exception as e:
        logger.error(
            f"Validator webhook failed: validation_id={payload.validationId}, error={e}",
            exc_info=True
        )
        db.rollback()
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", message=str(e))

    return {
        "success": True,
        "message": "Webhook processed successfully",
        "validationId": record.id,
    }
