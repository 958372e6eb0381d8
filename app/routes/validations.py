"""
Validations Routes
Endpoints for submitting clinical notes and reading validation results
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException, status, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from app.models.user import User
from app.auth.dependencies import get_current_user
from app.services.db import get_db
from app.models.api import ApiResponse
from app.models.validation_dto import (
    JurisdictionResponse,
    SubmissionResponse,
    ValidationRecordResponse,
    ValidationResultsView,
)
from app.models.validation_record_db import ValidationRecordDB
from app.services.blob_storage import BlobStorageClient
from app.services.errors import ValidationServiceError
from app.services.report_builder import build_report_filename, build_report_text, build_results_view
from app.services.validation_orchestrator import ValidationOrchestrator
from app.services.validation_store import ValidationStore
from app.services.validator_client import ValidatorDispatchClient
from app.utils.jurisdiction import STATE_TO_REGION, US_STATES
from app.utils.validation_converter import record_to_dto
from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/validations", tags=["Validations"])


def get_dispatch_client() -> ValidatorDispatchClient:
    """Dependency to get the direct validator client"""
    return ValidatorDispatchClient.from_settings(settings)


def get_blob_storage() -> Optional[BlobStorageClient]:
    """Dependency to get the upload storage client, None when storage is not configured"""
    if not settings.storage_account_url and not settings.azure_storage_connection_string:
        return None
    return BlobStorageClient.from_settings(settings)


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _get_visible_record(db: Session, validation_id: str, current_user: User) -> ValidationRecordDB:
    """
    Load a record the caller may see: their own, or any record for admins.
    Other users' records are reported as not found.
    """
    record = ValidationStore.get_by_id(db, validation_id)
    if not record or (record.user_id != current_user.id and not current_user.is_admin):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Validation record not found"
        )
    return record


@router.post(
    "",
    response_model=ApiResponse[SubmissionResponse],
    status_code=status.HTTP_201_CREATED
)
async def submit_validation(
    http_request: Request,
    state: str = Form(""),
    text: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatch_client: ValidatorDispatchClient = Depends(get_dispatch_client),
    storage: Optional[BlobStorageClient] = Depends(get_blob_storage)
):
    """
    Submit a clinical note for validation

    Accepts either an uploaded file or pasted text (the file wins when both
    are sent) plus the jurisdiction state. The record is created in
    'processing' and the note is dispatched to the validator; the result
    arrives later through the validator webhook.
    """
    correlation_id = getattr(http_request.state, 'correlation_id', None)

    file_bytes = None
    file_name = None
    file_type = None
    if file is not None and file.filename:
        file_bytes = await file.read()
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if len(file_bytes) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the {settings.max_upload_size_mb} MB upload limit"
            )
        file_name = file.filename
        file_type = file.content_type

    logger.info(
        f"Validation submission: user={current_user.id}, state={state}, "
        f"has_file={bool(file_bytes)}, has_text={bool(text and text.strip())}"
    )

    orchestrator = ValidationOrchestrator(db, dispatch_client=dispatch_client, storage=storage)
    try:
        result = await orchestrator.submit(
            current_user,
            state=state,
            file_name=file_name,
            file_type=file_type,
            file_bytes=file_bytes,
            text=text,
            ip=_client_ip(http_request),
        )
    except ValidationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return ApiResponse(
        success=True,
        data=SubmissionResponse(record=record_to_dto(result.record), dispatch=result.dispatch),
        message="Validation submitted",
        correlation_id=correlation_id
    )


@router.get(
    "",
    response_model=ApiResponse[List[ValidationRecordResponse]]
)
async def list_validation_history(
    http_request: Request,
    limit: int = Query(settings.validation_history_default_limit, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Current user's validation history, newest first"""
    records = ValidationStore.list_by_user(db, current_user.id, limit=limit)
    return ApiResponse(
        success=True,
        data=[record_to_dto(r) for r in records],
        correlation_id=getattr(http_request.state, 'correlation_id', None)
    )


@router.get(
    "/jurisdictions",
    response_model=ApiResponse[JurisdictionResponse]
)
async def list_jurisdictions(
    current_user: User = Depends(get_current_user)
):
    """States offered on the submission form and their regions"""
    return ApiResponse(
        success=True,
        data=JurisdictionResponse(states=list(US_STATES), regions=dict(STATE_TO_REGION))
    )


@router.get(
    "/{validation_id}",
    response_model=ApiResponse[ValidationRecordResponse]
)
async def get_validation(
    validation_id: str,
    http_request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Fetch one validation record

    Used by clients polling for a result while the webhook is pending.
    """
    record = _get_visible_record(db, validation_id, current_user)
    return ApiResponse(
        success=True,
        data=record_to_dto(record),
        correlation_id=getattr(http_request.state, 'correlation_id', None)
    )


@router.get(
    "/{validation_id}/results",
    response_model=ApiResponse[ValidationResultsView]
)
async def get_validation_results(
    validation_id: str,
    http_request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Normalized results view, recomputed from the stored payload on every read"""
    record = _get_visible_record(db, validation_id, current_user)
    return ApiResponse(
        success=True,
        data=build_results_view(record),
        correlation_id=getattr(http_request.state, 'correlation_id', None)
    )


@router.get("/{validation_id}/report", response_class=PlainTextResponse)
async def download_validation_report(
    validation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Plain-text report for download"""
    record = _get_visible_record(db, validation_id, current_user)
    filename = build_report_filename(record)
    logger.info(f"Report download: validation_id={validation_id}, user={current_user.id}")
    return PlainTextResponse(
        content=build_report_text(record),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
