"""
Admin Reports Routes
Admin-only listing, archive, delete and report download across all users
"""
import logging
from typing import Dict, List, Optional
from fastapi import APIRouter, HTTPException, status, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from app.auth.dependencies import require_admin
from app.models.api import ApiResponse
from app.models.user import User
from app.models.validation_dto import (
    AdminValidationRecordResponse,
    AdminValidationStats,
    ValidationRecordResponse,
    ValidationStatus,
)
from app.services.db import get_db
from app.services.errors import ValidationServiceError
from app.services.report_builder import build_report_filename, build_stored_report_text
from app.services.validation_orchestrator import ValidationOrchestrator
from app.services.validation_store import PERIODS, ValidationStore
from app.utils.coercion import round_half_up
from app.utils.validation_converter import admin_record_to_dto, record_to_dto
from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/validations", tags=["Admin Reports"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _validate_period(period: str) -> None:
    if period not in PERIODS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid period '{period}'. Expected one of: {', '.join(PERIODS)}"
        )


def build_admin_stats(counts: Dict[str, int]) -> AdminValidationStats:
    """Totals per status; success rate is completed over all records, as a whole percent"""
    total = sum(counts.values())
    completed = counts.get(ValidationStatus.COMPLETED.value, 0)
    return AdminValidationStats(
        total=total,
        completed=completed,
        processing=counts.get(ValidationStatus.PROCESSING.value, 0),
        failed=counts.get(ValidationStatus.FAILED.value, 0),
        archived=counts.get(ValidationStatus.ARCHIVED.value, 0),
        success_rate=round_half_up(completed * 100 / total) if total else 0,
    )


@router.get(
    "",
    response_model=ApiResponse[List[AdminValidationRecordResponse]]
)
async def list_all_validations(
    http_request: Request,
    limit: int = Query(settings.admin_reports_default_limit, ge=1, le=500),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    period: str = Query("all"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    All validation records, newest first, with the submitter's profile

    Filters: status (exact, or 'all'), search (file name, state, submitter
    name or email), period ('all', 'today', 'week', 'month').
    """
    _validate_period(period)
    rows = ValidationStore.list_all(db, limit=limit, status=status_filter, search=search, period=period)
    logger.info(
        f"Admin reports listing: admin={current_user.id}, count={len(rows)}, "
        f"status={status_filter}, period={period}"
    )
    return ApiResponse(
        success=True,
        data=[admin_record_to_dto(record, profile) for record, profile in rows],
        correlation_id=getattr(http_request.state, 'correlation_id', None)
    )


@router.get(
    "/stats",
    response_model=ApiResponse[AdminValidationStats]
)
async def validation_stats(
    http_request: Request,
    period: str = Query("all"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Summary totals for the admin reports view: total, per status, success rate"""
    _validate_period(period)
    stats = build_admin_stats(ValidationStore.count_by_status(db, period=period))
    logger.info(f"Admin reports stats: admin={current_user.id}, total={stats.total}, period={period}")
    return ApiResponse(
        success=True,
        data=stats,
        correlation_id=getattr(http_request.state, 'correlation_id', None)
    )


@router.post(
    "/{validation_id}/archive",
    response_model=ApiResponse[ValidationRecordResponse]
)
async def archive_validation(
    validation_id: str,
    http_request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Archive a completed or failed record; archiving twice is a no-op"""
    try:
        record = ValidationOrchestrator(db).archive(validation_id, current_user, ip=_client_ip(http_request))
    except ValidationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return ApiResponse(
        success=True,
        data=record_to_dto(record),
        message="Validation archived",
        correlation_id=getattr(http_request.state, 'correlation_id', None)
    )


@router.delete(
    "/{validation_id}",
    response_model=ApiResponse[dict]
)
async def delete_validation(
    validation_id: str,
    http_request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Hard delete a record in any status"""
    try:
        ValidationOrchestrator(db).delete(validation_id, current_user, ip=_client_ip(http_request))
    except ValidationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return ApiResponse(
        success=True,
        data={"validationId": validation_id},
        message="Validation deleted",
        correlation_id=getattr(http_request.state, 'correlation_id', None)
    )


@router.get("/{validation_id}/report", response_class=PlainTextResponse)
async def download_stored_report(
    validation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Report built from the stored derived fields"""
    record = ValidationStore.get_by_id(db, validation_id)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Validation record not found"
        )
    return PlainTextResponse(
        content=build_stored_report_text(record),
        headers={"Content-Disposition": f'attachment; filename="{build_report_filename(record)}"'}
    )
