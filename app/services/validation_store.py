"""
Validation Store
Persistence adapter for the validation_history table
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import desc, func, or_

from app.models.validation_dto import ValidationStatus, RESOLVED_STATUSES, TERMINAL_STATUSES
from app.models.validation_record_db import ProfileDB, ValidationRecordDB
from app.services.errors import InvalidStatusTransitionError, ValidationRecordNotFoundError

logger = logging.getLogger(__name__)

ARCHIVABLE_STATUSES = TERMINAL_STATUSES

PERIODS = ("all", "today", "week", "month")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    now = now or _utcnow()
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    return None


class ValidationStore:
    """
    Typed create/update/read/list/archive/delete for validation records.

    Every write commits; callers pass the request-scoped session.
    """

    @staticmethod
    def create_record(
        db: Session,
        user_id: str,
        file_name: str,
        file_type: str,
        state: str,
        region: str,
        file_url: Optional[str] = None,
    ) -> ValidationRecordDB:
        """
        Create a validation record in 'processing' status

        Args:
            db: Database session
            user_id: Submitting user's profile id
            file_name: Uploaded file name, or pasted-text.txt
            file_type: MIME type
            state: Jurisdiction state
            region: Region derived from state
            file_url: Blob URL for uploads, None for pasted text

        Returns:
            ValidationRecordDB instance (already committed to DB)
        """
        now = _utcnow()
        record = ValidationRecordDB(
            user_id=user_id,
            file_name=file_name,
            file_type=file_type,
            state=state,
            region=region,
            status=ValidationStatus.PROCESSING.value,
            file_url=file_url,
            created_at=now,
            updated_at=now,
        )

        db.add(record)
        db.commit()
        db.refresh(record)

        logger.info(
            f"Created validation record: validation_id={record.id}, "
            f"state={state}, region={region}, has_file_url={bool(file_url)}"
        )
        return record

    @staticmethod
    def get_by_id(db: Session, validation_id: str) -> Optional[ValidationRecordDB]:
        return db.query(ValidationRecordDB).filter(ValidationRecordDB.id == validation_id).first()

    @staticmethod
    def require(db: Session, validation_id: str) -> ValidationRecordDB:
        """get_by_id that raises ValidationRecordNotFoundError instead of returning None"""
        record = ValidationStore.get_by_id(db, validation_id)
        if record is None:
            raise ValidationRecordNotFoundError(validation_id)
        return record

    @staticmethod
    def update_result(
        db: Session,
        validation_id: str,
        status: str,
        result_summary: Optional[str] = None,
        result_details: Any = None,
        external_execution_id: Optional[str] = None,
        derived: Optional[Dict[str, Any]] = None,
    ) -> ValidationRecordDB:
        """
        Write the terminal result of a validation in one update

        Args:
            db: Database session
            validation_id: Record id
            status: 'completed' or 'failed'
            result_summary: Validator summary
            result_details: Raw validator payload, stored as received
            external_execution_id: Validator run id
            derived: overall_score / lcd_results / recommendations / compliance_summary

        Raises:
            ValidationRecordNotFoundError: Unknown id (nothing is written)
            InvalidStatusTransitionError: Record is archived, or status is not terminal
        """
        record = ValidationStore.require(db, validation_id)
        if status not in RESOLVED_STATUSES or record.status == ValidationStatus.ARCHIVED.value:
            raise InvalidStatusTransitionError(validation_id, record.status, status)

        record.status = status
        record.result_summary = result_summary
        record.result_details = result_details
        record.external_execution_id = external_execution_id
        for field, value in (derived or {}).items():
            setattr(record, field, value)
        record.updated_at = _utcnow()

        db.commit()
        db.refresh(record)

        logger.info(
            f"Updated validation result: validation_id={validation_id}, status={status}, "
            f"overall_score={record.overall_score}, execution_id={external_execution_id}"
        )
        return record

    @staticmethod
    def list_by_user(db: Session, user_id: str, limit: int = 10) -> List[ValidationRecordDB]:
        """A user's records, newest first"""
        return (
            db.query(ValidationRecordDB)
            .filter(ValidationRecordDB.user_id == user_id)
            .order_by(desc(ValidationRecordDB.created_at))
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_all(
        db: Session,
        limit: int = 50,
        status: Optional[str] = None,
        search: Optional[str] = None,
        period: str = "all",
    ) -> List[Tuple[ValidationRecordDB, Optional[ProfileDB]]]:
        """
        All records for the admin reports view, newest first, each paired
        with the submitting profile (None when the profile is gone).

        Args:
            status: Exact status filter; None or 'all' for every status
            search: Case-insensitive match on file name, state, or submitter name/email
            period: 'all', 'today', 'week' (7 days) or 'month' (30 days)
        """
        query = (
            db.query(ValidationRecordDB, ProfileDB)
            .outerjoin(ProfileDB, ProfileDB.id == ValidationRecordDB.user_id)
        )

        if status and status != "all":
            query = query.filter(ValidationRecordDB.status == status)

        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                ValidationRecordDB.file_name.ilike(pattern),
                ValidationRecordDB.state.ilike(pattern),
                ProfileDB.full_name.ilike(pattern),
                ProfileDB.email.ilike(pattern),
            ))

        since = _period_start(period)
        if since is not None:
            query = query.filter(ValidationRecordDB.created_at >= since)

        rows = query.order_by(desc(ValidationRecordDB.created_at)).limit(limit).all()
        return [(record, profile) for record, profile in rows]

    @staticmethod
    def count_by_status(db: Session, period: str = "all") -> Dict[str, int]:
        """Record counts per status for the admin summary, limited to period"""
        query = db.query(ValidationRecordDB.status, func.count(ValidationRecordDB.id))
        since = _period_start(period)
        if since is not None:
            query = query.filter(ValidationRecordDB.created_at >= since)
        return {status: count for status, count in query.group_by(ValidationRecordDB.status).all()}

    @staticmethod
    def archive(db: Session, validation_id: str) -> ValidationRecordDB:
        """
        Move a completed or failed record to 'archived'

        Archiving an archived record is a no-op. result_details is untouched.

        Raises:
            ValidationRecordNotFoundError: Unknown id
            InvalidStatusTransitionError: Record is still processing
        """
        record = ValidationStore.require(db, validation_id)
        if record.status == ValidationStatus.ARCHIVED.value:
            return record
        if record.status not in ARCHIVABLE_STATUSES:
            raise InvalidStatusTransitionError(validation_id, record.status, ValidationStatus.ARCHIVED.value)

        record.status = ValidationStatus.ARCHIVED.value
        record.updated_at = _utcnow()
        db.commit()
        db.refresh(record)

        logger.info(f"Archived validation record: validation_id={validation_id}")
        return record

    @staticmethod
    def delete(db: Session, validation_id: str) -> None:
        """
        Hard delete regardless of status

        Raises:
            ValidationRecordNotFoundError: Unknown id
        """
        record = ValidationStore.require(db, validation_id)
        db.delete(record)
        db.commit()
        logger.info(f"Deleted validation record: validation_id={validation_id}")
