"""
Validation Orchestrator
Coordinates the validation lifecycle: submission, dispatch to the external
validator, webhook resolution, and the admin archive/delete actions.

States: processing -> completed | failed -> archived (admin only).
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from sqlalchemy.orm import Session

from app.models.user import User
from app.models.validation_dto import (
    ValidationRequest,
    ValidationResponse,
    ValidationStatus,
    WebhookPayload,
)
from app.models.validation_record_db import ValidationRecordDB
from app.services.blob_storage import BlobStorageClient, BlobStorageError
from app.services.errors import SubmissionError, ValidationServiceError
from app.services.result_normalizer import derive_stored_fields
from app.services.validation_store import ValidationStore
from app.utils.audit_logger import log_validation_event
from app.utils.jurisdiction import get_region_for_state

logger = logging.getLogger(__name__)

# Sent as content when the note travels by fileUrl
FILE_UPLOAD_SENTINEL = "FILE_UPLOAD_URL_PROVIDED"

PASTED_TEXT_FILE_NAME = "pasted-text.txt"
PASTED_TEXT_FILE_TYPE = "text/plain"


class DispatchClient(Protocol):
    async def dispatch(self, request: ValidationRequest) -> ValidationResponse: ...


@dataclass
class SubmissionResult:
    record: ValidationRecordDB
    dispatch: ValidationResponse


class ValidationOrchestrator:
    """
    Drives one validation from submission to its terminal state.

    Collaborators are passed in so routes, scripts and tests decide which
    dispatch client and storage are used.
    """

    def __init__(
        self,
        db: Session,
        dispatch_client: Optional[DispatchClient] = None,
        storage: Optional[BlobStorageClient] = None,
    ):
        self.db = db
        self.dispatch_client = dispatch_client
        self.storage = storage

    async def submit(
        self,
        user: User,
        state: str,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
        file_bytes: Optional[bytes] = None,
        text: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> SubmissionResult:
        """
        Submit a note for validation

        The record is created in 'processing' before dispatch. If dispatch
        fails the record stays 'processing' and the error is re-raised.

        Raises:
            SubmissionError: Missing state, or neither file nor text
            BlobStorageError: Upload failed (no record is created)
            ValidatorConfigurationError / DispatchError: From the dispatch client
        """
        state = (state or "").strip()
        if not state:
            raise SubmissionError("Please select a state before submitting.")

        has_file = bool(file_bytes)
        has_text = bool(text and text.strip())
        if not has_file and not has_text:
            raise SubmissionError("Please upload a file or paste note text to validate.")
        if self.dispatch_client is None:
            raise ValidationServiceError("No dispatch client configured", status_code=500)

        region = get_region_for_state(state)

        if has_file:
            file_name = file_name or "uploaded-note"
            file_type = file_type or "application/octet-stream"
            if self.storage is None:
                raise BlobStorageError("File storage is not configured")
            file_url = await asyncio.to_thread(
                self.storage.upload_validation_file, user.id, file_name, file_bytes, file_type
            )
            content = FILE_UPLOAD_SENTINEL
        else:
            file_name = PASTED_TEXT_FILE_NAME
            file_type = PASTED_TEXT_FILE_TYPE
            file_url = None
            content = text

        record = ValidationStore.create_record(
            self.db,
            user_id=user.id,
            file_name=file_name,
            file_type=file_type,
            state=state,
            region=region,
            file_url=file_url,
        )

        request = ValidationRequest(
            validationId=record.id,
            fileName=file_name,
            fileType=file_type,
            content=content,
            state=state,
            region=region,
            userId=user.id,
            fileUrl=file_url,
        )

        try:
            dispatch = await self.dispatch_client.dispatch(request)
        except ValidationServiceError as e:
            logger.error(
                f"Dispatch failed, record left processing: validation_id={record.id}, "
                f"status_code={e.status_code}"
            )
            log_validation_event(
                "submit", "failure", user_id=user.id, username=user.email, ip=ip,
                validation_id=record.id, details=f"Dispatch failed ({e.status_code})",
            )
            raise

        if dispatch.executionId and dispatch.executionId != "unknown":
            record.external_execution_id = dispatch.executionId
            self.db.commit()

        log_validation_event(
            "submit", "success", user_id=user.id, username=user.email, ip=ip,
            validation_id=record.id, details=f"state={state}, region={region}",
        )
        return SubmissionResult(record=record, dispatch=dispatch)

    def resolve_webhook(self, payload: WebhookPayload) -> ValidationRecordDB:
        """
        Apply a validator callback

        'completed' maps to completed, any other status to failed. Raw and
        derived fields are written in one update; repeated deliveries
        overwrite the same terminal fields.

        Raises:
            ValidationRecordNotFoundError: Unknown validationId (nothing is written)
            InvalidStatusTransitionError: Record is archived
        """
        status = (
            ValidationStatus.COMPLETED.value
            if payload.status == ValidationStatus.COMPLETED.value
            else ValidationStatus.FAILED.value
        )
        derived = derive_stored_fields(payload.resultDetails, payload.resultSummary)

        try:
            record = ValidationStore.update_result(
                self.db,
                payload.validationId,
                status=status,
                result_summary=payload.resultSummary,
                result_details=payload.resultDetails,
                external_execution_id=payload.executionId,
                derived=derived,
            )
        except ValidationServiceError as e:
            log_validation_event(
                "webhook", "failure", validation_id=payload.validationId, details=e.message,
            )
            raise

        log_validation_event(
            "webhook", "success", validation_id=record.id,
            details=f"status={status}, overall_score={record.overall_score}",
        )
        return record

    def archive(self, validation_id: str, actor: User, ip: Optional[str] = None) -> ValidationRecordDB:
        """Archive a completed/failed record (admin)"""
        try:
            record = ValidationStore.archive(self.db, validation_id)
        except ValidationServiceError as e:
            log_validation_event(
                "archive", "failure", user_id=actor.id, username=actor.email, ip=ip,
                validation_id=validation_id, details=e.message,
            )
            raise
        log_validation_event(
            "archive", "success", user_id=actor.id, username=actor.email, ip=ip,
            validation_id=validation_id,
        )
        return record

    def delete(self, validation_id: str, actor: User, ip: Optional[str] = None) -> None:
        """Hard delete a record in any status (admin)"""
        try:
            ValidationStore.delete(self.db, validation_id)
        except ValidationServiceError as e:
            log_validation_event(
                "delete", "failure", user_id=actor.id, username=actor.email, ip=ip,
                validation_id=validation_id, details=e.message,
            )
            raise
        log_validation_event(
            "delete", "success", user_id=actor.id, username=actor.email, ip=ip,
            validation_id=validation_id,
        )
