"""
Tests for the validation lifecycle: submission, webhook resolution,
archive and delete
"""
import json
import pytest
from unittest.mock import MagicMock
from app.models.validation_dto import ValidationResponse, WebhookPayload
from app.models.validation_record_db import ValidationRecordDB
from app.services.blob_storage import BlobStorageError
from app.services.errors import (
    DispatchError,
    InvalidStatusTransitionError,
    SubmissionError,
    ValidationRecordNotFoundError,
)
from app.services.validation_orchestrator import FILE_UPLOAD_SENTINEL, ValidationOrchestrator
from app.services.validation_store import ValidationStore
from conftest import FakeDispatchClient


def read_audit(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestSubmit:
    """Tests for ValidationOrchestrator.submit"""

    @pytest.mark.asyncio
    async def test_pasted_text(self, db_session, user, dispatch_client, audit_log_path):
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=dispatch_client)
        result = await orchestrator.submit(user, state="California", text="Stage 3 pressure ulcer, sacrum.")

        record = result.record
        assert record.status == "processing"
        assert record.region == "West"
        assert record.file_name == "pasted-text.txt"
        assert record.file_type == "text/plain"
        assert record.file_url is None
        assert record.external_execution_id == "exec-123"

        sent = dispatch_client.requests[0]
        assert sent.validationId == record.id
        assert sent.content == "Stage 3 pressure ulcer, sacrum."
        assert sent.userId == user.id
        assert sent.fileUrl is None

        entries = read_audit(audit_log_path)
        assert entries[-1]["action"] == "validation:submit"
        assert entries[-1]["outcome"] == "success"
        assert "Stage 3" not in audit_log_path.read_text()

    @pytest.mark.asyncio
    async def test_uploaded_file(self, db_session, user, dispatch_client):
        storage = MagicMock()
        storage.upload_validation_file.return_value = "https://blob.example.com/wound-notes/validation-files/u/1-note.pdf"
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=dispatch_client, storage=storage)

        result = await orchestrator.submit(
            user, state="Texas", file_name="note.pdf", file_type="application/pdf",
            file_bytes=b"%PDF-1.4", text="ignored when a file is present",
        )

        storage.upload_validation_file.assert_called_once_with(user.id, "note.pdf", b"%PDF-1.4", "application/pdf")
        assert result.record.file_url.endswith("1-note.pdf")
        assert result.record.region == "Southwest"
        sent = dispatch_client.requests[0]
        assert sent.content == FILE_UPLOAD_SENTINEL
        assert sent.fileUrl == result.record.file_url

    @pytest.mark.asyncio
    async def test_state_is_required(self, db_session, user, dispatch_client):
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=dispatch_client)
        with pytest.raises(SubmissionError) as exc_info:
            await orchestrator.submit(user, state="  ", text="note")
        assert exc_info.value.message == "Please select a state before submitting."
        assert db_session.query(ValidationRecordDB).count() == 0

    @pytest.mark.asyncio
    async def test_file_or_text_is_required(self, db_session, user, dispatch_client):
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=dispatch_client)
        with pytest.raises(SubmissionError):
            await orchestrator.submit(user, state="Ohio", text="   ")
        assert dispatch_client.requests == []

    @pytest.mark.asyncio
    async def test_file_without_storage(self, db_session, user, dispatch_client):
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=dispatch_client)
        with pytest.raises(BlobStorageError):
            await orchestrator.submit(user, state="Ohio", file_name="a.pdf", file_bytes=b"x")
        assert db_session.query(ValidationRecordDB).count() == 0

    @pytest.mark.asyncio
    async def test_unmapped_state_gets_unknown_region(self, db_session, user, dispatch_client):
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=dispatch_client)
        result = await orchestrator.submit(user, state="Alaska", text="note")
        assert result.record.region == "Unknown"

    @pytest.mark.asyncio
    async def test_dispatch_failure_leaves_record_processing(self, db_session, user, audit_log_path):
        failing = FakeDispatchClient(error=DispatchError("Validator request failed: 500 Internal Server Error", status_code=500))
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=failing)

        with pytest.raises(DispatchError):
            await orchestrator.submit(user, state="California", text="note")

        records = db_session.query(ValidationRecordDB).all()
        assert len(records) == 1
        assert records[0].status == "processing"
        assert read_audit(audit_log_path)[-1]["outcome"] == "failure"

    @pytest.mark.asyncio
    async def test_unknown_execution_id_is_not_stored(self, db_session, user):
        client = FakeDispatchClient(response=ValidationResponse())
        result = await ValidationOrchestrator(db_session, dispatch_client=client).submit(user, state="Utah", text="note")
        assert result.record.external_execution_id is None


class TestResolveWebhook:
    """Tests for ValidationOrchestrator.resolve_webhook"""

    @pytest.mark.asyncio
    async def test_end_to_end_completed(self, db_session, user, dispatch_client, validator_payload):
        orchestrator = ValidationOrchestrator(db_session, dispatch_client=dispatch_client)
        submitted = await orchestrator.submit(user, state="California", text="Venous ulcer, left malleolus.")

        record = orchestrator.resolve_webhook(WebhookPayload(
            validationId=submitted.record.id,
            status="completed",
            resultSummary="Validation completed",
            resultDetails=validator_payload,
            executionId="exec-123",
        ))

        assert record.status == "completed"
        assert record.region == "West"
        assert record.overall_score == 94
        assert len(record.lcd_results) == 1
        assert record.lcd_results[0]["normalizedStatus"] == "pass"
        assert record.result_details == validator_payload
        assert record.compliance_summary == "Documentation meets LCD requirements."

    def test_non_completed_status_is_failed(self, db_session, user):
        created = ValidationStore.create_record(db_session, user.id, "n.txt", "text/plain", "Ohio", "Midwest")
        record = ValidationOrchestrator(db_session).resolve_webhook(
            WebhookPayload(validationId=created.id, status="error", resultSummary="Timed out")
        )
        assert record.status == "failed"
        assert record.overall_score is None
        assert record.compliance_summary == "Timed out"

    def test_unknown_id_performs_no_write(self, db_session, user, audit_log_path):
        created = ValidationStore.create_record(db_session, user.id, "n.txt", "text/plain", "Ohio", "Midwest")
        with pytest.raises(ValidationRecordNotFoundError):
            ValidationOrchestrator(db_session).resolve_webhook(
                WebhookPayload(validationId="does-not-exist", status="completed", resultDetails={"overallScore": 99})
            )
        db_session.refresh(created)
        assert created.status == "processing"
        assert created.result_details is None
        assert read_audit(audit_log_path)[-1]["action"] == "validation:webhook"
        assert read_audit(audit_log_path)[-1]["outcome"] == "failure"

    def test_repeated_delivery_is_idempotent(self, db_session, user, validator_payload):
        created = ValidationStore.create_record(db_session, user.id, "n.txt", "text/plain", "California", "West")
        orchestrator = ValidationOrchestrator(db_session)
        payload = WebhookPayload(validationId=created.id, status="completed", resultDetails=validator_payload,
                                 resultSummary="ok", executionId="exec-1")

        first = orchestrator.resolve_webhook(payload)
        snapshot = {
            column: getattr(first, column)
            for column in ("status", "result_summary", "result_details", "overall_score",
                           "lcd_results", "recommendations", "compliance_summary", "external_execution_id")
        }
        second = orchestrator.resolve_webhook(payload)
        assert {column: getattr(second, column) for column in snapshot} == snapshot

    def test_archived_record_rejects_webhook(self, db_session, user, admin_user):
        created = ValidationStore.create_record(db_session, user.id, "n.txt", "text/plain", "Ohio", "Midwest")
        orchestrator = ValidationOrchestrator(db_session)
        orchestrator.resolve_webhook(WebhookPayload(validationId=created.id, status="failed"))
        orchestrator.archive(created.id, admin_user)

        with pytest.raises(InvalidStatusTransitionError):
            orchestrator.resolve_webhook(WebhookPayload(validationId=created.id, status="completed"))


class TestAdminActions:
    """Tests for archive and delete with auditing"""

    def test_archive_and_delete_are_audited(self, db_session, user, admin_user, audit_log_path):
        created = ValidationStore.create_record(db_session, user.id, "n.txt", "text/plain", "Ohio", "Midwest")
        orchestrator = ValidationOrchestrator(db_session)
        orchestrator.resolve_webhook(WebhookPayload(validationId=created.id, status="completed"))

        orchestrator.archive(created.id, admin_user, ip="10.0.0.5")
        orchestrator.delete(created.id, admin_user, ip="10.0.0.5")

        entries = read_audit(audit_log_path)
        assert [e["action"] for e in entries[-2:]] == ["validation:archive", "validation:delete"]
        assert entries[-1]["user_id"] == admin_user.id
        assert entries[-1]["ip"] == "10.0.0.5"
        assert ValidationStore.get_by_id(db_session, created.id) is None

    def test_archive_processing_is_audited_as_failure(self, db_session, user, admin_user, audit_log_path):
        created = ValidationStore.create_record(db_session, user.id, "n.txt", "text/plain", "Ohio", "Midwest")
        with pytest.raises(InvalidStatusTransitionError):
            ValidationOrchestrator(db_session).archive(created.id, admin_user)
        assert read_audit(audit_log_path)[-1]["outcome"] == "failure"
