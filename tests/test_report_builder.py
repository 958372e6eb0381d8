"""
Unit tests for the results view and text reports
"""
from datetime import datetime, timezone
import pytest
from app.models.validation_record_db import ValidationRecordDB
from app.services.report_builder import (
    build_report_filename,
    build_report_text,
    build_results_view,
    build_stored_report_text,
    clamp_score,
    format_label,
    sanitize_file_name,
)
from app.services.result_normalizer import derive_stored_fields


def make_record(result_details=None, status="completed", file_name="wound-note.pdf", **overrides):
    created_at = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)
    fields = dict(
        id="v-100",
        user_id="u-1",
        file_name=file_name,
        file_type="application/pdf",
        state="California",
        region="West",
        status=status,
        result_summary="Validation completed",
        result_details=result_details,
        created_at=created_at,
        updated_at=created_at,
    )
    if result_details is not None:
        fields.update(derive_stored_fields(result_details, fields["result_summary"]))
    fields.update(overrides)
    return ValidationRecordDB(**fields)


class TestHelpers:
    """Tests for small presentation helpers"""

    @pytest.mark.parametrize("score,expected", [(None, 0), (-4, 0), (57, 57), (105, 100)])
    def test_clamp_score(self, score, expected):
        assert clamp_score(score) == expected

    def test_format_label(self):
        assert format_label("chiefComplaint") == "Chief Complaint"
        assert format_label("infection_signs") == "Infection signs"

    def test_sanitize_file_name(self):
        assert sanitize_file_name("Wound Note (final).pdf") == "Wound-Note--final-"


class TestResultsView:
    """Tests for build_results_view"""

    def test_completed_record(self, validator_payload):
        view = build_results_view(make_record(validator_payload))
        assert view.validationStatus == "passed"
        assert view.readableStatus == "Fully Compliant"
        assert view.complianceScore == 94
        assert [rec.text for rec in view.highPriorityRecommendations] == ["Schedule follow-up in 7 days"]
        assert {rec.text for rec in view.additionalRecommendations} == {
            "Elevate the limb",
            "Document pain level at each visit",
        }
        assert set(view.recommendationsByPriority) == {"high", "medium", "low"}
        assert view.recommendationsByPriority["low"] == []

    def test_score_is_clamped_for_display_only(self):
        record = make_record({"overallScore": 105})
        view = build_results_view(record)
        assert view.complianceScore == 100
        assert view.details.overallSummary.score == 105
        assert record.overall_score == 105

    def test_processing_record_without_payload(self):
        view = build_results_view(make_record(status="processing"))
        assert view.validationStatus == "failed"
        assert view.readableStatus == "Non-Compliant"
        assert view.complianceScore == 0
        assert view.details.lcdChecks == []

    def test_record_serializes_with_camel_case(self, validator_payload):
        view = build_results_view(make_record(validator_payload))
        dumped = view.model_dump(by_alias=True)
        assert dumped["record"]["fileName"] == "wound-note.pdf"
        assert dumped["record"]["overallScore"] == 94


class TestReportText:
    """Tests for the downloadable text reports"""

    def test_report_sections(self, validator_payload):
        text = build_report_text(make_record(validator_payload))
        lines = text.split("\n")
        assert lines[0] == "MEDLEARN WOUND CARE VALIDATION REPORT"
        assert "File: wound-note.pdf" in lines
        assert "State / Region: California / West" in lines
        assert "Generated: 2025-03-14 09:30:00" in lines
        assert "Status: Fully Compliant" in lines
        assert "Compliance Score: 94%" in lines
        assert "Overview: Documentation meets LCD requirements." in lines
        assert "1. Wound measurements documented" in lines
        assert "Immediate Next Steps:" in lines
        assert "Hpi:" in lines
        assert "  Measurements:" in lines
        assert "    - Depth: 0.4cm" in lines
        assert "1. Wound Care LCD L35125" in lines
        assert "   Status: Pass (94%)" in lines
        assert "     - Document pain level at each visit" in lines
        assert "   Priority: HIGH" in lines

    def test_report_is_deterministic(self, validator_payload):
        record = make_record(validator_payload)
        assert build_report_text(record) == build_report_text(record)

    def test_report_without_lcd_analysis(self):
        text = build_report_text(make_record({"overallScore": 75}))
        assert "No LCD analysis available." in text
        assert "Status: Partially Compliant" in text
        assert "RECOMMENDATIONS" not in text

    def test_report_filename(self):
        record = make_record(file_name="Wound Note (final).pdf")
        assert build_report_filename(record) == "validation-report-Wound-Note--final--2025-03-14.txt"

    def test_stored_report_uses_derived_fields(self, validator_payload):
        record = make_record(validator_payload)
        record.result_details = None
        text = build_stored_report_text(record)
        assert "Status: completed" in text
        assert "Compliance Score: 94%" in text
        assert "1. Wound Care LCD L35125" in text
        assert "   Status: Pass" in text
        assert "   Score: 94%" in text
        assert "   Details: No details available" in text
        assert "2. Schedule follow-up in 7 days" in text
        assert "   Category: General" in text
        assert "   Priority: Medium" in text

    def test_stored_report_lcd_and_recommendation_fields(self):
        record = make_record(
            overall_score=71,
            lcd_results=[
                {
                    "lcd": "L33831",
                    "status": "partial",
                    "details": "Depth not documented",
                    "missing_elements": ["wound depth", "pain scale"],
                },
                {"title": "Offloading LCD", "status": "met", "score": "88.4"},
            ],
            recommendations=[
                {"suggestion": "Record wound depth", "category": "Documentation", "priority": "HIGH"},
                {"description": "Add pain scale"},
            ],
        )
        text = build_stored_report_text(record)

        assert "1. LCD L33831" in text
        assert "   Score: N/A" in text
        assert "   Details: Depth not documented" in text
        assert "   Missing Elements: wound depth, pain scale" in text
        assert "2. Offloading LCD" in text
        assert "   Score: 88%" in text
        assert text.count("Missing Elements") == 1

        assert "1. Record wound depth\n   Category: Documentation\n   Priority: High" in text
        assert "2. Add pain scale\n   Category: General\n   Priority: Medium" in text
