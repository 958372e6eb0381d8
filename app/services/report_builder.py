"""
Report Builder
Results view model and flattened text reports for validation records.
Every function re-normalizes the stored raw payload, so output depends only
on the record.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.models.validation_dto import (
    NormalizedRecommendation,
    NormalizedValidationDetails,
    ValidationRecordResponse,
    ValidationResultsView,
)
from app.services.result_normalizer import (
    PRIORITY_ORDER,
    format_timestamp,
    normalize_lcd_status,
    normalize_priority,
    normalize_record,
    recommendation_text,
    resolve_validation_status,
)
from app.utils.coercion import extract_numeric_score, first_non_empty, first_text, to_string_array

REPORT_TITLE = "MEDLEARN WOUND CARE VALIDATION REPORT"
SEPARATOR = "-" * 40

READABLE_STATUS = {
    "passed": "Fully Compliant",
    "warning": "Partially Compliant",
    "failed": "Non-Compliant",
}

LCD_STATUS_LABELS = {
    "pass": "Pass",
    "partial": "Partial",
    "na": "N/A",
    "fail": "Not Met",
}


def clamp_score(score: Optional[int]) -> int:
    """Clamp a score into [0, 100]; None counts as 0."""
    if score is None:
        return 0
    return max(0, min(100, int(score)))


def readable_status(status: str) -> str:
    return READABLE_STATUS.get(status, READABLE_STATUS["failed"])


def lcd_status_label(status: str) -> str:
    return LCD_STATUS_LABELS.get(status, LCD_STATUS_LABELS["fail"])


def format_label(label: str) -> str:
    """camelCase / snake_case key -> 'Camel case' style label."""
    text = re.sub(r"([A-Z])", r" \1", label)
    text = re.sub(r"\s+", " ", text.replace("_", " ")).strip()
    return text[:1].upper() + text[1:]


def sanitize_file_name(name: str) -> str:
    """Drop the extension and replace anything outside [A-Za-z0-9-_] with '-'."""
    stem = re.sub(r"\.[^/.]+$", "", name or "")
    return re.sub(r"[^a-zA-Z0-9\-_]", "-", stem)


def _record_status(record: Any) -> Optional[str]:
    status = getattr(record, "status", None)
    return getattr(status, "value", status)


def _format_created_at(record: Any) -> str:
    created_at = getattr(record, "created_at", None)
    return format_timestamp(created_at) or ""


def _compliance(record: Any, normalized: NormalizedValidationDetails):
    score = normalized.overallSummary.score
    if score is None:
        score = getattr(record, "overall_score", None)
    compliance_score = clamp_score(score)
    status = resolve_validation_status(
        _record_status(record),
        compliance_score,
        normalized.overallSummary.status,
    )
    return compliance_score, status


def group_by_priority(recommendations: List[NormalizedRecommendation]) -> Dict[str, List[NormalizedRecommendation]]:
    return {
        priority: [rec for rec in recommendations if rec.priority == priority]
        for priority in PRIORITY_ORDER
    }


def build_results_view(record: Any) -> ValidationResultsView:
    """Everything the results tabs render for one record."""
    normalized = normalize_record(record)
    compliance_score, status = _compliance(record, normalized)
    recommendations = normalized.recommendations

    return ValidationResultsView(
        record=ValidationRecordResponse.model_validate(record),
        validationStatus=status,
        readableStatus=readable_status(status),
        complianceScore=compliance_score,
        details=normalized,
        highPriorityRecommendations=[rec for rec in recommendations if rec.priority == "high"],
        additionalRecommendations=[rec for rec in recommendations if rec.priority != "high"],
        recommendationsByPriority=group_by_priority(recommendations),
    )


def _numbered(lines: List[str], heading: str, items: List[str]) -> None:
    if not items:
        return
    lines.append(heading)
    for idx, item in enumerate(items, start=1):
        lines.append(f"{idx}. {item}")
    lines.append("")


def _header(lines: List[str], record: Any) -> None:
    lines.append(REPORT_TITLE)
    lines.append(SEPARATOR)
    lines.append(f"File: {record.file_name}")
    lines.append(f"State / Region: {record.state} / {record.region}")
    lines.append(f"Generated: {_format_created_at(record)}")
    lines.append("")


def build_report_text(record: Any) -> str:
    """Flattened plain-text report; identical for identical records."""
    normalized = normalize_record(record)
    score, status = _compliance(record, normalized)
    summary = normalized.overallSummary

    lines: List[str] = []
    _header(lines, record)

    lines.append("SUMMARY")
    lines.append(SEPARATOR)
    lines.append(f"Status: {readable_status(status)}")
    lines.append(f"Compliance Score: {score}%")
    lines.append(f"Overview: {summary.summaryText or record.result_summary or 'No summary provided.'}")
    lines.append("")

    _numbered(lines, "Key Findings:", summary.keyFindings)
    _numbered(lines, "Immediate Next Steps:", summary.nextSteps)

    lines.append("CLINICAL DOCUMENTATION")
    lines.append(SEPARATOR)
    for key, value in normalized.sections.items():
        if not value or key == "woundAssessment":
            continue
        lines.append(f"{format_label(key)}:")
        lines.append(str(value))
        lines.append("")

    if normalized.woundAssessment:
        lines.append("Wound Assessment:")
        for key, value in normalized.woundAssessment.model_dump().items():
            if not value:
                continue
            if key == "size" and isinstance(value, dict):
                lines.append("  Measurements:")
                for metric, metric_value in value.items():
                    lines.append(f"    - {format_label(metric)}: {metric_value}")
                continue
            lines.append(f"  {format_label(key)}: {value}")
        lines.append("")

    lines.append("LCD COMPLIANCE")
    lines.append(SEPARATOR)
    if not normalized.lcdChecks:
        lines.append("No LCD analysis available.")
    for idx, lcd in enumerate(normalized.lcdChecks, start=1):
        lines.append(f"{idx}. {lcd.title}")
        lcd_score = f" ({lcd.score}%)" if lcd.score else ""
        lines.append(f"   Status: {lcd_status_label(lcd.status)}{lcd_score}")
        if lcd.summary:
            lines.append(f"   Summary: {lcd.summary}")
        if lcd.reasons:
            lines.append("   Assessment:")
            lines.extend(f"     - {reason}" for reason in lcd.reasons)
        if lcd.evidence:
            lines.append("   Evidence:")
            lines.extend(f"     - {item}" for item in lcd.evidence)
        if lcd.recommendations:
            lines.append("   Recommended Actions:")
            lines.extend(f"     - {rec.text}" for rec in lcd.recommendations)
        lines.append("")

    if normalized.recommendations:
        lines.append("RECOMMENDATIONS")
        lines.append(SEPARATOR)
        for idx, rec in enumerate(normalized.recommendations, start=1):
            lines.append(f"{idx}. {rec.text}")
            lines.append(f"   Priority: {rec.priority.upper()}")
            if rec.category:
                lines.append(f"   Category: {rec.category}")
            if rec.source:
                lines.append(f"   Source: {rec.source}")
            lines.append("")

    return "\n".join(lines)


def build_report_filename(record: Any) -> str:
    """validation-report-<sanitized name>-<YYYY-MM-DD>.txt"""
    created_at = getattr(record, "created_at", None)
    day = created_at.strftime("%Y-%m-%d") if isinstance(created_at, datetime) else "undated"
    return f"validation-report-{sanitize_file_name(record.file_name)}-{day}.txt"


def build_stored_report_text(record: Any) -> str:
    """
    Admin report built from the fields stored at resolution time only
    (overall_score, compliance_summary, lcd_results, recommendations),
    without re-reading the raw payload.
    """
    lines: List[str] = []
    _header(lines, record)

    lines.append("SUMMARY")
    lines.append(SEPARATOR)
    lines.append(f"Status: {_record_status(record)}")
    if record.overall_score is not None:
        lines.append(f"Compliance Score: {clamp_score(record.overall_score)}%")
    lines.append(f"Overview: {record.compliance_summary or record.result_summary or 'No summary provided.'}")
    lines.append("")

    lines.append("LCD COMPLIANCE")
    lines.append(SEPARATOR)
    lcd_results = record.lcd_results or []
    if not lcd_results:
        lines.append("No LCD analysis available.")
    for idx, entry in enumerate(lcd_results, start=1):
        entry = entry if isinstance(entry, dict) else {"description": str(entry)}
        title = entry.get("title") or entry.get("name") or (f"LCD {entry['lcd']}" if entry.get("lcd") else f"LCD Check {idx}")
        status = entry.get("normalizedStatus") or normalize_lcd_status(entry.get("status"))
        score = extract_numeric_score(first_non_empty(entry, ["score", "complianceScore"]))
        details = to_string_array(first_non_empty(entry, ["details", "summary", "description"]))
        missing = to_string_array(entry.get("missing_elements"))
        lines.append(f"{idx}. {title}")
        lines.append(f"   Status: {lcd_status_label(status)}")
        lines.append(f"   Score: {f'{score}%' if score is not None else 'N/A'}")
        lines.append(f"   Details: {'; '.join(details) or 'No details available'}")
        if missing:
            lines.append(f"   Missing Elements: {', '.join(missing)}")
    lines.append("")

    recommendations = [
        (recommendation_text(entry), entry if isinstance(entry, dict) else {})
        for entry in record.recommendations or []
    ]
    recommendations = [(text, entry) for text, entry in recommendations if text]
    if recommendations:
        lines.append("RECOMMENDATIONS")
        lines.append(SEPARATOR)
        for idx, (text, entry) in enumerate(recommendations, start=1):
            category = first_text(entry, ["category"]) or "General"
            lines.append(f"{idx}. {text}")
            lines.append(f"   Category: {category}")
            lines.append(f"   Priority: {normalize_priority(entry.get('priority')).capitalize()}")
        lines.append("")

    return "\n".join(lines)
