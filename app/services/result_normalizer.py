"""
Result Normalizer
Turns the loosely-shaped payload posted by the external validator into
NormalizedValidationDetails, and derives the summary fields persisted with
a completed validation record.

Everything here is pure. Malformed input degrades to defaults and is never
raised to the caller: the validator's output shape is not contractually
fixed, and a partial result is more useful than an error page.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from dateutil import parser as date_parser

from app.models.validation_dto import (
    NormalizedLCDCheck,
    NormalizedRecommendation,
    NormalizedValidationDetails,
    OverallSummary,
    WoundAssessment,
)
from app.utils.coercion import (
    as_dict,
    extract_numeric_score,
    first_non_empty,
    first_text,
    to_array,
    to_string_array,
)

logger = logging.getLogger(__name__)

PRIORITY_ORDER = ["high", "medium", "low"]

DISPLAY_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

RECOMMENDATION_TEXT_KEYS = ("text", "description", "suggestion", "recommendation", "action", "summary")

LCD_PASS_TERMS = {"pass", "passed", "met", "compliant", "complete"}
LCD_PARTIAL_TERMS = {"partial", "partially met", "warning", "needs improvement"}
LCD_NA_TERMS = {"na", "n/a", "not applicable"}

OVERALL_PASS_TERMS = {"pass", "passed", "compliant"}
OVERALL_PARTIAL_TERMS = {"warning", "partial", "partially compliant"}

# Keys checked, in order, for the per-rule list
LCD_SOURCE_KEYS = ("lcdChecks", "lcd_results", "lcdCompliance")
LCD_RECOMMENDATION_KEYS = ("recommendations", "suggestions", "actions")

# (source key in overallSummary or top level, default priority, source label)
RECOMMENDATION_SOURCES = (
    ("recommendations", "medium", "AI Analysis"),
    ("overallSummary.recommendations", "medium", "Overall Summary"),
    ("overallSummary.nextSteps", "high", "Next Steps"),
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_details(details: Any) -> Dict[str, Any]:
    """Raw payload as a dict: JSON strings are decoded, anything else non-dict becomes {}."""
    if not details:
        return {}
    if isinstance(details, str):
        try:
            decoded = json.loads(details)
        except ValueError as e:
            logger.warning(f"Unable to parse validation result details string: {e}")
            return {}
        return decoded if isinstance(decoded, dict) else {}
    if isinstance(details, dict):
        return details
    return {}


def format_timestamp(value: Any) -> Optional[str]:
    """Format a timestamp for display; unparsable values are returned as given."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime(DISPLAY_TIMESTAMP_FORMAT)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            # epoch milliseconds
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime(DISPLAY_TIMESTAMP_FORMAT)
        except (OverflowError, OSError, ValueError):
            return str(value)
    try:
        return date_parser.parse(str(value)).strftime(DISPLAY_TIMESTAMP_FORMAT)
    except (ValueError, OverflowError):
        return str(value)


def _lookup(raw: Dict[str, Any], dotted_key: str) -> Any:
    current: Any = raw
    for part in dotted_key.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

def normalize_priority(value: Any) -> str:
    text = str(value if value is not None else "").strip().lower()
    if text == "high":
        return "high"
    if text == "low":
        return "low"
    return "medium"


def recommendation_text(entry: Any) -> str:
    """Text of a raw recommendation entry, '' when it has none."""
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, dict):
        text = first_non_empty(entry, RECOMMENDATION_TEXT_KEYS)
        return str(text).strip() if text is not None else ""
    return ""


def normalize_recommendation_collection(
    value: Any,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    source: Optional[str] = None,
) -> List[NormalizedRecommendation]:
    """
    Normalize a list (or anything to_array accepts) of recommendations.

    Strings take the defaults; objects may override id, priority, category
    and source. Entries without resolvable text are dropped.
    """
    normalized: List[NormalizedRecommendation] = []
    id_prefix = source or "rec"

    for index, entry in enumerate(to_array(value)):
        if not entry:
            continue
        text = recommendation_text(entry)
        if not text:
            continue

        if isinstance(entry, str):
            normalized.append(NormalizedRecommendation(
                id=f"{id_prefix}-{index}",
                text=text,
                priority=normalize_priority(priority),
                category=category,
                source=source,
            ))
            continue

        entry_category = entry.get("category", category)
        entry_source = entry.get("source", source)
        normalized.append(NormalizedRecommendation(
            id=str(entry["id"]) if entry.get("id") is not None else f"{id_prefix}-{index}",
            text=text,
            priority=normalize_priority(entry.get("priority", priority)),
            category=str(entry_category) if entry_category is not None else None,
            source=str(entry_source) if entry_source is not None else None,
        ))

    return normalized


def sort_by_priority(recommendations: List[NormalizedRecommendation]) -> List[NormalizedRecommendation]:
    """Stable sort, high first."""
    return sorted(recommendations, key=lambda rec: PRIORITY_ORDER.index(rec.priority))


def aggregate_recommendations(
    raw: Dict[str, Any],
    lcd_checks: Sequence[NormalizedLCDCheck],
) -> List[NormalizedRecommendation]:
    """
    Display-time aggregation across all recommendation sources.

    Deduplicated on priority plus lowercase text, first occurrence wins,
    then sorted high > medium > low.
    """
    aggregate: List[NormalizedRecommendation] = []
    seen = set()

    def push(items: List[NormalizedRecommendation]) -> None:
        for item in items:
            key = f"{item.priority}-{item.text.lower()}"
            if key in seen:
                continue
            seen.add(key)
            aggregate.append(item)

    for key, priority, source in RECOMMENDATION_SOURCES:
        push(normalize_recommendation_collection(_lookup(raw, key), priority=priority, source=source))

    for lcd in lcd_checks:
        push(lcd.recommendations)

    return sort_by_priority(aggregate)


def collect_stored_recommendations(raw: Dict[str, Any]) -> List[Any]:
    """
    Storage-time aggregation: the raw entries themselves, from the same
    sources as aggregate_recommendations, deduplicated on lowercase
    trimmed text only.
    """
    collected: List[Any] = []
    seen = set()

    sources = [to_array(_lookup(raw, key)) for key, _, _ in RECOMMENDATION_SOURCES]
    for entry in _lcd_source(raw):
        if isinstance(entry, dict):
            sources.append(to_array(first_non_empty(entry, LCD_RECOMMENDATION_KEYS, skip_blank=False)))

    for entries in sources:
        for entry in entries:
            text = recommendation_text(entry)
            if not text:
                continue
            key = text.lower()
            if key in seen:
                continue
            seen.add(key)
            collected.append(entry)

    return collected


# ---------------------------------------------------------------------------
# LCD checks
# ---------------------------------------------------------------------------

def normalize_lcd_status(value: Any) -> str:
    text = str(value if value is not None else "").strip().lower()
    if text in LCD_PASS_TERMS:
        return "pass"
    if text in LCD_PARTIAL_TERMS:
        return "partial"
    if text in LCD_NA_TERMS:
        return "na"
    return "fail"


def _lcd_title(obj: Dict[str, Any], index: int) -> str:
    title = first_non_empty(obj, [
        "title",
        "name",
        lambda o: f"LCD {o['lcd']}" if o.get("lcd") else None,
    ])
    return str(title) if title is not None else f"LCD Check {index + 1}"


def normalize_lcd_check(entry: Any, index: int) -> NormalizedLCDCheck:
    """Normalize one per-rule entry; non-object entries become a description-only check."""
    if isinstance(entry, dict):
        obj = entry
    else:
        obj = {"description": str(entry) if entry is not None else ""}

    title = _lcd_title(obj, index)
    status = normalize_lcd_status(first_non_empty(obj, ["status", "outcome", "compliance"]) or "unknown")
    identifier = first_non_empty(obj, ["id", "lcd"])

    return NormalizedLCDCheck(
        id=str(identifier) if identifier is not None else str(index),
        title=title,
        status=status,
        summary=first_text(obj, ["summary", "assessment", "description"]),
        score=extract_numeric_score(first_non_empty(obj, ["score", "complianceScore"])),
        reasons=to_string_array(
            first_non_empty(obj, ["reasons", "reason", "details", "missing_elements", "assessment"])
        ),
        evidence=to_string_array(
            first_non_empty(obj, ["evidence", "supportingEvidence", "documentation", "documents"])
        ),
        recommendations=normalize_recommendation_collection(
            first_non_empty(obj, LCD_RECOMMENDATION_KEYS, skip_blank=False),
            priority="medium",
            source=title,
        ),
    )


def _lcd_source(raw: Dict[str, Any], fallback: Any = None) -> List[Any]:
    source = first_non_empty(raw, LCD_SOURCE_KEYS, skip_blank=False)
    return to_array(source if source is not None else fallback)


def build_lcd_checks(raw: Dict[str, Any], fallback: Any = None) -> List[NormalizedLCDCheck]:
    """LCD checks from the payload, else from the record's stored lcd_results."""
    return [normalize_lcd_check(entry, index) for index, entry in enumerate(_lcd_source(raw, fallback))]


def derive_lcd_results(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Raw per-rule entries for storage, each tagged with its normalizedStatus."""
    results = []
    for index, entry in enumerate(_lcd_source(raw)):
        stored = dict(entry) if isinstance(entry, dict) else {"description": str(entry)}
        stored["normalizedStatus"] = normalize_lcd_check(entry, index).status
        results.append(stored)
    return results


# ---------------------------------------------------------------------------
# Meta, sections and wound assessment
# ---------------------------------------------------------------------------

def build_meta(
    meta: Any,
    validation_id: Optional[str] = None,
    state: Optional[str] = None,
    region: Optional[str] = None,
    file_type: Optional[str] = None,
) -> Dict[str, Any]:
    obj = as_dict(meta)
    return {
        "validationId": first_non_empty(obj, ["validationId"]) or validation_id,
        "mac": obj.get("mac"),
        "state": first_non_empty(obj, ["state"]) or state,
        "regionHint": first_non_empty(obj, ["regionHint"]) or region,
        "generatedAt": format_timestamp(obj.get("generatedAt")),
        "patientInfoRedacted": first_non_empty(obj, ["patient_info_redacted", "patientInfoRedacted"]),
        "fileType": first_non_empty(obj, ["fileType"]) or file_type,
    }


SECTION_KEYS = {
    "chiefComplaint": ("chiefComplaint", "complaint"),
    "hpi": ("hpi", "history"),
    "interventions": ("interventionsToDate", "interventions"),
    "plan": ("plan",),
    "medicalNecessity": ("medicalNecessity", "justification"),
    "comorbidities": ("comorbidities",),
    "consent": ("consent",),
    "documentation": ("supportingDocumentation",),
    "photosMeasurements": ("photosMeasurements",),
    "woundAssessment": ("woundAssessment",),
}


def build_sections(sections: Any) -> Dict[str, Any]:
    obj = as_dict(sections)
    return {name: first_non_empty(obj, keys) for name, keys in SECTION_KEYS.items()}


def build_wound_assessment(raw: Any) -> Optional[WoundAssessment]:
    if not isinstance(raw, dict) or not raw:
        return None
    size = raw.get("size")
    return WoundAssessment(
        location=raw.get("location"),
        size=size if isinstance(size, dict) else None,
        edges=raw.get("edges"),
        base=raw.get("base"),
        exudate=raw.get("exudate"),
        infectionSigns=raw.get("infectionSigns"),
        surroundingSkin=raw.get("surroundingSkin"),
    )


# ---------------------------------------------------------------------------
# Overall summary and status
# ---------------------------------------------------------------------------

def overall_summary_source(raw: Dict[str, Any]) -> Dict[str, Any]:
    summary = first_non_empty(raw, ["overallSummary", "summary"])
    return as_dict(summary)


def extract_overall_score(raw: Dict[str, Any], stored_score: Optional[int] = None) -> Optional[int]:
    overall = overall_summary_source(raw)
    value = first_non_empty(overall, ["complianceScore", "score"])
    if value is None:
        value = stored_score
    if value is None:
        value = raw.get("overallScore")
    return extract_numeric_score(value)


def extract_summary_text(raw: Dict[str, Any], *fallbacks: Optional[str]) -> Optional[str]:
    overall = overall_summary_source(raw)
    text = first_non_empty(overall, ["summary", "message", "description"])
    if text is not None:
        return text if isinstance(text, str) else str(text)
    for fallback in fallbacks:
        if fallback:
            return fallback
    return None


def build_overall_summary(
    raw: Dict[str, Any],
    record_status: Optional[str] = None,
    overall_score: Optional[int] = None,
    result_summary: Optional[str] = None,
    compliance_summary: Optional[str] = None,
) -> OverallSummary:
    overall = overall_summary_source(raw)
    status = first_non_empty(overall, ["complianceStatus", "status"], skip_blank=False)
    if status is None:
        status = record_status
    return OverallSummary(
        status=str(status) if status is not None else None,
        summaryText=extract_summary_text(raw, result_summary, compliance_summary),
        keyFindings=to_string_array(overall.get("keyFindings")),
        nextSteps=to_string_array(overall.get("nextSteps")),
        score=extract_overall_score(raw, overall_score),
    )


def resolve_validation_status(
    record_status: Optional[str],
    score: Optional[int],
    summary_status: Optional[str] = None,
) -> str:
    """
    Overall outcome: 'passed', 'warning' or 'failed'.

    Status text is consulted before the score, so ("partial", 95) is a
    warning; the score only decides when the text matches no known term.
    """
    text = summary_status if summary_status is not None else (record_status or "")
    text = str(text).strip().lower()
    numeric = score if score is not None else 0

    if text in OVERALL_PASS_TERMS:
        return "passed"
    if text in OVERALL_PARTIAL_TERMS:
        return "warning"
    if numeric >= 90:
        return "passed"
    if numeric >= 70:
        return "warning"
    return "failed"


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def normalize_validation_details(
    raw_details: Any,
    validation_id: Optional[str] = None,
    status: Optional[str] = None,
    state: Optional[str] = None,
    region: Optional[str] = None,
    file_type: Optional[str] = None,
    overall_score: Optional[int] = None,
    lcd_results: Any = None,
    result_summary: Optional[str] = None,
    compliance_summary: Optional[str] = None,
) -> NormalizedValidationDetails:
    """
    Normalize a raw validator payload, cross-referencing the owning record.

    Always returns a fully populated structure.
    """
    raw = parse_details(raw_details)
    record_meta = dict(validation_id=validation_id, state=state, region=region, file_type=file_type)

    try:
        sections = build_sections(raw["sections"] if raw.get("sections") is not None else raw)
        lcd_checks = build_lcd_checks(raw, lcd_results)
        return NormalizedValidationDetails(
            raw=raw,
            meta=build_meta(raw.get("meta"), **record_meta),
            sections=sections,
            woundAssessment=build_wound_assessment(sections.get("woundAssessment")),
            overallSummary=build_overall_summary(
                raw,
                record_status=status,
                overall_score=overall_score,
                result_summary=result_summary,
                compliance_summary=compliance_summary,
            ),
            lcdChecks=lcd_checks,
            recommendations=aggregate_recommendations(raw, lcd_checks),
        )
    except Exception as e:
        logger.error(
            f"Validation details for {validation_id} could not be fully normalized, using defaults: {e}",
            exc_info=True,
        )
        return NormalizedValidationDetails(
            raw=raw,
            meta=build_meta(None, **record_meta),
            sections=build_sections(None),
            overallSummary=OverallSummary(
                status=status,
                summaryText=result_summary or compliance_summary,
                score=extract_numeric_score(overall_score),
            ),
        )


def normalize_record(record: Any) -> NormalizedValidationDetails:
    """normalize_validation_details for a stored validation record (ORM row or DTO)."""
    status = getattr(record, "status", None)
    return normalize_validation_details(
        getattr(record, "result_details", None),
        validation_id=getattr(record, "id", None),
        status=getattr(status, "value", status),
        state=getattr(record, "state", None),
        region=getattr(record, "region", None),
        file_type=getattr(record, "file_type", None),
        overall_score=getattr(record, "overall_score", None),
        lcd_results=getattr(record, "lcd_results", None),
        result_summary=getattr(record, "result_summary", None),
        compliance_summary=getattr(record, "compliance_summary", None),
    )


def derive_stored_fields(raw_details: Any, result_summary: Optional[str] = None) -> Dict[str, Any]:
    """
    Fields persisted alongside the raw payload when a validation resolves.

    Returns overall_score (unclamped), lcd_results, recommendations and
    compliance_summary; empty lists are stored as None.
    """
    raw = parse_details(raw_details)
    lcd_results = derive_lcd_results(raw)
    recommendations = collect_stored_recommendations(raw)
    return {
        "overall_score": extract_overall_score(raw),
        "lcd_results": lcd_results or None,
        "recommendations": recommendations or None,
        "compliance_summary": extract_summary_text(raw, result_summary),
    }
