"""
PHI Masking Utilities
Redacts Protected Health Information from clinical-note payloads before they
reach logs or error responses
"""
import re
from typing import Any, Dict, List


PHI_PATTERNS = [
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "***-**-****"),  # SSN
    (re.compile(r"\b\d{4}-\d{2}-\d{2}\b"), "****-**-**"),  # DOB (ISO)
    (re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"), "**/**/****"),  # DOB (US)
    (re.compile(r"\(\d{3}\)\s*\d{3}-\d{4}\b"), "(***) ***-****"),
    (re.compile(r"\b\d{3}-\d{3}-\d{4}\b"), "***-***-****"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "***@***.***"),
    (re.compile(r"\bMRN[:#\s]*\d+\b", re.IGNORECASE), "MRN******"),
]

# Keys whose values are note text or patient identifiers; masked whole
PHI_FIELD_NAMES = {
    "content",
    "text",
    "note",
    "notetext",
    "note_text",
    "patient_name",
    "patientname",
    "patient_dob",
    "patientdob",
    "patient_mrn",
    "patientmrn",
    "date_of_birth",
    "dob",
    "ssn",
    "medical_record",
}


def mask_phi(text: str) -> str:
    """Replace PHI-looking substrings (SSN, dates of birth, phones, emails, MRNs)."""
    if not text:
        return text
    for pattern, replacement in PHI_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_phi_value(value: Any) -> Any:
    if isinstance(value, str):
        return mask_phi(value)
    if isinstance(value, dict):
        return mask_phi_dict(value)
    if isinstance(value, list):
        return [mask_phi_value(item) for item in value]
    return value


def mask_phi_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of data with PHI fields masked and PHI patterns redacted in nested strings."""
    if not data:
        return data
    return {
        key: "***MASKED***" if key.lower() in PHI_FIELD_NAMES else mask_phi_value(value)
        for key, value in data.items()
    }


def describe_payload(data: Any) -> str:
    """Shape-only description of a payload for logs: top-level keys, no values."""
    if isinstance(data, dict):
        keys: List[str] = sorted(str(key) for key in data.keys())
        return f"dict(keys={keys})"
    if isinstance(data, list):
        return f"list(len={len(data)})"
    return type(data).__name__


def mask_error_message(message: str) -> str:
    """Mask any PHI in error messages before returning to client."""
    return mask_phi(message)
