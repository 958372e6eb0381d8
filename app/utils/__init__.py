"""Utilities module"""
from .audit_logger import write_audit_log, log_validation_event, AuditEntry
from .phi_masking import mask_phi, mask_error_message
from .jurisdiction import US_STATES, STATE_TO_REGION, get_region_for_state

__all__ = [
    "write_audit_log",
    "log_validation_event",
    "AuditEntry",
    "mask_phi",
    "mask_error_message",
    "US_STATES",
    "STATE_TO_REGION",
    "get_region_for_state",
]
