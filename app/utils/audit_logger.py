"""
Audit Logger
Append-only file-based audit trail for validation submissions and admin actions
"""
import os
import logging
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel
from app.config import settings

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    """Audit log entry structure"""
    timestamp: str
    user_id: Optional[str] = None
    username: Optional[str] = None
    ip: Optional[str] = None
    action: str  # 'validation:submit', 'validation:webhook', 'validation:archive', ...
    outcome: str  # 'success' or 'failure'
    details: Optional[str] = None


def write_audit_log(entry: AuditEntry, log_path: Optional[str] = None) -> None:
    """
    Write an audit log entry to the audit log file.
    Appends JSON lines to the file with restricted permissions.
    """
    log_path = log_path or settings.audit_log_path

    if not entry.timestamp:
        entry.timestamp = datetime.now(timezone.utc).isoformat()

    log_line = entry.model_dump_json() + "\n"

    try:
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(log_line)

        # Set restrictive permissions (Unix only)
        try:
            os.chmod(log_path, 0o600)
        except (OSError, AttributeError):
            pass  # Windows doesn't support chmod the same way

    except IOError as e:
        # Log error but don't fail the request
        logger.error(f"Failed to write audit log: {e}")


def log_validation_event(
    action: str,
    outcome: str,
    user_id: Optional[str] = None,
    username: Optional[str] = None,
    ip: Optional[str] = None,
    validation_id: Optional[str] = None,
    details: Optional[str] = None,
) -> None:
    """Helper function to log validation lifecycle events"""
    if validation_id:
        details = f"Validation ID: {validation_id}. {details}" if details else f"Validation ID: {validation_id}."
    entry = AuditEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        user_id=user_id,
        username=username,
        ip=ip,
        action=f"validation:{action}",
        outcome=outcome,
        details=details,
    )
    write_audit_log(entry)
