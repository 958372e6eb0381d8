"""
SQLAlchemy models for validation_history and profiles tables
Stores every clinical note validation request with the raw validator payload
and the fields derived from it at completion time
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, CheckConstraint, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (e.g. SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ProfileDB(Base):
    """
    Maps to the profiles table owned by the identity layer.
    Only read here, to show who submitted a report.
    """
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255))
    role = Column(String(20), nullable=False, server_default="user")  # 'user' or 'admin'
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class ValidationRecordDB(Base):
    """
    Maps to the validation_history table.
    One row per submitted note, tracked from 'processing' to its terminal status.
    """
    __tablename__ = "validation_history"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(255), nullable=False)
    state = Column(String(100), nullable=False)
    region = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="processing")
    file_url = Column(Text, nullable=True)
    result_summary = Column(Text, nullable=True)
    compliance_summary = Column(Text, nullable=True)
    result_details = Column(JsonType, nullable=True)  # raw validator payload
    overall_score = Column(Integer, nullable=True)  # unclamped
    lcd_results = Column(JsonType, nullable=True)
    recommendations = Column(JsonType, nullable=True)
    external_execution_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('processing', 'completed', 'failed', 'archived')",
            name="check_validation_status"
        ),
    )
