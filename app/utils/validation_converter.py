"""
Validation Record Converter
Convert validation_history rows to API DTOs
"""
from typing import Optional
from app.models.validation_dto import (
    AdminValidationRecordResponse,
    SubmitterInfo,
    ValidationRecordResponse,
)
from app.models.validation_record_db import ProfileDB, ValidationRecordDB


def record_to_dto(record: ValidationRecordDB) -> ValidationRecordResponse:
    """Convert a validation record row to ValidationRecordResponse"""
    return ValidationRecordResponse.model_validate(record)


def admin_record_to_dto(
    record: ValidationRecordDB,
    profile: Optional[ProfileDB] = None,
) -> AdminValidationRecordResponse:
    """Convert a row plus its submitting profile for the admin reports listing"""
    dto = AdminValidationRecordResponse.model_validate(record)
    if profile is not None:
        dto.profile = SubmitterInfo(full_name=profile.full_name, email=profile.email)
    return dto
