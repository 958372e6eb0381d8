"""
Validation DTO Models
Pydantic models for validation records, validator dispatch/webhook payloads
and the normalized result structure rendered by the results view
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValidationStatus(str, Enum):
    """Lifecycle status of a validation record"""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    ARCHIVED = "archived"


# Statuses reached by the validator callback
RESOLVED_STATUSES = {ValidationStatus.COMPLETED.value, ValidationStatus.FAILED.value}

# No automatic transition leaves these
TERMINAL_STATUSES = RESOLVED_STATUSES | {ValidationStatus.ARCHIVED.value}


Priority = Literal["high", "medium", "low"]
LCDStatus = Literal["pass", "partial", "fail", "na"]
OverallStatus = Literal["passed", "warning", "failed"]


class ValidationRecordResponse(BaseModel):
    """Validation record as returned by the API"""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    user_id: str = Field(serialization_alias="userId")
    file_name: str = Field(serialization_alias="fileName")
    file_type: str = Field(serialization_alias="fileType")
    state: str
    region: str
    status: ValidationStatus
    file_url: Optional[str] = Field(default=None, serialization_alias="fileUrl")
    result_summary: Optional[str] = Field(default=None, serialization_alias="resultSummary")
    compliance_summary: Optional[str] = Field(default=None, serialization_alias="complianceSummary")
    result_details: Optional[Any] = Field(default=None, serialization_alias="resultDetails")
    overall_score: Optional[int] = Field(default=None, serialization_alias="overallScore")
    lcd_results: Optional[List[Any]] = Field(default=None, serialization_alias="lcdResults")
    recommendations: Optional[List[Any]] = None
    external_execution_id: Optional[str] = Field(default=None, serialization_alias="externalExecutionId")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")


class SubmitterInfo(BaseModel):
    """Profile fields shown next to a report in the admin listing"""
    model_config = ConfigDict(populate_by_name=True)

    full_name: Optional[str] = Field(default=None, serialization_alias="fullName")
    email: Optional[str] = None


class AdminValidationRecordResponse(ValidationRecordResponse):
    """Validation record decorated with the submitting user's profile"""
    profile: Optional[SubmitterInfo] = None


class AdminValidationStats(BaseModel):
    """Summary totals shown above the admin reports listing"""
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    completed: int = 0
    processing: int = 0
    failed: int = 0
    archived: int = 0
    success_rate: int = Field(default=0, serialization_alias="successRate")


class ValidationRequest(BaseModel):
    """Payload sent to the external validator (and accepted by the proxy endpoint)"""
    validationId: str = Field(..., description="Validation record id")
    fileName: str = Field(..., description="Submitted file name")
    fileType: str = Field(..., description="MIME type of the submitted file")
    content: str = Field(..., description="Pasted note text, or the file-upload sentinel")
    state: str = Field(..., description="Jurisdiction state")
    region: str = Field(..., description="Region derived from state")
    userId: str = Field(..., description="Submitting user id")
    fileUrl: Optional[str] = Field(None, description="Uploaded file URL, absent for pasted text")

    @field_validator('validationId')
    @classmethod
    def validate_validation_id(cls, v: str) -> str:
        """Validate validationId is non-empty"""
        if not v or not v.strip():
            raise ValueError("validationId cannot be empty")
        return v.strip()


class ValidationResponse(BaseModel):
    """Acknowledgement returned by the validator on dispatch"""
    executionId: str = "unknown"
    status: str = "processing"
    message: str = "Request accepted"


class WebhookPayload(BaseModel):
    """Callback body posted by the validator when a run finishes"""
    validationId: str
    status: str
    resultSummary: Optional[str] = None
    resultDetails: Optional[Any] = None
    executionId: Optional[str] = None


class SubmissionResponse(BaseModel):
    """Result of a submission: the processing record and the validator acknowledgement"""
    record: ValidationRecordResponse
    dispatch: ValidationResponse


class JurisdictionResponse(BaseModel):
    """States accepted for validation and the region each maps to"""
    states: List[str]
    regions: Dict[str, str]


class NormalizedRecommendation(BaseModel):
    """One actionable recommendation"""
    id: str
    text: str
    priority: Priority = "medium"
    category: Optional[str] = None
    source: Optional[str] = None


class NormalizedLCDCheck(BaseModel):
    """Outcome of one LCD rule check"""
    id: str
    title: str
    status: LCDStatus
    summary: Optional[str] = None
    score: Optional[int] = None
    reasons: List[str] = Field(default_factory=list)
    evidence: List[str] = Field(default_factory=list)
    recommendations: List[NormalizedRecommendation] = Field(default_factory=list)


class WoundAssessment(BaseModel):
    """Structured wound assessment fields"""
    location: Optional[Any] = None
    size: Optional[Dict[str, Any]] = None
    edges: Optional[Any] = None
    base: Optional[Any] = None
    exudate: Optional[Any] = None
    infectionSigns: Optional[Any] = None
    surroundingSkin: Optional[Any] = None


class OverallSummary(BaseModel):
    """Overall compliance summary"""
    status: Optional[str] = None
    summaryText: Optional[str] = None
    keyFindings: List[str] = Field(default_factory=list)
    nextSteps: List[str] = Field(default_factory=list)
    score: Optional[int] = None


class NormalizedValidationDetails(BaseModel):
    """Canonical shape of a validator result, recomputed on every read"""
    raw: Any = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)
    sections: Dict[str, Any] = Field(default_factory=dict)
    woundAssessment: Optional[WoundAssessment] = None
    overallSummary: OverallSummary = Field(default_factory=OverallSummary)
    lcdChecks: List[NormalizedLCDCheck] = Field(default_factory=list)
    recommendations: List[NormalizedRecommendation] = Field(default_factory=list)


class ValidationResultsView(BaseModel):
    """Everything the results tabs need for one record"""
    record: ValidationRecordResponse
    validationStatus: OverallStatus
    readableStatus: str
    complianceScore: int
    details: NormalizedValidationDetails
    highPriorityRecommendations: List[NormalizedRecommendation] = Field(default_factory=list)
    additionalRecommendations: List[NormalizedRecommendation] = Field(default_factory=list)
    recommendationsByPriority: Dict[str, List[NormalizedRecommendation]] = Field(default_factory=dict)
