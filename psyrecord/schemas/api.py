"""Pydantic models for API request/response serialization."""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field
from pydantic import ValidationError as PydanticValidationError

from psyrecord.errors import ValidationFailed
from psyrecord.reference.catalog import (
    DEFAULT_DURATION,
    SESSION_TYPES,
    TREATMENT_STATUSES,
    label_for,
)
from psyrecord.services.formatting import compute_age, format_cpf, format_phone

# Input models are deliberately loose (plain strings, everything optional):
# required-field rules live in the form schemas so that every violation is
# reported at once, keyed by field.


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class ProfileIn(BaseModel):
    full_name: str | None = None
    crp: str | None = None
    email: str | None = None
    phone: str | None = None


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    crp: str
    email: str | None = None
    phone: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------

class PatientIn(BaseModel):
    name: str | None = None
    cpf: str | None = None
    birth_date: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    phone: str | None = None
    email: str | None = None
    profession: str | None = None
    is_minor: bool = False
    guardian_name: str | None = None
    guardian_cpf: str | None = None
    guardian_phone: str | None = None
    guardian_relationship: str | None = None


class PatientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None = None
    name: str
    cpf: str
    birth_date: dt.date | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    phone: str | None = None
    email: str | None = None
    profession: str | None = None
    is_minor: bool = False
    guardian_name: str | None = None
    guardian_cpf: str | None = None
    guardian_phone: str | None = None
    guardian_relationship: str | None = None
    current_status: str = "active"
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @computed_field
    @property
    def age(self) -> int | None:
        return compute_age(self.birth_date)

    @computed_field
    @property
    def cpf_formatted(self) -> str:
        return format_cpf(self.cpf)

    @computed_field
    @property
    def phone_formatted(self) -> str:
        return format_phone(self.phone)

    @computed_field
    @property
    def status_label(self) -> str | None:
        return label_for(self.current_status, TREATMENT_STATUSES)


class PatientSummary(PatientRead):
    session_count: int = 0


class StatusChangeIn(BaseModel):
    status: str | None = None
    reason: str | None = None
    notes: str | None = None


class StatusHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    status: str
    reason: str
    notes: str | None = None
    changed_at: dt.datetime
    created_by: UUID

    @computed_field
    @property
    def status_label(self) -> str | None:
        return label_for(self.status, TREATMENT_STATUSES)


# ---------------------------------------------------------------------------
# Sessions - tagged union on session_type
# ---------------------------------------------------------------------------

INTAKE_FIELDS = (
    "main_complaint",
    "complaint_history",
    "relevant_history",
    "therapeutic_goals",
    "treatment_plan",
)


class SessionEnvelope(BaseModel):
    """Fields shared by every session type."""

    model_config = ConfigDict(extra="ignore")

    date: str | None = None
    time: str | None = None
    duration_minutes: int = DEFAULT_DURATION
    modality: Literal["in-person", "remote"] = "in-person"

    topics: list[str] = Field(default_factory=list)
    sleep_pattern: str | None = None
    mood: list[str] = Field(default_factory=list)
    eating: str | None = None
    medication_status: str | None = None
    medication_new: str | None = None

    approach: str | None = None
    techniques: list[str] = Field(default_factory=list)

    dsm_diagnosis: list[str] = Field(default_factory=list)
    cid_diagnosis: list[str] = Field(default_factory=list)

    clinical_observations: str | None = None
    clinical_hypotheses: str | None = None
    observed_progress: str | None = None
    interventions: str | None = None

    referral_needed: bool = False
    referral_to: str | None = None
    referral_reason: str | None = None

    notes: str | None = None


class IntakeSessionIn(SessionEnvelope):
    session_type: Literal["intake"]

    main_complaint: str | None = None
    complaint_history: str | None = None
    relevant_history: str | None = None
    therapeutic_goals: str | None = None
    treatment_plan: str | None = None


class RegularSessionIn(SessionEnvelope):
    session_type: Literal["regular"]


class ClosureSessionIn(SessionEnvelope):
    session_type: Literal["closure"]


SessionIn = Annotated[
    Union[IntakeSessionIn, RegularSessionIn, ClosureSessionIn],
    Field(discriminator="session_type"),
]

_SESSION_INPUT = TypeAdapter(SessionIn)


def parse_session_input(data: Any) -> BaseModel:
    """Pick the session variant from ``session_type``; field errors are reported together."""
    try:
        return _SESSION_INPUT.validate_python(data)
    except PydanticValidationError as exc:
        errors: dict[str, str] = {}
        for error in exc.errors():
            loc = error["loc"]
            if error["type"] in ("union_tag_not_found", "union_tag_invalid"):
                errors.setdefault("session_type", "Select a valid session type")
                continue
            field = str(loc[1]) if len(loc) > 1 else "session_type"
            errors.setdefault(field, error["msg"])
        raise ValidationFailed(errors) from exc


class SessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    patient_id: UUID | None = None
    user_id: UUID | None = None
    session_type: str = "regular"
    date: dt.date | None = None
    time: str | None = None
    duration_minutes: int | None = DEFAULT_DURATION
    modality: str | None = "in-person"

    topics: list[str] = Field(default_factory=list)
    sleep_pattern: str | None = None
    mood: list[str] = Field(default_factory=list)
    eating: str | None = None
    medication_status: str | None = None
    medication_new: str | None = None

    approach: str | None = None
    techniques: list[str] = Field(default_factory=list)

    dsm_diagnosis: list[str] = Field(default_factory=list)
    cid_diagnosis: list[str] = Field(default_factory=list)

    clinical_observations: str | None = None
    clinical_hypotheses: str | None = None
    observed_progress: str | None = None
    interventions: str | None = None

    referral_needed: bool = False
    referral_to: str | None = None
    referral_reason: str | None = None

    main_complaint: str | None = None
    complaint_history: str | None = None
    relevant_history: str | None = None
    therapeutic_goals: str | None = None
    treatment_plan: str | None = None

    notes: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @computed_field
    @property
    def session_type_label(self) -> str | None:
        return label_for(self.session_type, SESSION_TYPES)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    document_type: str
    description: str | None = None
    file_path: str | None = None
    content_type: str | None = None
    size_bytes: int | None = None
    created_at: dt.datetime


class FailedUpload(BaseModel):
    filename: str
    error: str


class UploadResult(BaseModel):
    uploaded: list[DocumentRead]
    failed: list[FailedUpload] = []


# ---------------------------------------------------------------------------
# Deletion, dashboard, health
# ---------------------------------------------------------------------------

class StepSummary(BaseModel):
    status: str
    duration_ms: float | None = None
    error: str | None = None


class DeletionResult(BaseModel):
    workflow: str
    status: str
    steps: dict[str, StepSummary]
    orphaned_paths: list[str] = []


class DashboardResponse(BaseModel):
    total_patients: int
    total_sessions: int
    patients_by_status: dict[str, int]
    recent_patients: list[PatientRead]


class CurrentUserResponse(BaseModel):
    id: UUID
    email: str | None = None


class HealthResponse(BaseModel):
    status: str = "healthy"
    environment: str
    database: str = "connected"


class ErrorDetail(BaseModel):
    errors: dict[str, str]


def dump_session_input(payload: BaseModel) -> dict[str, Any]:
    """Flatten a session variant for storage; intake columns are cleared on other types."""
    data = payload.model_dump()
    if data.get("session_type") != "intake":
        for field in INTAKE_FIELDS:
            data[field] = None
    return data
