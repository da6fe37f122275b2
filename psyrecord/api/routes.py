"""
FastAPI routes - the main API surface.

Every clinical route depends on the authenticated clinician and goes
through ``PsyRecordRepository``; domain errors are translated into HTTP
errors here so no raw exception reaches the client.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import asdict
from datetime import date
from typing import Iterator
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from psyrecord.config import settings
from psyrecord.errors import (
    CascadeDeleteError,
    NotFoundError,
    PersistenceError,
    StorageError,
    ValidationFailed,
)
from psyrecord.models.database import get_db
from psyrecord.reference import catalog
from psyrecord.reference.diagnoses import CID_DIAGNOSES, DSM_DIAGNOSES
from psyrecord.schemas.api import (
    CurrentUserResponse,
    DashboardResponse,
    DeletionResult,
    HealthResponse,
    PatientIn,
    PatientRead,
    PatientSummary,
    ProfileIn,
    ProfileRead,
    StatusChangeIn,
    StatusHistoryRead,
)
from psyrecord.services.auth import CurrentUser, get_current_user
from psyrecord.services.pdf_export import export_patient_record, record_filename
from psyrecord.services.repository import DeletionReport, PsyRecordRepository
from psyrecord.services.storage import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter()


def get_repository(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
    blob_store: BlobStore = Depends(get_blob_store),
) -> PsyRecordRepository:
    return PsyRecordRepository(db, user, blob_store)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map domain errors onto HTTP responses."""
    try:
        yield
    except ValidationFailed as exc:
        raise HTTPException(status_code=422, detail={"errors": exc.errors}) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(
            status_code=503, detail="The record could not be saved. Please try again."
        ) from exc
    except StorageError as exc:
        logger.error("Document storage failure: %s", exc)
        raise HTTPException(status_code=503, detail="Document storage is unavailable") from exc
    except CascadeDeleteError as exc:
        raise HTTPException(
            status_code=500,
            detail={"message": "Nothing was deleted", "summary": exc.summary},
        ) from exc


def deletion_result(report: DeletionReport) -> DeletionResult:
    return DeletionResult(
        workflow=report.summary["workflow"],
        status=report.summary["status"],
        steps=report.summary["steps"],
        orphaned_paths=report.orphaned_paths,
    )


# ---------------------------------------------------------------------------
# Health and identity
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Basic health endpoint - verifies DB connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError:
        db_status = "disconnected"
    return HealthResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        database=db_status,
    )


@router.get("/auth/me", response_model=CurrentUserResponse)
def current_user(user: CurrentUser = Depends(get_current_user)):
    return CurrentUserResponse(id=user.id, email=user.email)


# ---------------------------------------------------------------------------
# Profile and dashboard
# ---------------------------------------------------------------------------

@router.get("/profile", response_model=ProfileRead)
def get_profile(repo: PsyRecordRepository = Depends(get_repository)):
    profile = repo.get_profile()
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.put("/profile", response_model=ProfileRead)
def save_profile(payload: ProfileIn, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        return repo.save_profile(payload.model_dump())


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(repo: PsyRecordRepository = Depends(get_repository)):
    data = repo.dashboard()
    data["recent_patients"] = [PatientRead.model_validate(p) for p in data["recent_patients"]]
    return DashboardResponse(**data)


@router.get("/reference")
def reference_tables():
    """Every option table the forms need, in display order."""

    def options(table):
        return [asdict(o) for o in table]

    return {
        "treatment_statuses": options(catalog.TREATMENT_STATUSES),
        "session_types": options(catalog.SESSION_TYPES),
        "modalities": options(catalog.MODALITIES),
        "durations": catalog.DURATION_CHOICES,
        "session_topics": catalog.SESSION_TOPICS,
        "sleep_patterns": options(catalog.SLEEP_PATTERNS),
        "moods": options(catalog.MOODS),
        "eating_patterns": options(catalog.EATING_PATTERNS),
        "medication_statuses": options(catalog.MEDICATION_STATUSES),
        "therapy_approaches": options(catalog.THERAPY_APPROACHES),
        "techniques_by_approach": catalog.TECHNIQUES_BY_APPROACH,
        "document_types": options(catalog.DOCUMENT_TYPES),
        "dsm_diagnoses": [asdict(d) for d in DSM_DIAGNOSES],
        "cid_diagnoses": [asdict(d) for d in CID_DIAGNOSES],
    }


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------

@router.get("/patients", response_model=list[PatientSummary])
def list_patients(
    search: str | None = None, repo: PsyRecordRepository = Depends(get_repository)
):
    """Patients ordered by name; ``search`` matches the name or CPF digits."""
    counts = repo.session_counts()
    return [
        PatientSummary.model_validate(patient).model_copy(
            update={"session_count": counts.get(patient.id, 0)}
        )
        for patient in repo.list_patients(search)
    ]


@router.post("/patients", response_model=PatientRead, status_code=status.HTTP_201_CREATED)
def create_patient(payload: PatientIn, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        return repo.create_patient(payload.model_dump())


@router.get("/patients/{patient_id}", response_model=PatientRead)
def get_patient(patient_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        return repo.get_patient(patient_id)


@router.put("/patients/{patient_id}", response_model=PatientRead)
def update_patient(
    patient_id: UUID, payload: PatientIn, repo: PsyRecordRepository = Depends(get_repository)
):
    with translate_errors():
        return repo.update_patient(patient_id, payload.model_dump())


@router.delete("/patients/{patient_id}", response_model=DeletionResult)
def delete_patient(patient_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    """Delete the patient with every session, document and status entry."""
    with translate_errors():
        return deletion_result(repo.delete_patient(patient_id))


@router.post("/patients/{patient_id}/status", response_model=PatientRead)
def change_status(
    patient_id: UUID,
    payload: StatusChangeIn,
    repo: PsyRecordRepository = Depends(get_repository),
):
    with translate_errors():
        return repo.change_status(patient_id, payload.status, payload.reason, payload.notes)


@router.get("/patients/{patient_id}/status-history", response_model=list[StatusHistoryRead])
def status_history(patient_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        return repo.status_history(patient_id)


@router.get("/patients/{patient_id}/record.pdf")
def download_record(patient_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    """The full patient dossier as a PDF, sessions oldest first."""
    with translate_errors():
        profile, patient, sessions = repo.load_dossier(patient_id)
    if profile is None:
        raise HTTPException(
            status_code=409,
            detail="Complete your professional profile before exporting records",
        )
    content = export_patient_record(profile, patient, sessions)
    filename = record_filename(patient, date.today())
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
