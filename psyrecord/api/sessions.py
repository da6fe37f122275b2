"""
Session routes: clinical records, generated texts and attached documents.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Form, Response, UploadFile, status
from fastapi.responses import PlainTextResponse

from psyrecord.api.routes import deletion_result, get_repository, translate_errors
from psyrecord.schemas.api import (
    DeletionResult,
    DocumentRead,
    SessionRead,
    UploadResult,
    dump_session_input,
    parse_session_input,
)
from psyrecord.services.narrative import (
    generate_clinical_narrative,
    generate_patient_report,
    report_filename,
)
from psyrecord.services.repository import Attachment, PsyRecordRepository

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@router.get("/patients/{patient_id}/sessions", response_model=list[SessionRead])
def list_sessions(patient_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    """Newest first."""
    with translate_errors():
        return repo.list_sessions(patient_id)


@router.post(
    "/patients/{patient_id}/sessions",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    patient_id: UUID,
    payload: dict[str, Any] = Body(...),
    repo: PsyRecordRepository = Depends(get_repository),
):
    with translate_errors():
        session_input = parse_session_input(payload)
        return repo.create_session(patient_id, dump_session_input(session_input))


@router.get("/sessions/{session_id}", response_model=SessionRead)
def get_session(session_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        return repo.get_session(session_id)


@router.put("/sessions/{session_id}", response_model=SessionRead)
def update_session(
    session_id: UUID,
    payload: dict[str, Any] = Body(...),
    repo: PsyRecordRepository = Depends(get_repository),
):
    with translate_errors():
        session_input = parse_session_input(payload)
        return repo.update_session(session_id, dump_session_input(session_input))


@router.delete("/sessions/{session_id}", response_model=DeletionResult)
def delete_session(session_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        return deletion_result(repo.delete_session(session_id))


# ---------------------------------------------------------------------------
# Generated texts
# ---------------------------------------------------------------------------

@router.get("/sessions/{session_id}/narrative", response_class=PlainTextResponse)
def session_narrative(session_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    """Clinician-facing record text."""
    with translate_errors():
        session = repo.get_session(session_id)
        patient = repo.get_patient(session.patient_id)
    return PlainTextResponse(generate_clinical_narrative(session, patient))


@router.get("/sessions/{session_id}/patient-report", response_class=PlainTextResponse)
def patient_report(session_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    """Attendance report that can be handed to the patient."""
    with translate_errors():
        session = repo.get_session(session_id)
        patient = repo.get_patient(session.patient_id)
    filename = report_filename(session, patient)
    return PlainTextResponse(
        generate_patient_report(session, patient),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@router.get("/sessions/{session_id}/documents", response_model=list[DocumentRead])
def list_documents(session_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        return repo.list_documents(session_id)


@router.post("/sessions/{session_id}/documents", response_model=UploadResult)
def upload_documents(
    session_id: UUID,
    files: list[UploadFile] = File(...),
    document_types: list[str] = Form(default=[]),
    descriptions: list[str] = Form(default=[]),
    repo: PsyRecordRepository = Depends(get_repository),
):
    """
    Attach one or more files. ``document_types`` and ``descriptions`` pair
    with ``files`` by position. Files that fail are listed in ``failed``;
    the others are still stored.
    """
    attachments = []
    for index, upload in enumerate(files):
        attachments.append(
            Attachment(
                filename=upload.filename or f"document-{index}",
                content=upload.file.read(),
                content_type=upload.content_type,
                document_type=document_types[index] if index < len(document_types) else "other",
                description=descriptions[index] if index < len(descriptions) else None,
            )
        )

    with translate_errors():
        report = repo.add_documents(session_id, attachments)
    return UploadResult(
        uploaded=[DocumentRead.model_validate(d) for d in report.uploaded],
        failed=report.failed,
    )


@router.get("/documents/{document_id}")
def download_document(document_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        document, content = repo.fetch_document(document_id)
    suffix = PurePosixPath(document.file_path or "").suffix
    filename = f"{document.document_type}-{document.id}{suffix}"
    return Response(
        content=content,
        media_type=document.content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/documents/{document_id}")
def delete_document(document_id: UUID, repo: PsyRecordRepository = Depends(get_repository)):
    with translate_errors():
        orphaned = repo.delete_document(document_id)
    return {"deleted": str(document_id), "orphaned_paths": orphaned}
