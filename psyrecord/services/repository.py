"""
Owned data-access layer.

Every query is scoped to the authenticated clinician; rows belonging to
someone else are reported as not found. Each mutation runs as one unit of
work: it commits and returns the row fetched again from the database, or
rolls back and raises ``PersistenceError`` so nothing is half-applied.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator
from uuid import UUID

from sqlalchemy import func, or_, select
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
from psyrecord.models.patient import Patient, PatientStatusHistory
from psyrecord.models.profile import Profile
from psyrecord.models.session import ClinicalSession, SessionDocument
from psyrecord.reference.catalog import DEFAULT_DURATION, TREATMENT_STATUSES, values
from psyrecord.services.audit import log_action
from psyrecord.services.auth import CurrentUser
from psyrecord.services.forms import (
    MULTI_SELECT_FIELDS,
    PATIENT_FIELDS,
    SESSION_FIELDS,
    clean_patient_payload,
    clean_session_payload,
)
from psyrecord.services.formatting import strip_digits
from psyrecord.services.storage import BlobStore, build_document_path
from psyrecord.services.validation import (
    compact,
    require_valid,
    validate_document_upload,
    validate_patient_form,
    validate_profile_form,
    validate_session_form,
    validate_status_change,
)
from psyrecord.workflows.deletion import build_patient_deletion, build_session_deletion

logger = logging.getLogger(__name__)

LIST_FIELDS = (*MULTI_SELECT_FIELDS, "techniques")


@dataclass
class Attachment:
    """A file picked by the clinician, not yet stored."""

    filename: str
    content: bytes
    content_type: str | None = None
    document_type: str = "other"
    description: str | None = None


@dataclass
class UploadReport:
    uploaded: list[SessionDocument] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)


@dataclass
class DeletionReport:
    summary: dict[str, Any]
    orphaned_paths: list[str] = field(default_factory=list)


class PsyRecordRepository:
    def __init__(self, db: Session, user: CurrentUser, blob_store: BlobStore):
        self.db = db
        self.user = user
        self.blob_store = blob_store

    @contextmanager
    def _unit_of_work(self, action: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Could not %s: %s", action, exc.__class__.__name__)
            raise PersistenceError(f"Could not {action}") from exc

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------
    def get_profile(self) -> Profile | None:
        return self.db.get(Profile, self.user.id)

    def save_profile(self, data: dict[str, Any]) -> Profile:
        require_valid(validate_profile_form(data))
        cleaned = compact(data)
        if "phone" in cleaned:
            cleaned["phone"] = strip_digits(cleaned["phone"])

        with self._unit_of_work("save profile"):
            profile = self.get_profile()
            action = "update"
            if profile is None:
                profile = Profile(id=self.user.id)
                self.db.add(profile)
                action = "create"
            for name in ("full_name", "crp", "email", "phone"):
                setattr(profile, name, cleaned.get(name))
            self.db.flush()
            log_action(
                self.db,
                actor=self.user.id,
                action=action,
                resource_type="Profile",
                resource_id=profile.id,
            )
        self.db.expire_all()
        return self.get_profile()

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------
    def list_patients(self, search: str | None = None) -> list[Patient]:
        stmt = select(Patient).where(Patient.user_id == self.user.id)
        term = (search or "").strip()
        if term:
            conditions = [Patient.name.icontains(term, autoescape=True)]
            digits = strip_digits(term)
            if digits:
                conditions.append(Patient.cpf.contains(digits))
            stmt = stmt.where(or_(*conditions))
        return list(self.db.scalars(stmt.order_by(Patient.name)))

    def session_counts(self) -> dict[UUID, int]:
        rows = self.db.execute(
            select(ClinicalSession.patient_id, func.count(ClinicalSession.id))
            .where(ClinicalSession.user_id == self.user.id)
            .group_by(ClinicalSession.patient_id)
        )
        return {patient_id: count for patient_id, count in rows}

    def get_patient(self, patient_id: UUID) -> Patient:
        patient = self.db.scalar(
            select(Patient).where(Patient.id == patient_id, Patient.user_id == self.user.id)
        )
        if patient is None:
            raise NotFoundError("Patient", patient_id)
        return patient

    def create_patient(self, data: dict[str, Any]) -> Patient:
        require_valid(validate_patient_form(data))
        cleaned = clean_patient_payload(data)

        with self._unit_of_work("create patient"):
            patient = Patient(user_id=self.user.id, current_status="active")
            for name in PATIENT_FIELDS:
                setattr(patient, name, cleaned.get(name))
            patient.is_minor = bool(cleaned.get("is_minor"))
            self.db.add(patient)
            self.db.flush()
            log_action(
                self.db,
                actor=self.user.id,
                action="create",
                resource_type="Patient",
                resource_id=patient.id,
            )
            patient_id = patient.id
        logger.info("Created patient %s", patient_id)
        self.db.expire_all()
        return self.get_patient(patient_id)

    def update_patient(self, patient_id: UUID, data: dict[str, Any]) -> Patient:
        """Replace the editable fields. Treatment status only changes through ``change_status``."""
        patient = self.get_patient(patient_id)
        require_valid(validate_patient_form(data))
        cleaned = clean_patient_payload(data)

        with self._unit_of_work("update patient"):
            for name in PATIENT_FIELDS:
                setattr(patient, name, cleaned.get(name))
            patient.is_minor = bool(cleaned.get("is_minor"))
            log_action(
                self.db,
                actor=self.user.id,
                action="update",
                resource_type="Patient",
                resource_id=patient.id,
            )
        logger.info("Updated patient %s", patient_id)
        self.db.expire_all()
        return self.get_patient(patient_id)

    def delete_patient(self, patient_id: UUID) -> DeletionReport:
        patient = self.get_patient(patient_id)
        session_ids = list(
            self.db.scalars(
                select(ClinicalSession.id).where(ClinicalSession.patient_id == patient.id)
            )
        )
        plan = build_patient_deletion(
            self.db, self.blob_store, patient_id=patient.id, user_id=self.user.id
        )
        summary = plan.run({"session_ids": session_ids})
        if not plan.committed:
            self.db.rollback()
            raise CascadeDeleteError(summary)
        logger.info("Deleted patient %s with %d sessions", patient_id, len(session_ids))
        return DeletionReport(summary=summary, orphaned_paths=list(plan.orphaned_paths))

    # ------------------------------------------------------------------
    # Treatment status
    # ------------------------------------------------------------------
    def change_status(
        self, patient_id: UUID, status: str | None, reason: str | None, notes: str | None = None
    ) -> Patient:
        patient = self.get_patient(patient_id)
        payload = {"status": status, "reason": reason, "notes": notes}
        errors = validate_status_change(payload)
        if not errors and status == patient.current_status:
            errors["status"] = "The patient already has this status"
        require_valid(errors)

        previous = patient.current_status
        with self._unit_of_work("change patient status"):
            self.db.add(
                PatientStatusHistory(
                    patient_id=patient.id,
                    status=status,
                    reason=reason.strip(),
                    notes=(notes or "").strip() or None,
                    created_by=self.user.id,
                )
            )
            patient.current_status = status
            log_action(
                self.db,
                actor=self.user.id,
                action="status_change",
                resource_type="Patient",
                resource_id=patient.id,
                detail={"from": previous, "to": status},
            )
        logger.info("Patient %s status %s -> %s", patient_id, previous, status)
        self.db.expire_all()
        return self.get_patient(patient_id)

    def status_history(self, patient_id: UUID) -> list[PatientStatusHistory]:
        patient = self.get_patient(patient_id)
        return list(
            self.db.scalars(
                select(PatientStatusHistory)
                .where(PatientStatusHistory.patient_id == patient.id)
                .order_by(PatientStatusHistory.changed_at.desc())
            )
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def list_sessions(self, patient_id: UUID) -> list[ClinicalSession]:
        """Newest first, the order the session list is shown in."""
        patient = self.get_patient(patient_id)
        return list(
            self.db.scalars(
                select(ClinicalSession)
                .where(
                    ClinicalSession.patient_id == patient.id,
                    ClinicalSession.user_id == self.user.id,
                )
                .order_by(ClinicalSession.date.desc(), ClinicalSession.time.desc())
            )
        )

    def get_session(self, session_id: UUID) -> ClinicalSession:
        session = self.db.scalar(
            select(ClinicalSession).where(
                ClinicalSession.id == session_id,
                ClinicalSession.user_id == self.user.id,
            )
        )
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    def _apply_session(self, session: ClinicalSession, data: dict[str, Any]) -> None:
        require_valid(validate_session_form(data))
        cleaned = clean_session_payload(data)
        for name in SESSION_FIELDS:
            value = cleaned.get(name)
            if name in LIST_FIELDS:
                value = list(value or [])
            setattr(session, name, value)
        session.referral_needed = bool(cleaned.get("referral_needed"))
        if cleaned.get("duration_minutes") is None:
            session.duration_minutes = DEFAULT_DURATION
        if cleaned.get("modality") is None:
            session.modality = "in-person"

    def create_session(self, patient_id: UUID, data: dict[str, Any]) -> ClinicalSession:
        patient = self.get_patient(patient_id)
        session = ClinicalSession(patient_id=patient.id, user_id=self.user.id)
        self._apply_session(session, data)

        with self._unit_of_work("create session"):
            self.db.add(session)
            self.db.flush()
            log_action(
                self.db,
                actor=self.user.id,
                action="create",
                resource_type="Session",
                resource_id=session.id,
                detail={"patient_id": str(patient.id), "session_type": session.session_type},
            )
            session_id = session.id
            session_type = session.session_type
        logger.info("Created %s session %s for patient %s", session_type, session_id, patient_id)
        self.db.expire_all()
        return self.get_session(session_id)

    def update_session(self, session_id: UUID, data: dict[str, Any]) -> ClinicalSession:
        session = self.get_session(session_id)
        self._apply_session(session, data)

        with self._unit_of_work("update session"):
            log_action(
                self.db,
                actor=self.user.id,
                action="update",
                resource_type="Session",
                resource_id=session.id,
            )
        logger.info("Updated session %s", session_id)
        self.db.expire_all()
        return self.get_session(session_id)

    def delete_session(self, session_id: UUID) -> DeletionReport:
        session = self.get_session(session_id)
        plan = build_session_deletion(
            self.db, self.blob_store, session_id=session.id, user_id=self.user.id
        )
        summary = plan.run({"session_ids": [session.id]})
        if not plan.committed:
            self.db.rollback()
            raise CascadeDeleteError(summary)
        logger.info("Deleted session %s", session_id)
        return DeletionReport(summary=summary, orphaned_paths=list(plan.orphaned_paths))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def _store_attachment(
        self, session: ClinicalSession, attachment: Attachment, index: int
    ) -> SessionDocument:
        require_valid(
            validate_document_upload(
                {"document_type": attachment.document_type, "description": attachment.description}
            )
        )
        if len(attachment.content) > settings.MAX_UPLOAD_BYTES:
            limit_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
            raise ValidationFailed({"file": f"File exceeds the {limit_mb} MB limit"})

        path = build_document_path(self.user.id, session.id, attachment.filename, index)
        self.blob_store.store(path, attachment.content)
        try:
            with self._unit_of_work("register document"):
                document = SessionDocument(
                    session_id=session.id,
                    document_type=attachment.document_type,
                    description=(attachment.description or "").strip() or None,
                    file_path=path,
                    content_type=attachment.content_type,
                    size_bytes=len(attachment.content),
                )
                self.db.add(document)
                self.db.flush()
                log_action(
                    self.db,
                    actor=self.user.id,
                    action="create",
                    resource_type="SessionDocument",
                    resource_id=document.id,
                    detail={"session_id": str(session.id), "document_type": attachment.document_type},
                )
        except PersistenceError:
            try:
                self.blob_store.delete(path)
            except StorageError as exc:
                logger.error("Could not remove unregistered object %s: %s", path, exc)
            raise
        return document

    def add_documents(self, session_id: UUID, attachments: list[Attachment]) -> UploadReport:
        """
        Store attachments one at a time. A failed attachment is logged and
        skipped; the remaining ones are still attempted.
        """
        session = self.get_session(session_id)
        report = UploadReport()
        for index, attachment in enumerate(attachments):
            try:
                document = self._store_attachment(session, attachment, index)
            except ValidationFailed as exc:
                message = "; ".join(exc.errors.values())
                logger.warning("Attachment %d for session %s rejected", index, session.id)
                report.failed.append({"filename": attachment.filename, "error": message})
                continue
            except (StorageError, PersistenceError) as exc:
                logger.warning("Attachment %d for session %s failed: %s", index, session.id, exc)
                report.failed.append({"filename": attachment.filename, "error": str(exc)})
                continue
            report.uploaded.append(document)

        self.db.expire_all()
        report.uploaded = [self.get_document(d.id) for d in report.uploaded]
        logger.info(
            "Session %s attachments: %d stored, %d failed",
            session.id,
            len(report.uploaded),
            len(report.failed),
        )
        return report

    def list_documents(self, session_id: UUID) -> list[SessionDocument]:
        session = self.get_session(session_id)
        return list(
            self.db.scalars(
                select(SessionDocument)
                .where(SessionDocument.session_id == session.id)
                .order_by(SessionDocument.created_at.desc())
            )
        )

    def get_document(self, document_id: UUID) -> SessionDocument:
        document = self.db.scalar(
            select(SessionDocument)
            .join(ClinicalSession, SessionDocument.session_id == ClinicalSession.id)
            .where(SessionDocument.id == document_id, ClinicalSession.user_id == self.user.id)
        )
        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    def fetch_document(self, document_id: UUID) -> tuple[SessionDocument, bytes]:
        document = self.get_document(document_id)
        return document, self.blob_store.fetch(document.file_path)

    def delete_document(self, document_id: UUID) -> list[str]:
        """Remove the row, then the stored object. Returns paths that could not be purged."""
        document = self.get_document(document_id)
        path = document.file_path
        with self._unit_of_work("delete document"):
            self.db.delete(document)
            log_action(
                self.db,
                actor=self.user.id,
                action="delete",
                resource_type="SessionDocument",
                resource_id=document_id,
            )
        if not path:
            return []
        try:
            self.blob_store.delete(path)
        except StorageError as exc:
            logger.error("Document %s removed but its object was not: %s", document_id, exc)
            return [path]
        return []

    # ------------------------------------------------------------------
    # Dossier and dashboard
    # ------------------------------------------------------------------
    def load_dossier(self, patient_id: UUID) -> tuple[Profile | None, Patient, list[ClinicalSession]]:
        patient = self.get_patient(patient_id)
        sessions = self.list_sessions(patient_id)
        profile = self.get_profile()
        if profile is not None:
            with self._unit_of_work("record export"):
                log_action(
                    self.db,
                    actor=self.user.id,
                    action="export",
                    resource_type="Patient",
                    resource_id=patient.id,
                    detail={"sessions": len(sessions)},
                )
        return profile, patient, sessions

    def dashboard(self) -> dict[str, Any]:
        by_status = {status: 0 for status in values(TREATMENT_STATUSES)}
        rows = self.db.execute(
            select(Patient.current_status, func.count(Patient.id))
            .where(Patient.user_id == self.user.id)
            .group_by(Patient.current_status)
        )
        for status, count in rows:
            by_status[status] = count

        total_sessions = self.db.scalar(
            select(func.count(ClinicalSession.id)).where(ClinicalSession.user_id == self.user.id)
        )
        recent = list(
            self.db.scalars(
                select(Patient)
                .where(Patient.user_id == self.user.id)
                .order_by(Patient.created_at.desc())
                .limit(3)
            )
        )
        return {
            "total_patients": sum(by_status.values()),
            "total_sessions": total_sessions or 0,
            "patients_by_status": by_status,
            "recent_patients": recent,
        }
