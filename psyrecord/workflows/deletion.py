"""
Cascading deletion plans.

Rows are removed in dependency order inside one database transaction:

    delete_document_rows -> delete_sessions -> delete_patient -> commit -> purge_blobs
    delete_status_history ----------------------^

If any step before ``commit`` fails, ``commit`` is skipped and the caller
rolls back, so nothing is deleted. Blob purging runs only after the rows
are gone; paths it cannot remove are collected as orphans for the caller
to report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from psyrecord.errors import StorageError
from psyrecord.models.patient import Patient, PatientStatusHistory
from psyrecord.models.session import ClinicalSession, SessionDocument
from psyrecord.services.audit import log_action
from psyrecord.services.storage import BlobStore
from psyrecord.workflows.steps import Workflow, WorkflowRun

logger = logging.getLogger(__name__)


@dataclass
class DeletionPlan:
    workflow: Workflow
    orphaned_paths: list[str] = field(default_factory=list)
    last_run: WorkflowRun | None = None

    def run(self, context: dict[str, Any]) -> dict[str, Any]:
        self.last_run = self.workflow.run(context)
        return self.last_run.summary()

    @property
    def committed(self) -> bool:
        return self.last_run is not None and self.last_run.succeeded("commit")



def _document_rows_step(db: Session):
    def delete_document_rows(ctx: dict[str, Any]) -> dict[str, Any]:
        session_ids = ctx["session_ids"]
        paths = db.scalars(
            select(SessionDocument.file_path).where(SessionDocument.session_id.in_(session_ids))
        ).all()
        result = db.execute(
            delete(SessionDocument).where(SessionDocument.session_id.in_(session_ids))
        )
        return {
            "document_paths": [p for p in paths if p],
            "documents_deleted": result.rowcount,
        }

    return delete_document_rows


def _commit_step(db: Session):
    def commit(ctx: dict[str, Any]) -> dict[str, Any]:
        db.commit()
        return {}

    return commit


def _purge_step(blob_store: BlobStore, plan: DeletionPlan):
    def purge_blobs(ctx: dict[str, Any]) -> dict[str, Any]:
        purged = 0
        for path in ctx.get("document_paths", []):
            try:
                blob_store.delete(path)
                purged += 1
            except StorageError as exc:
                logger.error("Could not purge %s after deletion: %s", path, exc)
                plan.orphaned_paths.append(path)
        return {"blobs_purged": purged, "blobs_orphaned": len(plan.orphaned_paths)}

    return purge_blobs


def build_patient_deletion(
    db: Session, blob_store: BlobStore, *, patient_id: UUID, user_id: UUID
) -> DeletionPlan:
    plan = DeletionPlan(Workflow(f"delete_patient:{patient_id}"))

    def delete_sessions(ctx: dict[str, Any]) -> dict[str, Any]:
        result = db.execute(
            delete(ClinicalSession).where(
                ClinicalSession.patient_id == patient_id,
                ClinicalSession.user_id == user_id,
            )
        )
        return {"sessions_deleted": result.rowcount}

    def delete_status_history(ctx: dict[str, Any]) -> dict[str, Any]:
        result = db.execute(
            delete(PatientStatusHistory).where(PatientStatusHistory.patient_id == patient_id)
        )
        return {"history_deleted": result.rowcount}

    def delete_patient(ctx: dict[str, Any]) -> dict[str, Any]:
        result = db.execute(
            delete(Patient).where(Patient.id == patient_id, Patient.user_id == user_id)
        )
        if result.rowcount != 1:
            raise RuntimeError("Patient row was not deleted")
        log_action(
            db,
            actor=user_id,
            action="delete",
            resource_type="Patient",
            resource_id=patient_id,
            detail={
                "sessions": ctx.get("sessions_deleted", 0),
                "documents": ctx.get("documents_deleted", 0),
            },
        )
        return {}

    flow = plan.workflow
    flow.add_step("delete_document_rows", _document_rows_step(db))
    flow.add_step("delete_sessions", delete_sessions, depends_on=["delete_document_rows"])
    flow.add_step("delete_status_history", delete_status_history)
    flow.add_step(
        "delete_patient", delete_patient, depends_on=["delete_sessions", "delete_status_history"]
    )
    flow.add_step("commit", _commit_step(db), depends_on=["delete_patient"])
    flow.add_step("purge_blobs", _purge_step(blob_store, plan), depends_on=["commit"])
    return plan


def build_session_deletion(
    db: Session, blob_store: BlobStore, *, session_id: UUID, user_id: UUID
) -> DeletionPlan:
    plan = DeletionPlan(Workflow(f"delete_session:{session_id}"))

    def delete_session(ctx: dict[str, Any]) -> dict[str, Any]:
        result = db.execute(
            delete(ClinicalSession).where(
                ClinicalSession.id == session_id, ClinicalSession.user_id == user_id
            )
        )
        if result.rowcount != 1:
            raise RuntimeError("Session row was not deleted")
        log_action(
            db,
            actor=user_id,
            action="delete",
            resource_type="Session",
            resource_id=session_id,
            detail={"documents": ctx.get("documents_deleted", 0)},
        )
        return {}

    flow = plan.workflow
    flow.add_step("delete_document_rows", _document_rows_step(db))
    flow.add_step("delete_session", delete_session, depends_on=["delete_document_rows"])
    flow.add_step("commit", _commit_step(db), depends_on=["delete_session"])
    flow.add_step("purge_blobs", _purge_step(blob_store, plan), depends_on=["commit"])
    return plan
