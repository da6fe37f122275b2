"""Tests for the data-access layer against an in-memory database."""

import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from psyrecord.config import settings
from psyrecord.errors import CascadeDeleteError, NotFoundError, StorageError, ValidationFailed
from psyrecord.models.patient import AuditLog, PatientStatusHistory
from psyrecord.models.session import ClinicalSession, SessionDocument
from psyrecord.services.auth import CurrentUser
from psyrecord.services.repository import Attachment, PsyRecordRepository


def _make_patient(**overrides):
    data = {
        "name": "Maria Oliveira",
        "cpf": "123.456.789-09",
        "birth_date": "1990-01-15",
        "phone": "(11) 98765-4321",
        "is_minor": False,
    }
    data.update(overrides)
    return data


def _make_session(**overrides):
    data = {
        "session_type": "regular",
        "date": "2024-03-15",
        "time": "14:00",
        "topics": ["Anxiety"],
        "sleep_pattern": "regular",
        "mood": ["anxious"],
        "eating": "regular",
        "medication_status": "no-medication",
        "approach": "cognitive-behavioral",
    }
    data.update(overrides)
    return data


def _count(db, model, **filters):
    stmt = select(func.count()).select_from(model)
    for name, value in filters.items():
        stmt = stmt.where(getattr(model, name) == value)
    return db.scalar(stmt)


class FailingDeleteStore:
    """Wraps a blob store whose deletes always fail."""

    def __init__(self, inner):
        self.inner = inner

    def store(self, path, data):
        self.inner.store(path, data)

    def fetch(self, path):
        return self.inner.fetch(path)

    def delete(self, path):
        raise StorageError(f"Could not delete {path}")


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------

def test_create_patient_stores_digits_and_active_status(repo):
    patient = repo.create_patient(_make_patient())

    assert patient.cpf == "12345678909"
    assert patient.phone == "11987654321"
    assert patient.birth_date == date(1990, 1, 15)
    assert patient.current_status == "active"


def test_create_patient_invalid_reports_every_field(repo):
    with pytest.raises(ValidationFailed) as exc_info:
        repo.create_patient({"name": "", "is_minor": True})
    assert set(exc_info.value.errors) == {"name", "cpf", "birth_date", "guardian_name"}
    assert repo.list_patients() == []


def test_list_patients_ordered_and_searchable(repo):
    repo.create_patient(_make_patient(name="Zuleica Prado", cpf="99988877766"))
    repo.create_patient(_make_patient(name="Bruno Lima", cpf="11122233344"))

    assert [p.name for p in repo.list_patients()] == ["Bruno Lima", "Zuleica Prado"]
    assert [p.name for p in repo.list_patients("zule")] == ["Zuleica Prado"]
    assert [p.name for p in repo.list_patients("111.222")] == ["Bruno Lima"]


def test_search_wildcards_match_literally(repo):
    repo.create_patient(_make_patient(name="Ana_Paula Reis", cpf="99988877766"))
    repo.create_patient(_make_patient(name="Anabela Costa", cpf="11122233344"))

    assert [p.name for p in repo.list_patients("ana_")] == ["Ana_Paula Reis"]
    assert repo.list_patients("%") == []


def test_other_users_rows_are_not_found(db, repo, blob_store):
    patient = repo.create_patient(_make_patient())
    stranger = PsyRecordRepository(db, CurrentUser(id=uuid.uuid4()), blob_store)

    assert stranger.list_patients() == []
    with pytest.raises(NotFoundError):
        stranger.get_patient(patient.id)


def test_update_patient_never_touches_status(repo):
    patient = repo.create_patient(_make_patient())
    repo.change_status(patient.id, "suspended", "Travelling abroad")

    updated = repo.update_patient(patient.id, _make_patient(name="Maria O. Santos"))
    assert updated.name == "Maria O. Santos"
    assert updated.current_status == "suspended"


# ---------------------------------------------------------------------------
# Status history
# ---------------------------------------------------------------------------

def test_change_status_appends_one_history_entry(db, repo, user):
    patient = repo.create_patient(_make_patient())
    assert repo.status_history(patient.id) == []

    updated = repo.change_status(patient.id, "discharged", "Goals reached", "Follow-up in 3 months")

    history = repo.status_history(patient.id)
    assert updated.current_status == "discharged"
    assert len(history) == 1
    assert history[0].status == "discharged"
    assert history[0].created_by == user.id
    assert history[0].notes == "Follow-up in 3 months"


def test_history_is_append_only_and_newest_first(repo):
    patient = repo.create_patient(_make_patient())
    repo.change_status(patient.id, "suspended", "Travel")
    repo.change_status(patient.id, "active", "Back")
    updated = repo.change_status(patient.id, "referred", "Needs psychiatry")

    history = repo.status_history(patient.id)
    assert [h.status for h in history] == ["referred", "active", "suspended"]
    assert updated.current_status == history[0].status


def test_change_status_rejects_same_status_and_empty_reason(db, repo):
    patient = repo.create_patient(_make_patient())

    with pytest.raises(ValidationFailed) as exc_info:
        repo.change_status(patient.id, "active", "No change")
    assert "status" in exc_info.value.errors

    with pytest.raises(ValidationFailed) as exc_info:
        repo.change_status(patient.id, "discharged", "  ")
    assert "reason" in exc_info.value.errors

    assert _count(db, PatientStatusHistory) == 0
    assert repo.get_patient(patient.id).current_status == "active"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def test_sessions_listed_newest_first(repo):
    patient = repo.create_patient(_make_patient())
    for day in ("2024-01-10", "2024-03-10", "2024-02-10"):
        repo.create_session(patient.id, _make_session(date=day))

    dates = [s.date for s in repo.list_sessions(patient.id)]
    assert dates == [date(2024, 3, 10), date(2024, 2, 10), date(2024, 1, 10)]


def test_intake_session_with_only_main_complaint(repo):
    patient = repo.create_patient(_make_patient())
    session = repo.create_session(
        patient.id,
        {"session_type": "intake", "date": "2024-01-10", "time": "09:00", "main_complaint": "Grief"},
    )
    assert session.main_complaint == "Grief"
    assert session.topics == []
    assert session.duration_minutes == 50


def test_regular_session_missing_fields_not_saved(db, repo):
    patient = repo.create_patient(_make_patient())
    with pytest.raises(ValidationFailed) as exc_info:
        repo.create_session(patient.id, _make_session(mood=[], approach=None))
    assert set(exc_info.value.errors) == {"mood", "approach"}
    assert _count(db, ClinicalSession) == 0


def test_update_session_clears_closed_gates(repo):
    patient = repo.create_patient(_make_patient())
    session = repo.create_session(
        patient.id,
        _make_session(
            medication_status="changed",
            medication_new="Sertraline",
            referral_needed=True,
            referral_to="Psychiatrist",
        ),
    )
    assert session.medication_new == "Sertraline"

    updated = repo.update_session(session.id, _make_session(medication_status="stable"))
    assert updated.medication_new is None
    assert updated.referral_to is None
    assert updated.referral_needed is False


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def test_add_documents_is_best_effort(repo, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 16)
    patient = repo.create_patient(_make_patient())
    session = repo.create_session(patient.id, _make_session())

    report = repo.add_documents(
        session.id,
        [
            Attachment("consent.pdf", b"small", "application/pdf", "consent-form"),
            Attachment("huge.pdf", b"x" * 64, "application/pdf", "report"),
            Attachment("weird.pdf", b"ok", "application/pdf", "not-a-type"),
            Attachment("scan.png", b"png", "image/png"),
        ],
    )

    assert [d.document_type for d in report.uploaded] == ["consent-form", "other"]
    assert [f["filename"] for f in report.failed] == ["huge.pdf", "weird.pdf"]
    assert "limit" in report.failed[0]["error"]

    document, content = repo.fetch_document(report.uploaded[0].id)
    assert content == b"small"
    assert document.size_bytes == 5


def test_delete_document_removes_row_and_blob(db, repo):
    patient = repo.create_patient(_make_patient())
    session = repo.create_session(patient.id, _make_session())
    report = repo.add_documents(session.id, [Attachment("a.pdf", b"abc")])
    document = report.uploaded[0]
    path = document.file_path

    assert repo.delete_document(document.id) == []
    assert _count(db, SessionDocument) == 0
    assert not (repo.blob_store.root / path).exists()


# ---------------------------------------------------------------------------
# Cascading deletion
# ---------------------------------------------------------------------------

def test_delete_patient_cascades(db, repo):
    patient = repo.create_patient(_make_patient())
    first = repo.create_session(patient.id, _make_session(date="2024-01-10"))
    repo.create_session(patient.id, _make_session(date="2024-02-10"))
    repo.add_documents(first.id, [Attachment("a.pdf", b"abc"), Attachment("b.pdf", b"def")])
    repo.change_status(patient.id, "discharged", "Done")

    patient_id = patient.id
    report = repo.delete_patient(patient_id)

    assert report.summary["status"] == "completed"
    assert report.orphaned_paths == []
    assert _count(db, ClinicalSession, patient_id=patient_id) == 0
    assert _count(db, SessionDocument) == 0
    assert _count(db, PatientStatusHistory) == 0
    assert list(repo.blob_store.root.rglob("*.pdf")) == []
    with pytest.raises(NotFoundError):
        repo.get_patient(patient_id)


def test_delete_patient_failure_before_commit_keeps_everything(db, repo, monkeypatch):
    patient = repo.create_patient(_make_patient())
    repo.create_session(patient.id, _make_session())

    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit store offline")

    monkeypatch.setattr("psyrecord.workflows.deletion.log_action", broken_audit)

    with pytest.raises(CascadeDeleteError) as exc_info:
        repo.delete_patient(patient.id)

    steps = exc_info.value.summary["steps"]
    assert steps["delete_patient"]["status"] == "failed"
    assert steps["commit"]["status"] == "skipped"
    assert repo.get_patient(patient.id).name == "Maria Oliveira"
    assert _count(db, ClinicalSession, patient_id=patient.id) == 1


def test_blob_purge_failure_reports_orphans(db, user, blob_store):
    repo = PsyRecordRepository(db, user, FailingDeleteStore(blob_store))
    patient = repo.create_patient(_make_patient())
    session = repo.create_session(patient.id, _make_session())
    uploaded = repo.add_documents(session.id, [Attachment("a.pdf", b"abc")]).uploaded

    patient_id, orphan = patient.id, uploaded[0].file_path
    report = repo.delete_patient(patient_id)

    assert report.orphaned_paths == [orphan]
    with pytest.raises(NotFoundError):
        repo.get_patient(patient_id)


def test_delete_session_keeps_patient(db, repo):
    patient = repo.create_patient(_make_patient())
    session = repo.create_session(patient.id, _make_session())
    repo.add_documents(session.id, [Attachment("a.pdf", b"abc")])

    repo.delete_session(session.id)

    assert repo.list_sessions(patient.id) == []
    assert _count(db, SessionDocument) == 0
    assert repo.get_patient(patient.id)


# ---------------------------------------------------------------------------
# Profile, dashboard, audit
# ---------------------------------------------------------------------------

def test_profile_upsert(repo, user):
    assert repo.get_profile() is None
    profile = repo.save_profile({"full_name": "Ana Souza", "crp": "06/123456", "phone": "(11) 3333-4444"})
    assert profile.id == user.id
    assert profile.phone == "1133334444"

    profile = repo.save_profile({"full_name": "Ana S. Souza", "crp": "06/123456"})
    assert profile.full_name == "Ana S. Souza"


def test_dashboard_counts(repo):
    first = repo.create_patient(_make_patient(name="A"))
    repo.create_patient(_make_patient(name="B"))
    repo.create_session(first.id, _make_session())
    repo.change_status(first.id, "discharged", "Done")

    data = repo.dashboard()
    assert data["total_patients"] == 2
    assert data["total_sessions"] == 1
    assert data["patients_by_status"]["discharged"] == 1
    assert data["patients_by_status"]["active"] == 1
    assert len(data["recent_patients"]) == 2


def test_mutations_are_audited_without_clinical_text(db, repo):
    patient = repo.create_patient(_make_patient())
    repo.create_session(patient.id, _make_session(clinical_hypotheses="Private hypothesis"))
    repo.change_status(patient.id, "discharged", "Done")

    entries = list(db.scalars(select(AuditLog)))
    assert {e.action for e in entries} == {"create", "status_change"}
    assert all("Private hypothesis" not in str(e.detail) for e in entries)
