"""Tests for the patient and session drafts."""

from datetime import date

import pytest

from psyrecord.errors import ValidationFailed
from psyrecord.services.forms import FormDraft, PatientDraft, SessionDraft, clean_session_payload


def _years_ago(years):
    return date(date.today().year - years, 1, 1)


def _filled_patient_draft():
    draft = PatientDraft()
    draft.set("name", "Maria Oliveira")
    draft.set("cpf", "12345678909")
    draft.set("birth_date", "1990-01-15")
    return draft


def _filled_session_draft():
    draft = SessionDraft()
    draft.set("date", "2024-03-15")
    draft.set("time", "14:00")
    draft.toggle("topics", "Anxiety")
    draft.set("sleep_pattern", "regular")
    draft.toggle("mood", "anxious")
    draft.set("eating", "regular")
    draft.set("medication_status", "no-medication")
    draft.set("approach", "cognitive-behavioral")
    return draft


# ---------------------------------------------------------------------------
# Patient draft
# ---------------------------------------------------------------------------

def test_live_masks():
    draft = PatientDraft()
    draft.set("cpf", "1234567")
    draft.set("phone", "11987654321")
    draft.set("zip_code", "01310100")
    assert draft.data["cpf"] == "123.456.7"
    assert draft.data["phone"] == "(11) 98765-4321"
    assert draft.data["zip_code"] == "01310-100"


def test_minor_inferred_from_birth_date():
    draft = PatientDraft()
    draft.set("birth_date", _years_ago(10).isoformat())
    assert draft.data["is_minor"] is True
    assert draft.age == 10


def test_manual_uncheck_survives_until_birth_date_changes():
    draft = PatientDraft()
    draft.set("birth_date", _years_ago(15).isoformat())
    assert draft.data["is_minor"] is True

    draft.set("is_minor", False)
    draft.set("name", "Pedro")
    assert draft.data["is_minor"] is False

    draft.set("birth_date", _years_ago(16).isoformat())
    assert draft.data["is_minor"] is True


def test_adult_birth_date_never_clears_minor_flag():
    draft = PatientDraft()
    draft.set("is_minor", True)
    draft.set("birth_date", "1980-01-01")
    assert draft.data["is_minor"] is True


def test_submit_reports_all_errors_and_edit_clears_one():
    draft = PatientDraft({"is_minor": True})
    with pytest.raises(ValidationFailed):
        draft.submit()
    assert set(draft.errors) == {"name", "cpf", "birth_date", "guardian_name"}

    draft.set("name", "Maria")
    assert "name" not in draft.errors
    assert set(draft.errors) == {"cpf", "birth_date", "guardian_name"}


def test_guardian_rule_follows_current_flag():
    draft = _filled_patient_draft()
    draft.set("is_minor", True)
    with pytest.raises(ValidationFailed):
        draft.submit()
    assert list(draft.errors) == ["guardian_name"]

    draft.set("is_minor", False)
    assert draft.submit()["is_minor"] is False


def test_submit_returns_digits_only_payload():
    draft = _filled_patient_draft()
    draft.set("phone", "1133334444")
    payload = draft.submit()

    assert payload["cpf"] == "12345678909"
    assert payload["phone"] == "1133334444"
    assert payload["birth_date"] == date(1990, 1, 15)
    assert draft.errors == {}


def test_from_record_masks_stored_digits():
    class Row:
        name = "Maria"
        cpf = "12345678909"
        birth_date = date(1990, 1, 15)
        phone = None

    draft = PatientDraft.from_record(Row())
    assert draft.data["cpf"] == "123.456.789-09"


# ---------------------------------------------------------------------------
# Session draft
# ---------------------------------------------------------------------------

def test_session_defaults():
    draft = SessionDraft()
    assert draft.data["session_type"] == "regular"
    assert draft.data["duration_minutes"] == 50
    assert draft.data["modality"] == "in-person"


def test_toggle_keeps_selection_order():
    draft = SessionDraft()
    draft.toggle("mood", "irritable")
    draft.toggle("mood", "anxious")
    draft.toggle("mood", "depressed")
    draft.toggle("mood", "anxious")
    assert draft.data["mood"] == ["irritable", "depressed"]


def test_toggle_rejects_single_choice_fields():
    with pytest.raises(ValueError):
        SessionDraft().toggle("eating", "regular")


def test_switching_to_intake_changes_required_fields():
    draft = SessionDraft()
    draft.set("date", "2024-03-15")
    draft.set("time", "09:00")
    with pytest.raises(ValidationFailed):
        draft.submit()
    assert "topics" in draft.errors

    draft.set("session_type", "intake")
    with pytest.raises(ValidationFailed):
        draft.submit()
    assert list(draft.errors) == ["main_complaint"]


def test_techniques_preset_and_custom():
    draft = _filled_session_draft()
    draft.toggle_technique("Exposure")
    draft.add_custom_technique("Mindfulness breathing")
    draft.toggle_technique("Not a preset")
    assert draft.data["techniques"] == ["Exposure", "Mindfulness breathing"]
    assert draft.techniques.custom == ["Mindfulness breathing"]

    draft.set("approach", "humanistic")
    assert draft.data["techniques"] == ["Mindfulness breathing"]


def test_submit_drops_closed_gates():
    draft = _filled_session_draft()
    draft.set("medication_new", "Sertraline")
    draft.set("referral_to", "Psychiatrist")
    draft.set("main_complaint", "Left over from intake")

    payload = draft.submit()
    assert "medication_new" not in payload
    assert "referral_to" not in payload
    assert "main_complaint" not in payload
    assert payload["date"] == date(2024, 3, 15)


def test_submit_keeps_open_gates():
    draft = _filled_session_draft()
    draft.set("medication_status", "changed")
    draft.set("medication_new", "Sertraline")
    draft.set("referral_needed", True)
    draft.set("referral_to", "Psychiatrist")

    payload = draft.submit()
    assert payload["medication_new"] == "Sertraline"
    assert payload["referral_to"] == "Psychiatrist"


def test_clean_session_payload_for_intake():
    payload = clean_session_payload(
        {"session_type": "intake", "date": "2024-03-15", "main_complaint": "Grief", "topics": []}
    )
    assert payload["main_complaint"] == "Grief"
    assert "topics" not in payload


def test_form_draft_is_abstract():
    with pytest.raises(TypeError):
        FormDraft()
