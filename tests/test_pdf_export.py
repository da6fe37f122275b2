"""Tests for the paginated dossier composer."""

from datetime import date, datetime

from psyrecord.services.pdf_export import (
    compose_patient_record,
    export_patient_record,
    record_filename,
    to_latin1_safe,
)

PROFILE = {
    "full_name": "Ana Souza",
    "crp": "06/123456",
    "email": "ana.souza@example.com",
    "phone": "11987654321",
}


def _make_patient(**overrides):
    patient = {
        "name": "Maria Oliveira",
        "cpf": "12345678909",
        "birth_date": date(1990, 1, 15),
        "current_status": "active",
        "is_minor": False,
    }
    patient.update(overrides)
    return patient


def _make_session(session_date, **overrides):
    session = {
        "session_type": "regular",
        "date": session_date,
        "time": "14:00",
        "duration_minutes": 50,
        "modality": "in-person",
        "topics": ["Anxiety"],
        "mood": ["anxious"],
        "sleep_pattern": "regular",
        "eating": "regular",
        "medication_status": "no-medication",
        "approach": "cognitive-behavioral",
    }
    session.update(overrides)
    return session


def test_sessions_exported_oldest_first():
    d1, d2, d3 = date(2024, 1, 10), date(2024, 2, 10), date(2024, 3, 10)
    on_screen = [_make_session(d3), _make_session(d2), _make_session(d1)]

    composer = compose_patient_record(PROFILE, _make_patient(), on_screen)

    assert composer.session_headings == [
        "Session 1 - 10/01/2024 - Regular",
        "Session 2 - 10/02/2024 - Regular",
        "Session 3 - 10/03/2024 - Regular",
    ]
    # the caller's newest-first list is left untouched
    assert [s["date"] for s in on_screen] == [d3, d2, d1]


def test_same_day_sessions_ordered_by_time():
    day = date(2024, 1, 10)
    sessions = [
        _make_session(day, time="16:00", session_type="closure"),
        _make_session(day, time="09:00", session_type="intake", main_complaint="Insomnia"),
    ]
    composer = compose_patient_record(PROFILE, _make_patient(), sessions)
    assert composer.session_headings[0].endswith("Intake")


def test_long_text_paginates_and_repeats_header():
    long_text = " ".join(["The patient described the week in detail."] * 400)
    sessions = [_make_session(date(2024, 1, 10), clinical_observations=long_text)]

    composer = compose_patient_record(PROFILE, _make_patient(), sessions)

    assert composer.page_count > 1
    assert composer.headers_drawn == composer.page_count


def test_short_record_fits_one_page():
    composer = compose_patient_record(PROFILE, _make_patient(), [_make_session(date(2024, 1, 10))])
    assert composer.page_count == 1
    assert composer.headers_drawn == 1


def test_split_text_wraps_to_width():
    composer = compose_patient_record(PROFILE, _make_patient(), [])
    composer._font("", 9)
    lines = composer.split_text("word " * 200, 50)

    assert len(lines) > 1
    assert all(composer.pdf.get_string_width(line) <= 50.01 for line in lines)


def test_split_text_breaks_long_words_and_keeps_newlines():
    composer = compose_patient_record(PROFILE, _make_patient(), [])
    composer._font("", 9)
    lines = composer.split_text("first\n" + "x" * 120, 30)

    assert lines[0] == "first"
    assert len(lines) > 2
    assert "".join(lines[1:]) == "x" * 120
    assert composer.split_text("", 30) == [""]


def test_export_returns_pdf_bytes():
    patient = _make_patient(
        birth_date=date(2012, 5, 1),
        is_minor=True,
        guardian_name="Clara Oliveira",
        guardian_relationship="Mother",
    )
    sessions = [_make_session(date(2024, 1, 10), dsm_diagnosis=["300.02"], referral_needed=True)]
    content = export_patient_record(
        PROFILE, patient, sessions, generated_at=datetime(2024, 4, 1, 10, 30)
    )
    assert content.startswith(b"%PDF")


def test_empty_history_still_exports():
    content = export_patient_record(PROFILE, _make_patient(), [])
    assert content.startswith(b"%PDF")


def test_latin1_safe_text():
    assert to_latin1_safe("Jos\u00e9 \u2014 \u201cok\u201d \u2603") == "Jos\u00e9 - \"ok\" "


def test_record_filename():
    patient = _make_patient(name="Maria de Souza")
    assert record_filename(patient, date(2024, 4, 1)) == "record_Maria_de_Souza_2024-04-01.pdf"
