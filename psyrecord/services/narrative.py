"""
Prose documents generated from a structured session record.

Two audiences:

- ``generate_clinical_narrative``: the clinician-facing record text. Intake
  sessions get a sectioned assessment; regular and closure sessions get a
  single evolution narrative.
- ``generate_patient_report``: the patient-facing attendance report. It only
  ever reads identity, date/time, modality, topics, approach and whether any
  techniques were used; diagnoses, hypotheses, observations and referral
  details never reach it.

Both functions are pure and tolerate missing fields: anything absent is
rendered as a placeholder instead of raising.
"""

from __future__ import annotations

from typing import Any

from psyrecord.reference.catalog import (
    EATING_PATTERNS,
    MEDICATION_STATUSES,
    MODALITIES,
    MOODS,
    NO_MEDICATION,
    SESSION_TYPES,
    SLEEP_PATTERNS,
    THERAPY_APPROACHES,
    label_for,
)
from psyrecord.reference.diagnoses import cid_name, dsm_name, narrative_label
from psyrecord.services.formatting import (
    NOT_INFORMED,
    NOT_SPECIFIED,
    compute_age,
    format_date_long,
    format_time,
    join_labels,
    parse_date,
    slugify_name,
)

RECORD_REGULATION = "CFP Resolution No. 001/2009"
RECORD_CLOSING = f"---\nRecord made in accordance with {RECORD_REGULATION}."

REPORT_CLOSING = (
    "This document was issued at the patient's request and is valid for the "
    "purposes for which it is intended.\n\n"
    "Document issued in accordance with the Professional Code of Ethics of the "
    "Psychologist (CFP Resolution No. 010/2005) and CFP Resolution No. 007/2003, "
    "which establishes the Manual for the Preparation of Written Documents."
)


def _get(record: Any, name: str, default: Any = None) -> Any:
    if record is None:
        return default
    if isinstance(record, dict):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def _text(record: Any, name: str) -> str:
    value = _get(record, name, "")
    return value.strip() if isinstance(value, str) else ""


def _lower_label(value: str | None, options) -> str | None:
    label = label_for(value, options)
    return label.lower() if label else None


def _modality(session: Any) -> str:
    return label_for(_get(session, "modality"), MODALITIES) or NOT_INFORMED


def _duration(session: Any) -> str:
    minutes = _get(session, "duration_minutes")
    return f"{minutes} minutes" if minutes else NOT_INFORMED


def _header(title: str, session: Any, patient: Any, date_label: str = "Date") -> str:
    lines = [
        title,
        "",
        f"Patient: {_get(patient, 'name', NOT_INFORMED)}",
        f"{date_label}: {format_date_long(_get(session, 'date'))}",
        f"Time: {format_time(_get(session, 'time'))}",
        f"Duration: {_duration(session)}",
        f"Modality: {_modality(session)}",
    ]
    return "\n".join(lines)


def _section(title: str, body: str) -> str:
    return f"{title.upper()}\n\n{body}"


def _state_sentence(session: Any, placeholder: str, opening: str = "The patient presented") -> str:
    moods = [label_for(m, MOODS).lower() for m in _get(session, "mood", []) if m]
    sleep = _lower_label(_get(session, "sleep_pattern"), SLEEP_PATTERNS) or placeholder
    eating = _lower_label(_get(session, "eating"), EATING_PATTERNS) or placeholder
    return (
        f"{opening} {join_labels(moods, placeholder)} mood, "
        f"with {sleep} sleep pattern and {eating} eating."
    )


def _medication_sentence(session: Any) -> str:
    status = _get(session, "medication_status")
    if not status or status == NO_MEDICATION:
        return ""
    sentence = (
        "Regarding medication, the patient reports the following situation: "
        f"{_lower_label(status, MEDICATION_STATUSES)}"
    )
    new_medication = _text(session, "medication_new")
    if new_medication:
        sentence += f", the new medication being: {new_medication}"
    return sentence + "."


def _approach_sentence(session: Any, opening: str) -> str:
    approach = label_for(_get(session, "approach"), THERAPY_APPROACHES) or NOT_SPECIFIED
    sentence = f"{opening} {approach}"
    techniques = _get(session, "techniques", [])
    if techniques:
        sentence += f", using the following techniques: {join_labels(techniques)}"
    return sentence + "."


def _diagnosis_body(session: Any) -> str:
    parts = []
    dsm = _get(session, "dsm_diagnosis", [])
    cid = _get(session, "cid_diagnosis", [])
    if dsm:
        parts.append("DSM-5-TR: " + "; ".join(narrative_label(c, dsm_name) for c in dsm) + ".")
    if cid:
        parts.append("CID-10: " + "; ".join(narrative_label(c, cid_name) for c in cid) + ".")
    return " ".join(parts)


def _referral_body(session: Any) -> str:
    if not _get(session, "referral_needed", False) or not _text(session, "referral_to"):
        return ""
    body = f"Referral to {_text(session, 'referral_to')} was indicated."
    reason = _text(session, "referral_reason")
    if reason:
        body += f" Reason: {reason}"
    return body


def _identification(session: Any, patient: Any) -> str:
    body = (
        f"Initial assessment (intake) session held on "
        f"{format_date_long(_get(session, 'date'))}, in {_modality(session).lower()} format, "
        f"with the patient {_get(patient, 'name', NOT_INFORMED)}"
    )
    age = compute_age(_get(patient, "birth_date"))
    if age is not None:
        body += f", aged {age}"
    profession = _text(patient, "profession")
    if profession:
        body += f", working as {profession.lower()}"
    body += "."
    guardian = _text(patient, "guardian_name")
    if _get(patient, "is_minor", False) and guardian:
        relationship = _text(patient, "guardian_relationship")
        body += f" As the patient is a minor, the legal guardian is {guardian}"
        body += f" ({relationship.lower()})." if relationship else "."
    body += (
        " This first meeting aimed at gathering the demand, the history of the case "
        "and the information needed to plan the psychological care."
    )
    return body


def _intake_narrative(session: Any, patient: Any) -> str:
    blocks = [
        _header("INTAKE SESSION RECORD", session, patient),
        _section("Identification and Initial Context", _identification(session, patient)),
    ]
    for title, field in (
        ("Main Complaint", "main_complaint"),
        ("Complaint History", "complaint_history"),
        ("Relevant History", "relevant_history"),
    ):
        if _text(session, field):
            blocks.append(_section(title, _text(session, field)))

    state = _state_sentence(
        session, NOT_INFORMED, opening="At the time of the assessment, the patient presented"
    )
    medication = _medication_sentence(session)
    if medication:
        state += " " + medication
    blocks.append(_section("Current State Assessment", state))

    for title, field in (
        ("Clinical Observations", "clinical_observations"),
        ("Clinical Hypotheses", "clinical_hypotheses"),
        ("Therapeutic Goals", "therapeutic_goals"),
        ("Treatment Plan", "treatment_plan"),
    ):
        if _text(session, field):
            blocks.append(_section(title, _text(session, field)))

    if _get(session, "approach"):
        blocks.append(
            _section(
                "Therapeutic Approach",
                _approach_sentence(session, "The proposed psychological care will follow"),
            )
        )

    referral = _referral_body(session)
    if referral:
        blocks.append(_section("Referral", referral))

    diagnosis = _diagnosis_body(session)
    if diagnosis:
        blocks.append(_section("Initial Diagnostic Hypothesis", diagnosis))

    if _text(session, "notes"):
        blocks.append(_section("Additional Observations", _text(session, "notes")))

    blocks.append(RECORD_CLOSING)
    return "\n\n".join(blocks)


def _evolution_narrative(session: Any, patient: Any) -> str:
    type_label = label_for(_get(session, "session_type"), SESSION_TYPES) or "Regular"
    title = "CLOSURE SESSION RECORD" if type_label == "Closure" else "SESSION RECORD"
    topics = [t.lower() for t in _get(session, "topics", [])]

    evolution = (
        f"In the session held on {format_date_long(_get(session, 'date'))}, in "
        f"{_modality(session).lower()} format, issues related to "
        f"{join_labels(topics, NOT_INFORMED)} were addressed. "
        + _state_sentence(session, NOT_SPECIFIED)
    )
    medication = _medication_sentence(session)
    if medication:
        evolution += " " + medication
    evolution += "\n\n" + _approach_sentence(
        session, "The intervention was conducted from the perspective of"
    )

    blocks = [_header(title, session, patient), _section("Session Evolution", evolution)]
    for heading, field in (
        ("Clinical Observations", "clinical_observations"),
        ("Clinical Hypotheses", "clinical_hypotheses"),
        ("Observed Progress", "observed_progress"),
        ("Interventions Performed", "interventions"),
    ):
        if _text(session, field):
            blocks.append(_section(heading, _text(session, field)))

    referral = _referral_body(session)
    if referral:
        blocks.append(_section("Referral", referral))

    diagnosis = _diagnosis_body(session)
    if diagnosis:
        blocks.append(_section("Diagnostic Classification", diagnosis))

    if _text(session, "notes"):
        blocks.append(_section("Additional Observations", _text(session, "notes")))

    blocks.append(RECORD_CLOSING)
    return "\n\n".join(blocks)


def generate_clinical_narrative(session: Any, patient: Any) -> str:
    """Clinician-facing record text for one session."""
    if _get(session, "session_type") == "intake":
        return _intake_narrative(session, patient)
    return _evolution_narrative(session, patient)


def generate_patient_report(session: Any, patient: Any) -> str:
    """Patient-facing attendance report, free of technical clinical content."""
    topics = [t.lower() for t in _get(session, "topics", [])]
    approach = label_for(_get(session, "approach"), THERAPY_APPROACHES) or NOT_SPECIFIED

    worked_on = (
        f"During the session, issues related to {join_labels(topics, NOT_INFORMED)} "
        f"were worked on, using the {approach} approach"
    )
    if _get(session, "techniques", []):
        worked_on += ", with the application of appropriate therapeutic techniques"
    worked_on += "."

    blocks = [
        _header(
            "PSYCHOLOGICAL ATTENDANCE REPORT", session, patient, date_label="Date of attendance"
        ),
        "---",
        "I hereby declare, for all due purposes, that the patient identified above "
        "attended an individual psychotherapy session on the date and at the time specified.",
        worked_on,
        "Psychological follow-up is being carried out according to the established "
        "therapeutic plan, aiming at the well-being and quality of life of the patient.",
        "---",
        REPORT_CLOSING,
    ]
    return "\n\n".join(blocks)


def report_filename(session: Any, patient: Any) -> str:
    session_date = parse_date(_get(session, "date"))
    stamp = session_date.isoformat() if session_date else "undated"
    return f"report_{slugify_name(_get(patient, 'name'))}_{stamp}.txt"
