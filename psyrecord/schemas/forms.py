"""
JSON Schemas for the patient, session, status and profile forms.

The schemas are the single statement of which fields are required and
which coded values are accepted. Conditional requirements use draft-7
``if/then/else`` so they are always evaluated against the current value
of the gating field (``is_minor``, ``session_type``).

Inputs are compacted before validation: blank strings and empty lists
are removed, so ``required`` also covers "present but empty".
"""

from psyrecord.reference.catalog import (
    DOCUMENT_TYPES,
    EATING_PATTERNS,
    MEDICATION_STATUSES,
    MODALITIES,
    MOODS,
    SESSION_TYPES,
    SLEEP_PATTERNS,
    THERAPY_APPROACHES,
    TREATMENT_STATUSES,
    values,
)

_DATE = {"type": "string", "pattern": "^\\d{4}-\\d{2}-\\d{2}$", "format": "date"}
_TEXT = {"type": "string"}
_TEXT_LIST = {"type": "array", "items": {"type": "string"}}


PATIENT_FORM_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Patient registration",
    "type": "object",
    "required": ["name", "cpf", "birth_date"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "cpf": {"type": "string", "pattern": "^\\d{11}$"},
        "birth_date": _DATE,
        "address": _TEXT,
        "city": _TEXT,
        "state": {"type": "string", "pattern": "^[A-Za-z]{2}$"},
        "zip_code": {"type": "string", "pattern": "^\\d{8}$"},
        "phone": {"type": "string", "pattern": "^\\d{10,11}$"},
        "email": {"type": "string", "pattern": "^[^@\\s]+@[^@\\s]+\\.[^@\\s]+$"},
        "profession": _TEXT,
        "is_minor": {"type": "boolean"},
        "guardian_name": _TEXT,
        "guardian_cpf": {"type": "string", "pattern": "^\\d{11}$"},
        "guardian_phone": {"type": "string", "pattern": "^\\d{10,11}$"},
        "guardian_relationship": _TEXT,
    },
    "if": {"properties": {"is_minor": {"const": True}}, "required": ["is_minor"]},
    "then": {"required": ["guardian_name"]},
}


SESSION_FORM_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Session record",
    "type": "object",
    "required": ["session_type", "date", "time"],
    "properties": {
        "session_type": {"type": "string", "enum": values(SESSION_TYPES)},
        "date": _DATE,
        "time": {"type": "string", "pattern": "^([01]\\d|2[0-3]):[0-5]\\d$"},
        "duration_minutes": {"type": "integer", "minimum": 1, "maximum": 480},
        "modality": {"type": "string", "enum": values(MODALITIES)},
        "topics": _TEXT_LIST,
        "sleep_pattern": {"type": "string", "enum": values(SLEEP_PATTERNS)},
        "mood": {"type": "array", "items": {"type": "string", "enum": values(MOODS)}},
        "eating": {"type": "string", "enum": values(EATING_PATTERNS)},
        "medication_status": {"type": "string", "enum": values(MEDICATION_STATUSES)},
        "medication_new": _TEXT,
        "approach": {"type": "string", "enum": values(THERAPY_APPROACHES)},
        "techniques": _TEXT_LIST,
        "dsm_diagnosis": _TEXT_LIST,
        "cid_diagnosis": _TEXT_LIST,
        "referral_needed": {"type": "boolean"},
        "referral_to": _TEXT,
        "referral_reason": _TEXT,
    },
    "if": {
        "properties": {"session_type": {"const": "intake"}},
        "required": ["session_type"],
    },
    "then": {"required": ["main_complaint"]},
    "else": {
        "required": [
            "topics",
            "sleep_pattern",
            "mood",
            "eating",
            "medication_status",
            "approach",
        ]
    },
}


STATUS_CHANGE_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Treatment status change",
    "type": "object",
    "required": ["status", "reason"],
    "properties": {
        "status": {"type": "string", "enum": values(TREATMENT_STATUSES)},
        "reason": {"type": "string", "minLength": 1},
        "notes": _TEXT,
    },
}


PROFILE_FORM_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Clinician profile",
    "type": "object",
    "required": ["full_name", "crp"],
    "properties": {
        "full_name": {"type": "string", "minLength": 1},
        "crp": {"type": "string", "minLength": 1},
        "email": {"type": "string", "pattern": "^[^@\\s]+@[^@\\s]+\\.[^@\\s]+$"},
        "phone": {"type": "string", "pattern": "^\\d{10,11}$"},
    },
}


DOCUMENT_UPLOAD_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Session document",
    "type": "object",
    "required": ["document_type"],
    "properties": {
        "document_type": {"type": "string", "enum": values(DOCUMENT_TYPES)},
        "description": _TEXT,
    },
}


# One message per field, shown next to the input.
FIELD_MESSAGES: dict[str, dict[str, str]] = {
    "required": {
        "name": "Name is required",
        "cpf": "CPF is required",
        "birth_date": "Birth date is required",
        "guardian_name": "Guardian name is required for minors",
        "session_type": "Session type is required",
        "date": "Date is required",
        "time": "Time is required",
        "main_complaint": "Main complaint is required for intake sessions",
        "topics": "Select at least one topic",
        "sleep_pattern": "Select the sleep pattern",
        "mood": "Select at least one mood",
        "eating": "Select the eating pattern",
        "medication_status": "Select the medication status",
        "approach": "Select the therapeutic approach",
        "status": "Select the new status",
        "reason": "A reason for the status change is required",
        "full_name": "Full name is required",
        "crp": "Registration number (CRP) is required",
        "document_type": "Select the document type",
    },
    "invalid": {
        "cpf": "Invalid CPF",
        "guardian_cpf": "Invalid CPF",
        "birth_date": "Invalid date",
        "date": "Invalid date",
        "time": "Invalid time",
        "phone": "Invalid phone number",
        "guardian_phone": "Invalid phone number",
        "zip_code": "Invalid postal code",
        "email": "Invalid e-mail",
        "state": "Use the two-letter state code",
    },
}
