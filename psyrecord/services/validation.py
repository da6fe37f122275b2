"""
Form validation against the JSON Schemas in ``psyrecord.schemas.forms``.

All errors are collected rather than failing on the first one, and each
is reported under the field it belongs to so the client can show the
message next to the input.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import jsonschema

from psyrecord.errors import ValidationFailed
from psyrecord.schemas.forms import (
    DOCUMENT_UPLOAD_SCHEMA,
    FIELD_MESSAGES,
    PATIENT_FORM_SCHEMA,
    PROFILE_FORM_SCHEMA,
    SESSION_FORM_SCHEMA,
    STATUS_CHANGE_SCHEMA,
)
from psyrecord.services.formatting import strip_digits

DIGIT_FIELDS = ("cpf", "guardian_cpf", "phone", "guardian_phone", "zip_code")


def compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop blank values so that an empty input counts as a missing one."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        elif isinstance(value, (list, tuple)):
            value = [v for v in value if not (isinstance(v, str) and not v.strip())]
            if not value:
                continue
        elif isinstance(value, date):
            value = value.isoformat()
        result[key] = value
    return result


def _field_of(error: jsonschema.ValidationError) -> list[str]:
    if error.validator == "required":
        return [p for p in error.validator_value if p not in error.instance]
    path = list(error.absolute_path)
    return [str(path[0])] if path else ["__root__"]


def validate_against_schema(data: dict[str, Any], schema: dict[str, Any]) -> dict[str, str]:
    """
    Validate a dict against a JSON schema.
    Returns ``{field: message}`` (empty dict = valid).
    """
    validator = jsonschema.Draft7Validator(
        schema, format_checker=jsonschema.Draft7Validator.FORMAT_CHECKER
    )
    errors: dict[str, str] = {}
    for error in validator.iter_errors(data):
        kind = "required" if error.validator == "required" else "invalid"
        for field in _field_of(error):
            message = FIELD_MESSAGES[kind].get(field)
            if message is None:
                message = f"{field} is required" if kind == "required" else error.message
            errors.setdefault(field, message)
    return errors


def normalize_patient(data: dict[str, Any]) -> dict[str, Any]:
    normalized = compact(data)
    for field in DIGIT_FIELDS:
        if field in normalized:
            normalized[field] = strip_digits(normalized[field])
    if "state" in normalized:
        normalized["state"] = normalized["state"].upper()
    return compact(normalized)


def validate_patient_form(data: dict[str, Any]) -> dict[str, str]:
    return validate_against_schema(normalize_patient(data), PATIENT_FORM_SCHEMA)


def validate_session_form(data: dict[str, Any]) -> dict[str, str]:
    return validate_against_schema(compact(data), SESSION_FORM_SCHEMA)


def validate_status_change(data: dict[str, Any]) -> dict[str, str]:
    return validate_against_schema(compact(data), STATUS_CHANGE_SCHEMA)


def validate_profile_form(data: dict[str, Any]) -> dict[str, str]:
    normalized = compact(data)
    if "phone" in normalized:
        normalized["phone"] = strip_digits(normalized["phone"])
    return validate_against_schema(compact(normalized), PROFILE_FORM_SCHEMA)


def validate_document_upload(data: dict[str, Any]) -> dict[str, str]:
    return validate_against_schema(compact(data), DOCUMENT_UPLOAD_SCHEMA)


def require_valid(errors: dict[str, str]) -> None:
    if errors:
        raise ValidationFailed(errors)
