"""
Editable drafts behind the patient and session forms.

A draft holds one mutable record plus the current per-field errors.
Editing a field clears that field's error only; ``submit()`` validates
the whole draft against the current values and reports every violated
rule at once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from psyrecord.errors import ValidationFailed
from psyrecord.reference.catalog import DEFAULT_DURATION, MEDICATION_CHANGED, TechniqueSelection
from psyrecord.schemas.api import INTAKE_FIELDS
from psyrecord.services.formatting import (
    compute_age,
    format_cep,
    format_cpf,
    format_phone,
    parse_date,
)
from psyrecord.services.validation import (
    compact,
    normalize_patient,
    validate_patient_form,
    validate_session_form,
)

PATIENT_FIELDS = (
    "name",
    "cpf",
    "birth_date",
    "address",
    "city",
    "state",
    "zip_code",
    "phone",
    "email",
    "profession",
    "is_minor",
    "guardian_name",
    "guardian_cpf",
    "guardian_phone",
    "guardian_relationship",
)

SESSION_FIELDS = (
    "session_type",
    "date",
    "time",
    "duration_minutes",
    "modality",
    "topics",
    "sleep_pattern",
    "mood",
    "eating",
    "medication_status",
    "medication_new",
    "approach",
    "techniques",
    "dsm_diagnosis",
    "cid_diagnosis",
    "clinical_observations",
    "clinical_hypotheses",
    "observed_progress",
    "interventions",
    "referral_needed",
    "referral_to",
    "referral_reason",
    *INTAKE_FIELDS,
    "notes",
)

MULTI_SELECT_FIELDS = ("topics", "mood", "dsm_diagnosis", "cid_diagnosis")

_MASKS: dict[str, Callable[[str | None], str]] = {
    "cpf": format_cpf,
    "guardian_cpf": format_cpf,
    "phone": format_phone,
    "guardian_phone": format_phone,
    "zip_code": format_cep,
}


def clean_patient_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Digits-only identity/contact numbers, upper-case state, ``birth_date`` as a date."""
    cleaned = normalize_patient(data)
    cleaned["birth_date"] = parse_date(cleaned.get("birth_date"))
    cleaned["is_minor"] = bool(cleaned.get("is_minor"))
    return cleaned


def clean_session_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Drop the fields whose gate is closed so they are not stored."""
    cleaned = compact(data)
    cleaned["date"] = parse_date(cleaned.get("date"))
    if cleaned.get("medication_status") != MEDICATION_CHANGED:
        cleaned.pop("medication_new", None)
    if not cleaned.get("referral_needed"):
        cleaned.pop("referral_to", None)
        cleaned.pop("referral_reason", None)
    if cleaned.get("session_type") != "intake":
        for name in INTAKE_FIELDS:
            cleaned.pop(name, None)
    return cleaned


class FormDraft(ABC):
    fields: tuple[str, ...] = ()

    def __init__(self, data: dict[str, Any] | None = None):
        self.data: dict[str, Any] = self.defaults()
        self.data.update(data or {})
        self.errors: dict[str, str] = {}

    @classmethod
    def from_record(cls, record: Any) -> FormDraft:
        return cls({name: getattr(record, name, None) for name in cls.fields})

    def defaults(self) -> dict[str, Any]:
        return {}

    def set(self, name: str, value: Any) -> None:
        self.data[name] = value
        self.errors.pop(name, None)

    @abstractmethod
    def validate(self) -> dict[str, str]: ...

    @abstractmethod
    def cleaned(self) -> dict[str, Any]: ...

    def submit(self) -> dict[str, Any]:
        self.errors = self.validate()
        if self.errors:
            raise ValidationFailed(self.errors)
        return self.cleaned()


class PatientDraft(FormDraft):
    fields = PATIENT_FIELDS

    def __init__(self, data: dict[str, Any] | None = None):
        super().__init__(data)
        for name, mask in _MASKS.items():
            if self.data.get(name):
                self.data[name] = mask(self.data[name])

    def defaults(self) -> dict[str, Any]:
        return {"is_minor": False}

    @property
    def age(self) -> int | None:
        return compute_age(self.data.get("birth_date"))

    def set(self, name: str, value: Any) -> None:
        mask = _MASKS.get(name)
        if mask is not None:
            value = mask(value)
        super().set(name, value)
        if name == "birth_date":
            # Only ever switches the flag on; unchecking it stays manual.
            age = self.age
            if age is not None and age < 18:
                self.data["is_minor"] = True

    def validate(self) -> dict[str, str]:
        return validate_patient_form(self.data)

    def cleaned(self) -> dict[str, Any]:
        return clean_patient_payload(self.data)


class SessionDraft(FormDraft):
    fields = SESSION_FIELDS

    def __init__(self, data: dict[str, Any] | None = None):
        super().__init__(data)
        for name in (*MULTI_SELECT_FIELDS, "techniques"):
            self.data[name] = list(self.data.get(name) or [])
        self.techniques = TechniqueSelection.from_stored(
            self.data.get("approach"), self.data["techniques"]
        )

    def defaults(self) -> dict[str, Any]:
        return {
            "session_type": "regular",
            "duration_minutes": DEFAULT_DURATION,
            "modality": "in-person",
            "referral_needed": False,
        }

    @property
    def is_intake(self) -> bool:
        return self.data.get("session_type") == "intake"

    def set(self, name: str, value: Any) -> None:
        if name == "techniques":
            self.techniques = TechniqueSelection.from_stored(self.data.get("approach"), value)
        super().set(name, value)
        if name == "approach":
            self.techniques = self.techniques.with_approach(value)
        self._sync_techniques()

    def toggle(self, name: str, value: str) -> None:
        """Select or deselect ``value`` in a multi-select field, keeping selection order."""
        if name not in MULTI_SELECT_FIELDS:
            raise ValueError(f"{name} is not a multi-select field")
        selected = list(self.data.get(name) or [])
        if value in selected:
            selected.remove(value)
        else:
            selected.append(value)
        self.set(name, selected)

    def toggle_technique(self, technique: str) -> None:
        self.techniques.toggle(technique)
        self._sync_techniques()

    def add_custom_technique(self, technique: str) -> None:
        self.techniques.add_custom(technique)
        self._sync_techniques()

    def remove_custom_technique(self, technique: str) -> None:
        self.techniques.remove_custom(technique)
        self._sync_techniques()

    def _sync_techniques(self) -> None:
        self.data["techniques"] = self.techniques.as_stored()

    def validate(self) -> dict[str, str]:
        return validate_session_form(self.data)

    def cleaned(self) -> dict[str, Any]:
        return clean_session_payload(self.data)
