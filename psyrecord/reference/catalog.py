"""
Static reference tables for session and patient forms.

Every coded field stores the ``value``; screens and generated documents
show the ``label``. Topics are the exception: they are stored as their
display text, and users may add topics that are not in the preset list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Option:
    value: str
    label: str
    description: str = ""


class TreatmentStatus(str, Enum):
    ACTIVE = "active"
    DISCHARGED = "discharged"
    ABANDONED = "abandoned"
    REFERRED = "referred"
    SUSPENDED = "suspended"


class SessionType(str, Enum):
    INTAKE = "intake"
    REGULAR = "regular"
    CLOSURE = "closure"


class Modality(str, Enum):
    IN_PERSON = "in-person"
    REMOTE = "remote"


class Approach(str, Enum):
    COGNITIVE_BEHAVIORAL = "cognitive-behavioral"
    PSYCHODYNAMIC = "psychodynamic"
    HUMANISTIC = "humanistic"
    BEHAVIOR_ANALYSIS = "behavior-analysis"


NO_MEDICATION = "no-medication"
MEDICATION_CHANGED = "changed"

DURATION_CHOICES = [30, 45, 50, 60, 90, 120]
DEFAULT_DURATION = 50


TREATMENT_STATUSES = [
    Option("active", "Active", "Patient in regular treatment"),
    Option("discharged", "Discharged", "Treatment successfully concluded"),
    Option("abandoned", "Abandoned", "Patient abandoned treatment"),
    Option("referred", "Referred", "Referred to another professional"),
    Option("suspended", "Suspended", "Treatment temporarily suspended"),
]

SESSION_TYPES = [
    Option("intake", "Intake"),
    Option("regular", "Regular"),
    Option("closure", "Closure"),
]

MODALITIES = [
    Option("in-person", "In-person"),
    Option("remote", "Remote"),
]

SESSION_TOPICS = [
    "Anxiety",
    "Depression",
    "Family relationships",
    "Romantic relationships",
    "Work and career",
    "Self-esteem",
    "Grief",
    "Stress",
    "Trauma",
    "Sleep",
    "Substance use",
    "Social skills",
    "Academic performance",
    "Identity",
    "Emotional regulation",
]

SLEEP_PATTERNS = [
    Option("regular", "Regular"),
    Option("insomnia", "Insomnia"),
    Option("hypersomnia", "Hypersomnia"),
    Option("fragmented", "Fragmented"),
    Option("nightmares", "With nightmares"),
]

MOODS = [
    Option("euthymic", "Euthymic"),
    Option("depressed", "Depressed"),
    Option("anxious", "Anxious"),
    Option("irritable", "Irritable"),
    Option("euphoric", "Euphoric"),
    Option("apathetic", "Apathetic"),
    Option("labile", "Labile"),
]

EATING_PATTERNS = [
    Option("regular", "Regular"),
    Option("increased", "Increased appetite"),
    Option("decreased", "Decreased appetite"),
    Option("binge", "Binge eating"),
    Option("restrictive", "Restrictive"),
]

MEDICATION_STATUSES = [
    Option(NO_MEDICATION, "No medication"),
    Option("stable", "In stable use"),
    Option(MEDICATION_CHANGED, "Medication changed"),
    Option("discontinued", "Discontinued"),
    Option("irregular", "In irregular use"),
]

THERAPY_APPROACHES = [
    Option("cognitive-behavioral", "Cognitive-Behavioral Therapy"),
    Option("psychodynamic", "Psychodynamic Psychotherapy"),
    Option("humanistic", "Humanistic Psychotherapy"),
    Option("behavior-analysis", "Behavior Analysis"),
]

TECHNIQUES_BY_APPROACH: dict[str, list[str]] = {
    "cognitive-behavioral": [
        "Cognitive restructuring",
        "Socratic questioning",
        "Thought records",
        "Behavioral activation",
        "Exposure",
        "Problem solving",
        "Psychoeducation",
        "Relaxation training",
    ],
    "psychodynamic": [
        "Free association",
        "Interpretation",
        "Transference analysis",
        "Dream analysis",
        "Clarification",
        "Confrontation",
    ],
    "humanistic": [
        "Active listening",
        "Empathic reflection",
        "Unconditional positive regard",
        "Focusing",
        "Empty chair",
    ],
    "behavior-analysis": [
        "Functional analysis",
        "Positive reinforcement",
        "Shaping",
        "Extinction",
        "Token economy",
        "Modeling",
    ],
}

DOCUMENT_TYPES = [
    Option("assessment-report", "Psychological Assessment Report"),
    Option("certificate", "Certificate"),
    Option("declaration", "Declaration"),
    Option("consent-form", "Consent Form"),
    Option("report", "Report"),
    Option("test-instrument", "Test Instrument"),
    Option("other", "Other"),
]


def values(options: list[Option]) -> list[str]:
    return [o.value for o in options]


def label_for(value: str | None, options: list[Option]) -> str | None:
    """Display label for a coded value; unknown values are returned verbatim."""
    if not value:
        return None
    for option in options:
        if option.value == value:
            return option.label
    return value


@dataclass
class TechniqueSelection:
    """
    Techniques chosen for a session, keeping track of where each came from.

    Preset techniques belong to the approach's reference list; custom ones
    were typed in by the clinician. ``selected`` holds both in the order
    they were chosen, which is also the stored order.
    """

    approach: str | None
    selected: list[str] = field(default_factory=list)
    custom: list[str] = field(default_factory=list)

    @classmethod
    def from_stored(cls, approach: str | None, techniques: list[str] | None) -> TechniqueSelection:
        known = set(TECHNIQUES_BY_APPROACH.get(approach or "", []))
        selection = cls(approach=approach)
        for technique in techniques or []:
            if technique in selection.selected:
                continue
            selection.selected.append(technique)
            if technique not in known:
                selection.custom.append(technique)
        return selection

    @property
    def preset(self) -> list[str]:
        return [t for t in self.selected if t not in self.custom]

    def with_approach(self, approach: str | None) -> TechniqueSelection:
        """Presets belong to one approach; typed-in techniques survive a switch."""
        return TechniqueSelection(approach, selected=list(self.custom), custom=list(self.custom))

    def toggle(self, technique: str) -> None:
        if technique in self.preset:
            self.selected.remove(technique)
        elif technique in TECHNIQUES_BY_APPROACH.get(self.approach or "", []):
            if technique not in self.selected:
                self.selected.append(technique)

    def add_custom(self, technique: str) -> None:
        technique = technique.strip()
        if technique and technique not in self.selected:
            self.selected.append(technique)
            self.custom.append(technique)

    def remove_custom(self, technique: str) -> None:
        if technique in self.custom:
            self.custom.remove(technique)
            self.selected.remove(technique)

    def as_stored(self) -> list[str]:
        return list(self.selected)
