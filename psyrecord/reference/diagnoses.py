"""DSM-5-TR and CID-10 (ICD-10) code tables used for diagnostic coding."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Diagnosis:
    code: str
    name: str


DSM_DIAGNOSES = [
    Diagnosis("300.02", "Generalized Anxiety Disorder"),
    Diagnosis("300.01", "Panic Disorder"),
    Diagnosis("300.23", "Social Anxiety Disorder"),
    Diagnosis("296.21", "Major Depressive Disorder, single episode, mild"),
    Diagnosis("296.22", "Major Depressive Disorder, single episode, moderate"),
    Diagnosis("296.23", "Major Depressive Disorder, single episode, severe"),
    Diagnosis("296.32", "Major Depressive Disorder, recurrent, moderate"),
    Diagnosis("300.4", "Persistent Depressive Disorder"),
    Diagnosis("296.89", "Bipolar II Disorder"),
    Diagnosis("309.81", "Posttraumatic Stress Disorder"),
    Diagnosis("309.0", "Adjustment Disorder with depressed mood"),
    Diagnosis("300.3", "Obsessive-Compulsive Disorder"),
    Diagnosis("314.01", "Attention-Deficit/Hyperactivity Disorder, combined presentation"),
    Diagnosis("299.00", "Autism Spectrum Disorder"),
    Diagnosis("307.1", "Anorexia Nervosa"),
    Diagnosis("307.51", "Bulimia Nervosa"),
    Diagnosis("307.42", "Insomnia Disorder"),
    Diagnosis("301.83", "Borderline Personality Disorder"),
]

CID_DIAGNOSES = [
    Diagnosis("F32.0", "Mild depressive episode"),
    Diagnosis("F32.1", "Moderate depressive episode"),
    Diagnosis("F32.2", "Severe depressive episode without psychotic symptoms"),
    Diagnosis("F33.1", "Recurrent depressive disorder, current episode moderate"),
    Diagnosis("F34.1", "Dysthymia"),
    Diagnosis("F31.8", "Other bipolar affective disorders"),
    Diagnosis("F40.1", "Social phobias"),
    Diagnosis("F41.0", "Panic disorder"),
    Diagnosis("F41.1", "Generalized anxiety disorder"),
    Diagnosis("F42", "Obsessive-compulsive disorder"),
    Diagnosis("F43.1", "Post-traumatic stress disorder"),
    Diagnosis("F43.2", "Adjustment disorders"),
    Diagnosis("F50.0", "Anorexia nervosa"),
    Diagnosis("F50.2", "Bulimia nervosa"),
    Diagnosis("F51.0", "Nonorganic insomnia"),
    Diagnosis("F60.3", "Emotionally unstable personality disorder"),
    Diagnosis("F84.0", "Childhood autism"),
    Diagnosis("F90.0", "Disturbance of activity and attention"),
]

_DSM_BY_CODE = {d.code: d for d in DSM_DIAGNOSES}
_CID_BY_CODE = {d.code: d for d in CID_DIAGNOSES}


def dsm_name(code: str) -> str | None:
    found = _DSM_BY_CODE.get(code)
    return found.name if found else None


def cid_name(code: str) -> str | None:
    found = _CID_BY_CODE.get(code)
    return found.name if found else None


def narrative_label(code: str, lookup) -> str:
    """``Name (code)``, or the bare code when it is not in the table."""
    name = lookup(code)
    return f"{name} ({code})" if name else code


def record_label(code: str, lookup) -> str:
    """``code - Name``, as printed in the exported dossier."""
    name = lookup(code)
    return f"{code} - {name}" if name else code
