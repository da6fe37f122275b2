"""Tests for reference tables and technique selection."""

from psyrecord.reference.catalog import (
    TECHNIQUES_BY_APPROACH,
    THERAPY_APPROACHES,
    TREATMENT_STATUSES,
    TechniqueSelection,
    label_for,
    values,
)
from psyrecord.reference.diagnoses import cid_name, dsm_name, narrative_label, record_label


def test_every_approach_has_techniques():
    assert set(values(THERAPY_APPROACHES)) == set(TECHNIQUES_BY_APPROACH)


def test_label_for():
    assert label_for("discharged", TREATMENT_STATUSES) == "Discharged"
    assert label_for("unknown", TREATMENT_STATUSES) == "unknown"
    assert label_for(None, TREATMENT_STATUSES) is None


def test_diagnosis_labels():
    assert narrative_label("F41.1", cid_name) == "Generalized anxiety disorder (F41.1)"
    assert record_label("300.02", dsm_name) == "300.02 - Generalized Anxiety Disorder"
    assert narrative_label("999.99", dsm_name) == "999.99"


def test_from_stored_splits_provenance():
    selection = TechniqueSelection.from_stored(
        "cognitive-behavioral", ["Exposure", "Mindfulness breathing", "Thought records"]
    )
    assert selection.preset == ["Exposure", "Thought records"]
    assert selection.custom == ["Mindfulness breathing"]


def test_as_stored_collapses_to_plain_strings():
    selection = TechniqueSelection("psychodynamic")
    selection.toggle("Interpretation")
    selection.add_custom("  Sand tray  ")
    selection.add_custom("Interpretation")
    assert selection.as_stored() == ["Interpretation", "Sand tray"]

    selection.toggle("Interpretation")
    selection.remove_custom("Sand tray")
    assert selection.as_stored() == []


def test_selection_order_is_kept():
    selection = TechniqueSelection("cognitive-behavioral")
    selection.add_custom("Mindfulness")
    selection.toggle("Exposure")
    assert selection.as_stored() == ["Mindfulness", "Exposure"]
    assert selection.preset == ["Exposure"]

    reloaded = TechniqueSelection.from_stored("cognitive-behavioral", selection.as_stored())
    assert reloaded.as_stored() == ["Mindfulness", "Exposure"]
    assert reloaded.custom == ["Mindfulness"]


def test_approach_switch_keeps_custom_in_order():
    selection = TechniqueSelection("cognitive-behavioral")
    selection.add_custom("Mindfulness")
    selection.toggle("Exposure")
    selection.add_custom("Journaling")

    switched = selection.with_approach("humanistic")
    assert switched.as_stored() == ["Mindfulness", "Journaling"]
    assert switched.preset == []
