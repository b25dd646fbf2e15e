from datetime import timedelta

import pytest

from bias_audit.records import ClinicalRecordStore, new_analysis, new_patient

from conftest import NOW


def test_register_and_reload(record_store):
    patient = record_store.register_patient("P-001", "Ada", "IV")
    reloaded = ClinicalRecordStore(record_store.path)
    assert reloaded.get_patient(patient.id).fitzpatrick_type == "IV"


def test_register_rejects_bad_skin_type(record_store):
    with pytest.raises(ValueError):
        record_store.register_patient("P-001", "Ada", "VII")


def test_register_rejects_duplicate_code(record_store):
    record_store.register_patient("P-001", "Ada")
    with pytest.raises(ValueError):
        record_store.register_patient("P-001", "Bea")


def test_record_analysis_validation(record_store):
    patient = record_store.register_patient("P-001", "Ada")
    with pytest.raises(ValueError):
        record_store.record_analysis(patient.id, "Benign", 120)
    with pytest.raises(KeyError):
        record_store.record_analysis("missing", "Benign", 50)


def test_labeled_predictions_window_and_join(record_store):
    typed = record_store.register_patient("P-001", "Ada", "II")
    untyped = record_store.register_patient("P-002", "Bea")

    recent = record_store.record_analysis(typed.id, "Malignant", 90, analyzed_at=NOW - timedelta(days=2))
    old = record_store.record_analysis(typed.id, "Benign", 70, analyzed_at=NOW - timedelta(days=40))
    record_store.record_analysis(untyped.id, "Rash", 60, analyzed_at=NOW - timedelta(days=1))
    no_type = record_store.record_analysis(untyped.id, "Benign", 65, analyzed_at=NOW - timedelta(days=3))

    record_store.set_ground_truth(recent.id, "Malignant", "clinician_review")
    record_store.set_ground_truth(old.id, "Benign", "clinician_review")
    record_store.set_ground_truth(no_type.id, "Rash", "clinician_review")

    start, end = NOW - timedelta(days=30), NOW
    assert record_store.count_analyses(start, end) == 3

    labeled = record_store.labeled_predictions(start, end)
    assert len(labeled) == 2
    by_class = {r.classification: r for r in labeled}
    assert by_class["Malignant"].group == "II"
    assert by_class["Malignant"].ground_truth == "Malignant"
    assert by_class["Benign"].group is None


def test_set_ground_truth_unknown_analysis(record_store):
    with pytest.raises(KeyError):
        record_store.set_ground_truth("missing", "Benign", "clinician_review")


def test_saves_through_separate_stores_are_merged(record_store):
    other = ClinicalRecordStore(record_store.path)
    ada = record_store.register_patient("P-001", "Ada", "II")
    bea = other.register_patient("P-002", "Bea", "V")

    fresh = ClinicalRecordStore(record_store.path)
    assert {p.id for p in fresh.list_patients()} == {ada.id, bea.id}


def test_duplicate_code_is_checked_against_the_file(record_store):
    other = ClinicalRecordStore(record_store.path)
    record_store.register_patient("P-001", "Ada")
    with pytest.raises(ValueError):
        other.register_patient("P-001", "Bea")


def test_set_ground_truth_keeps_rows_from_other_stores(record_store):
    patient = record_store.register_patient("P-001", "Ada", "II")
    analysis = record_store.record_analysis(patient.id, "Malignant", 90, analyzed_at=NOW)

    stale = ClinicalRecordStore(record_store.path)
    late = record_store.register_patient("P-002", "Bea", "VI")
    stale.set_ground_truth(analysis.id, "Malignant", "clinician_review")

    fresh = ClinicalRecordStore(record_store.path)
    assert fresh.get_patient(late.id).name == "Bea"
    assert fresh.get_analysis(analysis.id).ground_truth_label == "Malignant"


def test_add_records_rejects_whole_batch(record_store):
    with pytest.raises(KeyError):
        record_store.add_records(
            patients=[new_patient("P-001", "Ada")],
            analyses=[new_analysis("missing", "Benign", 50)],
        )
    assert ClinicalRecordStore(record_store.path).list_patients() == []
