from datetime import timedelta

import pytest

from bias_audit.governance_log import load_governance_events
from bias_audit.orchestrator import NoLabeledSamplesError, run_fairness_audit
from bias_audit.policy import AlertThresholds

from conftest import NOW


def _add(store, patient, classification, truth, confidence=90, days_ago=1):
    analysis = store.record_analysis(
        patient.id, classification, confidence, analyzed_at=NOW - timedelta(days=days_ago)
    )
    if truth:
        store.set_ground_truth(analysis.id, truth, "clinician_review")
    return analysis


@pytest.fixture
def biased_store(record_store):
    light = record_store.register_patient("P-001", "Ada", "I")
    dark = record_store.register_patient("P-002", "Bea", "VI")
    for _ in range(2):
        _add(record_store, light, "Malignant", "Malignant")
        _add(record_store, dark, "Benign", "Malignant")
    _add(record_store, dark, "Rash", None)
    _add(record_store, light, "Benign", "Benign", days_ago=90)
    return record_store


def test_audit_persists_run_and_metrics(biased_store, audit_store):
    outcome = run_fairness_audit(biased_store, audit_store, days_back=30, now=NOW)

    run = outcome.audit_run
    assert run.total_samples == 5
    assert run.samples_with_ground_truth == 4
    assert {m.group for m in outcome.metrics} == {"I", "VI"}
    assert outcome.disparity.demographic_parity_gap == pytest.approx(1.0)
    assert outcome.disparity.equal_opportunity_gap == pytest.approx(1.0)
    assert outcome.disparity.calibration_gap == pytest.approx(0.8)
    assert run.parity_alert and run.opportunity_alert and run.calibration_alert

    assert audit_store.get_run(run.id) == run
    stored = sorted(audit_store.metrics_for_run(run.id), key=lambda m: m.group)
    assert stored == sorted(outcome.metrics, key=lambda m: m.group)
    assert run.start_date == (NOW - timedelta(days=30)).isoformat()
    assert run.end_date == NOW.isoformat()


def test_audit_logs_governance_events(biased_store, audit_store):
    outcome = run_fairness_audit(biased_store, audit_store, now=NOW)

    (event,) = load_governance_events("FAIRNESS_AUDIT_RUN")
    assert event["details"]["audit_run_id"] == outcome.audit_run.id
    assert event["details"]["groups"] == ["I", "VI"]
    (alert,) = load_governance_events("FAIRNESS_ALERT_RAISED")
    assert alert["details"]["parity_alert"] is True


def test_audit_uses_injected_thresholds(biased_store, audit_store):
    lenient = AlertThresholds(parity=1.0, opportunity=1.0, calibration=1.0)
    outcome = run_fairness_audit(biased_store, audit_store, thresholds=lenient, now=NOW)
    assert not outcome.disparity.any_alert
    assert load_governance_events("FAIRNESS_ALERT_RAISED") == []


def test_no_labeled_samples_is_an_error(record_store, audit_store):
    patient = record_store.register_patient("P-001", "Ada", "II")
    _add(record_store, patient, "Benign", None)

    with pytest.raises(NoLabeledSamplesError):
        run_fairness_audit(record_store, audit_store, now=NOW)

    assert audit_store.list_runs() == []
    (skipped,) = load_governance_events("FAIRNESS_AUDIT_SKIPPED")
    assert skipped["details"]["total_samples"] == 1


@pytest.mark.parametrize("days_back", [0, -5, 2.5, True])
def test_invalid_window(record_store, audit_store, days_back):
    with pytest.raises(ValueError):
        run_fairness_audit(record_store, audit_store, days_back=days_back, now=NOW)


def test_single_group_audit_has_no_disparity(record_store, audit_store):
    patient = record_store.register_patient("P-001", "Ada")
    _add(record_store, patient, "Malignant", "Benign")
    _add(record_store, patient, "Benign", "Benign")

    outcome = run_fairness_audit(record_store, audit_store, now=NOW)
    (metrics,) = outcome.metrics
    assert metrics.group == "Unknown"
    assert outcome.disparity.overall_disparity_score == 0.0
    assert not outcome.disparity.any_alert
