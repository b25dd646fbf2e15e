from datetime import datetime, timezone

import pytest

from bias_audit import governance_log
from bias_audit.audit_runs import AuditRunStore
from bias_audit.fairness import GroupFairnessMetrics, PredictionRecord
from bias_audit.records import ClinicalRecordStore

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def governance_log_file(tmp_path, monkeypatch):
    path = tmp_path / "governance_events.jsonl"
    monkeypatch.setattr(governance_log, "GOVERNANCE_LOG_FILE", path)
    return path


@pytest.fixture
def record_store(tmp_path):
    return ClinicalRecordStore(tmp_path / "clinical_records.json")


@pytest.fixture
def audit_store(tmp_path):
    return AuditRunStore(tmp_path / "audit_runs.json")


def rec(classification, ground_truth, confidence=80, group="II"):
    return PredictionRecord(
        classification=classification,
        ground_truth=ground_truth,
        confidence=confidence,
        group=group,
    )


def group_metrics(group="I", positive_rate=0.0, true_positive_rate=0.0, brier_score=0.0):
    return GroupFairnessMetrics(
        group=group,
        total_predictions=10,
        positive_predictions=int(round(positive_rate * 10)),
        true_positives=0,
        false_positives=0,
        true_negatives=0,
        false_negatives=0,
        positive_rate=positive_rate,
        true_positive_rate=true_positive_rate,
        false_positive_rate=0.0,
        precision=0.0,
        recall=true_positive_rate,
        f1_score=0.0,
        brier_score=brier_score,
        average_confidence=75.0,
        accuracy_at_confidence=0.5,
    )
