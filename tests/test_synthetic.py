from bias_audit import records
from bias_audit.orchestrator import run_fairness_audit
from bias_audit.records import ClinicalRecordStore
from bias_audit.synthetic import generate_synthetic_analyses, seed_store

from conftest import NOW


def test_generate_is_reproducible():
    a = generate_synthetic_analyses(n=50, seed=7)
    b = generate_synthetic_analyses(n=50, seed=7)
    assert a.equals(b)
    assert a["confidence"].between(0, 100).all()


def test_seeded_store_can_be_audited(record_store, audit_store):
    added = seed_store(record_store, n=60, seed=3, now=NOW)
    assert added == 60
    assert len(record_store.list_analyses()) == 60

    outcome = run_fairness_audit(record_store, audit_store, days_back=365, now=NOW)
    assert outcome.audit_run.total_samples == 60
    assert 0 < outcome.audit_run.samples_with_ground_truth <= 60
    for m in outcome.metrics:
        assert 0.0 <= m.brier_score <= 1.0


def test_seed_store_writes_once(record_store, monkeypatch):
    writes = []
    original = records.write_json_atomic

    def counting_write(path, obj):
        writes.append(path)
        original(path, obj)

    monkeypatch.setattr(records, "write_json_atomic", counting_write)
    seed_store(record_store, n=30, seed=5, now=NOW)

    assert len(writes) == 1
    assert len(ClinicalRecordStore(record_store.path).list_analyses()) == 30
