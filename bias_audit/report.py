from typing import Any, Dict, Optional

from config import (
    SYSTEM_NAME,
    SYSTEM_VERSION,
    PROTECTED_ATTRIBUTE,
    MIN_GROUP_SAMPLES,
)
from .alerts import alerts_for_run
from .audit_runs import AuditRunStore


def generate_fairness_report(
    audit_store: AuditRunStore,
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Fairness audit report for one run (latest by default), ready for JSON download."""
    if run_id is None:
        run = audit_store.latest_run()
        if run is None:
            raise KeyError("No fairness audit runs recorded yet")
    else:
        run = audit_store.get_run(run_id)

    metrics = sorted(audit_store.metrics_for_run(run.id), key=lambda m: m.group)
    alerts = alerts_for_run(run)

    coverage = {
        "total_samples": run.total_samples,
        "samples_with_ground_truth": run.samples_with_ground_truth,
        "label_coverage": (
            run.samples_with_ground_truth / run.total_samples if run.total_samples else 0.0
        ),
    }

    issues = [a.message for a in alerts]
    thin_groups = [m.group for m in metrics if m.total_predictions < MIN_GROUP_SAMPLES]
    if thin_groups:
        issues.append(
            f"Groups with fewer than {MIN_GROUP_SAMPLES} labelled samples: "
            + ", ".join(thin_groups)
        )
    if len(metrics) == 1:
        issues.append("Only one skin type group audited; disparity cannot be measured.")

    mitigations = [
        "Keep collecting clinician-verified ground truth across all skin types.",
        "Review the classifier's outputs with a dermatologist before acting on them.",
    ]
    if run.parity_alert or run.opportunity_alert:
        mitigations.insert(
            0, "Escalate urgent-category predictions for under-served skin types to manual review."
        )
    if run.calibration_alert:
        mitigations.insert(
            0, "Do not rely on reported confidence for groups with elevated Brier scores."
        )
    if thin_groups:
        mitigations.append("Increase labelled sample sizes for thin groups before drawing conclusions.")

    return {
        "system_overview": {
            "system_name": SYSTEM_NAME,
            "version": SYSTEM_VERSION,
            "protected_attribute": PROTECTED_ATTRIBUTE,
        },
        "audit_run": {
            "id": run.id,
            "run_at": run.run_at,
            "start_date": run.start_date,
            "end_date": run.end_date,
        },
        "coverage": coverage,
        "disparity": run.disparity.to_dict(),
        "group_metrics": [m.to_dict() for m in metrics],
        "alerts": [a.to_dict() for a in alerts],
        "qualitative_risk_assessment": {
            "overall_level": "high" if alerts else ("medium" if issues else "low"),
            "identified_issues": issues,
        },
        "recommended_mitigations": mitigations,
    }
