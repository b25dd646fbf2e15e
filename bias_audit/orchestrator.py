from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from config import DEFAULT_AUDIT_DAYS_BACK
from .audit_runs import AuditRun, AuditRunStore
from .fairness import (
    DisparitySummary,
    GroupFairnessMetrics,
    compute_disparity,
    compute_group_metrics,
)
from .governance_log import log_governance_event, utc_now
from .policy import AlertThresholds, LabelTaxonomy
from .records import ClinicalRecordStore


class NoLabeledSamplesError(ValueError):
    """The audit window holds no analyses with ground truth labels."""


@dataclass
class AuditOutcome:
    audit_run: AuditRun
    metrics: List[GroupFairnessMetrics]
    disparity: DisparitySummary


def run_fairness_audit(
    records: ClinicalRecordStore,
    audit_store: AuditRunStore,
    days_back: int = DEFAULT_AUDIT_DAYS_BACK,
    taxonomy: Optional[LabelTaxonomy] = None,
    thresholds: Optional[AlertThresholds] = None,
    now: Optional[datetime] = None,
) -> AuditOutcome:
    """
    Audit labelled analyses from the last `days_back` days and persist the result.

    Raises NoLabeledSamplesError (nothing is persisted) when the window has no
    ground truth, so "no data" is never reported as "no bias".
    """
    if isinstance(days_back, bool) or not isinstance(days_back, int) or days_back <= 0:
        raise ValueError(f"days_back must be a positive integer, got {days_back!r}")

    end_date = now or utc_now()
    start_date = end_date - timedelta(days=days_back)

    total_samples = records.count_analyses(start_date, end_date)
    labeled = records.labeled_predictions(start_date, end_date)

    if not labeled:
        log_governance_event(
            "FAIRNESS_AUDIT_SKIPPED",
            {
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "total_samples": total_samples,
                "reason": "no ground truth labels in window",
            },
        )
        raise NoLabeledSamplesError(
            "No analyses with ground truth labels found in the specified date range"
        )

    metrics = compute_group_metrics(labeled, taxonomy)
    disparity = compute_disparity(metrics, thresholds)

    audit_run = AuditRun.from_disparity(
        disparity,
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        total_samples=total_samples,
        samples_with_ground_truth=len(labeled),
        run_at=utc_now().isoformat(),
    )
    audit_store.save_run(audit_run, metrics)

    log_governance_event(
        "FAIRNESS_AUDIT_RUN",
        {
            "audit_run_id": audit_run.id,
            "days_back": days_back,
            "total_samples": total_samples,
            "samples_with_ground_truth": len(labeled),
            "groups": sorted(m.group for m in metrics),
            **disparity.to_dict(),
        },
    )
    if disparity.any_alert:
        log_governance_event(
            "FAIRNESS_ALERT_RAISED",
            {
                "audit_run_id": audit_run.id,
                "parity_alert": disparity.parity_alert,
                "opportunity_alert": disparity.opportunity_alert,
                "calibration_alert": disparity.calibration_alert,
            },
        )

    return AuditOutcome(audit_run=audit_run, metrics=metrics, disparity=disparity)
