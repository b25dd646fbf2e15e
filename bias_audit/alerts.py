from dataclasses import dataclass, asdict
from typing import Any, Dict, List

from .audit_runs import AuditRun, AuditRunStore


@dataclass
class FairnessAlert:
    type: str  # "demographic_parity", "equal_opportunity" or "calibration"
    severity: str
    message: str
    gap: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _alert(alert_type: str, title: str, gap: float) -> FairnessAlert:
    return FairnessAlert(
        type=alert_type,
        severity="warning",
        message=f"{title} gap of {gap * 100:.1f}% detected across skin tones",
        gap=gap,
    )


def alerts_for_run(run: AuditRun) -> List[FairnessAlert]:
    alerts = []
    if run.parity_alert:
        alerts.append(_alert("demographic_parity", "Demographic parity", run.demographic_parity_gap))
    if run.opportunity_alert:
        alerts.append(_alert("equal_opportunity", "Equal opportunity", run.equal_opportunity_gap))
    if run.calibration_alert:
        alerts.append(_alert("calibration", "Calibration", run.calibration_gap))
    return alerts


def current_alerts(audit_store: AuditRunStore) -> Dict[str, Any]:
    """Alerts of the most recently persisted audit run; nothing is recomputed."""
    latest = audit_store.latest_run()
    if latest is None:
        return {"alerts": [], "audit_run": None}
    return {"alerts": alerts_for_run(latest), "audit_run": latest}
