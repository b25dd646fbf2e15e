import uuid
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import List

from config import AUDIT_RUNS_FILE, DEFAULT_AUDIT_RUN_LIMIT
from .fairness import DisparitySummary, GroupFairnessMetrics
from .records import locked_document, read_json


@dataclass
class AuditRun:
    id: str
    start_date: str
    end_date: str
    total_samples: int
    samples_with_ground_truth: int
    overall_disparity_score: float
    demographic_parity_gap: float
    equal_opportunity_gap: float
    calibration_gap: float
    parity_alert: bool
    opportunity_alert: bool
    calibration_alert: bool
    run_at: str

    @classmethod
    def from_disparity(
        cls,
        disparity: DisparitySummary,
        start_date: str,
        end_date: str,
        total_samples: int,
        samples_with_ground_truth: int,
        run_at: str,
    ) -> "AuditRun":
        return cls(
            id=uuid.uuid4().hex,
            start_date=start_date,
            end_date=end_date,
            total_samples=total_samples,
            samples_with_ground_truth=samples_with_ground_truth,
            run_at=run_at,
            **disparity.to_dict(),
        )

    @property
    def disparity(self) -> DisparitySummary:
        return DisparitySummary(
            **{f.name: getattr(self, f.name) for f in fields(DisparitySummary)}
        )


EMPTY_AUDIT_RUNS = {"audit_runs": [], "metrics": []}


class AuditRunStore:
    """
    Fairness audit runs and their per-group metric rows.

    Both live in one JSON document that is replaced atomically on save, so a
    run is never visible without its metrics. Saves re-read the file under a
    lock and append, so runs saved through other instances are kept.
    """

    def __init__(self, path: Path = AUDIT_RUNS_FILE):
        self.path = Path(path)
        self._data = read_json(self.path, EMPTY_AUDIT_RUNS)

    def reload(self) -> None:
        self._data = read_json(self.path, EMPTY_AUDIT_RUNS)

    def save_run(self, run: AuditRun, metrics: List[GroupFairnessMetrics]) -> AuditRun:
        rows = [{"audit_run_id": run.id, **m.to_dict()} for m in metrics]
        with locked_document(self.path, EMPTY_AUDIT_RUNS) as data:
            data["audit_runs"].append(asdict(run))
            data["metrics"].extend(rows)
        self._data = data
        return run

    def list_runs(self, limit: int = DEFAULT_AUDIT_RUN_LIMIT) -> List[AuditRun]:
        # newest first; insertion order breaks timestamp ties
        ordered = sorted(
            enumerate(self._data["audit_runs"]),
            key=lambda ir: (ir[1]["run_at"], ir[0]),
            reverse=True,
        )
        return [AuditRun(**r) for _, r in ordered[:limit]]

    def latest_run(self):
        runs = self.list_runs(limit=1)
        return runs[0] if runs else None

    def get_run(self, run_id: str) -> AuditRun:
        for r in self._data["audit_runs"]:
            if r["id"] == run_id:
                return AuditRun(**r)
        raise KeyError(f"Audit run not found: {run_id}")

    def metrics_for_run(self, run_id: str) -> List[GroupFairnessMetrics]:
        return [
            GroupFairnessMetrics.from_dict(m)
            for m in self._data["metrics"]
            if m["audit_run_id"] == run_id
        ]
