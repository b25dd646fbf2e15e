"""
Group fairness diagnostics across Fitzpatrick skin types.

Each labelled prediction is bucketed by the patient's skin type, every bucket
gets a confusion matrix, rate metrics and a Brier score, and the buckets are
then reduced to cross-group gaps with threshold alerts:

- demographic parity gap (positive prediction rate)
- equal opportunity gap (true positive rate)
- calibration gap (Brier score)
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from .policy import AlertThresholds, LabelTaxonomy

GAP_DECIMALS = 12

RECORD_COLUMNS = ["classification", "ground_truth", "confidence", "group"]


@dataclass(frozen=True)
class PredictionRecord:
    classification: str
    ground_truth: Optional[str]
    confidence: float  # 0-100, the classifier's confidence in `classification`
    group: Optional[str] = None


@dataclass(frozen=True)
class ConfusionMatrix:
    tp: int = 0
    fp: int = 0
    tn: int = 0
    fn: int = 0

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn


@dataclass(frozen=True)
class GroupFairnessMetrics:
    group: str
    total_predictions: int
    positive_predictions: int
    true_positives: int
    false_positives: int
    true_negatives: int
    false_negatives: int
    positive_rate: float
    true_positive_rate: float
    false_positive_rate: float
    precision: float
    recall: float
    f1_score: float
    brier_score: float
    average_confidence: float
    accuracy_at_confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupFairnessMetrics":
        return cls(**{f.name: data[f.name] for f in fields(cls)})


@dataclass(frozen=True)
class DisparitySummary:
    """
    Cross-group gaps for one audit. An audit with no groups and an audit that
    found no disparity look the same here; callers that care must check the
    sample counts.
    """

    overall_disparity_score: float = 0.0
    demographic_parity_gap: float = 0.0
    equal_opportunity_gap: float = 0.0
    calibration_gap: float = 0.0
    parity_alert: bool = False
    opportunity_alert: bool = False
    calibration_alert: bool = False

    @property
    def any_alert(self) -> bool:
        return self.parity_alert or self.opportunity_alert or self.calibration_alert

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _to_frame(records: Iterable[PredictionRecord]) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in records], columns=RECORD_COLUMNS)


def _ratio(numerator: float, denominator: float) -> float:
    return float(numerator / denominator) if denominator > 0 else 0.0


def _confusion_from_frame(df: pd.DataFrame, taxonomy: LabelTaxonomy) -> ConfusionMatrix:
    positives = list(taxonomy.positive_labels)
    predicted = df["classification"].isin(positives)
    actual = df["ground_truth"].isin(positives)
    return ConfusionMatrix(
        tp=int((predicted & actual).sum()),
        fp=int((predicted & ~actual).sum()),
        tn=int((~predicted & ~actual).sum()),
        fn=int((~predicted & actual).sum()),
    )


def _brier_from_frame(df: pd.DataFrame) -> float:
    if df.empty:
        return 0.0
    predicted_prob = df["confidence"].astype(float).to_numpy() / 100.0
    outcome = (df["classification"] == df["ground_truth"]).to_numpy(dtype=float)
    return float(np.mean(np.square(predicted_prob - outcome)))


def confusion_matrix(
    records: Iterable[PredictionRecord],
    taxonomy: Optional[LabelTaxonomy] = None,
) -> ConfusionMatrix:
    """Counts TP/FP/TN/FN with positivity defined by the taxonomy's positive labels."""
    taxonomy = taxonomy or LabelTaxonomy.default()
    return _confusion_from_frame(_to_frame(records), taxonomy)


def brier_score(records: Iterable[PredictionRecord]) -> float:
    """
    Mean squared error between confidence/100 and whether the top-1
    classification matched ground truth. Empty input scores 0.
    """
    return _brier_from_frame(_to_frame(records))


def _group_metrics(group: str, sub: pd.DataFrame, taxonomy: LabelTaxonomy) -> GroupFairnessMetrics:
    n = len(sub)
    cm = _confusion_from_frame(sub, taxonomy)
    positive_predictions = cm.tp + cm.fp

    precision = _ratio(cm.tp, cm.tp + cm.fp)
    recall = _ratio(cm.tp, cm.tp + cm.fn)
    f1 = _ratio(2 * precision * recall, precision + recall)
    correct = int((sub["classification"] == sub["ground_truth"]).sum())

    return GroupFairnessMetrics(
        group=str(group),
        total_predictions=n,
        positive_predictions=positive_predictions,
        true_positives=cm.tp,
        false_positives=cm.fp,
        true_negatives=cm.tn,
        false_negatives=cm.fn,
        positive_rate=_ratio(positive_predictions, n),
        true_positive_rate=recall,
        false_positive_rate=_ratio(cm.fp, cm.fp + cm.tn),
        precision=precision,
        recall=recall,
        f1_score=f1,
        brier_score=_brier_from_frame(sub),
        average_confidence=float(sub["confidence"].astype(float).mean()),
        accuracy_at_confidence=_ratio(correct, n),
    )


def compute_group_metrics(
    records: Iterable[PredictionRecord],
    taxonomy: Optional[LabelTaxonomy] = None,
) -> List[GroupFairnessMetrics]:
    """
    One metrics record per protected-attribute group. Records without ground
    truth are skipped; records without a group go to the unknown group.
    Output order is not meaningful.
    """
    taxonomy = taxonomy or LabelTaxonomy.default()
    df = _to_frame(records)

    labeled = df[df["ground_truth"].notna() & (df["ground_truth"] != "")].copy()
    if labeled.empty:
        return []

    has_group = labeled["group"].notna() & (labeled["group"] != "")
    labeled["group"] = labeled["group"].where(has_group, taxonomy.unknown_group)

    return [
        _group_metrics(group, sub, taxonomy)
        for group, sub in labeled.groupby("group", sort=False)
    ]


def _gap(values: List[float]) -> float:
    # compared at 12 decimals: 2/5 - 1/4 must equal 0.15, not 0.15000000000000002
    return round(float(max(values) - min(values)), GAP_DECIMALS)


def compute_disparity(
    metrics: List[GroupFairnessMetrics],
    thresholds: Optional[AlertThresholds] = None,
) -> DisparitySummary:
    thresholds = thresholds or AlertThresholds.default()
    if not metrics:
        return DisparitySummary()

    parity_gap = _gap([m.positive_rate for m in metrics])
    opportunity_gap = _gap([m.true_positive_rate for m in metrics])
    calibration_gap = _gap([m.brier_score for m in metrics])

    return DisparitySummary(
        overall_disparity_score=(parity_gap + opportunity_gap + calibration_gap) / 3,
        demographic_parity_gap=parity_gap,
        equal_opportunity_gap=opportunity_gap,
        calibration_gap=calibration_gap,
        parity_alert=parity_gap > thresholds.parity,
        opportunity_alert=opportunity_gap > thresholds.opportunity,
        calibration_alert=calibration_gap > thresholds.calibration,
    )
